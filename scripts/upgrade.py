#!/usr/bin/python3

import sys

import click
from ape.cli import ConnectedProviderCommand, network_option

from eutopia_deployment.options import (
    autosign_option,
    confirmations_option,
    params_filepath_option,
    proxy_address_option,
    verify_option,
)
from eutopia_deployment.runner import run_deployment


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@params_filepath_option
@proxy_address_option
@verify_option
@autosign_option
@confirmations_option
def cli(network, params_filepath, proxy_address, verify, autosign, confirmations):
    """
    Deploys a new Eutopia implementation and upgrades an existing proxy to it.

    The proxy is taken from the params file unless --proxy-address is given.
    The initializer is not called again; proxy state is kept.

    ape run upgrade --network ethereum:sepolia:infura \\
        -p eutopia_deployment/constructor_params/sepolia/upgrade-eutopia.yml
    """
    exit_code = run_deployment(
        params_filepath=params_filepath,
        proxy_address=proxy_address,
        verify=verify,
        autosign=autosign,
        confirmations=confirmations,
    )
    sys.exit(exit_code)


if __name__ == "__main__":
    cli()
