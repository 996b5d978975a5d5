#!/usr/bin/python3

import sys
from pathlib import Path

import click
from ape.cli import ConnectedProviderCommand, network_option

from eutopia_deployment.constants import CONSTRUCTOR_PARAMS_DIR
from eutopia_deployment.options import (
    autosign_option,
    confirmations_option,
    verify_option,
)
from eutopia_deployment.runner import run_deployment

DEFAULT_PARAMS_FILEPATH = CONSTRUCTOR_PARAMS_DIR / "sepolia" / "deploy-eutopia.yml"


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@click.option(
    "--params-filepath",
    "-p",
    help="Deployment parameters YAML file",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    default=str(DEFAULT_PARAMS_FILEPATH),
    show_default=True,
)
@verify_option
@autosign_option
@confirmations_option
def cli(network, params_filepath, verify, autosign, confirmations):
    """
    Deploys Eutopia behind a new transparent proxy.

    Every run creates a new proxy; do not re-run after a failure
    without checking what is already on-chain.

    ape run deploy --network ethereum:sepolia:infura
    """
    exit_code = run_deployment(
        params_filepath=params_filepath,
        verify=verify,
        autosign=autosign,
        confirmations=confirmations,
    )
    sys.exit(exit_code)


if __name__ == "__main__":
    cli()
