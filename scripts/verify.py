import sys

import click
from ape.cli import ConnectedProviderCommand, network_option

from eutopia_deployment.options import contract_name_option, required_proxy_address_option
from eutopia_deployment.runner import run_verification


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@required_proxy_address_option
@contract_name_option
@click.option(
    "--link-proxy/--no-link-proxy",
    help="Also link the proxy to its implementation on the explorer.",
    default=True,
)
@click.option(
    "--api-url",
    help="Etherscan-compatible API used to link the proxy",
    type=click.STRING,
    required=False,
)
def cli(network, proxy_address, contract_name, link_proxy, api_url):
    """Verify the implementation currently behind a deployed proxy."""
    exit_code = run_verification(
        proxy_address=proxy_address,
        contract_name=contract_name,
        link_proxy=link_proxy,
        api_url=api_url,
    )
    sys.exit(exit_code)


if __name__ == "__main__":
    cli()
