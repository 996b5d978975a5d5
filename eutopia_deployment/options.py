from pathlib import Path

import click
from eth_utils import is_hex_address, to_checksum_address

from eutopia_deployment.constants import DEFAULT_CONTRACT_NAME


class ContractAddress(click.ParamType):
    """Hex-encoded contract address, returned checksummed."""

    name = "address"

    def convert(self, value, param, ctx):
        if not is_hex_address(value):
            self.fail(f"'{value}' is not a 20-byte hex contract address", param, ctx)
        return to_checksum_address(value)


params_filepath_option = click.option(
    "--params-filepath",
    "-p",
    help="Deployment parameters YAML file",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    required=True,
)

proxy_address_option = click.option(
    "--proxy-address",
    "-x",
    help="Address of the proxy to upgrade; overrides the params file.",
    type=ContractAddress(),
    required=False,
)

required_proxy_address_option = click.option(
    "--proxy-address",
    "-x",
    help="Address of the proxy.",
    type=ContractAddress(),
    required=True,
)

contract_name_option = click.option(
    "--contract-name",
    "-c",
    help="Name of the implementation contract",
    type=click.STRING,
    default=DEFAULT_CONTRACT_NAME,
    show_default=True,
)

verify_option = click.option(
    "--verify/--no-verify",
    help="Verify the implementation on the block explorer; overrides the params file.",
    default=None,
)

autosign_option = click.option(
    "--autosign",
    help="Sign transactions without asking for confirmation.",
    is_flag=True,
    default=False,
)

confirmations_option = click.option(
    "--confirmations",
    help="Number of confirmations to wait for on each transaction.",
    type=click.IntRange(min=0),
    required=False,
)
