import os
import typing
from typing import Any, Dict

from ape import networks, project
from ape.api import AccountAPI, ReceiptAPI
from ape.cli.choices import select_account
from ape.contracts import ContractContainer
from ape.exceptions import ApeException
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address, to_hex
from hexbytes import HexBytes

from eutopia_deployment.constants import (
    ETHERSCAN_API_KEY_ENVVAR,
    LOCAL_NETWORKS,
    OZ_DEPENDENCY_NAME,
    OZ_DEPENDENCY_VERSION,
)
from eutopia_deployment.exceptions import DeploymentFailed, VerificationFailed
from eutopia_deployment.models import ContractArtifact, VerificationRequest
from eutopia_deployment.provider import Deployment, NetworkProvider, Receipt
from eutopia_deployment.verification import VerificationService


def is_local_network() -> bool:
    return networks.provider.network.name in LOCAL_NETWORKS


#
# Contract factory resolution
#


def _get_dependency_contract_container(contract: str) -> ContractContainer:
    dependency = project.dependencies[OZ_DEPENDENCY_NAME][OZ_DEPENDENCY_VERSION]
    try:
        return getattr(dependency, contract)
    except AttributeError:
        raise ValueError(f"No contract found with name '{contract}'.")


def get_contract_container(contract: str) -> ContractContainer:
    try:
        contract_container = getattr(project, contract)
    except AttributeError:
        # not in root project; check dependencies
        contract_container = _get_dependency_contract_container(contract)

    return contract_container


def get_contract_artifact(contract: str) -> ContractArtifact:
    """Returns the compiled artifact of a project (or OpenZeppelin) contract."""
    contract_type = get_contract_container(contract).contract_type
    abi = [entry.model_dump(mode="json", by_alias=True, exclude_none=True) for entry in contract_type.abi]
    return ContractArtifact(
        name=contract_type.name,
        abi=abi,
        bytecode=HexBytes(contract_type.get_deployment_bytecode() or b""),
    )


#
# Plugins
#


def check_etherscan_plugin() -> None:
    """
    Checks that the ape-etherscan plugin is installed and that
    the API key environment variable is set.
    """
    if is_local_network():
        # unnecessary for local deployment
        return
    try:
        import ape_etherscan  # noqa: F401
    except ImportError:
        raise ImportError("Please install the ape-etherscan plugin to verify contracts.")
    if not os.environ.get(ETHERSCAN_API_KEY_ENVVAR):
        raise ValueError(f"{ETHERSCAN_API_KEY_ENVVAR} is not set.")


def check_infura_plugin() -> None:
    """Checks that the ape-infura plugin is installed and configured."""
    if is_local_network():
        return  # unnecessary for local deployment
    if networks.provider.name != "infura":
        return  # unnecessary when using a provider different than infura
    try:
        from ape_infura.provider import _ENVIRONMENT_VARIABLE_NAMES
    except ImportError:
        raise ImportError("Please install the ape-infura plugin to use this script.")
    for envvar in _ENVIRONMENT_VARIABLE_NAMES:
        api_key = os.environ.get(envvar)
        if api_key:
            break
    else:
        raise ValueError(
            f"No Infura API key found in "
            f"environment variables: {', '.join(_ENVIRONMENT_VARIABLE_NAMES)}"
        )


def check_plugins(verify: bool) -> None:
    print("Checking plugins...")
    if verify:
        check_etherscan_plugin()
    check_infura_plugin()


#
# Network
#


def _to_hash(txn_hash: Any) -> str:
    if isinstance(txn_hash, bytes):
        return to_hex(txn_hash)
    return str(txn_hash)


class ApeNetwork(NetworkProvider):
    """The ape connected provider plus the account used to sign transactions."""

    def __init__(
        self,
        account: typing.Optional[AccountAPI] = None,
        autosign: bool = False,
        required_confirmations: typing.Optional[int] = None,
        read_only: bool = False,
    ):
        if account is None and not read_only:
            account = select_account()
        if autosign:
            print("WARNING: Autosign is enabled. Transactions will be signed automatically.")
        if account is not None and hasattr(account, "set_autosign"):
            account.set_autosign(autosign)
        self.account = account
        self.required_confirmations = required_confirmations

    @property
    def chain_id(self) -> int:
        return networks.provider.chain_id

    @property
    def deployer_address(self) -> ChecksumAddress:
        if self.account is None:
            raise DeploymentFailed("No deployer account selected (read-only network).")
        return to_checksum_address(self.account.address)

    @property
    def is_local(self) -> bool:
        return is_local_network()

    def _get_kwargs(self) -> Dict[str, Any]:
        kwargs = dict()
        if self.required_confirmations is not None:
            kwargs["required_confirmations"] = self.required_confirmations
        return kwargs

    def get_storage_at(self, address: ChecksumAddress, slot: int) -> bytes:
        web3 = networks.provider.web3
        return bytes(web3.eth.get_storage_at(address, slot))

    def get_code(self, address: ChecksumAddress) -> bytes:
        return bytes(networks.provider.get_code(address))

    def call(self, address: ChecksumAddress, data: bytes) -> bytes:
        web3 = networks.provider.web3
        return bytes(web3.eth.call({"to": address, "data": to_hex(data)}))

    def deploy(self, artifact: ContractArtifact, *args: Any) -> Deployment:
        container = get_contract_container(artifact.name)
        try:
            instance = self.account.deploy(container, *args, publish=False, **self._get_kwargs())
        except ApeException as e:
            raise DeploymentFailed(f"Deployment of {artifact.name} failed: {e}") from e

        receipt = instance.receipt
        return Deployment(
            address=to_checksum_address(instance.address),
            tx_hash=_to_hash(receipt.txn_hash),
            block_number=receipt.block_number,
        )

    def transact(
        self, artifact: ContractArtifact, address: ChecksumAddress, method_name: str, *args: Any
    ) -> Receipt:
        contract = get_contract_container(artifact.name).at(address)
        method = getattr(contract, method_name)
        try:
            receipt: ReceiptAPI = method(*args, sender=self.account, **self._get_kwargs())
        except ApeException as e:
            raise DeploymentFailed(f"{artifact.name}.{method_name} failed: {e}") from e

        if receipt.failed:
            raise DeploymentFailed(
                f"{artifact.name}.{method_name} reverted in transaction {_to_hash(receipt.txn_hash)}"
            )
        return Receipt(tx_hash=_to_hash(receipt.txn_hash), block_number=receipt.block_number)


class ExplorerService(VerificationService):
    """Publishes contract sources through the block explorer plugin of the active network."""

    name = "explorer"

    def __init__(self, contract_name: str):
        self.contract_name = contract_name

    def verify(self, request: VerificationRequest) -> None:
        explorer = networks.provider.network.explorer
        if explorer is None:
            raise VerificationFailed(
                f"No block explorer configured for network {networks.provider.network.name}"
            )
        # registers the contract type of the implementation with ape
        get_contract_container(self.contract_name).at(request.address)
        explorer.publish_contract(request.address)
