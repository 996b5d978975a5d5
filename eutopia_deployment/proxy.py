from collections import OrderedDict
from typing import Any, Optional, Sequence

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from eutopia_deployment.abi import (
    decode_address,
    decode_single,
    encode_call,
    get_input_types,
    validate_method_args,
)
from eutopia_deployment.confirm import _confirm_resolution, _continue
from eutopia_deployment.constants import (
    DEFAULT_INITIALIZER,
    EIP1967_ADMIN_SLOT,
    EMPTY_SLOT,
)
from eutopia_deployment.exceptions import DeploymentFailed
from eutopia_deployment.models import (
    ContractArtifact,
    DeploymentTarget,
    NewProxy,
    ProxyHandle,
    UpgradeExisting,
)
from eutopia_deployment.provider import Deployment, NetworkProvider


class ProxyDeployer:
    """
    Deploys implementations behind OpenZeppelin transparent proxies, or upgrades
    the implementation behind an existing one.

    Deployments are not idempotent: every `NewProxy` execution creates a new proxy,
    and concurrent upgrades of the same proxy are only ordered by the chain itself.
    Callers must not retry blindly.
    """

    def __init__(
        self,
        network: NetworkProvider,
        proxy_artifact: ContractArtifact,
        proxy_admin_artifact: ContractArtifact,
        initializer: str = DEFAULT_INITIALIZER,
        initial_owner: Optional[ChecksumAddress] = None,
        autosign: bool = False,
    ):
        self.network = network
        self.proxy_artifact = proxy_artifact
        self.proxy_admin_artifact = proxy_admin_artifact
        self.initializer = initializer
        self.initial_owner = initial_owner
        self.autosign = autosign

    def execute(self, artifact: ContractArtifact, target: DeploymentTarget) -> ProxyHandle:
        if isinstance(target, NewProxy):
            return self.deploy_proxy(artifact, target.constructor_args)
        if isinstance(target, UpgradeExisting):
            return self.upgrade_proxy(artifact, target.proxy_address)
        raise TypeError(f"Unsupported deployment target {target!r}")

    def deploy_proxy(self, artifact: ContractArtifact, constructor_args: Sequence[Any]) -> ProxyHandle:
        """
        Deploys `artifact` and a proxy to it; the initializer is invoked with
        `constructor_args` from within the proxy constructor.
        """
        initializer_data = self.encode_initializer(artifact, constructor_args)

        implementation = self._deploy(artifact)

        owner = self.initial_owner or self.network.deployer_address
        print(f"\nDeploying {self.proxy_artifact.name} contract to proxy {artifact.name}.")
        proxy = self._deploy(
            self.proxy_artifact,
            OrderedDict(
                [
                    ("_logic", implementation.address),
                    ("initialOwner", owner),
                    ("_data", initializer_data),
                ]
            ),
        )
        print(
            f"\nWrapping {artifact.name} into {self.proxy_artifact.name} "
            f"at {proxy.address} (block {proxy.block_number})."
        )
        return ProxyHandle(
            address=to_checksum_address(proxy.address),
            chain_id=self.network.chain_id,
            network=self.network,
        )

    def upgrade_proxy(self, artifact: ContractArtifact, proxy_address: ChecksumAddress) -> ProxyHandle:
        """
        Deploys `artifact` and points the proxy at `proxy_address` to it.
        The initializer is never invoked again, so proxy state is preserved.
        """
        proxy_address = to_checksum_address(proxy_address)
        proxy_admin = self.get_proxy_admin(proxy_address)
        self._check_proxy_admin_owner(proxy_admin)

        implementation = self._deploy(artifact)
        self._transact(proxy_admin, "upgradeAndCall", proxy_address, implementation.address, b"")

        return ProxyHandle(
            address=proxy_address,
            chain_id=self.network.chain_id,
            network=self.network,
        )

    def encode_initializer(self, artifact: ContractArtifact, args: Sequence[Any]) -> bytes:
        if not artifact.has_method(self.initializer):
            raise DeploymentFailed(
                f"{artifact.name} has no initializer named '{self.initializer}'"
            )
        try:
            return bytes(encode_call(artifact.abi, self.initializer, args))
        except ValueError as e:
            raise DeploymentFailed(
                f"Invalid arguments for {artifact.name}.{self.initializer}: {e}"
            ) from e

    def get_proxy_admin(self, proxy_address: ChecksumAddress) -> ChecksumAddress:
        admin_slot = self.network.get_storage_at(proxy_address, EIP1967_ADMIN_SLOT)
        if bytes(admin_slot).rjust(32, b"\x00") == EMPTY_SLOT:
            raise DeploymentFailed(
                f"Admin slot for contract at {proxy_address} is empty. "
                "Are you sure this is an EIP1967-compatible proxy?"
            )
        return decode_address(admin_slot)

    def _check_proxy_admin_owner(self, proxy_admin: ChecksumAddress) -> None:
        owner_call = encode_call(self.proxy_admin_artifact.abi, "owner", [])
        owner = decode_single("address", self.network.call(proxy_admin, owner_call))
        deployer = self.network.deployer_address
        if to_checksum_address(owner) != to_checksum_address(deployer):
            raise DeploymentFailed(
                f"{self.proxy_admin_artifact.name} at {proxy_admin} is owned by {owner}, "
                f"not by the deployer account {deployer}."
            )

    def _deploy(self, artifact: ContractArtifact, params: Optional[OrderedDict] = None) -> Deployment:
        params = params or OrderedDict()
        if len(params) != len(artifact.constructor_types):
            raise DeploymentFailed(
                f"Constructor parameters length mismatch - "
                f"{artifact.name} ABI requires {len(artifact.constructor_types)}, Got {len(params)}."
            )
        if not self.autosign:
            _confirm_resolution(params, artifact.name)
        deployment = self.network.deploy(artifact, *params.values())
        print(f"(i) {artifact.name} deployed to {deployment.address} ({deployment.tx_hash})")
        return deployment

    def _transact(self, address: ChecksumAddress, method_name: str, *args: Any) -> None:
        artifact = self.proxy_admin_artifact
        method_abi = validate_method_args(artifact.get_method_abis(method_name), args)
        arg_names = [abi_input["name"] for abi_input in method_abi["inputs"]]
        pretty_args = "\n\t".join(
            f"{name}={value!r}" if isinstance(value, bytes) else f"{name}={value}"
            for name, value in zip(arg_names, args)
        )
        print(
            f"\nTransacting {artifact.name}[{address[:10]}].{method_name} "
            f"({', '.join(get_input_types(method_abi))}) with arguments:\n\t{pretty_args}"
        )
        if not self.autosign:
            _continue()
        receipt = self.network.transact(artifact, address, method_name, *args)
        print(f"(i) {method_name} confirmed in block {receipt.block_number} ({receipt.tx_hash})")
