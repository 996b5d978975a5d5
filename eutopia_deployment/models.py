import typing
from typing import Any, NamedTuple, Optional, Tuple, Union

from eth_typing import ChecksumAddress
from hexbytes import HexBytes

from eutopia_deployment.abi import (
    ABI,
    MethodABI,
    encode_arguments,
    get_constructor_abi,
    get_input_types,
    get_method_abis,
)

if typing.TYPE_CHECKING:
    from eutopia_deployment.provider import NetworkProvider


class ContractArtifact(NamedTuple):
    """Deployable build output for a single contract."""

    name: str
    abi: ABI
    bytecode: HexBytes

    @property
    def constructor_types(self) -> Tuple[str, ...]:
        return tuple(get_input_types(get_constructor_abi(self.abi)))

    def get_method_abis(self, method_name: str) -> typing.List[MethodABI]:
        return get_method_abis(self.abi, method_name)

    def has_method(self, method_name: str) -> bool:
        return bool(self.get_method_abis(method_name))


#
# Deployment targets
#


class NewProxy(NamedTuple):
    """Deploy a fresh proxy initialized with `constructor_args`."""

    constructor_args: Tuple[Any, ...] = ()


class UpgradeExisting(NamedTuple):
    """Point the proxy at `proxy_address` to a freshly deployed implementation."""

    proxy_address: ChecksumAddress


DeploymentTarget = Union[NewProxy, UpgradeExisting]


class ProxyHandle(NamedTuple):
    address: ChecksumAddress
    chain_id: int
    network: "NetworkProvider"

    def __str__(self) -> str:
        return self.address


class ImplementationAddress(NamedTuple):
    """Implementation address as read from the storage of `proxy`."""

    address: ChecksumAddress
    proxy: ProxyHandle

    def __str__(self) -> str:
        return self.address


#
# Verification
#


class VerificationRequest(NamedTuple):
    address: ChecksumAddress
    constructor_types: Tuple[str, ...] = ()
    constructor_args: Tuple[Any, ...] = ()
    proxy_address: Optional[ChecksumAddress] = None

    @property
    def encoded_arguments(self) -> HexBytes:
        return encode_arguments(self.constructor_types, self.constructor_args)

    @classmethod
    def for_implementation(cls, implementation: ImplementationAddress) -> "VerificationRequest":
        """Upgradeable implementations are deployed without constructor arguments."""
        return cls(address=implementation.address, proxy_address=implementation.proxy.address)


class Verified(NamedTuple):
    address: ChecksumAddress

    ok = True


class Failed(NamedTuple):
    address: ChecksumAddress
    reason: str

    ok = False


VerificationOutcome = Union[Verified, Failed]
