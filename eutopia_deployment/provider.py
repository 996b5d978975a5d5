from abc import ABC, abstractmethod
from typing import Any, NamedTuple

from eth_typing import ChecksumAddress

from eutopia_deployment.models import ContractArtifact


class Receipt(NamedTuple):
    """A confirmed transaction."""

    tx_hash: str
    block_number: int


class Deployment(NamedTuple):
    """A confirmed contract deployment."""

    address: ChecksumAddress
    tx_hash: str
    block_number: int


class NetworkProvider(ABC):
    """
    Connection to a single chain plus the account used to sign transactions.

    `deploy` and `transact` block until the transaction is confirmed and raise
    `DeploymentFailed` if it is rejected, reverted or not confirmed in time.
    """

    @property
    @abstractmethod
    def chain_id(self) -> int:
        raise NotImplementedError

    @property
    @abstractmethod
    def deployer_address(self) -> ChecksumAddress:
        raise NotImplementedError

    @property
    def is_local(self) -> bool:
        return False

    @abstractmethod
    def get_storage_at(self, address: ChecksumAddress, slot: int) -> bytes:
        raise NotImplementedError

    @abstractmethod
    def get_code(self, address: ChecksumAddress) -> bytes:
        raise NotImplementedError

    @abstractmethod
    def call(self, address: ChecksumAddress, data: bytes) -> bytes:
        """Executes a read-only call and returns the raw return data."""
        raise NotImplementedError

    @abstractmethod
    def deploy(self, artifact: ContractArtifact, *args: Any) -> Deployment:
        raise NotImplementedError

    @abstractmethod
    def transact(
        self, artifact: ContractArtifact, address: ChecksumAddress, method_name: str, *args: Any
    ) -> Receipt:
        raise NotImplementedError
