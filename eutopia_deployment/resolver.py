from eth_typing import ChecksumAddress
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from eutopia_deployment.abi import decode_address, decode_single
from eutopia_deployment.constants import (
    EIP1967_BEACON_SLOT,
    EIP1967_IMPLEMENTATION_SLOT,
    ZERO_ADDRESS,
)
from eutopia_deployment.exceptions import ResolutionFailed
from eutopia_deployment.models import ImplementationAddress, ProxyHandle
from eutopia_deployment.provider import NetworkProvider

BEACON_IMPLEMENTATION_SELECTOR = function_signature_to_4byte_selector("implementation()")


def _read_address_slot(network: NetworkProvider, address: ChecksumAddress, slot: int) -> ChecksumAddress:
    word = network.get_storage_at(address, slot)
    if not word:
        return ZERO_ADDRESS
    return decode_address(word)


def _resolve_beacon(network: NetworkProvider, beacon: ChecksumAddress) -> ChecksumAddress:
    """Reads the implementation of an upgradeable beacon."""
    try:
        result = network.call(beacon, BEACON_IMPLEMENTATION_SELECTOR)
        return to_checksum_address(decode_single("address", result))
    except Exception as e:
        raise ResolutionFailed(f"Could not read implementation from beacon {beacon}: {e}") from e


def get_implementation_address(proxy: ProxyHandle) -> ImplementationAddress:
    """
    Returns the implementation currently behind `proxy`, read straight from its
    EIP1967 storage slots instead of calling through the proxy.

    Must only be called once the deployment or upgrade of the proxy is confirmed.
    """
    network = proxy.network
    implementation = _read_address_slot(network, proxy.address, EIP1967_IMPLEMENTATION_SLOT)

    if implementation == ZERO_ADDRESS:
        beacon = _read_address_slot(network, proxy.address, EIP1967_BEACON_SLOT)
        if beacon != ZERO_ADDRESS:
            print(f"(i) Beacon proxy detected; reading implementation from beacon {beacon}")
            implementation = _resolve_beacon(network, beacon)

    if implementation == ZERO_ADDRESS:
        raise ResolutionFailed(
            f"Implementation slot for proxy at {proxy.address} is empty. "
            "Is the proxy deployed and initialized?"
        )

    if not network.get_code(implementation):
        raise ResolutionFailed(
            f"No contract code at implementation address {implementation} "
            f"(proxy {proxy.address})"
        )

    return ImplementationAddress(address=implementation, proxy=proxy)
