from typing import Any, Dict, List, Sequence

from eth_abi import decode, encode, is_encodable
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address
from eth_utils.abi import collapse_if_tuple, function_abi_to_4byte_selector
from hexbytes import HexBytes

ABI = List[Dict[str, Any]]
MethodABI = Dict[str, Any]


def get_input_types(abi_entry: MethodABI) -> List[str]:
    return [collapse_if_tuple(abi_input) for abi_input in abi_entry.get("inputs", [])]


def get_method_abis(abi: ABI, method_name: str) -> List[MethodABI]:
    """Returns all function ABIs with the given name (overloads included)."""
    return [
        entry for entry in abi if entry.get("type") == "function" and entry.get("name") == method_name
    ]


def get_constructor_abi(abi: ABI) -> MethodABI:
    for entry in abi:
        if entry.get("type") == "constructor":
            return entry
    return {"type": "constructor", "inputs": []}  # implicit default constructor


def validate_method_args(method_abis: List[MethodABI], args: Sequence[Any]) -> MethodABI:
    """
    Validates the call arguments against the function ABIs and
    returns the first ABI that is able to encode all of them.
    """
    if len(method_abis) == 0:
        raise ValueError("No method abis provided for validation of args")

    abis_matching_args_length = [abi for abi in method_abis if len(abi["inputs"]) == len(args)]
    for abi in abis_matching_args_length:
        for arg, arg_type in zip(args, get_input_types(abi)):
            if not is_encodable(arg_type, arg):
                break
        else:
            return abi
    raise ValueError(
        f"Could not find ABI for '{method_abis[0]['name']}' with {len(args)} arg(s) and given type(s)"
    )


def encode_call(abi: ABI, method_name: str, args: Sequence[Any]) -> HexBytes:
    """ABI-encodes a call to `method_name` (selector followed by the encoded arguments)."""
    method_abis = get_method_abis(abi, method_name)
    if not method_abis:
        raise ValueError(f"No method named '{method_name}' in ABI")
    method_abi = validate_method_args(method_abis, args)
    selector = function_abi_to_4byte_selector(method_abi)
    return HexBytes(selector + encode(get_input_types(method_abi), list(args)))


def encode_arguments(types: Sequence[str], args: Sequence[Any]) -> HexBytes:
    """ABI-encodes constructor style arguments; empty for no arguments."""
    if len(types) != len(args):
        raise ValueError(f"Expected {len(types)} argument(s), got {len(args)}")
    if not types:
        return HexBytes(b"")
    return HexBytes(encode(list(types), list(args)))


def decode_address(word: bytes) -> ChecksumAddress:
    """Returns the checksummed address held in the low-order 20 bytes of a storage word."""
    return to_checksum_address(bytes(word)[-20:].rjust(20, b"\x00"))


def decode_single(result_type: str, data: bytes) -> Any:
    (value,) = decode([result_type], bytes(data))
    return value
