from __future__ import annotations

from functools import lru_cache
from typing import Any, Sequence, Tuple

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_utils import function_signature_to_4byte_selector, is_address, to_checksum_address


def _arg_types(signature: str) -> Tuple[str, ...]:
    """Return the argument types of a canonical signature like `approve(address,uint256)`."""
    if "(" not in signature or not signature.endswith(")"):
        raise ValueError(f"Not a function signature: {signature!r}")
    inner = signature[signature.index("(") + 1 : -1].strip()
    if not inner:
        return ()
    return tuple(t.strip() for t in inner.split(","))


@lru_cache(maxsize=128)
def selector(signature: str) -> bytes:
    return function_signature_to_4byte_selector(signature)


def checksum(address: str) -> str:
    if not isinstance(address, str) or not is_address(address):
        raise ValueError(f"Invalid address: {address!r}")
    return to_checksum_address(address)


def encode_call(signature: str, args: Sequence[Any] = ()) -> str:
    """Encode calldata for `signature` with `args` as a 0x-prefixed hex string."""
    types = _arg_types(signature)
    if len(types) != len(args):
        raise ValueError(f"{signature} expects {len(types)} args, got {len(args)}")
    norm = [checksum(a) if t == "address" else a for t, a in zip(types, args)]
    data = selector(signature) + (abi_encode(list(types), norm) if types else b"")
    return "0x" + data.hex()


def decode_result(types: Sequence[str], data: str | bytes) -> Tuple[Any, ...]:
    if isinstance(data, str):
        raw = bytes.fromhex(data[2:] if data.startswith("0x") else data)
    else:
        raw = bytes(data)
    if not raw:
        raise ValueError("Empty return data (no contract at address?)")
    return tuple(abi_decode(list(types), raw))


__all__ = ["selector", "checksum", "encode_call", "decode_result"]
