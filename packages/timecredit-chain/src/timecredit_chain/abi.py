"""Minimal ABI helpers for the ledger and catalog contracts.

Calldata is built with eth_abi and keccak selectors; no JSON ABI files are
needed.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Sequence, Union

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from web3 import Web3

_ERROR_SELECTOR = Web3.keccak(text="Error(string)")[:4]
_PANIC_SELECTOR = Web3.keccak(text="Panic(uint256)")[:4]

PANIC_CODES = {
    0x01: "assertion failed",
    0x11: "arithmetic overflow or underflow",
    0x12: "division by zero",
    0x32: "array index out of bounds",
}


def to_bytes(data: Union[str, bytes, None]) -> bytes:
    """Accept 0x-prefixed hex or raw bytes."""
    if data is None:
        return b""
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    text = data[2:] if data.startswith(("0x", "0X")) else data
    return bytes.fromhex(text)


@dataclass(frozen=True)
class ContractFunction:
    """One contract function: name, input types and output types."""

    name: str
    inputs: tuple[str, ...] = ()
    outputs: tuple[str, ...] = ()

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.inputs)})"

    @property
    def selector(self) -> bytes:
        return Web3.keccak(text=self.signature)[:4]

    def encode_call(self, *args: Any) -> str:
        """Hex calldata for a call with `args`."""
        if len(args) != len(self.inputs):
            raise TypeError(f"{self.signature} takes {len(self.inputs)} arguments, got {len(args)}")
        values = [_normalize(t, a) for t, a in zip(self.inputs, args)]
        return "0x" + (self.selector + encode(list(self.inputs), values)).hex()

    def decode_arguments(self, calldata: Union[str, bytes]) -> tuple:
        """Decode calldata (selector included) back into arguments."""
        raw = to_bytes(calldata)
        if raw[:4] != self.selector:
            raise ValueError(f"Calldata is not a call to {self.signature}")
        return tuple(decode(list(self.inputs), raw[4:]))

    def encode_output(self, *values: Any) -> bytes:
        return encode(list(self.outputs), [_normalize(t, v) for t, v in zip(self.outputs, values)])

    def decode_output(self, data: Union[str, bytes]) -> tuple:
        return tuple(decode(list(self.outputs), to_bytes(data)))


def match_function(
    calldata: Union[str, bytes],
    functions: Sequence[ContractFunction],
) -> Optional[ContractFunction]:
    """Find the function whose selector prefixes `calldata`."""
    selector = to_bytes(calldata)[:4]
    for fn in functions:
        if fn.selector == selector:
            return fn
    return None


def encode_revert(reason: str) -> bytes:
    """Solidity `Error(string)` payload for `reason`."""
    return _ERROR_SELECTOR + encode(["string"], [reason])


def decode_revert_reason(data: Union[str, bytes, None]) -> Optional[str]:
    """Decode an `Error(string)` or `Panic(uint256)` revert payload.

    Returns None when the payload is empty or not a recognised revert.
    """
    try:
        raw = to_bytes(data)
    except ValueError:
        return None
    if len(raw) < 4:
        return None
    try:
        if raw[:4] == _ERROR_SELECTOR:
            (reason,) = decode(["string"], raw[4:])
            return reason
        if raw[:4] == _PANIC_SELECTOR:
            (code,) = decode(["uint256"], raw[4:])
            return f"panic: {PANIC_CODES.get(code, hex(code))}"
    except DecodingError:
        return None
    return None


def _normalize(abi_type: str, value: Any) -> Any:
    if abi_type == "address":
        return Web3.to_checksum_address(value)
    if abi_type == "address[]":
        return [Web3.to_checksum_address(v) for v in value]
    return value
