"""
Minimal Solidity ABI utilities.

Covers the static word types (uintN, address, bool, bytes32) and the dynamic
``bytes`` / ``string`` types, which is everything the proxy and vault
interfaces need. Selectors and event topics use keccak256 (pycryptodome).
"""

from __future__ import annotations

from typing import Any, Sequence

from Crypto.Hash import keccak

WORD_SIZE = 32
UINT256_MAX = 2**256 - 1

_DYNAMIC_TYPES = ("bytes", "string")


def keccak256(data: bytes) -> bytes:
    """Compute keccak256 hash (same as Ethereum)."""
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


def canonical_type(abi_type: str) -> str:
    """Expand shorthand ABI types (``uint`` -> ``uint256``)."""
    abi_type = abi_type.strip()
    if abi_type == "uint":
        return "uint256"
    if abi_type == "int":
        return "int256"
    return abi_type


def parse_signature(signature: str) -> tuple[str, list[str]]:
    """
    Split ``name(type,...)`` into its name and canonical argument types.

    Raises:
        ValueError: If the signature is malformed
    """
    signature = signature.strip()
    if "(" not in signature or not signature.endswith(")"):
        raise ValueError(f"Malformed function signature: {signature!r}")
    name, _, rest = signature.partition("(")
    if not name:
        raise ValueError(f"Malformed function signature: {signature!r}")
    inner = rest[:-1]
    types = [canonical_type(t) for t in inner.split(",")] if inner.strip() else []
    for t in types:
        _check_supported(t)
    return name, types


def canonical_signature(signature: str) -> str:
    name, types = parse_signature(signature)
    return f"{name}({','.join(types)})"


def function_selector(signature: str) -> bytes:
    """First 4 bytes of keccak256 of the canonical signature."""
    return keccak256(canonical_signature(signature).encode())[:4]


def event_topic(signature: str) -> bytes:
    """Full keccak256 of the canonical event signature."""
    return keccak256(canonical_signature(signature).encode())


# ==================== Encoding ====================


def encode_address(address: str) -> bytes:
    raw = bytes.fromhex(address[2:] if address.lower().startswith("0x") else address)
    if len(raw) != 20:
        raise ValueError(f"Address must be 20 bytes, got {len(raw)}")
    return raw.rjust(WORD_SIZE, b"\x00")


def encode_uint(value: int, bits: int = 256) -> bytes:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"uint{bits} value must be int, got {type(value).__name__}")
    if value < 0 or value >= 2**bits:
        raise ValueError(f"Value {value} out of range for uint{bits}")
    return value.to_bytes(WORD_SIZE, "big")


def _encode_dynamic(data: bytes) -> bytes:
    padded_len = (len(data) + WORD_SIZE - 1) // WORD_SIZE * WORD_SIZE
    return encode_uint(len(data)) + data.ljust(padded_len, b"\x00")


def _encode_static(abi_type: str, value: Any) -> bytes:
    if abi_type.startswith("uint"):
        return encode_uint(value, _uint_bits(abi_type))
    if abi_type == "address":
        return encode_address(value)
    if abi_type == "bool":
        return encode_uint(1 if value else 0)
    if abi_type == "bytes32":
        raw = bytes(value)
        if len(raw) > WORD_SIZE:
            raise ValueError("bytes32 value longer than 32 bytes")
        return raw.ljust(WORD_SIZE, b"\x00")
    raise ValueError(f"Unsupported ABI type: {abi_type}")


def encode_args(types: Sequence[str], values: Sequence[Any]) -> bytes:
    """Head/tail ABI encoding of a value tuple."""
    types = [canonical_type(t) for t in types]
    if len(types) != len(values):
        raise ValueError(f"Expected {len(types)} values, got {len(values)}")

    head_size = WORD_SIZE * len(types)
    heads: list[bytes] = []
    tails: list[bytes] = []
    tail_offset = head_size
    for abi_type, value in zip(types, values):
        if abi_type in _DYNAMIC_TYPES:
            data = value.encode() if abi_type == "string" else bytes(value)
            encoded = _encode_dynamic(data)
            heads.append(encode_uint(tail_offset))
            tails.append(encoded)
            tail_offset += len(encoded)
        else:
            heads.append(_encode_static(abi_type, value))
    return b"".join(heads) + b"".join(tails)


def encode_call(signature: str, args: Sequence[Any]) -> bytes:
    """Selector followed by the encoded arguments."""
    _, types = parse_signature(signature)
    return function_selector(signature) + encode_args(types, args)


# ==================== Decoding ====================


def _word(data: bytes, offset: int) -> bytes:
    if offset + WORD_SIZE > len(data):
        raise ValueError(f"ABI data too short: need {offset + WORD_SIZE} bytes, have {len(data)}")
    return data[offset:offset + WORD_SIZE]


def decode_uint256(data: bytes, offset: int = 0) -> tuple[int, int]:
    return int.from_bytes(_word(data, offset), "big"), offset + WORD_SIZE


def decode_address(data: bytes, offset: int = 0) -> tuple[str, int]:
    word = _word(data, offset)
    if any(word[:12]):
        raise ValueError(f"Address word at offset {offset} has non-zero high bytes")
    return "0x" + word[12:].hex(), offset + WORD_SIZE


def decode_address_word(word: bytes) -> str:
    """Interpret a 32-byte storage word as a right-aligned address (low 20 bytes)."""
    return "0x" + word.rjust(WORD_SIZE, b"\x00")[12:].hex()


def _decode_one(abi_type: str, data: bytes, offset: int) -> Any:
    if abi_type in _DYNAMIC_TYPES:
        start, _ = decode_uint256(data, offset)
        length, body = decode_uint256(data, start)
        if body + length > len(data):
            raise ValueError("ABI dynamic value exceeds data length")
        raw = data[body:body + length]
        return raw.decode() if abi_type == "string" else raw
    if abi_type.startswith("uint"):
        value, _ = decode_uint256(data, offset)
        if value >= 2**_uint_bits(abi_type):
            raise ValueError(f"Value {value} out of range for {abi_type}")
        return value
    if abi_type == "address":
        return decode_address(data, offset)[0]
    if abi_type == "bool":
        return decode_uint256(data, offset)[0] != 0
    if abi_type == "bytes32":
        return _word(data, offset)
    raise ValueError(f"Unsupported ABI type: {abi_type}")


def decode_args(types: Sequence[str], data: bytes) -> list[Any]:
    types = [canonical_type(t) for t in types]
    return [_decode_one(t, data, i * WORD_SIZE) for i, t in enumerate(types)]


# ==================== Helpers ====================


def _uint_bits(abi_type: str) -> int:
    suffix = abi_type[4:]
    bits = int(suffix) if suffix else 256
    if bits % 8 or not 8 <= bits <= 256:
        raise ValueError(f"Unsupported ABI type: {abi_type}")
    return bits


def _check_supported(abi_type: str) -> None:
    if abi_type.startswith("uint"):
        _uint_bits(abi_type)
        return
    if abi_type not in ("address", "bool", "bytes32", *_DYNAMIC_TYPES):
        raise ValueError(f"Unsupported ABI type: {abi_type}")
