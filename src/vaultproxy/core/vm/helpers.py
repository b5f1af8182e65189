"""
Address derivation helpers (CREATE semantics).

A contract created by ``sender`` at ``nonce`` lives at
``keccak256(rlp([sender, nonce]))[12:]``, so a creator's children can be
located without any explicit return value.
"""

from __future__ import annotations

from .abi import keccak256


def _rlp_encode_bytes(data: bytes) -> bytes:
    if len(data) == 1 and data[0] < 0x80:
        return data
    if len(data) < 56:
        return bytes([0x80 + len(data)]) + data
    length = len(data).to_bytes((len(data).bit_length() + 7) // 8, "big")
    return bytes([0xB7 + len(length)]) + length + data


def _rlp_encode_list(items: list[bytes]) -> bytes:
    payload = b"".join(items)
    if len(payload) < 56:
        return bytes([0xC0 + len(payload)]) + payload
    length = len(payload).to_bytes((len(payload).bit_length() + 7) // 8, "big")
    return bytes([0xF7 + len(length)]) + length + payload


def rlp_encode_address_nonce(address: str, nonce: int) -> bytes:
    """RLP-encode the ``[address, nonce]`` pair hashed by CREATE."""
    if nonce < 0:
        raise ValueError("Nonce must be non-negative")
    addr_bytes = bytes.fromhex(address[2:] if address.lower().startswith("0x") else address)
    if len(addr_bytes) != 20:
        raise ValueError(f"Address must be 20 bytes, got {len(addr_bytes)}")
    nonce_bytes = nonce.to_bytes((nonce.bit_length() + 7) // 8, "big") if nonce else b""
    return _rlp_encode_list([_rlp_encode_bytes(addr_bytes), _rlp_encode_bytes(nonce_bytes)])


def compute_create_address(sender: str, nonce: int) -> str:
    """Address of the contract ``sender`` creates at ``nonce``."""
    digest = keccak256(rlp_encode_address_nonce(sender, nonce))
    return "0x" + digest[12:].hex()
