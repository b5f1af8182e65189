from __future__ import annotations

"""
Address Checksum - EIP-55 Mixed-Case Encoding

Ledger accounts are 20-byte addresses rendered as ``0x`` + 40 hex chars.
Internally every address is kept in lowercase canonical form; the mixed-case
checksum is used for display and for validating user-supplied input.

Address Format:
- Canonical: 0x5aaeb6053f3e94c9b9a09f33669435e7ef1beaed
- Checksum:  0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed
"""

from .vm.abi import keccak256

ZERO_ADDRESS = "0x" + "0" * 40


def _split(address: str) -> str:
    if not isinstance(address, str) or not address[:2].lower() == "0x":
        raise ValueError(f"Invalid address prefix: {str(address)[:2]!r}")
    hex_part = address[2:]
    if len(hex_part) != 40:
        raise ValueError(f"Address hex part must be 40 characters, got {len(hex_part)}")
    try:
        int(hex_part, 16)
    except ValueError:
        raise ValueError(f"Invalid hex characters in address: {hex_part}")
    return hex_part


def to_checksum_address(address: str) -> str:
    """
    Convert address to checksummed format (EIP-55).

    Raises:
        ValueError: If address format is invalid

    Example:
        >>> to_checksum_address("0x5aaeb6053f3e94c9b9a09f33669435e7ef1beaed")
        '0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed'
    """
    hex_lower = _split(address).lower()
    address_hash = keccak256(hex_lower.encode("utf-8")).hex()

    checksummed = []
    for i, char in enumerate(hex_lower):
        if char in "0123456789":
            checksummed.append(char)
        elif int(address_hash[i], 16) >= 8:
            checksummed.append(char.upper())
        else:
            checksummed.append(char)

    return "0x" + "".join(checksummed)


def is_checksum_valid(address: str) -> bool:
    """
    True if checksum is valid or address is all lowercase/uppercase.
    """
    try:
        hex_part = _split(address)
    except ValueError:
        return False

    if hex_part == hex_part.lower() or hex_part == hex_part.upper():
        return True

    return address[2:] == to_checksum_address(address)[2:]


def validate_address(address: str, require_checksum: bool = False) -> tuple[bool, str]:
    """
    Validate address format and optionally checksum.

    Returns:
        Tuple of (is_valid, error_message or checksummed_address)
    """
    try:
        hex_part = _split(address)
    except ValueError as exc:
        return False, str(exc)

    mixed = hex_part != hex_part.lower() and hex_part != hex_part.upper()
    if (require_checksum or mixed) and not is_checksum_valid(address):
        expected = to_checksum_address(address)
        return False, f"Invalid checksum. Did you mean {expected}?"

    return True, to_checksum_address(address)


def normalize_address(address: str) -> str:
    """
    Normalize address to the lowercase canonical form used as ledger keys.

    Raises:
        ValueError: If address is invalid
    """
    is_valid, result = validate_address(address)
    if not is_valid:
        raise ValueError(result)
    return "0x" + result[2:].lower()
