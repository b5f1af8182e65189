"""
Contract Storage Layout.

Two addressing schemes share a contract's 2**256 word space:

- Sequential fields declared with ``StorageField(slot, type)``. Logic contracts
  behind a proxy must keep every existing field at the same slot with the same
  type across versions, because all versions read and write the proxy's
  storage.
- Hash-derived slots for metadata that must never alias a sequential field:
  EIP-1967 (``keccak256(label) - 1``) for the proxy's implementation and admin,
  ERC-7201 namespaces for library bookkeeping such as initializer versions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ..vm.abi import UINT256_MAX, canonical_type, encode_uint, keccak256
from ..vm.exceptions import StorageLayoutError

if TYPE_CHECKING:
    from .base import Contract

logger = logging.getLogger(__name__)

IMPLEMENTATION_LABEL = "eip1967.proxy.implementation"
ADMIN_LABEL = "eip1967.proxy.admin"


def erc1967_slot(label: str) -> int:
    """``keccak256(label) - 1``: no known preimage, so no mapping key lands here."""
    return int.from_bytes(keccak256(label.encode()), "big") - 1


def erc7201_slot(namespace: str) -> int:
    """``keccak256(abi.encode(uint256(keccak256(namespace)) - 1)) & ~0xff``."""
    inner = int.from_bytes(keccak256(namespace.encode()), "big") - 1
    return int.from_bytes(keccak256(encode_uint(inner)), "big") & ~0xFF & UINT256_MAX


# keccak256("eip1967.proxy.implementation") - 1
EIP1967_IMPLEMENTATION_SLOT = erc1967_slot(IMPLEMENTATION_LABEL)

# keccak256("eip1967.proxy.admin") - 1
EIP1967_ADMIN_SLOT = erc1967_slot(ADMIN_LABEL)


def slot_hex(slot: int) -> str:
    return "0x" + slot.to_bytes(32, "big").hex()


# ==================== Typed Fields ====================

_SUPPORTED_TYPES = ("address", "bool")


def _encode_word(abi_type: str, value: Any) -> int:
    if abi_type == "address":
        return int(value[2:], 16) if value else 0
    if abi_type == "bool":
        return 1 if value else 0
    bits = int(abi_type[4:])
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value < 2**bits:
        raise ValueError(f"Value {value!r} out of range for {abi_type}")
    return value


def _decode_word(abi_type: str, word: int) -> Any:
    if abi_type == "address":
        return "0x" + (word & (2**160 - 1)).to_bytes(20, "big").hex()
    if abi_type == "bool":
        return word != 0
    return word


class StorageField:
    """
    A typed state variable at a fixed slot.

    Reading or assigning the attribute on a running contract instance goes
    straight to the storage of the account the frame operates on, which for
    delegated execution is the proxy.
    """

    def __init__(self, slot: int, abi_type: str = "uint256") -> None:
        abi_type = canonical_type(abi_type)
        if not (abi_type in _SUPPORTED_TYPES or abi_type.startswith("uint")):
            raise TypeError(f"Unsupported storage type: {abi_type}")
        self.slot = slot
        self.abi_type = abi_type
        self.name = ""

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, instance: "Contract | None", owner: type) -> Any:
        if instance is None:
            return self
        return _decode_word(self.abi_type, instance.sload(self.slot))

    def __set__(self, instance: "Contract", value: Any) -> None:
        instance.sstore(self.slot, _encode_word(self.abi_type, value))

    def __repr__(self) -> str:
        return f"StorageField(name={self.name!r}, slot={self.slot}, type={self.abi_type!r})"


# ==================== Layout Checks ====================

@dataclass(frozen=True)
class LayoutEntry:
    name: str
    slot: int
    abi_type: str
    declared_in: str


def storage_layout(contract_cls: type) -> list[LayoutEntry]:
    """All StorageFields visible on ``contract_cls``, ordered by slot."""
    entries: dict[str, LayoutEntry] = {}
    for klass in reversed(contract_cls.__mro__):
        for name, member in vars(klass).items():
            if isinstance(member, StorageField):
                entries[name] = LayoutEntry(name, member.slot, member.abi_type, klass.__name__)
    return sorted(entries.values(), key=lambda e: (e.slot, e.name))


def check_upgrade_safe(current_cls: type, new_cls: type) -> list[LayoutEntry]:
    """
    Verify ``new_cls`` can take over storage written by ``current_cls``.

    Every field of the current layout must exist in the new layout at the same
    slot with the same type. Renames are allowed. Fields added at unused slots
    are allowed.

    Returns:
        The fields ``new_cls`` adds

    Raises:
        StorageLayoutError: If any existing field is moved, retyped or dropped
    """
    new_by_slot: dict[int, list[LayoutEntry]] = {}
    for entry in storage_layout(new_cls):
        new_by_slot.setdefault(entry.slot, []).append(entry)

    problems = []
    for old in storage_layout(current_cls):
        candidates = new_by_slot.get(old.slot, [])
        if not candidates:
            problems.append(f"{old.name} (slot {old.slot}) was removed")
            continue
        if all(c.abi_type != old.abi_type for c in candidates):
            found = ", ".join(f"{c.name}: {c.abi_type}" for c in candidates)
            problems.append(f"{old.name} (slot {old.slot}) changed type {old.abi_type} -> {found}")
            continue
        if all(c.name != old.name for c in candidates):
            logger.warning(
                "Storage field renamed during upgrade",
                extra={
                    "event": "storage.field_renamed",
                    "slot": old.slot,
                    "old_name": old.name,
                    "new_name": candidates[0].name,
                },
            )

    if problems:
        raise StorageLayoutError(
            f"{new_cls.__name__} is not storage-compatible with {current_cls.__name__}: "
            + "; ".join(problems)
        )

    current_slots = {e.slot for e in storage_layout(current_cls)}
    return [e for e in storage_layout(new_cls) if e.slot not in current_slots]
