"""
Tests for storage slot derivation, typed fields and upgrade layout checks.
"""

import logging

import pytest

from vaultproxy.core.contracts.base import Contract
from vaultproxy.core.contracts.initializable import INITIALIZABLE_STORAGE
from vaultproxy.core.contracts.lock import LockUpgradeable, LockUpgradeableV2
from vaultproxy.core.contracts.storage import (
    EIP1967_ADMIN_SLOT,
    EIP1967_IMPLEMENTATION_SLOT,
    StorageField,
    check_upgrade_safe,
    erc1967_slot,
    slot_hex,
    storage_layout,
)
from vaultproxy.core.vm.exceptions import StorageLayoutError


class TestSlotDerivation:
    def test_implementation_slot(self):
        assert slot_hex(EIP1967_IMPLEMENTATION_SLOT) == (
            "0x360894a13ba1a3210667c828492db98dca3e2076cc3735a920a3ca505d382bbc"
        )

    def test_admin_slot(self):
        assert slot_hex(EIP1967_ADMIN_SLOT) == (
            "0xb53127684a568b3173ae13b9f8a6016e243e63b6e8ee1178d6a717850b5d6103"
        )

    def test_erc1967_slot_is_label_hash_minus_one(self):
        assert erc1967_slot("eip1967.proxy.implementation") == EIP1967_IMPLEMENTATION_SLOT

    def test_initializable_namespace_slot(self):
        assert slot_hex(INITIALIZABLE_STORAGE) == (
            "0xf0c57e16840df040f15088dc2f81fe391c3923bec73e23a9662efc9c229c6a00"
        )

    def test_metadata_slots_are_far_from_sequential_region(self):
        for slot in (EIP1967_IMPLEMENTATION_SLOT, EIP1967_ADMIN_SLOT, INITIALIZABLE_STORAGE):
            assert slot > 2**128


class TestStorageField:
    def test_unsupported_type_rejected(self):
        with pytest.raises(TypeError, match="Unsupported storage type"):
            StorageField(0, "string")

    def test_class_access_returns_descriptor(self):
        field = LockUpgradeable.__dict__["_unlock_time"]
        assert LockUpgradeable._unlock_time is field
        assert field.name == "_unlock_time"
        assert field.slot == 0


class TestStorageLayout:
    def test_lock_layout(self):
        layout = [(e.name, e.slot, e.abi_type) for e in storage_layout(LockUpgradeable)]
        assert layout == [("_unlock_time", 0, "uint256"), ("_owner", 1, "address")]

    def test_v2_inherits_identical_layout(self):
        v1 = [(e.slot, e.abi_type) for e in storage_layout(LockUpgradeable)]
        v2 = [(e.slot, e.abi_type) for e in storage_layout(LockUpgradeableV2)]
        assert v1 == v2


class _Base(Contract):
    _a = StorageField(0, "uint256")
    _b = StorageField(1, "address")


class _Appended(_Base):
    _c = StorageField(2, "bool")


class _Renamed(Contract):
    _amount = StorageField(0, "uint256")
    _b = StorageField(1, "address")


class _Retyped(Contract):
    _a = StorageField(0, "uint128")
    _b = StorageField(1, "address")


class _Swapped(Contract):
    _b = StorageField(0, "address")
    _a = StorageField(1, "uint256")


class _Truncated(Contract):
    _a = StorageField(0, "uint256")


class TestCheckUpgradeSafe:
    def test_lock_v1_to_v2_is_safe(self):
        assert check_upgrade_safe(LockUpgradeable, LockUpgradeableV2) == []

    def test_appended_field_is_allowed_and_reported(self):
        added = check_upgrade_safe(_Base, _Appended)
        assert [(e.name, e.slot) for e in added] == [("_c", 2)]

    def test_rename_is_allowed_with_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="vaultproxy.core.contracts.storage"):
            check_upgrade_safe(_Base, _Renamed)
        assert any(getattr(r, "event", None) == "storage.field_renamed" for r in caplog.records)

    def test_retyped_field_rejected(self):
        with pytest.raises(StorageLayoutError, match="changed type uint256"):
            check_upgrade_safe(_Base, _Retyped)

    def test_reordered_fields_rejected(self):
        with pytest.raises(StorageLayoutError, match="_Swapped is not storage-compatible"):
            check_upgrade_safe(_Base, _Swapped)

    def test_removed_field_rejected(self):
        with pytest.raises(StorageLayoutError, match="_b \\(slot 1\\) was removed"):
            check_upgrade_safe(_Base, _Truncated)
