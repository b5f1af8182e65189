"""
Tests for deployment, slot readers and layout-checked upgrades.
"""

import pytest

from vaultproxy.core.contracts.base import Contract
from vaultproxy.core.contracts.lock import LockUpgradeable, LockUpgradeableV2
from vaultproxy.core.contracts.storage import (
    ADMIN_LABEL,
    EIP1967_IMPLEMENTATION_SLOT,
    IMPLEMENTATION_LABEL,
    StorageField,
    slot_hex,
)
from vaultproxy.core.deployment import (
    deploy_implementation,
    deploy_proxy,
    get_address_in_slot,
    get_admin,
    get_implementation,
    prepare_upgrade,
    proxy_admin_owner,
    read_slot,
    upgrade_proxy,
    validate_upgrade,
)
from vaultproxy.core.vm.abi import encode_call
from vaultproxy.core.vm.exceptions import NotOwnerError, StorageLayoutError
from vaultproxy.core.vm.helpers import compute_create_address


class BrokenLock(Contract):
    _owner = StorageField(0, "address")
    _unlock_time = StorageField(1, "uint256")


class TestSlotReaders:
    def test_read_slot_returns_word(self, lock_fixture):
        word = read_slot(lock_fixture.ledger, lock_fixture.proxy_address, EIP1967_IMPLEMENTATION_SLOT)
        assert len(word) == 32

    @pytest.mark.parametrize(
        "slot",
        [
            EIP1967_IMPLEMENTATION_SLOT,
            IMPLEMENTATION_LABEL,
            "implementation",
            slot_hex(EIP1967_IMPLEMENTATION_SLOT),
        ],
    )
    def test_get_address_in_slot_accepts_slot_forms(self, lock_fixture, slot):
        f = lock_fixture
        assert get_address_in_slot(f.ledger, f.proxy_address, slot) == f.implementation_address

    def test_admin_slot_by_label(self, lock_fixture):
        f = lock_fixture
        assert get_address_in_slot(f.ledger, f.proxy_address, ADMIN_LABEL) == f.admin_address
        assert get_admin(f.ledger, f.proxy_address) == f.admin_address

    def test_sequential_slots_hold_vault_fields(self, lock_fixture):
        f = lock_fixture
        assert int.from_bytes(read_slot(f.ledger, f.proxy_address, 0), "big") == f.unlock_time
        assert get_address_in_slot(f.ledger, f.proxy_address, 1) == f.owner

    def test_proxy_admin_owner(self, lock_fixture):
        assert proxy_admin_owner(lock_fixture.ledger, lock_fixture.proxy_address) == lock_fixture.owner


class TestDeployProxy:
    def test_deployment_addresses(self, lock_fixture):
        f = lock_fixture
        assert f.admin_address == compute_create_address(f.proxy_address, 1)
        assert f.ledger.get_nonce(f.proxy_address) == 2

    def test_receipt_carries_initializer_events(self, ledger, owner):
        implementation = deploy_implementation(ledger, owner, LockUpgradeable)
        deployment = deploy_proxy(
            ledger, owner, implementation, owner,
            encode_call("initialize(uint256)", [ledger.latest_timestamp + 100]),
            value=5,
        )
        (initialized,) = deployment.receipt.events("Initialized")
        assert initialized.args == {"version": 1}
        assert initialized.address == deployment.proxy_address


class TestUpgrades:
    def test_validate_upgrade_against_live_implementation(self, lock_fixture):
        assert validate_upgrade(lock_fixture.ledger, lock_fixture.proxy_address, LockUpgradeableV2) == []

    def test_prepare_upgrade_rejects_incompatible_layout(self, lock_fixture):
        f = lock_fixture
        nonce = f.ledger.get_nonce(f.owner)
        with pytest.raises(StorageLayoutError):
            prepare_upgrade(f.ledger, f.owner, f.proxy_address, BrokenLock)
        # Nothing was deployed.
        assert f.ledger.get_nonce(f.owner) == nonce

    def test_prepare_then_upgrade(self, lock_fixture):
        f = lock_fixture
        v2 = prepare_upgrade(f.ledger, f.owner, f.proxy_address, LockUpgradeableV2)
        assert f.ledger.get_code(v2) is LockUpgradeableV2
        upgrade_proxy(f.ledger, f.owner, f.proxy_address, v2)
        assert get_implementation(f.ledger, f.proxy_address) == v2
        # A plain upgrade keeps V1's initialized state.
        assert f.lock.as_abi(LockUpgradeableV2).unlockTime() == f.unlock_time

    def test_upgrade_by_non_owner_rejected(self, lock_fixture):
        f = lock_fixture
        v2 = prepare_upgrade(f.ledger, f.owner, f.proxy_address, LockUpgradeableV2)
        with pytest.raises(NotOwnerError):
            upgrade_proxy(f.ledger, f.other_account, f.proxy_address, v2)
        assert get_implementation(f.ledger, f.proxy_address) == f.implementation_address
