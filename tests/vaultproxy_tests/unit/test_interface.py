"""
Tests for the BoundContract caller-side handle.
"""

import pytest

from vaultproxy.core.contracts.interface import BoundContract
from vaultproxy.core.contracts.lock import LockUpgradeable, LockUpgradeableV2
from vaultproxy.core.contracts.proxy_admin import ProxyAdmin
from vaultproxy.core.vm.abi import encode_call, function_selector
from vaultproxy.core.vm.exceptions import LedgerError


class TestBoundContract:
    def test_views_do_not_send_transactions(self, lock_fixture):
        receipts = len(lock_fixture.ledger.receipts)
        lock_fixture.lock.unlockTime()
        lock_fixture.lock.owner()
        assert len(lock_fixture.ledger.receipts) == receipts

    def test_external_returns_receipt(self, lock_fixture):
        lock_fixture.ledger.increase_to(lock_fixture.unlock_time)
        receipt = lock_fixture.lock.withdraw()
        assert receipt.success
        assert receipt.sender == lock_fixture.owner
        assert receipt.to == lock_fixture.proxy_address

    def test_connect_changes_sender_only(self, lock_fixture):
        other = lock_fixture.lock.connect(lock_fixture.other_account)
        assert other.sender == lock_fixture.other_account
        assert other.address == lock_fixture.lock.address
        assert other.contract_cls is LockUpgradeable

    def test_as_abi_changes_interface_only(self, lock_fixture):
        v2 = lock_fixture.lock.as_abi(LockUpgradeableV2)
        assert v2.sender == lock_fixture.lock.sender
        assert v2.contract_cls is LockUpgradeableV2

    def test_encode_matches_encode_call(self, lock_fixture):
        assert lock_fixture.lock.encode("initialize", 5) == encode_call("initialize(uint256)", [5])
        assert lock_fixture.lock.encode("initialize(uint256)", 5)[:4] == function_selector("initialize(uint256)")

    def test_unknown_function(self, lock_fixture):
        with pytest.raises(AttributeError, match="no ABI function 'upgrade'"):
            lock_fixture.lock.upgrade

    def test_private_attributes_are_not_abi_lookups(self, lock_fixture):
        with pytest.raises(AttributeError):
            lock_fixture.lock._missing

    def test_transaction_needs_sender(self, ledger, lock_fixture):
        anonymous = BoundContract(ledger, lock_fixture.admin_address, ProxyAdmin)
        with pytest.raises(LedgerError, match="No sender bound"):
            anonymous.renounceOwnership()
        assert anonymous.owner() == lock_fixture.owner

    def test_explicit_sender_overrides_bound_sender(self, lock_fixture):
        receipt = lock_fixture.admin.transferOwnership(
            lock_fixture.other_account, sender=lock_fixture.owner
        )
        assert receipt.sender == lock_fixture.owner

    def test_balance_and_events(self, lock_fixture):
        assert lock_fixture.lock.balance == lock_fixture.locked_amount
        assert [e.event for e in lock_fixture.lock.events("Initialized")] == ["Initialized"]

    def test_address_is_normalized(self, ledger, lock_fixture):
        bound = BoundContract(ledger, lock_fixture.proxy_address.upper().replace("0X", "0x"), LockUpgradeable)
        assert bound.address == lock_fixture.proxy_address
