"""
Property-based tests for proxy slot derivation and vault invariants.

Uses Hypothesis for property-based testing with random inputs. Each example
builds its own ledger, since function-scoped fixtures are shared across
Hypothesis examples.
"""

import pytest
from hypothesis import HealthCheck, assume, given, settings, strategies as st

from vaultproxy.core.contracts.interface import BoundContract
from vaultproxy.core.contracts.lock import LockUpgradeable, LockUpgradeableV2
from vaultproxy.core.contracts.storage import erc1967_slot
from vaultproxy.core.deployment import (
    deploy_implementation,
    deploy_proxy,
    get_admin,
    get_implementation,
    upgrade_proxy,
)
from vaultproxy.core.vm.abi import encode_call, keccak256
from vaultproxy.core.vm.exceptions import (
    InsufficientBalanceError,
    InvalidUnlockTimeError,
    NotOwnerError,
    TooEarlyError,
)
from vaultproxy.core.vm.helpers import compute_create_address
from vaultproxy.core.vm.ledger import Ledger

GENESIS = 1_700_000_000

pytestmark = pytest.mark.property

property_settings = settings(
    max_examples=40,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)


def _deploy(duration: int, amount: int):
    ledger = Ledger(genesis_timestamp=GENESIS, dev_accounts=3)
    owner, other = ledger.accounts[0], ledger.accounts[1]
    unlock_time = ledger.latest_timestamp + duration
    implementation = deploy_implementation(ledger, owner, LockUpgradeable)
    deployment = deploy_proxy(
        ledger, owner, implementation, owner,
        encode_call("initialize(uint256)", [unlock_time]),
        value=amount,
    )
    lock = BoundContract(ledger, deployment.proxy_address, LockUpgradeable, sender=owner)
    return ledger, owner, other, unlock_time, deployment, lock


class TestSlotProperties:
    @given(label=st.text(min_size=1, max_size=64))
    @property_settings
    def test_erc1967_slot_is_hash_minus_one(self, label):
        slot = erc1967_slot(label)
        assert slot + 1 == int.from_bytes(keccak256(label.encode()), "big")
        assert 0 <= slot < 2**256

    @given(label=st.text(min_size=1, max_size=64))
    @property_settings
    def test_slot_never_collides_with_small_sequential_index(self, label):
        assert erc1967_slot(label) >= 2**64


class TestDeploymentProperties:
    @given(
        duration=st.integers(min_value=3, max_value=10 * 365 * 24 * 3600),
        amount=st.integers(min_value=0, max_value=10**20),
    )
    @property_settings
    def test_deployment_round_trip(self, duration, amount):
        ledger, owner, _, unlock_time, deployment, lock = _deploy(duration, amount)
        assert get_implementation(ledger, deployment.proxy_address) == deployment.implementation_address
        assert get_admin(ledger, deployment.proxy_address) == compute_create_address(deployment.proxy_address, 1)
        assert lock.unlockTime() == unlock_time
        assert lock.owner() == owner
        assert ledger.get_balance(deployment.proxy_address) == amount

    @given(duration=st.integers(min_value=0, max_value=2))
    @property_settings
    def test_unlock_time_not_in_future_rejected(self, duration):
        # Two blocks are mined before initialize runs.
        with pytest.raises(InvalidUnlockTimeError):
            _deploy(duration, 1)


class TestWithdrawalProperties:
    @given(
        duration=st.integers(min_value=10, max_value=365 * 24 * 3600),
        elapsed=st.integers(min_value=1, max_value=365 * 24 * 3600),
        caller_is_owner=st.booleans(),
    )
    @property_settings
    def test_early_withdrawal_always_times_out(self, duration, elapsed, caller_is_owner):
        ledger, owner, other, unlock_time, _, lock = _deploy(duration, 1000)
        assume(ledger.latest_timestamp + elapsed < unlock_time - 1)
        ledger.increase_time(elapsed)
        with pytest.raises(TooEarlyError):
            lock.connect(owner if caller_is_owner else other).withdraw()

    @given(
        duration=st.integers(min_value=10, max_value=365 * 24 * 3600),
        late_by=st.integers(min_value=0, max_value=365 * 24 * 3600),
        amount=st.integers(min_value=1, max_value=10**18),
    )
    @property_settings
    def test_post_unlock_only_owner_withdraws(self, duration, late_by, amount):
        ledger, owner, other, unlock_time, deployment, lock = _deploy(duration, amount)
        ledger.increase_to(unlock_time + late_by)

        with pytest.raises(NotOwnerError):
            lock.connect(other).withdraw()

        owner_before = ledger.get_balance(owner)
        lock.withdraw()
        assert ledger.get_balance(owner) - owner_before == amount
        assert ledger.get_balance(deployment.proxy_address) == 0

    @given(
        amount=st.integers(min_value=1, max_value=10**18),
        data=st.data(),
    )
    @property_settings
    def test_v2_partial_withdrawals_conserve_value(self, amount, data):
        ledger, owner, _, unlock_time, deployment, lock = _deploy(1000, amount)
        v2 = deploy_implementation(ledger, owner, LockUpgradeableV2)
        upgrade_proxy(
            ledger, owner, deployment.proxy_address, v2,
            encode_call("initialize(uint256)", [unlock_time + 1]),
        )
        lock_v2 = lock.as_abi(LockUpgradeableV2)
        ledger.increase_to(unlock_time + 1)

        withdraw = data.draw(st.integers(min_value=0, max_value=amount * 2), label="withdraw")
        owner_before = ledger.get_balance(owner)
        if withdraw > amount:
            with pytest.raises(InsufficientBalanceError):
                lock_v2.withdraw(withdraw)
            assert ledger.get_balance(deployment.proxy_address) == amount
            return

        receipt = lock_v2.withdraw(withdraw)
        assert receipt.events("Withdrawal")[0].args["remaining"] == amount - withdraw
        assert ledger.get_balance(deployment.proxy_address) == amount - withdraw
        assert ledger.get_balance(owner) - owner_before == withdraw
