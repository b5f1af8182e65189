import sys
from dataclasses import dataclass
from pathlib import Path

import pytest

# Make the src layout importable without an editable install.
project_root = Path(__file__).resolve().parents[2]
src_path = project_root / "src"
sys.path.insert(0, str(src_path))

from vaultproxy.core.contracts.interface import BoundContract  # noqa: E402
from vaultproxy.core.contracts.lock import LockUpgradeable  # noqa: E402
from vaultproxy.core.contracts.proxy_admin import ProxyAdmin  # noqa: E402
from vaultproxy.core.deployment import deploy_implementation, deploy_proxy  # noqa: E402
from vaultproxy.core.vm.abi import encode_call  # noqa: E402
from vaultproxy.core.vm.ledger import Ledger  # noqa: E402

GENESIS_TIMESTAMP = 1_700_000_000
ONE_GWEI = 1_000_000_000
ONE_YEAR_IN_SECS = 365 * 24 * 60 * 60


@pytest.fixture
def ledger():
    """Fresh ledger with a fixed genesis so timestamps are predictable."""
    return Ledger(chain_id=31337, genesis_timestamp=GENESIS_TIMESTAMP, dev_accounts=5)


@pytest.fixture
def owner(ledger):
    return ledger.accounts[0]


@pytest.fixture
def other_account(ledger):
    return ledger.accounts[1]


@dataclass
class LockFixture:
    ledger: Ledger
    lock: BoundContract
    admin: BoundContract
    proxy_address: str
    admin_address: str
    implementation_address: str
    unlock_time: int
    locked_amount: int
    owner: str
    other_account: str


@pytest.fixture
def deploy_one_year_lock(ledger, owner, other_account):
    """Proxied V1 lock holding 1 gwei until one year after the next block."""

    def _deploy(locked_amount: int = ONE_GWEI, duration: int = ONE_YEAR_IN_SECS) -> LockFixture:
        unlock_time = ledger.latest_timestamp + duration
        implementation = deploy_implementation(ledger, owner, LockUpgradeable)
        deployment = deploy_proxy(
            ledger,
            owner,
            implementation,
            owner,
            encode_call("initialize(uint256)", [unlock_time]),
            value=locked_amount,
        )
        return LockFixture(
            ledger=ledger,
            lock=BoundContract(ledger, deployment.proxy_address, LockUpgradeable, sender=owner),
            admin=BoundContract(ledger, deployment.admin_address, ProxyAdmin, sender=owner),
            proxy_address=deployment.proxy_address,
            admin_address=deployment.admin_address,
            implementation_address=implementation,
            unlock_time=unlock_time,
            locked_amount=locked_amount,
            owner=owner,
            other_account=other_account,
        )

    return _deploy


@pytest.fixture
def lock_fixture(deploy_one_year_lock):
    return deploy_one_year_lock()
