"""
Proxy deployment and upgrade helpers.

Wraps the raw ledger transactions for the usual lifecycle:

1. ``deploy_implementation`` - deploy a logic template.
2. ``deploy_proxy`` - deploy a TransparentUpgradeableProxy in front of it,
   running the initializer and funding the vault in the same transaction.
3. ``prepare_upgrade`` / ``upgrade_proxy`` - check the new template's storage
   layout against the live one, deploy it, and switch the proxy over through
   its ProxyAdmin.

Slot readers decode the EIP-1967 words straight from proxy storage, the same
way an external verifier would.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

from .address_checksum import normalize_address
from .contracts.base import Contract
from .contracts.proxy import TransparentUpgradeableProxy
from .contracts.proxy_admin import ProxyAdmin
from .contracts.storage import (
    ADMIN_LABEL,
    EIP1967_ADMIN_SLOT,
    EIP1967_IMPLEMENTATION_SLOT,
    IMPLEMENTATION_LABEL,
    LayoutEntry,
    check_upgrade_safe,
    erc1967_slot,
)
from .vm.abi import decode_address_word, encode_call
from .vm.exceptions import LedgerError, StorageLayoutError
from .vm.helpers import compute_create_address
from .vm.ledger import Ledger, TransactionReceipt

logger = logging.getLogger(__name__)

_SLOT_LABELS = {
    "implementation": IMPLEMENTATION_LABEL,
    "admin": ADMIN_LABEL,
}


@dataclass
class ProxyDeployment:
    """Addresses produced by ``deploy_proxy``."""
    proxy_address: str
    admin_address: str
    implementation_address: str
    receipt: TransactionReceipt


# ==================== Slot Readers ====================


def _resolve_slot(slot: Union[int, str]) -> int:
    if isinstance(slot, int):
        return slot
    if slot in _SLOT_LABELS:
        return erc1967_slot(_SLOT_LABELS[slot])
    if slot.startswith("0x"):
        return int(slot, 16)
    return erc1967_slot(slot)


def read_slot(ledger: Ledger, address: str, slot: Union[int, str]) -> bytes:
    """Raw 32-byte word at ``slot`` of ``address``."""
    return ledger.get_storage_at(address, _resolve_slot(slot))


def get_address_in_slot(ledger: Ledger, address: str, slot: Union[int, str]) -> str:
    """
    Decode the right-aligned address stored at ``slot``.

    Args:
        slot: Slot number, ``0x`` hex string, an EIP-1967 label such as
            ``"eip1967.proxy.admin"``, or the shorthand ``"implementation"`` /
            ``"admin"``
    """
    return decode_address_word(read_slot(ledger, address, slot))


def get_implementation(ledger: Ledger, proxy_address: str) -> str:
    return get_address_in_slot(ledger, proxy_address, EIP1967_IMPLEMENTATION_SLOT)


def get_admin(ledger: Ledger, proxy_address: str) -> str:
    return get_address_in_slot(ledger, proxy_address, EIP1967_ADMIN_SLOT)


# ==================== Deployment ====================


def deploy_implementation(ledger: Ledger, deployer: str, contract_cls: type[Contract], *args: Any) -> str:
    """Deploy a logic template and return its address."""
    receipt = ledger.deploy(deployer, contract_cls, *args)
    return receipt.contract_address


def deploy_proxy(
    ledger: Ledger,
    deployer: str,
    initial_implementation: str,
    initial_owner: str,
    init_data: bytes = b"",
    value: int = 0,
) -> ProxyDeployment:
    """
    Deploy a TransparentUpgradeableProxy.

    The initializer in ``init_data`` runs against the proxy's storage inside
    the deployment transaction, with ``value`` credited to the proxy first.
    The ProxyAdmin owned by ``initial_owner`` is the proxy's first creation,
    so its address is ``compute_create_address(proxy, 1)``.

    Raises:
        VMExecutionError: If the constructor or initializer reverts
    """
    receipt = ledger.deploy(
        deployer,
        TransparentUpgradeableProxy,
        normalize_address(initial_implementation),
        normalize_address(initial_owner),
        bytes(init_data),
        value=value,
    )
    proxy_address = receipt.contract_address
    admin_address = compute_create_address(proxy_address, 1)
    if get_admin(ledger, proxy_address) != admin_address:
        raise LedgerError(f"Proxy {proxy_address} admin slot does not hold the derived ProxyAdmin")

    logger.info(
        "Proxy deployed",
        extra={
            "event": "deployment.proxy_deployed",
            "proxy": proxy_address[:10],
            "admin": admin_address[:10],
            "implementation": initial_implementation[:10],
            "value": value,
        },
    )
    return ProxyDeployment(
        proxy_address=proxy_address,
        admin_address=admin_address,
        implementation_address=normalize_address(initial_implementation),
        receipt=receipt,
    )


# ==================== Upgrades ====================


def validate_upgrade(ledger: Ledger, proxy_address: str, new_cls: type[Contract]) -> list[LayoutEntry]:
    """
    Check ``new_cls`` against the code currently behind ``proxy_address``.

    Returns:
        Storage fields the new implementation adds

    Raises:
        StorageLayoutError: If the layouts are incompatible or the current
            implementation is unknown
    """
    current_cls = ledger.get_code(get_implementation(ledger, proxy_address))
    if current_cls is None:
        raise StorageLayoutError(f"Proxy {proxy_address} has no current implementation code")
    return check_upgrade_safe(current_cls, new_cls)


def prepare_upgrade(
    ledger: Ledger,
    deployer: str,
    proxy_address: str,
    new_cls: type[Contract],
    *args: Any,
) -> str:
    """Validate the storage layout, then deploy ``new_cls``; returns its address."""
    added = validate_upgrade(ledger, proxy_address, new_cls)
    address = deploy_implementation(ledger, deployer, new_cls, *args)
    logger.info(
        "Upgrade prepared",
        extra={
            "event": "deployment.upgrade_prepared",
            "proxy": proxy_address[:10],
            "implementation": address[:10],
            "contract": new_cls.__name__,
            "added_fields": [entry.name for entry in added],
        },
    )
    return address


def upgrade_proxy(
    ledger: Ledger,
    admin_owner: str,
    proxy_address: str,
    new_implementation: str,
    init_data: bytes = b"",
    value: int = 0,
    admin_address: Optional[str] = None,
) -> TransactionReceipt:
    """
    Switch ``proxy_address`` to ``new_implementation`` via its ProxyAdmin.

    With ``init_data`` the slot write and the initializer run as one
    ``upgradeAndCall`` transaction; without it a plain ``upgrade`` is sent.

    Raises:
        VMExecutionError: If the caller is not the admin owner, the target has
            no code or the initializer reverts; the slot keeps its old value
    """
    admin_address = admin_address or get_admin(ledger, proxy_address)
    if init_data:
        data = encode_call(
            "upgradeAndCall(address,address,bytes)",
            [proxy_address, new_implementation, bytes(init_data)],
        )
    else:
        data = encode_call("upgrade(address,address)", [proxy_address, new_implementation])
    return ledger.transact(admin_owner, admin_address, data, value)


def proxy_admin_owner(ledger: Ledger, proxy_address: str) -> str:
    """Owner of the ProxyAdmin recorded in the proxy's admin slot."""
    admin_address = get_admin(ledger, proxy_address)
    code = ledger.get_code(admin_address)
    if code is None or not issubclass(code, ProxyAdmin):
        raise LedgerError(f"Admin {admin_address} of proxy {proxy_address} is not a ProxyAdmin")
    return get_address_in_slot(ledger, admin_address, 0)
