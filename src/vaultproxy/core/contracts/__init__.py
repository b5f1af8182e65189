"""
vaultproxy Contracts.

This module provides the upgradeable contract set:
- Contract: base class with ABI registration and selector dispatch
- Storage: typed fields, EIP-1967 / ERC-7201 slots, layout checks
- Initializable: versioned initializer guard for logic contracts
- Proxy: TransparentUpgradeableProxy and its ProxyAdmin
- Lock: the time-locked vault, V1 and V2
"""

from .base import AbiFunction, Contract, external, find_function, only, view
from .initializable import Initializable, initializer, reinitializer
from .interface import BoundContract
from .lock import LockUpgradeable, LockUpgradeableV2
from .proxy import TransparentUpgradeableProxy
from .proxy_admin import Ownable, ProxyAdmin
from .storage import (
    EIP1967_ADMIN_SLOT,
    EIP1967_IMPLEMENTATION_SLOT,
    LayoutEntry,
    StorageField,
    check_upgrade_safe,
    erc1967_slot,
    erc7201_slot,
    storage_layout,
)

__all__ = [
    # Framework
    "Contract",
    "AbiFunction",
    "BoundContract",
    "external",
    "view",
    "only",
    "find_function",
    # Storage
    "StorageField",
    "LayoutEntry",
    "storage_layout",
    "check_upgrade_safe",
    "erc1967_slot",
    "erc7201_slot",
    "EIP1967_IMPLEMENTATION_SLOT",
    "EIP1967_ADMIN_SLOT",
    # Proxy Pattern
    "TransparentUpgradeableProxy",
    "ProxyAdmin",
    "Ownable",
    "Initializable",
    "initializer",
    "reinitializer",
    # Vault
    "LockUpgradeable",
    "LockUpgradeableV2",
]
