"""
vaultproxy - Upgradeable Time-Locked Vault

A transparent-proxy upgrade pattern running on a small in-memory ledger.

Main Components:
- Ledger: accounts, message calls, delegated calls, journaled reverts, block clock
- Contracts: TransparentUpgradeableProxy, ProxyAdmin, Initializable logic
- Vault: LockUpgradeable (V1) and LockUpgradeableV2
- Deployment: proxy deployment, EIP-1967 slot readers, layout-checked upgrades
"""

__version__ = "0.1.0"
__author__ = "vaultproxy Development Team"

__all__ = []
