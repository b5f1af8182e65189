"""
vaultproxy Core Module

Core functionality for the vaultproxy ledger including:
- Execution engine and journaled state (``vm``)
- Contract framework and upgradeable contracts (``contracts``)
- Deployment and upgrade helpers
- Configuration and logging
"""

__all__ = []
