"""
vaultproxy Ledger Configuration

All values come from environment variables so the same code can back unit
tests, local simulations and scripted scenarios. Malformed values raise
ConfigurationError at import time.
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class NetworkType(Enum):
    LOCAL = "local"
    TESTNET = "testnet"


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _get_int(env_var: str, default: int, minimum: int = 0) -> int:
    """Read a non-negative integer setting."""
    raw = os.getenv(env_var, "").strip()
    if not raw:
        return default
    try:
        value = int(raw, 0)
    except ValueError:
        raise ConfigurationError(f"{env_var} must be an integer, got {raw!r}")
    if value < minimum:
        raise ConfigurationError(f"{env_var} must be >= {minimum}, got {value}")
    return value


def _get_optional_int(env_var: str) -> Optional[int]:
    raw = os.getenv(env_var, "").strip()
    if not raw:
        return None
    return _get_int(env_var, 0)


def _get_network(env_var: str) -> NetworkType:
    raw = os.getenv(env_var, NetworkType.LOCAL.value).strip().lower()
    try:
        return NetworkType(raw)
    except ValueError:
        valid = ", ".join(n.value for n in NetworkType)
        raise ConfigurationError(f"{env_var} must be one of: {valid}; got {raw!r}")


NETWORK = _get_network("VAULTPROXY_NETWORK")

# Matches the chain id local development nodes report.
CHAIN_ID = _get_int("VAULTPROXY_CHAIN_ID", 31337, minimum=1)

# Unset means "start at wall-clock time".
GENESIS_TIMESTAMP = _get_optional_int("VAULTPROXY_GENESIS_TIMESTAMP")

DEV_ACCOUNT_COUNT = _get_int("VAULTPROXY_DEV_ACCOUNTS", 20, minimum=1)
DEV_ACCOUNT_BALANCE = _get_int("VAULTPROXY_DEV_ACCOUNT_BALANCE", 10_000 * 10**18)

MAX_CALL_DEPTH = _get_int("VAULTPROXY_MAX_CALL_DEPTH", 64, minimum=1)

LOG_LEVEL = os.getenv("VAULTPROXY_LOG_LEVEL", "INFO").strip().upper()
if LOG_LEVEL not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
    raise ConfigurationError(f"VAULTPROXY_LOG_LEVEL is not a valid level: {LOG_LEVEL!r}")
LOG_FILE = os.getenv("VAULTPROXY_LOG_FILE", "").strip() or None

logger.debug(
    "Ledger configuration loaded",
    extra={
        "event": "config.loaded",
        "network": NETWORK.value,
        "chain_id": CHAIN_ID,
        "dev_accounts": DEV_ACCOUNT_COUNT,
    },
)
