"""
vaultproxy Execution Layer.

This module provides the ledger contracts run on:
- ABI encoding and selector computation
- CREATE address derivation
- Call contexts and the undo-log journal
- The Ledger itself and its revert exception hierarchy
"""

from .context import BlockContext, CallContext, CallType
from .exceptions import (
    AdminCannotFallbackError,
    AuthorizationError,
    CallDepthExceededError,
    InitializationError,
    InsufficientBalanceError,
    InvalidImplementationError,
    InvalidOwnerError,
    InvalidUnlockTimeError,
    LedgerError,
    NonPayableError,
    NotOwnerError,
    RoutingError,
    StaticCallViolationError,
    StorageLayoutError,
    TimingError,
    TooEarlyError,
    UnknownSelectorError,
    VMExecutionError,
)
from .helpers import compute_create_address
from .journal import Account, Journal
from .ledger import EventLog, Ledger, TransactionReceipt

__all__ = [
    # Ledger
    "Ledger",
    "TransactionReceipt",
    "EventLog",
    "Journal",
    "Account",
    "BlockContext",
    "CallContext",
    "CallType",
    "compute_create_address",
    # Reverts
    "VMExecutionError",
    "AuthorizationError",
    "NotOwnerError",
    "InvalidOwnerError",
    "TimingError",
    "InvalidUnlockTimeError",
    "TooEarlyError",
    "RoutingError",
    "AdminCannotFallbackError",
    "UnknownSelectorError",
    "InitializationError",
    "InvalidImplementationError",
    "NonPayableError",
    "InsufficientBalanceError",
    "StaticCallViolationError",
    "CallDepthExceededError",
    # Tooling
    "LedgerError",
    "StorageLayoutError",
]
