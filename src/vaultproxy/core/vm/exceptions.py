"""
Execution exception hierarchy for the vaultproxy ledger.

Every contract-level failure is a VMExecutionError carrying a human-readable
``reason``. The ledger reverts all state touched by the failing transaction
before the exception reaches the caller.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class VMExecutionError(Exception):
    """Base exception for reverted contract execution.

    Attributes:
        reason: Revert reason string surfaced to the caller
        details: Additional context about the failure
        recoverable: Whether resubmitting later can succeed
    """

    recoverable = False

    def __init__(self, reason: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.details = details or {}


# ==================== Authorization Errors ====================


class AuthorizationError(VMExecutionError):
    """Raised when the caller lacks the role an operation requires."""
    pass


class NotOwnerError(AuthorizationError):
    """Raised when a non-owner calls an owner-gated function."""
    pass


class InvalidOwnerError(AuthorizationError):
    """Raised when ownership would be handed to the zero address."""
    pass


# ==================== Timing Errors ====================


class TimingError(VMExecutionError):
    """Raised when an operation is attempted outside its time window."""

    recoverable = True


class InvalidUnlockTimeError(TimingError):
    """Raised when an unlock time is not strictly in the future."""
    pass


class TooEarlyError(TimingError):
    """Raised when a withdrawal is attempted before the unlock time."""
    pass


# ==================== Routing Errors ====================


class RoutingError(VMExecutionError):
    """Raised when a call reaches a path its caller may not use."""
    pass


class AdminCannotFallbackError(RoutingError):
    """Raised when the proxy admin calls a non-administrative selector."""
    pass


class UnknownSelectorError(RoutingError):
    """Raised when no function matches the selector and there is no fallback."""
    pass


# ==================== Execution Errors ====================


class InitializationError(VMExecutionError):
    """Raised when an initializer version has already been consumed."""
    pass


class InvalidImplementationError(VMExecutionError):
    """Raised when an upgrade target holds no code."""
    pass


class NonPayableError(VMExecutionError):
    """Raised when value is attached to a non-payable entry point."""
    pass


class InsufficientBalanceError(VMExecutionError):
    """Raised when a contract sends more value than it holds."""
    pass


class StaticCallViolationError(VMExecutionError):
    """Raised when a read-only call attempts to modify state."""
    pass


class CallDepthExceededError(VMExecutionError):
    """Raised when nested calls exceed the configured depth."""
    pass


# ==================== Tooling Errors ====================


class LedgerError(Exception):
    """Raised on ledger misuse that is not a contract revert."""
    pass


class StorageLayoutError(Exception):
    """Raised when a new implementation would corrupt existing storage."""
    pass
