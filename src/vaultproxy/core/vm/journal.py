"""
Journaled account state with nested checkpoints.

Every mutation records the value it overwrote. ``checkpoint()`` returns a
marker; ``revert(marker)`` undoes every mutation made after it and
``commit(marker)`` keeps them while releasing the marker. Markers nest the way
message calls nest, so a failing inner frame can be unwound without touching
the outer frame's writes.

Intended usage
--------------
    j = Journal()
    marker = j.checkpoint()
    try:
        j.set_balance(addr, 100)
        j.set_storage(addr, 0, 42)
    except VMExecutionError:
        j.revert(marker)
        raise
    j.commit(marker)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .exceptions import LedgerError


@dataclass
class Account:
    """Balance, nonce, code and storage of one address."""
    balance: int = 0
    nonce: int = 0
    code: Optional[type] = None
    storage: dict[int, int] = field(default_factory=dict)

    @property
    def has_code(self) -> bool:
        return self.code is not None


class Journal:
    """Undo-log over the account map and the event log."""

    def __init__(self) -> None:
        self.accounts: dict[str, Account] = {}
        self.logs: list[Any] = []
        self._undo: list[Callable[[], None]] = []
        self._markers: list[int] = []

    # ==================== Checkpointing ====================

    @property
    def depth(self) -> int:
        return len(self._markers)

    def checkpoint(self) -> int:
        """Open a checkpoint; the marker is its nesting index."""
        self._markers.append(len(self._undo))
        return len(self._markers) - 1

    def commit(self, marker: int) -> None:
        if marker != len(self._markers) - 1:
            raise LedgerError(f"Checkpoint {marker} is not the innermost open checkpoint")
        self._markers.pop()
        if not self._markers:
            # Outermost unit committed; nothing can revert past it any more.
            self._undo.clear()

    def revert(self, marker: int) -> None:
        """Undo back to ``marker``, discarding any checkpoints opened after it."""
        if not 0 <= marker < len(self._markers):
            raise LedgerError(f"Checkpoint {marker} is not open")
        undo_len = self._markers[marker]
        del self._markers[marker:]
        while len(self._undo) > undo_len:
            self._undo.pop()()
        if not self._markers:
            self._undo.clear()

    # ==================== Accounts ====================

    def get(self, address: str) -> Optional[Account]:
        return self.accounts.get(address)

    def ensure(self, address: str) -> Account:
        account = self.accounts.get(address)
        if account is None:
            account = Account()
            self.accounts[address] = account
            self._record(lambda: self.accounts.pop(address, None))
        return account

    def set_balance(self, address: str, balance: int) -> None:
        if balance < 0:
            raise LedgerError(f"Negative balance for {address}")
        account = self.ensure(address)
        previous = account.balance
        account.balance = balance
        self._record(lambda: setattr(account, "balance", previous))

    def set_nonce(self, address: str, nonce: int) -> None:
        account = self.ensure(address)
        previous = account.nonce
        account.nonce = nonce
        self._record(lambda: setattr(account, "nonce", previous))

    def set_code(self, address: str, code: type) -> None:
        account = self.ensure(address)
        previous = account.code
        account.code = code
        self._record(lambda: setattr(account, "code", previous))

    # ==================== Storage ====================

    def get_storage(self, address: str, slot: int) -> int:
        account = self.accounts.get(address)
        if account is None:
            return 0
        return account.storage.get(slot, 0)

    def set_storage(self, address: str, slot: int, value: int) -> None:
        account = self.ensure(address)
        previous = account.storage.get(slot)

        # Zero words are not materialized.
        if value:
            account.storage[slot] = value
        else:
            account.storage.pop(slot, None)

        def undo() -> None:
            if previous is None:
                account.storage.pop(slot, None)
            else:
                account.storage[slot] = previous

        self._record(undo)

    # ==================== Logs ====================

    def append_log(self, entry: Any) -> None:
        self.logs.append(entry)
        self._record(self.logs.pop)

    def _record(self, undo: Callable[[], None]) -> None:
        if self._markers:
            self._undo.append(undo)
