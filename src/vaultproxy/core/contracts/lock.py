"""
Time-locked vault logic.

Funds sit in the balance of whichever account runs this code, which behind a
proxy is the proxy itself. The owner may withdraw once ``unlockTime`` has
passed. Both versions keep ``unlockTime`` at slot 0 and ``owner`` at slot 1.
"""

from __future__ import annotations

import logging

from ..vm.exceptions import (
    InsufficientBalanceError,
    InvalidUnlockTimeError,
    NotOwnerError,
    TooEarlyError,
)
from .base import external, view
from .initializable import Initializable, initializer, reinitializer
from .storage import StorageField

logger = logging.getLogger(__name__)


class LockUpgradeable(Initializable):
    """V1: whole-balance withdrawal."""

    _unlock_time = StorageField(0, "uint256")
    _owner = StorageField(1, "address")

    def constructor(self) -> None:
        self._disable_initializers()

    @external("initialize(uint256)", payable=True)
    @initializer
    def initialize(self, unlock_time: int) -> None:
        self._set_up(unlock_time)

    def _set_up(self, unlock_time: int) -> None:
        if self.block.timestamp >= unlock_time:
            raise InvalidUnlockTimeError(
                "Unlock time should be in the future",
                details={"unlock_time": unlock_time, "now": self.block.timestamp},
            )
        self._unlock_time = unlock_time
        # The transaction sender, not the proxy or admin relaying the call.
        self._owner = self.tx_origin

    @view("unlockTime()", returns="uint256")
    def unlock_time(self) -> int:
        return self._unlock_time

    @view("owner()", returns="address")
    def owner(self) -> str:
        return self._owner

    def _check_withdrawable(self) -> None:
        if self.block.timestamp < self._unlock_time:
            raise TooEarlyError(
                "You can't withdraw yet",
                details={"unlock_time": self._unlock_time, "now": self.block.timestamp},
            )
        if self.msg_sender != self._owner:
            raise NotOwnerError("You aren't the owner", details={"caller": self.msg_sender})

    @external("withdraw()")
    def withdraw(self) -> None:
        self._check_withdrawable()
        amount = self.balance
        self.emit("Withdrawal", amount=amount, when=self.block.timestamp)
        self.transfer(self._owner, amount)
        logger.info(
            "Vault withdrawal",
            extra={"event": "lock.withdrawal", "vault": self.address[:10], "amount": amount},
        )


class LockUpgradeableV2(LockUpgradeable):
    """V2: partial withdrawal; the event also reports the remaining balance."""

    @external("initialize(uint256)", payable=True)
    @reinitializer(2)
    def initialize(self, unlock_time: int) -> None:
        self._set_up(unlock_time)

    @external("withdraw(uint256)")
    def withdraw(self, amount: int) -> None:
        self._check_withdrawable()
        if amount > self.balance:
            raise InsufficientBalanceError(
                "Address: insufficient balance",
                details={"balance": self.balance, "amount": amount},
            )
        remaining = self.balance - amount
        self.emit("Withdrawal", amount=amount, when=self.block.timestamp, remaining=remaining)
        self.transfer(self._owner, amount)
        logger.info(
            "Vault withdrawal",
            extra={
                "event": "lock.withdrawal",
                "vault": self.address[:10],
                "amount": amount,
                "remaining": remaining,
            },
        )
