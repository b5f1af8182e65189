"""
Caller-side handle for a deployed contract.

``BoundContract`` pairs an address with the ABI of the code expected to answer
there, so scripts and tests can call entry points by name::

    lock = BoundContract(ledger, proxy_address, LockUpgradeable, sender=owner)
    lock.unlockTime()            # view: simulated, decoded, no transaction
    lock.withdraw()              # external: sent as a transaction
    lock.connect(other).withdraw()

The ABI does not have to match the code stored at the address. Binding the
vault ABI to a proxy address is the normal way to talk to a proxied vault.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Optional

from ..address_checksum import normalize_address
from ..vm.abi import decode_args, encode_args
from ..vm.exceptions import LedgerError
from .base import AbiFunction, Contract, find_function

if TYPE_CHECKING:
    from ..vm.ledger import EventLog, Ledger, TransactionReceipt


class BoundContract:
    """ABI-driven access to the contract at ``address``."""

    def __init__(
        self,
        ledger: "Ledger",
        address: str,
        contract_cls: type[Contract],
        sender: Optional[str] = None,
    ) -> None:
        self.ledger = ledger
        self.address = normalize_address(address)
        self.contract_cls = contract_cls
        self.sender = normalize_address(sender) if sender else None

    def __repr__(self) -> str:
        return f"BoundContract({self.contract_cls.__name__} at {self.address})"

    def connect(self, sender: str) -> "BoundContract":
        """Same contract, different signer."""
        return BoundContract(self.ledger, self.address, self.contract_cls, sender)

    def as_abi(self, contract_cls: type[Contract]) -> "BoundContract":
        """Same address and signer, different ABI."""
        return BoundContract(self.ledger, self.address, contract_cls, self.sender)

    @property
    def balance(self) -> int:
        return self.ledger.get_balance(self.address)

    def events(self, name: Optional[str] = None) -> list["EventLog"]:
        return self.ledger.get_logs(self.address, name)

    # ==================== ABI Access ====================

    def function(self, name: str) -> AbiFunction:
        """
        Resolve an entry point by name or full signature.

        Raises:
            AttributeError: If the ABI has no such function
        """
        fn = find_function(self.contract_cls, name)
        if fn is None:
            raise AttributeError(f"{self.contract_cls.__name__} has no ABI function {name!r}")
        return fn

    def encode(self, name: str, *args: Any) -> bytes:
        """Calldata for ``name(*args)``, e.g. an initializer payload."""
        fn = self.function(name)
        return fn.selector + encode_args(fn.inputs, args)

    def __getattr__(self, name: str) -> Callable[..., Any]:
        if name.startswith("_"):
            raise AttributeError(name)
        fn = self.function(name)

        def invoke(*args: Any, value: int = 0, sender: Optional[str] = None) -> Any:
            data = fn.selector + encode_args(fn.inputs, args)
            if fn.view:
                return self._call_view(fn, data, sender)
            return self._transact(data, value, sender)

        invoke.__name__ = fn.name
        return invoke

    def _call_view(self, fn: AbiFunction, data: bytes, sender: Optional[str]) -> Any:
        output = self.ledger.call(self.address, data, sender=sender or self.sender)
        values = decode_args(fn.outputs, output)
        if len(values) == 1:
            return values[0]
        return tuple(values)

    def _transact(self, data: bytes, value: int, sender: Optional[str]) -> "TransactionReceipt":
        sender = sender or self.sender
        if sender is None:
            raise LedgerError(f"No sender bound for transaction to {self.address}")
        return self.ledger.transact(sender, self.address, data, value)
