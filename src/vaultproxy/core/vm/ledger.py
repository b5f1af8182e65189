"""
In-memory ledger hosting contract execution.

The ledger supplies exactly the primitives upgradeable contracts rely on:
message calls, delegated calls that execute foreign code against the caller's
storage and balance, contract creation at derivable addresses, event logs, and
a block clock. It does not model gas, signatures or networking.

Execution is strictly sequential. Each transaction, and each nested frame
inside it, runs under a journal checkpoint: a VMExecutionError anywhere unwinds
every balance move, storage write, account creation and log entry made below
that checkpoint before the error propagates.
"""

from __future__ import annotations

import copy
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from .. import address_checksum, config
from .abi import WORD_SIZE, keccak256
from .context import BlockContext, CallContext, CallType
from .exceptions import (
    CallDepthExceededError,
    InsufficientBalanceError,
    LedgerError,
    NonPayableError,
    StaticCallViolationError,
    VMExecutionError,
)
from .helpers import compute_create_address
from .journal import Journal

if TYPE_CHECKING:
    from ..contracts.base import Contract

logger = logging.getLogger(__name__)


@dataclass
class EventLog:
    """An event emitted by contract code, attributed to the storage address."""
    address: str
    event: str
    args: dict[str, Any]
    block_number: int
    transaction_hash: str = ""
    log_index: int = 0


@dataclass
class TransactionReceipt:
    """Outcome of one transaction."""
    transaction_hash: str
    block_number: int
    timestamp: int
    sender: str
    to: Optional[str]
    value: int
    success: bool
    contract_address: Optional[str] = None
    return_data: bytes = b""
    revert_reason: Optional[str] = None
    logs: list[EventLog] = field(default_factory=list)

    def events(self, name: str) -> list[EventLog]:
        return [log for log in self.logs if log.event == name]


class Ledger:
    """
    Sequential single-writer ledger.

    Args:
        chain_id: Chain id exposed to contracts
        genesis_timestamp: Timestamp of block 0 (defaults to wall clock)
        dev_accounts: Number of pre-funded accounts
        dev_account_balance: Balance of each pre-funded account
        max_call_depth: Maximum nesting of message calls
    """

    def __init__(
        self,
        chain_id: Optional[int] = None,
        genesis_timestamp: Optional[int] = None,
        dev_accounts: Optional[int] = None,
        dev_account_balance: Optional[int] = None,
        max_call_depth: Optional[int] = None,
    ) -> None:
        self.chain_id = chain_id if chain_id is not None else config.CHAIN_ID
        self.max_call_depth = max_call_depth if max_call_depth is not None else config.MAX_CALL_DEPTH

        if genesis_timestamp is None:
            genesis_timestamp = config.GENESIS_TIMESTAMP
        if genesis_timestamp is None:
            genesis_timestamp = int(time.time())

        self.block_number = 0
        self.latest_timestamp = int(genesis_timestamp)
        self._next_timestamp: Optional[int] = None

        self.state = Journal()
        self.receipts: list[TransactionReceipt] = []
        self._current_tx_hash = ""
        self._snapshots: dict[int, tuple] = {}
        self._snapshot_counter = 0

        count = dev_accounts if dev_accounts is not None else config.DEV_ACCOUNT_COUNT
        balance = dev_account_balance if dev_account_balance is not None else config.DEV_ACCOUNT_BALANCE
        self.accounts: list[str] = [self._dev_address(i) for i in range(count)]
        for address in self.accounts:
            self.state.set_balance(address, balance)

        logger.info(
            "Ledger created",
            extra={
                "event": "ledger.created",
                "chain_id": self.chain_id,
                "genesis_timestamp": self.latest_timestamp,
                "dev_accounts": count,
            },
        )

    @staticmethod
    def _dev_address(index: int) -> str:
        return "0x" + keccak256(f"vaultproxy.dev-account:{index}".encode())[12:].hex()

    # ==================== Block Clock ====================

    def _pending_block(self) -> BlockContext:
        timestamp = self._next_timestamp if self._next_timestamp is not None else self.latest_timestamp + 1
        return BlockContext(number=self.block_number + 1, timestamp=timestamp, chain_id=self.chain_id)

    def _seal_block(self, block: BlockContext) -> None:
        self.block_number = block.number
        self.latest_timestamp = block.timestamp
        self._next_timestamp = None

    def mine(self, timestamp: Optional[int] = None) -> BlockContext:
        """Mine an empty block, optionally at an explicit timestamp."""
        if timestamp is not None:
            self.set_next_block_timestamp(timestamp)
        block = self._pending_block()
        self._seal_block(block)
        return block

    def set_next_block_timestamp(self, timestamp: int) -> None:
        if timestamp <= self.latest_timestamp:
            raise LedgerError(
                f"Timestamp {timestamp} is not after latest block timestamp {self.latest_timestamp}"
            )
        self._next_timestamp = int(timestamp)

    def increase_time(self, seconds: int) -> int:
        """Mine a block ``seconds`` after the latest one; returns its timestamp."""
        if seconds < 1:
            raise LedgerError("Time can only move forward")
        return self.mine(self.latest_timestamp + seconds).timestamp

    def increase_to(self, timestamp: int) -> int:
        """Mine a block at ``timestamp``."""
        return self.mine(timestamp).timestamp

    # ==================== Queries ====================

    def get_balance(self, address: str) -> int:
        account = self.state.get(address_checksum.normalize_address(address))
        return account.balance if account else 0

    def get_nonce(self, address: str) -> int:
        account = self.state.get(address_checksum.normalize_address(address))
        return account.nonce if account else 0

    def get_code(self, address: str) -> Optional[type]:
        account = self.state.get(address_checksum.normalize_address(address))
        return account.code if account else None

    def is_contract(self, address: str) -> bool:
        return self.get_code(address) is not None

    def get_storage_at(self, address: str, slot: int) -> bytes:
        """Raw 32-byte storage word."""
        value = self.state.get_storage(address_checksum.normalize_address(address), slot)
        return value.to_bytes(WORD_SIZE, "big")

    def get_logs(self, address: Optional[str] = None, event: Optional[str] = None) -> list[EventLog]:
        address = address_checksum.normalize_address(address) if address else None
        return [
            log for log in self.state.logs
            if (address is None or log.address == address) and (event is None or log.event == event)
        ]

    @property
    def last_receipt(self) -> Optional[TransactionReceipt]:
        return self.receipts[-1] if self.receipts else None

    # ==================== Transactions ====================

    def transact(self, sender: str, to: str, data: bytes = b"", value: int = 0) -> TransactionReceipt:
        """
        Send a transaction calling ``to``.

        Raises:
            VMExecutionError: If execution reverts (state is rolled back and a
                failed receipt is recorded first)
        """
        return self._apply_transaction(sender, address_checksum.normalize_address(to), bytes(data), value)

    def send_value(self, sender: str, to: str, value: int) -> TransactionReceipt:
        return self.transact(sender, to, b"", value)

    def deploy(self, sender: str, contract_cls: type["Contract"], *args: Any, value: int = 0) -> TransactionReceipt:
        """Deploy ``contract_cls`` with constructor ``args``; the receipt carries the address."""
        return self._apply_transaction(sender, None, b"", value, creation=(contract_cls, args))

    def call(
        self,
        to: str,
        data: bytes,
        sender: Optional[str] = None,
        value: int = 0,
        static: bool = False,
    ) -> bytes:
        """Execute against the pending block and discard every effect."""
        sender = address_checksum.normalize_address(sender) if sender else address_checksum.ZERO_ADDRESS
        block = self._pending_block()
        marker = self.state.checkpoint()
        try:
            return self._message_call(
                caller=sender,
                origin=sender,
                to=address_checksum.normalize_address(to),
                data=bytes(data),
                value=value,
                block=block,
                depth=0,
                static=static,
            )
        finally:
            self.state.revert(marker)

    def _apply_transaction(
        self,
        sender: str,
        to: Optional[str],
        data: bytes,
        value: int,
        creation: Optional[tuple] = None,
    ) -> TransactionReceipt:
        if self.state.depth:
            raise LedgerError("A transaction is already executing")
        if value < 0:
            raise LedgerError("Transaction value must be non-negative")

        sender = address_checksum.normalize_address(sender)
        block = self._pending_block()
        nonce = self.get_nonce(sender)
        tx_hash = "0x" + keccak256(
            f"{self.chain_id}:{sender}:{nonce}:{to}:{data.hex()}:{value}".encode()
        ).hex()

        # The nonce is consumed even when execution reverts.
        self.state.set_nonce(sender, nonce + 1)
        self._current_tx_hash = tx_hash
        first_log = len(self.state.logs)
        contract_address = None
        output = b""

        marker = self.state.checkpoint()
        try:
            if creation is not None:
                contract_cls, args = creation
                contract_address = compute_create_address(sender, nonce)
                self._create_at(
                    contract_address, contract_cls, args,
                    creator=sender, origin=sender, value=value, block=block, depth=0,
                )
            else:
                output = self._message_call(
                    caller=sender, origin=sender, to=to, data=data,
                    value=value, block=block, depth=0, static=False,
                )
        except VMExecutionError as exc:
            self.state.revert(marker)
            self._record_failure(tx_hash, block, sender, to, value, exc.reason, exc)
            raise
        except Exception as exc:
            # Contract code crashed outside the VM error hierarchy; the
            # transaction still lands as failed so the nonce and block agree.
            self.state.revert(marker)
            self._record_failure(tx_hash, block, sender, to, value, f"{type(exc).__name__}: {exc}", exc)
            raise
        finally:
            self._current_tx_hash = ""

        self.state.commit(marker)
        self._seal_block(block)
        receipt = TransactionReceipt(
            transaction_hash=tx_hash,
            block_number=block.number,
            timestamp=block.timestamp,
            sender=sender,
            to=to,
            value=value,
            success=True,
            contract_address=contract_address,
            return_data=output,
            logs=self.state.logs[first_log:],
        )
        self.receipts.append(receipt)

        logger.debug(
            "Transaction applied",
            extra={
                "event": "ledger.tx_applied",
                "tx": tx_hash[:10],
                "block": block.number,
                "logs": len(receipt.logs),
            },
        )
        return receipt

    def _record_failure(
        self,
        tx_hash: str,
        block: BlockContext,
        sender: str,
        to: Optional[str],
        value: int,
        reason: str,
        exc: Exception,
    ) -> TransactionReceipt:
        self._seal_block(block)
        receipt = TransactionReceipt(
            transaction_hash=tx_hash,
            block_number=block.number,
            timestamp=block.timestamp,
            sender=sender,
            to=to,
            value=value,
            success=False,
            revert_reason=reason,
        )
        self.receipts.append(receipt)
        logger.warning(
            "Transaction reverted: %s",
            reason,
            extra={
                "event": "ledger.tx_reverted",
                "tx": tx_hash[:10],
                "sender": sender[:10],
                "error": type(exc).__name__,
            },
        )
        return receipt

    # ==================== Execution Primitives ====================

    def _move_value(self, sender: str, to: str, value: int) -> None:
        if not value:
            return
        account = self.state.get(sender)
        balance = account.balance if account else 0
        if balance < value:
            raise InsufficientBalanceError(
                "Address: insufficient balance",
                details={"account": sender, "balance": balance, "value": value},
            )
        self.state.set_balance(sender, balance - value)
        recipient = self.state.ensure(to)
        self.state.set_balance(to, recipient.balance + value)

    def _check_depth(self, depth: int) -> None:
        if depth > self.max_call_depth:
            raise CallDepthExceededError(f"Max call depth {self.max_call_depth} exceeded")

    def _stack_exhausted(self, depth: int) -> CallDepthExceededError:
        # The interpreter ran out of stack before max_call_depth was reached.
        return CallDepthExceededError(
            f"Max call depth exceeded at depth {depth} (interpreter stack exhausted)",
            details={"depth": depth, "max_call_depth": self.max_call_depth},
        )

    def _run_frame(self, ctx: CallContext) -> bytes:
        code = self.state.get(ctx.code_address).code
        return code(self, ctx).dispatch(ctx.calldata)

    def _message_call(
        self,
        caller: str,
        origin: str,
        to: str,
        data: bytes,
        value: int,
        block: BlockContext,
        depth: int,
        static: bool,
    ) -> bytes:
        self._check_depth(depth)
        if static and value:
            raise StaticCallViolationError("Value transfer in static context")

        marker = self.state.checkpoint()
        try:
            self._move_value(caller, to, value)
            account = self.state.get(to)
            if account is None or not account.has_code:
                output = b""
            else:
                ctx = CallContext(
                    call_type=CallType.STATICCALL if static else CallType.CALL,
                    depth=depth,
                    address=to,
                    code_address=to,
                    caller=caller,
                    origin=origin,
                    value=value,
                    calldata=data,
                    block=block,
                    static=static,
                )
                output = self._run_frame(ctx)
        except VMExecutionError:
            self.state.revert(marker)
            raise
        except RecursionError as exc:
            self.state.revert(marker)
            raise self._stack_exhausted(depth) from exc
        self.state.commit(marker)
        return output

    def _delegate_call(self, parent: CallContext, code_address: str, data: bytes) -> bytes:
        self._check_depth(parent.depth + 1)
        account = self.state.get(code_address)
        if account is None or not account.has_code:
            return b""

        marker = self.state.checkpoint()
        try:
            output = self._run_frame(parent.delegated(code_address, data))
        except VMExecutionError:
            self.state.revert(marker)
            raise
        except RecursionError as exc:
            self.state.revert(marker)
            raise self._stack_exhausted(parent.depth + 1) from exc
        self.state.commit(marker)
        return output

    def _create(self, parent: CallContext, contract_cls: type["Contract"], args: tuple, value: int) -> str:
        if parent.static:
            raise StaticCallViolationError("Contract creation in static context")
        creator = parent.address
        nonce = self.state.get(creator).nonce
        address = compute_create_address(creator, nonce)
        self.state.set_nonce(creator, nonce + 1)
        self._create_at(
            address, contract_cls, args,
            creator=creator, origin=parent.origin, value=value,
            block=parent.block, depth=parent.depth + 1,
        )
        return address

    def _create_at(
        self,
        address: str,
        contract_cls: type["Contract"],
        args: tuple,
        creator: str,
        origin: str,
        value: int,
        block: BlockContext,
        depth: int,
    ) -> None:
        self._check_depth(depth)
        existing = self.state.get(address)
        if existing is not None and (existing.has_code or existing.nonce):
            raise VMExecutionError("Contract address collision", details={"address": address})
        if value and not getattr(contract_cls, "payable_constructor", False):
            raise NonPayableError("non-payable constructor was called with value")

        marker = self.state.checkpoint()
        try:
            # Contract accounts start at nonce 1.
            self.state.set_nonce(address, 1)
            self._move_value(creator, address, value)
            self.state.set_code(address, contract_cls)
            ctx = CallContext(
                call_type=CallType.CREATE,
                depth=depth,
                address=address,
                code_address=address,
                caller=creator,
                origin=origin,
                value=value,
                calldata=b"",
                block=block,
            )
            contract_cls(self, ctx).constructor(*args)
        except VMExecutionError:
            self.state.revert(marker)
            raise
        except RecursionError as exc:
            self.state.revert(marker)
            raise self._stack_exhausted(depth) from exc
        self.state.commit(marker)

        logger.info(
            "Contract deployed",
            extra={
                "event": "ledger.contract_deployed",
                "contract": contract_cls.__name__,
                "address": address[:10],
                "creator": creator[:10],
            },
        )

    def _emit(self, ctx: CallContext, name: str, args: dict[str, Any]) -> EventLog:
        if ctx.static:
            raise StaticCallViolationError("Event emission in static context")
        entry = EventLog(
            address=ctx.address,
            event=name,
            args=dict(args),
            block_number=ctx.block.number,
            transaction_hash=self._current_tx_hash,
            log_index=len(self.state.logs),
        )
        self.state.append_log(entry)
        return entry

    def _sstore(self, ctx: CallContext, slot: int, value: int) -> None:
        if ctx.static:
            raise StaticCallViolationError("Storage write in static context")
        self.state.set_storage(ctx.address, slot, value)

    # ==================== Snapshots ====================

    def snapshot(self) -> int:
        """Capture the whole ledger; returns an id for ``revert_to``."""
        if self.state.depth:
            raise LedgerError("Cannot snapshot while a transaction is executing")
        self._snapshot_counter += 1
        self._snapshots[self._snapshot_counter] = (
            copy.deepcopy(self.state.accounts),
            list(self.state.logs),
            list(self.receipts),
            self.block_number,
            self.latest_timestamp,
            self._next_timestamp,
        )
        return self._snapshot_counter

    def revert_to(self, snapshot_id: int) -> None:
        """Restore a snapshot. It and every later snapshot are consumed."""
        if snapshot_id not in self._snapshots:
            raise LedgerError(f"Unknown snapshot {snapshot_id}")
        accounts, logs, receipts, number, timestamp, next_ts = self._snapshots[snapshot_id]
        self.state.accounts = copy.deepcopy(accounts)
        self.state.logs = list(logs)
        self.receipts = list(receipts)
        self.block_number = number
        self.latest_timestamp = timestamp
        self._next_timestamp = next_ts
        for sid in [sid for sid in self._snapshots if sid >= snapshot_id]:
            del self._snapshots[sid]
