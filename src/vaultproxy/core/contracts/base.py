"""
Contract base class and ABI registration.

A contract is a Python class deployed at a ledger address. The class is pure
code: each call builds a fresh instance bound to one execution frame, and all
persistent data goes through ``sload`` / ``sstore`` against the frame's storage
account. That separation is what lets a proxy run a logic contract's code
against the proxy's own storage.

Entry points are declared with ``@external`` / ``@view`` and a Solidity-style
signature; calldata is routed by 4-byte selector, and anything unmatched goes
to ``fallback``.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Callable, Optional, Sequence, Union

from ..address_checksum import normalize_address
from ..vm.abi import decode_args, encode_args, function_selector, parse_signature
from ..vm.context import BlockContext, CallContext
from ..vm.exceptions import (
    NonPayableError,
    StaticCallViolationError,
    UnknownSelectorError,
    VMExecutionError,
)

if TYPE_CHECKING:
    from ..vm.ledger import Ledger


@dataclass(frozen=True)
class AbiFunction:
    """A registered entry point."""
    attr: str
    name: str
    signature: str
    inputs: tuple[str, ...]
    outputs: tuple[str, ...]
    payable: bool
    view: bool
    selector: bytes


def _abi_marker(signature: str, returns: Union[str, Sequence[str]], payable: bool, is_view: bool) -> Callable:
    outputs = (returns,) if isinstance(returns, str) else tuple(returns)
    # Validate eagerly so a typo fails at class definition.
    parse_signature(signature)
    parse_signature(f"returns({','.join(outputs)})")

    def decorator(func: Callable) -> Callable:
        func._abi = (signature, outputs, payable, is_view)
        return func

    return decorator


def external(signature: str, returns: Union[str, Sequence[str]] = (), payable: bool = False) -> Callable:
    """Register a state-changing entry point."""
    return _abi_marker(signature, returns, payable, False)


def view(signature: str, returns: Union[str, Sequence[str]] = ()) -> Callable:
    """Register a read-only entry point; writes inside it revert."""
    return _abi_marker(signature, returns, False, True)


class Contract:
    """
    Base class for deployable contract code.

    Subclasses declare storage with StorageField descriptors and entry points
    with ``@external`` / ``@view``. ``constructor`` runs once at creation.
    """

    payable_constructor = False
    functions: dict[bytes, AbiFunction] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        by_attr: dict[str, AbiFunction] = {}
        for klass in reversed(cls.__mro__):
            for attr, member in vars(klass).items():
                marker = getattr(member, "_abi", None)
                if marker is None:
                    by_attr.pop(attr, None)
                    continue
                signature, outputs, payable, is_view = marker
                name, inputs = parse_signature(signature)
                by_attr[attr] = AbiFunction(
                    attr=attr,
                    name=name,
                    signature=f"{name}({','.join(inputs)})",
                    inputs=tuple(inputs),
                    outputs=tuple(parse_signature(f"returns({','.join(outputs)})")[1]),
                    payable=payable,
                    view=is_view,
                    selector=function_selector(signature),
                )

        functions: dict[bytes, AbiFunction] = {}
        for fn in by_attr.values():
            clash = functions.get(fn.selector)
            if clash is not None:
                raise TypeError(f"{cls.__name__}: selector clash between {clash.signature} and {fn.signature}")
            functions[fn.selector] = fn
        cls.functions = functions

    def __init__(self, ledger: "Ledger", ctx: CallContext) -> None:
        self._ledger = ledger
        self._ctx = ctx
        self._read_only = ctx.static

    # ==================== Frame Context ====================

    @property
    def address(self) -> str:
        """Account whose storage and balance this frame operates on."""
        return self._ctx.address

    @property
    def msg_sender(self) -> str:
        return self._ctx.caller

    @property
    def msg_value(self) -> int:
        return self._ctx.value

    @property
    def tx_origin(self) -> str:
        return self._ctx.origin

    @property
    def block(self) -> BlockContext:
        return self._ctx.block

    @property
    def balance(self) -> int:
        return self._ledger.get_balance(self.address)

    # ==================== Dispatch ====================

    def constructor(self, *args: Any) -> None:
        if args:
            raise TypeError(f"{type(self).__name__} takes no constructor arguments")

    def dispatch(self, calldata: bytes) -> bytes:
        if not calldata:
            return self.receive()
        fn = self.functions.get(bytes(calldata[:4])) if len(calldata) >= 4 else None
        if fn is None:
            return self.fallback(calldata)

        if self.msg_value and not fn.payable:
            raise NonPayableError(f"non-payable function {fn.signature} was called with value")
        try:
            args = decode_args(fn.inputs, calldata[4:])
        except ValueError as exc:
            raise VMExecutionError(f"Invalid calldata for {fn.signature}: {exc}") from exc

        previous = self._read_only
        self._read_only = previous or fn.view
        try:
            result = getattr(self, fn.attr)(*args)
        finally:
            self._read_only = previous

        if not fn.outputs:
            return b""
        values = (result,) if len(fn.outputs) == 1 else tuple(result)
        return encode_args(fn.outputs, values)

    def receive(self) -> bytes:
        """Plain value transfer (empty calldata)."""
        return self.fallback(b"")

    def fallback(self, calldata: bytes) -> bytes:
        raise UnknownSelectorError(
            "function selector was not recognized and there's no fallback function",
            details={"selector": bytes(calldata[:4]).hex(), "contract": type(self).__name__},
        )

    # ==================== State Access ====================

    def _require_writable(self, action: str) -> None:
        if self._read_only:
            raise StaticCallViolationError(f"{action} in read-only context")

    def sload(self, slot: int) -> int:
        return self._ledger.state.get_storage(self.address, slot)

    def sstore(self, slot: int, value: int) -> None:
        self._require_writable("Storage write")
        self._ledger._sstore(self._ctx, slot, value)

    def emit(self, event: str, **args: Any) -> None:
        self._require_writable("Event emission")
        self._ledger._emit(self._ctx, event, args)

    # ==================== Interaction ====================

    def call(self, to: str, data: bytes = b"", value: int = 0) -> bytes:
        if value:
            self._require_writable("Value transfer")
        return self._ledger._message_call(
            caller=self.address,
            origin=self.tx_origin,
            to=normalize_address(to),
            data=bytes(data),
            value=value,
            block=self.block,
            depth=self._ctx.depth + 1,
            static=self._read_only,
        )

    def transfer(self, to: str, amount: int) -> None:
        """Send ``amount`` from this frame's balance; reverts on failure."""
        self.call(to, b"", value=amount)

    def delegatecall(self, code_address: str, data: bytes) -> bytes:
        # A view frame hands its read-only mode down to the delegated code.
        parent = replace(self._ctx, static=True) if self._read_only else self._ctx
        return self._ledger._delegate_call(parent, normalize_address(code_address), bytes(data))

    def create(self, contract_cls: type["Contract"], *args: Any, value: int = 0) -> str:
        self._require_writable("Contract creation")
        return self._ledger._create(self._ctx, contract_cls, args, value)

    def has_code(self, address: str) -> bool:
        return self._ledger.is_contract(address)


def only(check: Callable[["Contract"], None]) -> Callable:
    """Run ``check(self)`` before the wrapped entry point (a Solidity modifier)."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(self: "Contract", *args: Any, **kwargs: Any) -> Any:
            check(self)
            return func(self, *args, **kwargs)

        return wrapper

    return decorator


def find_function(contract_cls: type[Contract], name: str) -> Optional[AbiFunction]:
    """Look up an entry point by ABI name or canonical signature."""
    for fn in contract_cls.functions.values():
        if name in (fn.name, fn.signature):
            return fn
    return None
