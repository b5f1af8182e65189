"""
Execution context records passed to contract code.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum


class CallType(Enum):
    """How a frame was entered."""
    CALL = "call"
    DELEGATECALL = "delegatecall"
    STATICCALL = "staticcall"
    CREATE = "create"


@dataclass(frozen=True)
class BlockContext:
    """Block-level values visible to contract code."""
    number: int
    timestamp: int
    chain_id: int


@dataclass(frozen=True)
class CallContext:
    """
    A single execution frame.

    ``address`` is the account whose storage and balance the frame operates
    on; ``code_address`` is the account whose code runs. The two differ only
    for DELEGATECALL frames.
    """

    call_type: CallType
    depth: int
    address: str
    code_address: str
    caller: str
    origin: str
    value: int
    calldata: bytes
    block: BlockContext
    static: bool = False

    def delegated(self, code_address: str, calldata: bytes) -> "CallContext":
        """Frame running ``code_address`` against this frame's storage."""
        return replace(
            self,
            call_type=CallType.DELEGATECALL,
            depth=self.depth + 1,
            code_address=code_address,
            calldata=calldata,
        )
