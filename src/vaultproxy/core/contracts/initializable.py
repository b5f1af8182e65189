"""
Initializer lifecycle for logic contracts.

Code that runs behind a proxy cannot use its constructor to set state: the
constructor would write the template's own storage, not the proxy's. Setup
moves into an ``initialize`` entry point guarded by a version number kept in an
ERC-7201 namespaced slot, so the guard survives upgrades and never collides
with sequential fields.

- ``@initializer`` consumes version 1.
- ``@reinitializer(n)`` consumes version ``n``; a later implementation uses it
  to run fresh setup during ``upgradeAndCall``.
- ``_disable_initializers()`` locks every version; templates call it in their
  constructor so nobody can initialize the template itself.
"""

from __future__ import annotations

import functools
from typing import Any, Callable

from ..vm.exceptions import InitializationError
from .base import Contract
from .storage import erc7201_slot

# erc7201("openzeppelin.storage.Initializable")
INITIALIZABLE_STORAGE = erc7201_slot("openzeppelin.storage.Initializable")

_VERSION_MASK = 2**64 - 1
_INITIALIZING_BIT = 1 << 64
MAX_VERSION = _VERSION_MASK


class Initializable(Contract):
    """Packed ``{uint64 initialized; bool initializing}`` at the namespaced slot."""

    @property
    def _initialized_version(self) -> int:
        return self.sload(INITIALIZABLE_STORAGE) & _VERSION_MASK

    @property
    def _initializing(self) -> bool:
        return bool(self.sload(INITIALIZABLE_STORAGE) & _INITIALIZING_BIT)

    def _set_initializer_state(self, version: int, initializing: bool) -> None:
        self.sstore(INITIALIZABLE_STORAGE, version | (_INITIALIZING_BIT if initializing else 0))

    def _disable_initializers(self) -> None:
        if self._initializing:
            raise InitializationError("Initializable: contract is initializing")
        if self._initialized_version != MAX_VERSION:
            self._set_initializer_state(MAX_VERSION, False)
            self.emit("Initialized", version=MAX_VERSION)


def reinitializer(version: int) -> Callable:
    if not 1 <= version <= MAX_VERSION:
        raise ValueError(f"Initializer version must be in [1, {MAX_VERSION}]")

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(self: Initializable, *args: Any) -> Any:
            if self._initializing or self._initialized_version >= version:
                raise InitializationError(
                    "Initializable: contract is already initialized",
                    details={"version": version, "current": self._initialized_version},
                )
            self._set_initializer_state(version, True)
            result = func(self, *args)
            self._set_initializer_state(version, False)
            self.emit("Initialized", version=version)
            return result

        return wrapper

    return decorator


initializer = reinitializer(1)
