"""
Contract Upgradability - Transparent Proxy (EIP-1967).

The proxy owns the persistent address, storage and balance; the logic it runs
lives in a separately deployed implementation contract whose address sits in
the EIP-1967 implementation slot.

Routing:
- Calls from the admin (the ProxyAdmin created alongside the proxy) may only
  reach ``upgradeTo`` / ``upgradeToAndCall``.
- Every other call is delegated to the implementation with caller, origin and
  value preserved, executing against the proxy's storage.
"""

from __future__ import annotations

import logging

from ..address_checksum import ZERO_ADDRESS
from ..vm.abi import decode_address_word, decode_args, function_selector
from ..vm.exceptions import (
    AdminCannotFallbackError,
    InvalidImplementationError,
    NonPayableError,
    VMExecutionError,
)
from .base import Contract
from .proxy_admin import UPGRADE_TO_AND_CALL_SIGNATURE, UPGRADE_TO_SIGNATURE, ProxyAdmin
from .storage import EIP1967_ADMIN_SLOT, EIP1967_IMPLEMENTATION_SLOT

logger = logging.getLogger(__name__)

UPGRADE_TO_SELECTOR = function_selector(UPGRADE_TO_SIGNATURE)
UPGRADE_TO_AND_CALL_SELECTOR = function_selector(UPGRADE_TO_AND_CALL_SIGNATURE)


class TransparentUpgradeableProxy(Contract):
    """
    Delegating proxy whose admin is a dedicated ProxyAdmin.

    Constructor: ``(logic, initial_owner, data)``. Sets the implementation,
    delegates ``data`` to it (typically an ``initialize`` call), then creates
    ``ProxyAdmin(initial_owner)`` and records it in the admin slot. The
    ProxyAdmin is the proxy's first creation, so it lives at
    ``compute_create_address(proxy, 1)``.
    """

    payable_constructor = True

    def constructor(self, logic: str, initial_owner: str, data: bytes = b"") -> None:
        self._upgrade_to_and_call(logic, data)
        admin = self.create(ProxyAdmin, initial_owner)
        self._change_admin(admin)

    # ==================== EIP-1967 Slots ====================

    def _implementation(self) -> str:
        return decode_address_word(self.sload(EIP1967_IMPLEMENTATION_SLOT).to_bytes(32, "big"))

    def _admin(self) -> str:
        return decode_address_word(self.sload(EIP1967_ADMIN_SLOT).to_bytes(32, "big"))

    def _set_implementation(self, new_implementation: str) -> None:
        if not self.has_code(new_implementation):
            raise InvalidImplementationError(
                "ERC1967: new implementation is not a contract",
                details={"implementation": new_implementation},
            )
        self.sstore(EIP1967_IMPLEMENTATION_SLOT, int(new_implementation[2:], 16))

    def _upgrade_to_and_call(self, new_implementation: str, data: bytes) -> None:
        old_implementation = self._implementation()
        self._set_implementation(new_implementation)
        self.emit("Upgraded", implementation=new_implementation.lower())

        if data:
            self.delegatecall(new_implementation, data)
        elif self.msg_value:
            raise NonPayableError("ERC1967: upgrade without call cannot receive value")

        logger.info(
            "Proxy upgraded",
            extra={
                "event": "proxy.upgraded",
                "proxy": self.address[:10],
                "old_impl": old_implementation[:10],
                "new_impl": new_implementation[:10],
                "initializer": bool(data),
            },
        )

    def _change_admin(self, new_admin: str) -> None:
        if new_admin == ZERO_ADDRESS:
            raise VMExecutionError("ERC1967: new admin is the zero address")
        previous = self._admin()
        self.emit("AdminChanged", previousAdmin=previous, newAdmin=new_admin)
        self.sstore(EIP1967_ADMIN_SLOT, int(new_admin[2:], 16))

        logger.info(
            "Proxy admin changed",
            extra={
                "event": "proxy.admin_changed",
                "proxy": self.address[:10],
                "old_admin": previous[:10],
                "new_admin": new_admin[:10],
            },
        )

    # ==================== Routing ====================

    def fallback(self, calldata: bytes) -> bytes:
        if self.msg_sender == self._admin():
            return self._dispatch_upgrade(calldata)
        return self.delegatecall(self._implementation(), calldata)

    def _dispatch_upgrade(self, calldata: bytes) -> bytes:
        selector = bytes(calldata[:4])
        try:
            if selector == UPGRADE_TO_AND_CALL_SELECTOR:
                new_implementation, data = decode_args(["address", "bytes"], calldata[4:])
            elif selector == UPGRADE_TO_SELECTOR:
                (new_implementation,), data = decode_args(["address"], calldata[4:]), b""
            else:
                raise AdminCannotFallbackError(
                    "TransparentUpgradeableProxy: admin cannot fallback to proxy target",
                    details={"selector": selector.hex()},
                )
        except ValueError as exc:
            raise VMExecutionError(f"Invalid upgrade calldata: {exc}") from exc

        self._upgrade_to_and_call(new_implementation, data)
        return b""
