"""
Proxy administration.

ProxyAdmin is the account a TransparentUpgradeableProxy recognizes as its
admin. It holds no funds of its own; it only gates, by single ownership, who
may reach the proxy's upgrade path.
"""

from __future__ import annotations

import logging

from ..address_checksum import ZERO_ADDRESS
from ..vm.abi import encode_call
from ..vm.exceptions import InvalidOwnerError, NotOwnerError
from .base import Contract, external, only, view
from .storage import StorageField

logger = logging.getLogger(__name__)

UPGRADE_TO_SIGNATURE = "upgradeTo(address)"
UPGRADE_TO_AND_CALL_SIGNATURE = "upgradeToAndCall(address,bytes)"

only_owner = only(lambda self: self._check_owner())


class Ownable(Contract):
    """Single-owner access control."""

    _owner = StorageField(0, "address")

    def _check_owner(self) -> None:
        if self.msg_sender != self._owner:
            raise NotOwnerError(
                "Ownable: caller is not the owner",
                details={"caller": self.msg_sender},
            )

    def _transfer_ownership(self, new_owner: str) -> None:
        previous = self._owner
        self._owner = new_owner
        self.emit("OwnershipTransferred", previousOwner=previous, newOwner=new_owner)
        logger.info(
            "Ownership transferred",
            extra={
                "event": "ownable.transferred",
                "contract": self.address[:10],
                "old_owner": previous[:10],
                "new_owner": new_owner[:10],
            },
        )

    @view("owner()", returns="address")
    def owner(self) -> str:
        return self._owner

    @external("transferOwnership(address)")
    @only_owner
    def transfer_ownership(self, new_owner: str) -> None:
        if new_owner == ZERO_ADDRESS:
            raise InvalidOwnerError("Ownable: new owner is the zero address")
        self._transfer_ownership(new_owner)

    @external("renounceOwnership()")
    @only_owner
    def renounce_ownership(self) -> None:
        self._transfer_ownership(ZERO_ADDRESS)


class ProxyAdmin(Ownable):
    """Owner-gated entry point to a proxy's upgrade functions."""

    UPGRADE_INTERFACE_VERSION = "5.0.0"

    def constructor(self, initial_owner: str) -> None:
        if initial_owner == ZERO_ADDRESS:
            raise InvalidOwnerError("Ownable: new owner is the zero address")
        self._transfer_ownership(initial_owner)

    @view("UPGRADE_INTERFACE_VERSION()", returns="string")
    def upgrade_interface_version(self) -> str:
        return self.UPGRADE_INTERFACE_VERSION

    @external("upgrade(address,address)")
    @only_owner
    def upgrade(self, proxy: str, implementation: str) -> None:
        self.call(proxy, encode_call(UPGRADE_TO_SIGNATURE, [implementation]))

    @external("upgradeAndCall(address,address,bytes)", payable=True)
    @only_owner
    def upgrade_and_call(self, proxy: str, implementation: str, data: bytes) -> None:
        self.call(
            proxy,
            encode_call(UPGRADE_TO_AND_CALL_SIGNATURE, [implementation, data]),
            value=self.msg_value,
        )
