"""
Referential-integrity guard for catalog deletes.

An item may only leave the catalog when no account still holds an
entitlement to it under its owning gaming system and no gaming system
declares it as its required item. Both relations live in other tables and
are not indexed by item ID, so each evaluation scans the accounts and
systems tables to exhaustion. Nothing is cached between evaluations.

The scans are not snapshot-consistent with the delete that follows: an
entitlement granted after the scan and before the delete is not seen.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from storeman.exceptions import ConditionFailed, ShopError
from storeman.models.references import AccountEntitlement, SystemDependency
from storeman.protocols.storage import Collection, Condition
from storeman.signals import item_deleted, send_robust

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlockingAccount:
    user_id: str
    email: str | None

    def as_dict(self) -> dict:
        return {"userId": self.user_id, "email": self.email}


@dataclass(frozen=True)
class BlockingSystem:
    system_id: str
    name: str

    def as_dict(self) -> dict:
        return {"id": self.system_id, "name": self.name}


@dataclass(frozen=True)
class GuardReport:
    """Outcome of a guard evaluation: every blocker found, in scan order."""

    item_id: str
    system_id: str | None
    accounts: tuple[BlockingAccount, ...] = ()
    systems: tuple[BlockingSystem, ...] = ()

    @property
    def blocked(self) -> bool:
        return bool(self.accounts or self.systems)

    @property
    def message(self) -> str:
        if not self.blocked:
            return "Item can be deleted"
        reasons = []
        if self.systems:
            names = ", ".join(system.name for system in self.systems)
            reasons.append(f"required by gaming system(s) {names}")
        if self.accounts:
            reasons.append(f"{len(self.accounts)} account(s) still have access")
        return "Cannot delete item: " + "; ".join(reasons)

    def as_dict(self) -> dict:
        return {
            "itemId": self.item_id,
            "gamingSystemId": self.system_id,
            "blockingSystems": [system.as_dict() for system in self.systems],
            "blockingAccounts": [account.as_dict() for account in self.accounts],
        }


class DeleteGuard:
    """
    Decides whether a catalog item may be removed, and removes it if so.

    Usage:
        guard = DeleteGuard()
        removed = guard.delete("1700000000000_abc123xyz")
    """

    def __init__(self, gateway=None, image_store=None, settings=None):
        from storeman import conf

        self.gateway = gateway or conf.get_storage_gateway()
        self._image_store = image_store
        self.settings = settings or conf.get_storeman_settings()

    @property
    def image_store(self):
        if self._image_store is None:
            from storeman.conf import get_image_store

            self._image_store = get_image_store()
        return self._image_store

    def entitled_accounts(self, system_id: str | None, item_id: str) -> list[BlockingAccount]:
        """Every account holding item_id under system_id. Scans the whole accounts table."""
        if not system_id:
            return []
        key_attribute = self.settings.key_attribute(Collection.ACCOUNTS)
        blockers = []
        for record in self.gateway.scan_all(Collection.ACCOUNTS):
            account = AccountEntitlement.from_record(record, key_attribute)
            if account.grants(system_id, item_id):
                blockers.append(BlockingAccount(account.user_id, account.email))
        return blockers

    def dependent_systems(self, item_id: str) -> list[BlockingSystem]:
        """Every gaming system whose required item is item_id. Scans the whole systems table."""
        key_attribute = self.settings.key_attribute(Collection.SYSTEMS)
        blockers = []
        for record in self.gateway.scan_all(Collection.SYSTEMS):
            system = SystemDependency.from_record(record, key_attribute)
            if system.requires(item_id):
                blockers.append(BlockingSystem(system.system_id, system.name))
        return blockers

    def evaluate(self, item: dict) -> GuardReport:
        """Collect all blockers for a stored catalog record without deleting it."""
        item_id = item[self.settings.key_attribute(Collection.CATALOG)]
        system_id = item.get("GamingSystemID")
        return GuardReport(
            item_id=item_id,
            system_id=system_id,
            accounts=tuple(self.entitled_accounts(system_id, item_id)),
            systems=tuple(self.dependent_systems(item_id)),
        )

    def delete(self, item_id: str) -> dict:
        """
        Remove an item if nothing references it.

        Returns:
            The removed record.

        Raises:
            ShopError: ITEM_NOT_FOUND if absent (including a concurrent delete),
                DELETE_BLOCKED with the full GuardReport if referenced.
        """
        item = self.gateway.get(Collection.CATALOG, item_id)
        if item is None:
            raise ShopError("ITEM_NOT_FOUND", itemId=item_id)

        report = self.evaluate(item)
        if report.blocked:
            logger.warning(
                "Delete of %s refused: %d blocking system(s), %d blocking account(s)",
                item_id,
                len(report.systems),
                len(report.accounts),
            )
            raise ShopError("DELETE_BLOCKED", report.message, **report.as_dict())

        try:
            removed = self.gateway.delete(Collection.CATALOG, item_id, Condition.MUST_EXIST)
        except ConditionFailed:
            raise ShopError("ITEM_NOT_FOUND", itemId=item_id)
        removed = removed or item
        logger.info("Deleted catalog item %s", item_id)

        self._cleanup_media(report.system_id, item_id)
        send_robust(item_deleted, sender=self.__class__, item=removed, item_id=item_id)
        return removed

    def _cleanup_media(self, system_id: str | None, item_id: str) -> None:
        if not system_id:
            return
        try:
            self.image_store.delete_prefix(system_id, item_id)
        except Exception:
            # Record already removed; cleanup is best effort.
            logger.exception("Media cleanup failed for %s/%s", system_id, item_id)
