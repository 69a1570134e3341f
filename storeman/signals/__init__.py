"""
Storeman signals.

All signals are sent with send_robust() after the storage write succeeded,
so a failing receiver never undoes or fails the write.

Signals:
    item_created:
        Sent after a catalog item is created.

        Kwargs:
            sender: CatalogService class
            item: dict -- the stored record
            item_id: str

    item_updated:
        Sent after a partial update (including image attach).

        Kwargs:
            sender: CatalogService class
            item: dict -- the record after the update
            item_id: str
            fields: list[str] -- attribute names that were written

    item_deleted:
        Sent after the delete guard removed an item.

        Kwargs:
            sender: DeleteGuard class
            item: dict -- the removed record
            item_id: str

        Example handler::

            from storeman.signals import item_deleted

            def on_item_deleted(sender, item, item_id, **kwargs):
                logger.info("Item removed from shop: %s", item_id)

            item_deleted.connect(on_item_deleted)
"""

import logging

from django.dispatch import Signal

logger = logging.getLogger(__name__)

item_created = Signal()
item_updated = Signal()
item_deleted = Signal()


def send_robust(signal: Signal, sender, **kwargs) -> None:
    """Send a signal and log, never raise, receiver failures."""
    for receiver, result in signal.send_robust(sender=sender, **kwargs):
        if isinstance(result, Exception):
            logger.error("Signal receiver %r failed: %s", receiver, result, exc_info=result)
