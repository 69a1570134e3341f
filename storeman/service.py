"""
Storeman public API.

CORE (essential):
    CatalogService.get(item_id)             - Get item record
    CatalogService.create(payload)          - Create item
    CatalogService.update(item_id, payload) - Partial update
    CatalogService.delete(item_id)          - Guarded delete

LISTING (paginated):
    CatalogService.list_all(...)            - Full-table page
    CatalogService.list_featured(...)       - Featured items
    CatalogService.list_by_system(...)      - Items of one gaming system
    CatalogService.list_by_type(...)        - Items of one type/category
    CatalogService.list_by_status(...)      - Items of one status, cheapest first

MEDIA:
    CatalogService.attach_image(...)        - Process, upload and link an image
"""

import logging
from decimal import Decimal
from typing import Any

from storeman.exceptions import ConditionFailed, ShopError
from storeman.models import CatalogItem, clean_patch, now_iso
from storeman.protocols.storage import Collection, Condition, Filter, KeyRange, Page
from storeman.signals import item_created, item_updated, send_robust

logger = logging.getLogger(__name__)

SYSTEM_INDEX = "GamingSystemID-index"
SYSTEM_TYPE_INDEX = "GamingSystemID-Type-keys-index"
STATUS_INDEX = "Status-Price-index"

NOT_ARCHIVED = Filter("IsArchived", "eq", False)


def _price_filters(min_price: Decimal | None, max_price: Decimal | None) -> list[Filter]:
    filters = []
    if min_price is not None:
        filters.append(Filter("Price", "gte", min_price))
    if max_price is not None:
        filters.append(Filter("Price", "lte", max_price))
    return filters


def _price_range(min_price: Decimal | None, max_price: Decimal | None) -> KeyRange | None:
    if min_price is not None and max_price is not None:
        if min_price > max_price:
            raise ShopError("VALIDATION_ERROR", "minPrice cannot exceed maxPrice", field="minPrice")
        return KeyRange("Price", "between", (min_price, max_price))
    if min_price is not None:
        return KeyRange("Price", "gte", min_price)
    if max_price is not None:
        return KeyRange("Price", "lte", max_price)
    return None


class CatalogService:
    """
    Storeman public API.

    Uses @classmethod for extensibility: subclass and override _gateway()
    or _image_store() to swap collaborators.
    """

    # ======================================================================
    # Collaborators
    # ======================================================================

    @classmethod
    def _gateway(cls):
        from storeman.conf import get_storage_gateway

        return get_storage_gateway()

    @classmethod
    def _image_store(cls):
        from storeman.conf import get_image_store

        return get_image_store()

    @classmethod
    def _guard(cls):
        from storeman.guard import DeleteGuard

        return DeleteGuard(gateway=cls._gateway(), image_store=cls._image_store())

    # ======================================================================
    # CORE API
    # ======================================================================

    @classmethod
    def get(cls, item_id: str) -> dict | None:
        """Get an item record by ID, or None."""
        return cls._gateway().get(Collection.CATALOG, item_id)

    @classmethod
    def require(cls, item_id: str) -> dict:
        """
        Get an item record by ID.

        Raises:
            ShopError: ITEM_NOT_FOUND
        """
        item = cls.get(item_id)
        if item is None:
            raise ShopError("ITEM_NOT_FOUND", itemId=item_id)
        return item

    @classmethod
    def create(cls, payload: dict) -> dict:
        """
        Create a catalog item.

        Args:
            payload: Request body; Name, Type, Price and GamingSystemID are
                required, ID is optional (generated when absent).

        Returns:
            The stored record.

        Raises:
            ShopError: MISSING_FIELDS, VALIDATION_ERROR, DUPLICATE_SYSTEM_TYPE,
                ITEM_EXISTS
        """
        from storeman.conf import storeman_settings

        item = CatalogItem.from_payload(payload)
        if storeman_settings.UNIQUE_SYSTEM_TYPE:
            existing = cls._find_system_type(item.gaming_system_id, item.type)
            if existing is not None:
                raise ShopError(
                    "DUPLICATE_SYSTEM_TYPE",
                    existingProductId=existing.get("ID"),
                )

        record = item.to_record()
        try:
            cls._gateway().put(Collection.CATALOG, record, Condition.MUST_NOT_EXIST)
        except ConditionFailed:
            raise ShopError("ITEM_EXISTS", itemId=item.id)

        logger.info("Created catalog item %s (%s/%s)", item.id, item.gaming_system_id, item.type)
        send_robust(item_created, sender=cls, item=record, item_id=item.id)
        return record

    @classmethod
    def _find_system_type(cls, system_id: str, item_type: str) -> dict | None:
        """First item of a gaming system with the given Type, or None."""
        page = cls._gateway().query(
            Collection.CATALOG,
            SYSTEM_TYPE_INDEX,
            "GamingSystemID",
            system_id,
            key_range=KeyRange("Type", "eq", item_type),
            limit=1,
        )
        return page.items[0] if page.items else None

    @classmethod
    def update(cls, item_id: str, payload: dict) -> dict:
        """
        Apply a partial update.

        ID and CreatedAt are never overwritten; UpdatedAt is always refreshed.
        Extension keys are merged into the stored Attributes map; an explicit
        Attributes object replaces it.

        Raises:
            ShopError: VALIDATION_ERROR, ITEM_NOT_FOUND
        """
        fields, attributes = clean_patch(payload)
        merge = {"Attributes": attributes} if attributes else None
        try:
            record = cls._gateway().update(
                Collection.CATALOG, item_id, fields, Condition.MUST_EXIST, merge=merge
            )
        except ConditionFailed:
            raise ShopError("ITEM_NOT_FOUND", itemId=item_id)

        written = sorted(fields) + [f"Attributes.{name}" for name in sorted(attributes)]
        logger.info("Updated catalog item %s: %s", item_id, written)
        send_robust(item_updated, sender=cls, item=record, item_id=item_id, fields=written)
        return record

    @classmethod
    def delete(cls, item_id: str) -> dict:
        """
        Delete an item through the DeleteGuard.

        Raises:
            ShopError: ITEM_NOT_FOUND, DELETE_BLOCKED
        """
        return cls._guard().delete(item_id)

    # ======================================================================
    # LISTING API
    # ======================================================================

    @classmethod
    def list_all(
        cls,
        include_archived: bool = False,
        page_token: Any = None,
        limit: int | None = None,
    ) -> Page:
        filters = [] if include_archived else [NOT_ARCHIVED]
        return cls._gateway().scan(
            Collection.CATALOG, filters=filters, page_token=page_token, limit=limit
        )

    @classmethod
    def list_featured(
        cls,
        include_archived: bool = False,
        page_token: Any = None,
        limit: int | None = None,
    ) -> Page:
        filters = [Filter("IsFeatured", "eq", True)]
        if not include_archived:
            filters.append(NOT_ARCHIVED)
        return cls._gateway().scan(
            Collection.CATALOG, filters=filters, page_token=page_token, limit=limit
        )

    @classmethod
    def list_by_type(
        cls,
        item_type: str,
        include_archived: bool = False,
        page_token: Any = None,
        limit: int | None = None,
    ) -> Page:
        # No Type index on the table yet; this is a filtered scan.
        filters = [Filter("Type", "eq", item_type)]
        if not include_archived:
            filters.append(NOT_ARCHIVED)
        return cls._gateway().scan(
            Collection.CATALOG, filters=filters, page_token=page_token, limit=limit
        )

    @classmethod
    def list_by_system(
        cls,
        system_id: str,
        include_archived: bool = False,
        min_price: Decimal | None = None,
        max_price: Decimal | None = None,
        page_token: Any = None,
        limit: int | None = None,
    ) -> Page:
        filters = [] if include_archived else [NOT_ARCHIVED]
        filters += _price_filters(min_price, max_price)
        return cls._gateway().query(
            Collection.CATALOG,
            SYSTEM_INDEX,
            "GamingSystemID",
            system_id,
            filters=filters,
            page_token=page_token,
            limit=limit,
        )

    @classmethod
    def list_by_status(
        cls,
        status: str,
        include_archived: bool = False,
        min_price: Decimal | None = None,
        max_price: Decimal | None = None,
        page_token: Any = None,
        limit: int | None = None,
    ) -> Page:
        """
        Items with the given Status, sorted by Price ascending.

        Price is the index sort key, so the range goes into the key
        condition rather than a filter.
        """
        filters = [] if include_archived else [NOT_ARCHIVED]
        return cls._gateway().query(
            Collection.CATALOG,
            STATUS_INDEX,
            "Status",
            status,
            filters=filters,
            page_token=page_token,
            limit=limit,
            key_range=_price_range(min_price, max_price),
        )

    # ======================================================================
    # MEDIA API
    # ======================================================================

    @classmethod
    def attach_image(cls, item_id: str, system_id: str, raw_image: bytes) -> tuple[str, dict]:
        """
        Process an uploaded image, store it and link it to the item.

        Returns:
            (image path, updated record)

        Raises:
            ShopError: INVALID_IMAGE, ITEM_NOT_FOUND
        """
        from storeman.imaging import process_image

        cls.require(item_id)
        processed = process_image(raw_image)
        image_path = cls._image_store().upload(processed, system_id, item_id)
        logger.info("Image uploaded for %s: %s", item_id, image_path)

        fields = {"Image": image_path, "UpdatedAt": now_iso()}
        try:
            record = cls._gateway().update(Collection.CATALOG, item_id, fields, Condition.MUST_EXIST)
        except ConditionFailed:
            raise ShopError("ITEM_NOT_FOUND", itemId=item_id)

        send_robust(item_updated, sender=cls, item=record, item_id=item_id, fields=sorted(fields))
        return image_path, record
