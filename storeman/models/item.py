"""Catalog item model."""

import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from storeman.exceptions import ShopError


REQUIRED_FIELDS = ("Name", "Type", "Price", "GamingSystemID")
PROTECTED_FIELDS = ("ID", "CreatedAt", "UpdatedAt")
FLAG_FIELDS = ("IsArchived", "IsFeatured", "IsFree")
STRING_FIELDS = ("Name", "Type", "GamingSystemID", "Content", "Image")
KNOWN_FIELDS = (
    "ID",
    "Name",
    "Type",
    "Price",
    "GamingSystemID",
    "Content",
    "Image",
    "IsArchived",
    "IsFeatured",
    "IsFree",
    "Attributes",
    "CreatedAt",
    "UpdatedAt",
)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_item_id() -> str:
    """Server-side ID: epoch milliseconds plus 9 random base36 chars."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{int(time.time() * 1000)}_{suffix}"


def now_iso() -> str:
    """Current UTC time as ISO 8601 with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _clean_price(value: Any) -> int:
    if isinstance(value, bool):
        raise ShopError("VALIDATION_ERROR", "Price must be an integer amount in cents", field="Price")
    try:
        price = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ShopError("VALIDATION_ERROR", "Price must be an integer amount in cents", field="Price")
    if not isinstance(value, str) and price != value:
        raise ShopError("VALIDATION_ERROR", "Price must be an integer amount in cents", field="Price")
    if price < 0:
        raise ShopError("VALIDATION_ERROR", "Price cannot be negative", field="Price")
    return price


def _split_payload(payload: dict) -> tuple[dict, dict]:
    """
    Separate known fields from the extension map.

    Unknown top-level keys are folded into Attributes. Protected keys are
    dropped at both levels.
    """
    if not isinstance(payload, dict):
        raise ShopError("VALIDATION_ERROR", "Request body must be a JSON object")

    attributes = payload.get("Attributes", {})
    if attributes is None:
        attributes = {}
    if not isinstance(attributes, dict):
        raise ShopError("VALIDATION_ERROR", "Attributes must be an object", field="Attributes")
    extras = {k: v for k, v in attributes.items() if k not in PROTECTED_FIELDS}

    known = {}
    for key, value in payload.items():
        if key == "Attributes":
            continue
        if key in KNOWN_FIELDS:
            known[key] = value
        else:
            extras[key] = value
    return known, extras


def clean_fields(fields: dict) -> dict:
    """Validate and normalize known (non-protected) field values."""
    cleaned = {}
    for key, value in fields.items():
        if key in PROTECTED_FIELDS:
            continue
        if key == "Price":
            cleaned[key] = _clean_price(value)
        elif key in FLAG_FIELDS:
            if not isinstance(value, bool):
                raise ShopError("VALIDATION_ERROR", f"{key} must be a boolean", field=key)
            cleaned[key] = value
        elif key in STRING_FIELDS:
            if value is None and key in ("Content", "Image"):
                value = ""
            if not isinstance(value, str):
                raise ShopError("VALIDATION_ERROR", f"{key} must be a string", field=key)
            if key in REQUIRED_FIELDS and not value.strip():
                raise ShopError("VALIDATION_ERROR", f"{key} cannot be empty", field=key)
            cleaned[key] = value
    return cleaned


@dataclass
class CatalogItem:
    """Purchasable catalog entity, as stored in the catalog table."""

    id: str
    name: str
    type: str
    price: int
    gaming_system_id: str
    content: str = ""
    image: str = ""
    is_archived: bool = False
    is_featured: bool = False
    is_free: bool = False
    attributes: dict = field(default_factory=dict)
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_payload(cls, payload: dict) -> "CatalogItem":
        """
        Build a new item from a create request body.

        The caller may supply ID; CreatedAt/UpdatedAt are always server-set.

        Raises:
            ShopError: MISSING_FIELDS or VALIDATION_ERROR
        """
        known, extras = _split_payload(payload)
        missing = [name for name in REQUIRED_FIELDS if known.get(name) in (None, "")]
        if missing:
            raise ShopError("MISSING_FIELDS", required=list(REQUIRED_FIELDS), missing=missing)

        item_id = payload.get("ID") or new_item_id()
        if not isinstance(item_id, str):
            raise ShopError("VALIDATION_ERROR", "ID must be a string", field="ID")

        cleaned = clean_fields(known)
        timestamp = now_iso()
        return cls(
            id=item_id,
            name=cleaned["Name"],
            type=cleaned["Type"],
            price=cleaned["Price"],
            gaming_system_id=cleaned["GamingSystemID"],
            content=cleaned.get("Content", ""),
            image=cleaned.get("Image", ""),
            is_archived=cleaned.get("IsArchived", False),
            is_featured=cleaned.get("IsFeatured", False),
            is_free=cleaned.get("IsFree", False),
            attributes=extras,
            created_at=timestamp,
            updated_at=timestamp,
        )

    def to_record(self) -> dict:
        return {
            "ID": self.id,
            "Name": self.name,
            "Type": self.type,
            "Price": self.price,
            "GamingSystemID": self.gaming_system_id,
            "Content": self.content,
            "Image": self.image,
            "IsArchived": self.is_archived,
            "IsFeatured": self.is_featured,
            "IsFree": self.is_free,
            "Attributes": self.attributes,
            "CreatedAt": self.created_at,
            "UpdatedAt": self.updated_at,
        }


def clean_patch(payload: dict) -> tuple[dict, dict]:
    """
    Turn an update request body into a partial-field patch.

    ID and CreatedAt are stripped; UpdatedAt is always refreshed.

    Returns:
        (fields, attributes): top-level fields to replace, and extension
        entries to merge into the stored Attributes map. An explicit
        Attributes key in the body replaces the map as a whole instead.
    """
    known, extras = _split_payload(payload)
    fields = clean_fields(known)
    attributes = {}
    if "Attributes" in payload:
        fields["Attributes"] = extras
    else:
        attributes = extras
    fields["UpdatedAt"] = now_iso()
    return fields, attributes
