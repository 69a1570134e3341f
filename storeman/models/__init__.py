"""Storeman models."""

from storeman.models.item import (
    KNOWN_FIELDS,
    PROTECTED_FIELDS,
    REQUIRED_FIELDS,
    CatalogItem,
    clean_patch,
    new_item_id,
    now_iso,
)
from storeman.models.references import AccountEntitlement, SystemDependency

__all__ = [
    "AccountEntitlement",
    "CatalogItem",
    "KNOWN_FIELDS",
    "PROTECTED_FIELDS",
    "REQUIRED_FIELDS",
    "SystemDependency",
    "clean_patch",
    "new_item_id",
    "now_iso",
]
