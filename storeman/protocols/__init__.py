"""Storeman protocols."""

from storeman.protocols.media import ImageStore
from storeman.protocols.storage import (
    Collection,
    Condition,
    Filter,
    KeyRange,
    Page,
    StorageGateway,
    iterate_pages,
)

__all__ = [
    "Collection",
    "Condition",
    "Filter",
    "KeyRange",
    "ImageStore",
    "Page",
    "StorageGateway",
    "iterate_pages",
]
