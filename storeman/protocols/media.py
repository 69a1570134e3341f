"""
ImageStore protocol.

Keeps product media out of the catalog record: the record only holds the
storage path returned by upload().

Usage:
    # In settings.py
    STOREMAN = {
        "IMAGE_STORE": "storeman.adapters.s3.S3ImageStore",
    }
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class ImageStore(Protocol):
    """Interface for storing processed product images."""

    def upload(self, image: bytes, system_id: str, item_id: str) -> str:
        """
        Store a processed image for an item.

        Args:
            image: Processed JPEG bytes
            system_id: Owning gaming system ID
            item_id: Catalog item ID

        Returns:
            Storage path (key), not a full URL.
        """
        ...

    def delete_prefix(self, system_id: str, item_id: str) -> int:
        """
        Delete every stored artifact for an item.

        Returns:
            Number of objects removed.
        """
        ...
