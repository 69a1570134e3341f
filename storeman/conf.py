"""
Storeman configuration.

Usage in settings.py:
    STOREMAN = {
        "REGION": "eu-west-2",
        "STAGE": "dev",
        "CATALOG_TABLE": "Shop",
        "ACCOUNTS_TABLE": "Users",
        "SYSTEMS_TABLE": "GamingSystems",
        "STORAGE_BACKEND": "storeman.adapters.dynamodb.DynamoStorageGateway",
        "IMAGE_STORE": "storeman.adapters.s3.S3ImageStore",
    }
"""

import importlib
import threading
from dataclasses import dataclass
from typing import Any

from django.conf import settings

from storeman.protocols.storage import Collection


@dataclass
class StoremanSettings:
    """Storeman configuration settings."""

    REGION: str = "eu-west-2"
    STAGE: str = "prod"
    CATALOG_TABLE: str = "Shop"
    ACCOUNTS_TABLE: str = "Users"
    SYSTEMS_TABLE: str = "GamingSystems"
    CATALOG_KEY: str = "ID"
    ACCOUNTS_KEY: str = "UserID"
    SYSTEMS_KEY: str = "ID"
    MEDIA_BUCKET: str | None = None
    ADMIN_GROUP: str = "Administrators"
    UNIQUE_SYSTEM_TYPE: bool = True
    STORAGE_BACKEND: str = "storeman.adapters.dynamodb.DynamoStorageGateway"
    IMAGE_STORE: str = "storeman.adapters.s3.S3ImageStore"

    def table_name(self, collection: Collection) -> str:
        return {
            Collection.CATALOG: self.CATALOG_TABLE,
            Collection.ACCOUNTS: self.ACCOUNTS_TABLE,
            Collection.SYSTEMS: self.SYSTEMS_TABLE,
        }[collection]

    def key_attribute(self, collection: Collection) -> str:
        return {
            Collection.CATALOG: self.CATALOG_KEY,
            Collection.ACCOUNTS: self.ACCOUNTS_KEY,
            Collection.SYSTEMS: self.SYSTEMS_KEY,
        }[collection]

    @property
    def media_bucket(self) -> str:
        """Explicit MEDIA_BUCKET, else the per-stage default."""
        if self.MEDIA_BUCKET:
            return self.MEDIA_BUCKET
        if self.STAGE == "dev":
            return "dev-realmforge-shop-media"
        return "realmforge-shop-media"


def get_storeman_settings() -> StoremanSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "STOREMAN", {})
    return StoremanSettings(**user_settings)


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_storeman_settings(), name)


storeman_settings = _LazySettings()


def _load_backend(path: str):
    module_path, cls_name = path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    cls = getattr(module, cls_name)
    return cls(get_storeman_settings())


# StorageGateway singleton
_storage_lock = threading.Lock()
_storage_instance = None


def get_storage_gateway():
    """
    Return the configured StorageGateway instance.

    Loads from STOREMAN["STORAGE_BACKEND"] setting (dotted path); the class is
    constructed with the current StoremanSettings.
    If _storage_instance was set directly (e.g. in tests), returns it as-is.
    """
    global _storage_instance
    if _storage_instance is not None:
        return _storage_instance
    with _storage_lock:
        if _storage_instance is None:
            _storage_instance = _load_backend(storeman_settings.STORAGE_BACKEND)
    return _storage_instance


def set_storage_gateway(gateway) -> None:
    """Install a gateway instance directly (for tests and local runs)."""
    global _storage_instance
    _storage_instance = gateway


def reset_storage_gateway():
    """Reset StorageGateway singleton (for tests)."""
    global _storage_instance
    _storage_instance = None


# ImageStore singleton
_image_store_lock = threading.Lock()
_image_store_instance = None


def get_image_store():
    """Return the configured ImageStore instance (STOREMAN["IMAGE_STORE"])."""
    global _image_store_instance
    if _image_store_instance is not None:
        return _image_store_instance
    with _image_store_lock:
        if _image_store_instance is None:
            _image_store_instance = _load_backend(storeman_settings.IMAGE_STORE)
    return _image_store_instance


def set_image_store(store) -> None:
    """Install an image store instance directly (for tests and local runs)."""
    global _image_store_instance
    _image_store_instance = store


def reset_image_store():
    """Reset ImageStore singleton (for tests)."""
    global _image_store_instance
    _image_store_instance = None
