"""Pytest fixtures for Storeman tests."""

import jwt
import pytest

from storeman.adapters.memory import InMemoryImageStore, InMemoryStorageGateway
from storeman.conf import (
    reset_image_store,
    reset_storage_gateway,
    set_image_store,
    set_storage_gateway,
)
from storeman.protocols.storage import Collection


def make_record(item_id, **overrides):
    """Stored catalog record with sensible defaults."""
    record = {
        "ID": item_id,
        "Name": f"Item {item_id}",
        "Type": "Spells",
        "Price": 2000,
        "GamingSystemID": "pathfinder",
        "Content": "",
        "Image": "",
        "IsArchived": False,
        "IsFeatured": False,
        "IsFree": False,
        "Attributes": {},
        "CreatedAt": "2020-01-01T00:00:00.000Z",
        "UpdatedAt": "2020-01-01T00:00:00.000Z",
    }
    record.update(overrides)
    return record


def make_token(sub="user-1", groups=None):
    payload = {"sub": sub}
    if groups is not None:
        payload["cognito:groups"] = groups
    return jwt.encode(payload, "not-verified", algorithm="HS256")


@pytest.fixture
def gateway():
    """In-memory gateway installed as the configured backend."""
    gw = InMemoryStorageGateway()
    set_storage_gateway(gw)
    yield gw
    reset_storage_gateway()


@pytest.fixture
def image_store():
    """In-memory image store installed as the configured backend."""
    store = InMemoryImageStore()
    set_image_store(store)
    yield store
    reset_image_store()


@pytest.fixture
def shop(gateway, image_store):
    """Both backends, returned as the gateway."""
    return gateway


@pytest.fixture
def item(shop):
    """Catalog item X owned by gaming system 'pathfinder', with a stored image."""
    record = make_record("X", Image="pathfinder/X/product.jpg")
    shop.put(Collection.CATALOG, record)
    return record


@pytest.fixture
def entitled_account(shop, item):
    """Account A holding X under 'pathfinder'."""
    record = {
        "UserID": "A",
        "Email": "a@example.com",
        "Entitlements": {"pathfinder": ["X", "OTHER"]},
    }
    shop.put(Collection.ACCOUNTS, record)
    return record


@pytest.fixture
def dependent_system(shop, item):
    """Gaming system that declares X as its required item."""
    record = {"ID": "starfinder", "Name": "Starfinder", "RequiredShopItemID": "X"}
    shop.put(Collection.SYSTEMS, record)
    return record


@pytest.fixture
def admin_headers():
    """Django test client kwargs for an admin caller."""
    return {"HTTP_AUTHORIZATION": f"Bearer {make_token('admin-1', ['Administrators'])}"}


@pytest.fixture
def member_headers():
    """Django test client kwargs for an authenticated non-admin caller."""
    return {"HTTP_AUTHORIZATION": f"Bearer {make_token('member-1', ['Players'])}"}
