"""
In-memory adapters -- for tests and local development.

InMemoryStorageGateway mimics the DynamoDB semantics Storeman relies on:
conditioned writes, Limit applied before filtering, and continuation tokens
shaped like LastEvaluatedKey (table key plus index keys for queries). Query
filters naming an index key are rejected, as DynamoDB rejects them; the sort
key is narrowed with a KeyRange instead. Pages hold at most page_size
evaluated records, so multi-page scans can be exercised with a handful of rows.

Usage in settings.py:
    STOREMAN = {
        "STORAGE_BACKEND": "storeman.adapters.memory.InMemoryStorageGateway",
        "IMAGE_STORE": "storeman.adapters.memory.InMemoryImageStore",
    }
"""

from __future__ import annotations

import copy
import threading
from collections.abc import Iterator, Mapping, Sequence
from typing import Any

from storeman.exceptions import ConditionFailed
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


# Sort key per index, for the indexes the catalog table declares.
DEFAULT_INDEX_SORT_KEYS = {
    "GamingSystemID-index": None,
    "GamingSystemID-Type-keys-index": "Type",
    "Category-CreatedAt-index": "CreatedAt",
    "Status-Price-index": "Price",
}


class InMemoryStorageGateway:
    """StorageGateway backed by plain dicts."""

    def __init__(self, settings=None, page_size: int = 100, index_sort_keys: dict | None = None):
        if settings is None:
            from storeman.conf import StoremanSettings

            settings = StoremanSettings()
        self.settings = settings
        self.page_size = page_size
        self.index_sort_keys = dict(DEFAULT_INDEX_SORT_KEYS, **(index_sort_keys or {}))
        self._tables: dict[Collection, dict[str, dict]] = {c: {} for c in Collection}
        self._lock = threading.Lock()

    def _key_attr(self, collection: Collection) -> str:
        return self.settings.key_attribute(collection)

    def _check(self, collection: Collection, key: str, condition: Condition | None) -> None:
        exists = key in self._tables[collection]
        if condition == Condition.MUST_EXIST and not exists:
            raise ConditionFailed(collection, key, condition)
        if condition == Condition.MUST_NOT_EXIST and exists:
            raise ConditionFailed(collection, key, condition)

    def get(self, collection: Collection, key: str) -> dict | None:
        record = self._tables[collection].get(key)
        return copy.deepcopy(record) if record is not None else None

    def put(
        self,
        collection: Collection,
        item: Mapping[str, Any],
        condition: Condition | None = None,
    ) -> None:
        key = item[self._key_attr(collection)]
        with self._lock:
            self._check(collection, key, condition)
            self._tables[collection][key] = copy.deepcopy(dict(item))

    def update(
        self,
        collection: Collection,
        key: str,
        fields: Mapping[str, Any],
        condition: Condition | None = Condition.MUST_EXIST,
        merge: Mapping[str, Mapping[str, Any]] | None = None,
    ) -> dict:
        with self._lock:
            self._check(collection, key, condition)
            record = self._tables[collection].setdefault(key, {self._key_attr(collection): key})
            record.update(copy.deepcopy(dict(fields)))
            for attribute, entries in (merge or {}).items():
                target = record.get(attribute)
                if not isinstance(target, dict):
                    raise ValueError(f"{attribute} is not a map on {collection.value}:{key}")
                target.update(copy.deepcopy(dict(entries)))
            return copy.deepcopy(record)

    def delete(
        self,
        collection: Collection,
        key: str,
        condition: Condition | None = Condition.MUST_EXIST,
    ) -> dict | None:
        with self._lock:
            self._check(collection, key, condition)
            return self._tables[collection].pop(key, None)

    def _paginate(
        self,
        collection: Collection,
        records: list[dict],
        filters: Sequence[Filter],
        page_token: Any,
        limit: int | None,
        token_attributes: Sequence[str] = (),
    ) -> Page:
        key_attr = self._key_attr(collection)
        start = 0
        if page_token:
            last_key = page_token.get(key_attr)
            # A token whose record has since vanished ends the sequence.
            start = len(records)
            for position, record in enumerate(records):
                if record.get(key_attr) == last_key:
                    start = position + 1
                    break
        size = min(limit or self.page_size, self.page_size)
        evaluated = records[start : start + size]
        next_token = None
        if evaluated and start + size < len(records):
            last = evaluated[-1]
            next_token = {key_attr: last[key_attr]}
            for attribute in token_attributes:
                next_token[attribute] = last[attribute]
        items = [
            copy.deepcopy(record)
            for record in evaluated
            if all(f.matches(record) for f in filters)
        ]
        return Page(items=items, next_token=next_token)

    def query(
        self,
        collection: Collection,
        index: str,
        key_attribute: str,
        key_value: Any,
        filters: Sequence[Filter] = (),
        page_token: Any = None,
        limit: int | None = None,
        descending: bool = False,
        key_range: KeyRange | None = None,
    ) -> Page:
        sort_key = self.index_sort_keys.get(index)
        index_keys = {key_attribute, sort_key} - {None}
        for f in filters:
            if f.attribute in index_keys:
                raise ValueError(f"Filter on key attribute {f.attribute!r} of {index}")
        if key_range is not None and key_range.attribute != sort_key:
            raise ValueError(f"{key_range.attribute!r} is not the sort key of {index}")

        records = [
            record
            for record in self._tables[collection].values()
            if record.get(key_attribute) == key_value
        ]
        token_attributes = [key_attribute]
        if sort_key:
            records = [r for r in records if sort_key in r]
            if key_range is not None:
                records = [r for r in records if key_range.matches(r)]
            records.sort(key=lambda r: r[sort_key], reverse=descending)
            token_attributes.append(sort_key)
        return self._paginate(collection, records, filters, page_token, limit, token_attributes)

    def scan(
        self,
        collection: Collection,
        filters: Sequence[Filter] = (),
        page_token: Any = None,
        limit: int | None = None,
    ) -> Page:
        records = list(self._tables[collection].values())
        return self._paginate(collection, records, filters, page_token, limit)

    def scan_all(
        self,
        collection: Collection,
        filters: Sequence[Filter] = (),
    ) -> Iterator[dict]:
        return iterate_pages(self, collection, filters)


class InMemoryImageStore:
    """ImageStore that keeps uploaded images in a dict keyed by path."""

    def __init__(self, settings=None):
        self.settings = settings
        self.objects: dict[str, bytes] = {}

    def upload(self, image: bytes, system_id: str, item_id: str) -> str:
        key = f"{system_id}/{item_id}/product.jpg"
        self.objects[key] = image
        return key

    def delete_prefix(self, system_id: str, item_id: str) -> int:
        prefix = f"{system_id}/{item_id}/"
        doomed = [key for key in self.objects if key.startswith(prefix)]
        for key in doomed:
            del self.objects[key]
        return len(doomed)


# Verify protocol compliance at import time.
if not isinstance(InMemoryStorageGateway(), StorageGateway):
    raise TypeError("InMemoryStorageGateway does not implement StorageGateway protocol")
if not isinstance(InMemoryImageStore(), ImageStore):
    raise TypeError("InMemoryImageStore does not implement ImageStore protocol")
