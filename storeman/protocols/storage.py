"""Storage protocols."""

import enum
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


class Collection(str, enum.Enum):
    """Logical collections backed by one table each."""

    CATALOG = "catalog"
    ACCOUNTS = "accounts"
    SYSTEMS = "systems"


class Condition(str, enum.Enum):
    """Existence precondition for a conditioned write."""

    MUST_EXIST = "must_exist"
    MUST_NOT_EXIST = "must_not_exist"


@dataclass(frozen=True)
class Filter:
    """Post-filter predicate on a single attribute.

    Supported ops: eq, ne, gte, lte.
    """

    attribute: str
    op: str
    value: Any

    OPS = ("eq", "ne", "gte", "lte")

    def __post_init__(self):
        if self.op not in self.OPS:
            raise ValueError(f"Unsupported filter op: {self.op!r}")

    def matches(self, record: Mapping[str, Any]) -> bool:
        """Evaluate against a record. A missing attribute matches only "ne"."""
        if self.attribute not in record:
            return self.op == "ne"
        current = record[self.attribute]
        try:
            if self.op == "eq":
                return current == self.value
            if self.op == "ne":
                return current != self.value
            if self.op == "gte":
                return current >= self.value
            return current <= self.value
        except TypeError:
            return False


@dataclass(frozen=True)
class KeyRange:
    """Sort-key condition of an index query.

    Supported ops: eq, gte, lte, between (value is a (low, high) pair).
    Key attributes cannot appear in a Filter; they are narrowed here.
    """

    attribute: str
    op: str
    value: Any

    OPS = ("eq", "gte", "lte", "between")

    def __post_init__(self):
        if self.op not in self.OPS:
            raise ValueError(f"Unsupported key condition op: {self.op!r}")

    def matches(self, record: Mapping[str, Any]) -> bool:
        if self.attribute not in record:
            return False
        current = record[self.attribute]
        try:
            if self.op == "eq":
                return current == self.value
            if self.op == "gte":
                return current >= self.value
            if self.op == "lte":
                return current <= self.value
            low, high = self.value
            return low <= current <= high
        except TypeError:
            return False


@dataclass(frozen=True)
class Page:
    """One page of a query or scan.

    next_token is the store's continuation value, None on the last page.
    """

    items: list[dict] = field(default_factory=list)
    next_token: Any = None

    @property
    def count(self) -> int:
        return len(self.items)


@runtime_checkable
class StorageGateway(Protocol):
    """Interface for document store access."""

    def get(self, collection: Collection, key: str) -> dict | None:
        """Return the record stored under key, or None."""
        ...

    def put(
        self,
        collection: Collection,
        item: Mapping[str, Any],
        condition: Condition | None = None,
    ) -> None:
        """Write a full record. Raises ConditionFailed."""
        ...

    def update(
        self,
        collection: Collection,
        key: str,
        fields: Mapping[str, Any],
        condition: Condition | None = Condition.MUST_EXIST,
        merge: Mapping[str, Mapping[str, Any]] | None = None,
    ) -> dict:
        """
        Apply a partial-field patch and return the new record.

        fields replace top-level attributes. merge maps a map attribute
        to the entries to set inside it; other entries of that map are
        left as stored. Raises ConditionFailed.
        """
        ...

    def delete(
        self,
        collection: Collection,
        key: str,
        condition: Condition | None = Condition.MUST_EXIST,
    ) -> dict | None:
        """Remove a record and return it. Raises ConditionFailed."""
        ...

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
        """
        Look up records through a secondary index partition.

        key_range narrows the index sort key. filters must not name the
        index's partition or sort key.
        """
        ...

    def scan(
        self,
        collection: Collection,
        filters: Sequence[Filter] = (),
        page_token: Any = None,
        limit: int | None = None,
    ) -> Page:
        """Return one page of a full-collection scan."""
        ...

    def scan_all(
        self,
        collection: Collection,
        filters: Sequence[Filter] = (),
    ) -> Iterator[dict]:
        """Yield every matching record, following continuation tokens to the end."""
        ...


def iterate_pages(
    gateway: StorageGateway,
    collection: Collection,
    filters: Sequence[Filter] = (),
) -> Iterator[dict]:
    """
    Drive gateway.scan() until no continuation token is returned.

    Shared by adapters to implement scan_all(). Each call starts a fresh scan.
    """
    token = None
    while True:
        page = gateway.scan(collection, filters=filters, page_token=token)
        yield from page.items
        token = page.next_token
        if not token:
            return
