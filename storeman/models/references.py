"""
Read-only views over records owned by other collections.

Storeman never writes accounts or gaming systems; it only reads them to
decide whether a catalog item is still referenced. Malformed relation
fields are read as "no relation".
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class AccountEntitlement:
    """Per-system lists of catalog item IDs an account may access."""

    user_id: str
    email: str | None = None
    entitlements: dict[str, list[str]] = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: dict, key_attribute: str = "UserID") -> "AccountEntitlement":
        raw = record.get("Entitlements")
        entitlements = {}
        if isinstance(raw, dict):
            for system_id, item_ids in raw.items():
                if isinstance(item_ids, (list, tuple, set)):
                    entitlements[str(system_id)] = [i for i in item_ids if isinstance(i, str)]
        email = record.get("Email")
        return cls(
            user_id=str(record.get(key_attribute, "")),
            email=email if isinstance(email, str) else None,
            entitlements=entitlements,
        )

    def grants(self, system_id: str, item_id: str) -> bool:
        return item_id in self.entitlements.get(system_id, ())


@dataclass(frozen=True)
class SystemDependency:
    """A gaming system's optional hard requirement on one catalog item."""

    system_id: str
    name: str
    required_item_id: str | None = None

    @classmethod
    def from_record(cls, record: dict, key_attribute: str = "ID") -> "SystemDependency":
        system_id = str(record.get(key_attribute, ""))
        required: Any = record.get("RequiredShopItemID")
        name = record.get("Name")
        return cls(
            system_id=system_id,
            name=name if isinstance(name, str) and name else system_id,
            required_item_id=required if isinstance(required, str) and required else None,
        )

    def requires(self, item_id: str) -> bool:
        return self.required_item_id == item_id
