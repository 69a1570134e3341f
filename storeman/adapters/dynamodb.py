"""StorageGateway implementation for DynamoDB."""

from __future__ import annotations

import functools
import logging
import operator
from collections.abc import Iterator, Mapping, Sequence
from typing import Any

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from storeman.exceptions import ConditionFailed
from storeman.protocols.storage import (
    Collection,
    Condition,
    Filter,
    KeyRange,
    Page,
    StorageGateway,
    iterate_pages,
)

logger = logging.getLogger(__name__)

CONDITION_EXPRESSIONS = {
    Condition.MUST_EXIST: "attribute_exists(#pk)",
    Condition.MUST_NOT_EXIST: "attribute_not_exists(#pk)",
}


def _filter_expression(filters: Sequence[Filter]):
    if not filters:
        return None
    conditions = [getattr(Attr(f.attribute), f.op)(f.value) for f in filters]
    return functools.reduce(operator.and_, conditions)


def _key_condition(key_attribute: str, key_value: Any, key_range: KeyRange | None):
    condition = Key(key_attribute).eq(key_value)
    if key_range is None:
        return condition
    sort_key = Key(key_range.attribute)
    if key_range.op == "between":
        low, high = key_range.value
        return condition & sort_key.between(low, high)
    return condition & getattr(sort_key, key_range.op)(key_range.value)


def _is_condition_failure(exc: ClientError) -> bool:
    return exc.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"


class DynamoStorageGateway:
    """
    StorageGateway over one DynamoDB table per collection.

    Table names, key attributes and region come from the StoremanSettings
    passed in; nothing is read from the environment here.
    """

    def __init__(self, settings, resource=None):
        self.settings = settings
        self._resource = resource or boto3.resource("dynamodb", region_name=settings.REGION)

    def _table(self, collection: Collection):
        return self._resource.Table(self.settings.table_name(collection))

    def _key(self, collection: Collection, key: str) -> dict:
        return {self.settings.key_attribute(collection): key}

    def _condition_kwargs(self, collection: Collection, condition: Condition | None) -> dict:
        if condition is None:
            return {}
        return {
            "ConditionExpression": CONDITION_EXPRESSIONS[condition],
            "ExpressionAttributeNames": {"#pk": self.settings.key_attribute(collection)},
        }

    def get(self, collection: Collection, key: str) -> dict | None:
        response = self._table(collection).get_item(Key=self._key(collection, key))
        return response.get("Item")

    def put(
        self,
        collection: Collection,
        item: Mapping[str, Any],
        condition: Condition | None = None,
    ) -> None:
        key = item[self.settings.key_attribute(collection)]
        try:
            self._table(collection).put_item(
                Item=dict(item), **self._condition_kwargs(collection, condition)
            )
        except ClientError as exc:
            if _is_condition_failure(exc):
                raise ConditionFailed(collection, key, condition) from exc
            raise

    def update(
        self,
        collection: Collection,
        key: str,
        fields: Mapping[str, Any],
        condition: Condition | None = Condition.MUST_EXIST,
        merge: Mapping[str, Mapping[str, Any]] | None = None,
    ) -> dict:
        """
        Apply a partial-field patch with a SET expression.

        Every attribute name goes through a placeholder, so reserved words
        (Name, Type, Status...) are safe. Map entries in merge are set via
        nested document paths (#m0.#m0k1), leaving the rest of the map as is.
        """
        assignments = []
        names: dict[str, str] = {}
        values: dict[str, Any] = {}
        for position, (attribute, value) in enumerate(fields.items()):
            assignments.append(f"#f{position} = :v{position}")
            names[f"#f{position}"] = attribute
            values[f":v{position}"] = value
        for map_position, (attribute, entries) in enumerate((merge or {}).items()):
            names[f"#m{map_position}"] = attribute
            for position, (entry, value) in enumerate(entries.items()):
                placeholder = f"m{map_position}k{position}"
                assignments.append(f"#m{map_position}.#{placeholder} = :{placeholder}")
                names[f"#{placeholder}"] = entry
                values[f":{placeholder}"] = value

        kwargs = self._condition_kwargs(collection, condition)
        names.update(kwargs.pop("ExpressionAttributeNames", {}))
        try:
            response = self._table(collection).update_item(
                Key=self._key(collection, key),
                UpdateExpression="SET " + ", ".join(assignments),
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
                ReturnValues="ALL_NEW",
                **kwargs,
            )
        except ClientError as exc:
            if _is_condition_failure(exc):
                raise ConditionFailed(collection, key, condition) from exc
            raise
        return response.get("Attributes", {})

    def delete(
        self,
        collection: Collection,
        key: str,
        condition: Condition | None = Condition.MUST_EXIST,
    ) -> dict | None:
        try:
            response = self._table(collection).delete_item(
                Key=self._key(collection, key),
                ReturnValues="ALL_OLD",
                **self._condition_kwargs(collection, condition),
            )
        except ClientError as exc:
            if _is_condition_failure(exc):
                raise ConditionFailed(collection, key, condition) from exc
            raise
        return response.get("Attributes")

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
        kwargs: dict[str, Any] = {
            "IndexName": index,
            "KeyConditionExpression": _key_condition(key_attribute, key_value, key_range),
            "ScanIndexForward": not descending,
        }
        filter_expression = _filter_expression(filters)
        if filter_expression is not None:
            kwargs["FilterExpression"] = filter_expression
        if page_token:
            kwargs["ExclusiveStartKey"] = page_token
        if limit:
            kwargs["Limit"] = limit

        response = self._table(collection).query(**kwargs)
        return Page(items=response.get("Items", []), next_token=response.get("LastEvaluatedKey"))

    def scan(
        self,
        collection: Collection,
        filters: Sequence[Filter] = (),
        page_token: Any = None,
        limit: int | None = None,
    ) -> Page:
        kwargs: dict[str, Any] = {}
        filter_expression = _filter_expression(filters)
        if filter_expression is not None:
            kwargs["FilterExpression"] = filter_expression
        if page_token:
            kwargs["ExclusiveStartKey"] = page_token
        if limit:
            kwargs["Limit"] = limit

        response = self._table(collection).scan(**kwargs)
        logger.debug(
            "Scanned %s: %d items, more=%s",
            collection.value,
            len(response.get("Items", [])),
            "LastEvaluatedKey" in response,
        )
        return Page(items=response.get("Items", []), next_token=response.get("LastEvaluatedKey"))

    def scan_all(
        self,
        collection: Collection,
        filters: Sequence[Filter] = (),
    ) -> Iterator[dict]:
        return iterate_pages(self, collection, filters)


# Verify implementation at import time
if not issubclass(DynamoStorageGateway, StorageGateway):
    raise TypeError("DynamoStorageGateway does not implement StorageGateway protocol")
