"""
Adapter tests for the storage gateways and image store.

DynamoDB and S3 are never contacted: calls are answered by
botocore.stub.Stubber, or by a MagicMock table where only the request
parameters matter. The in-memory gateway is checked against the same
index rules.
"""

from decimal import Decimal
from unittest.mock import MagicMock

import boto3
import pytest
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError
from botocore.stub import Stubber

from storeman.adapters.dynamodb import DynamoStorageGateway, _filter_expression, _key_condition
from storeman.adapters.s3 import S3ImageStore
from storeman.conf import StoremanSettings, reset_storage_gateway, set_storage_gateway
from storeman.exceptions import ConditionFailed
from storeman.protocols.storage import Collection, Condition, Filter, KeyRange
from storeman.service import CatalogService
from storeman.tests.conftest import make_record


CREDENTIALS = {
    "region_name": "eu-west-2",
    "aws_access_key_id": "testing",
    "aws_secret_access_key": "testing",
}


def _client_error(code, operation="PutItem"):
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


# ═══════════════════════════════════════════════════════════════════
# Fixtures
# ═══════════════════════════════════════════════════════════════════


@pytest.fixture
def dynamo_settings():
    return StoremanSettings(CATALOG_TABLE="Shop-test", ACCOUNTS_TABLE="Users-test")


@pytest.fixture
def dynamo(dynamo_settings):
    """Gateway over a real boto3 resource whose client is stubbed."""
    resource = boto3.resource("dynamodb", **CREDENTIALS)
    with Stubber(resource.meta.client) as stubber:
        yield DynamoStorageGateway(dynamo_settings, resource=resource), stubber
        stubber.assert_no_pending_responses()


@pytest.fixture
def mocked_table(dynamo_settings):
    """Gateway over a MagicMock resource; returns (gateway, resource, table)."""
    resource = MagicMock()
    return DynamoStorageGateway(dynamo_settings, resource=resource), resource, resource.Table.return_value


@pytest.fixture
def s3():
    client = boto3.client("s3", **CREDENTIALS)
    with Stubber(client) as stubber:
        yield S3ImageStore(StoremanSettings(MEDIA_BUCKET="media-test"), client=client), stubber
        stubber.assert_no_pending_responses()


# ═══════════════════════════════════════════════════════════════════
# DynamoStorageGateway
# ═══════════════════════════════════════════════════════════════════


class TestDynamoRead:
    """get / scan / query against stubbed responses."""

    def test_get_deserializes_numbers_as_decimal(self, dynamo):
        gateway, stubber = dynamo
        stubber.add_response(
            "get_item",
            {"Item": {"ID": {"S": "X"}, "Price": {"N": "2000"}, "IsArchived": {"BOOL": False}}},
        )
        record = gateway.get(Collection.CATALOG, "X")
        assert record == {"ID": "X", "Price": Decimal("2000"), "IsArchived": False}

    def test_get_missing(self, dynamo):
        gateway, stubber = dynamo
        stubber.add_response("get_item", {})
        assert gateway.get(Collection.CATALOG, "NOPE") is None

    def test_scan_returns_token(self, dynamo):
        gateway, stubber = dynamo
        stubber.add_response(
            "scan",
            {"Items": [{"ID": {"S": "A"}}], "LastEvaluatedKey": {"ID": {"S": "A"}}, "Count": 1},
        )
        page = gateway.scan(Collection.CATALOG, limit=1)
        assert page.items == [{"ID": "A"}]
        assert page.next_token == {"ID": "A"}

    def test_scan_all_follows_every_page(self, dynamo):
        gateway, stubber = dynamo
        stubber.add_response(
            "scan",
            {"Items": [{"UserID": {"S": "A"}}], "LastEvaluatedKey": {"UserID": {"S": "A"}}},
        )
        stubber.add_response(
            "scan",
            {"Items": [{"UserID": {"S": "B"}}], "LastEvaluatedKey": {"UserID": {"S": "B"}}},
        )
        stubber.add_response("scan", {"Items": [{"UserID": {"S": "C"}}]})

        records = list(gateway.scan_all(Collection.ACCOUNTS))
        assert [r["UserID"] for r in records] == ["A", "B", "C"]

    def test_scan_all_propagates_mid_scan_error(self, dynamo):
        gateway, stubber = dynamo
        stubber.add_response(
            "scan",
            {"Items": [{"UserID": {"S": "A"}}], "LastEvaluatedKey": {"UserID": {"S": "A"}}},
        )
        stubber.add_client_error("scan", service_error_code="ProvisionedThroughputExceededException")

        with pytest.raises(ClientError):
            list(gateway.scan_all(Collection.ACCOUNTS))

    def test_query_passes_index_and_token(self, mocked_table):
        gateway, resource, table = mocked_table
        table.query.return_value = {"Items": [{"ID": "A"}]}

        page = gateway.query(
            Collection.CATALOG,
            "GamingSystemID-index",
            "GamingSystemID",
            "pathfinder",
            page_token={"ID": "Z"},
            limit=10,
        )

        resource.Table.assert_called_with("Shop-test")
        kwargs = table.query.call_args.kwargs
        assert kwargs["IndexName"] == "GamingSystemID-index"
        assert kwargs["ExclusiveStartKey"] == {"ID": "Z"}
        assert kwargs["Limit"] == 10
        assert kwargs["ScanIndexForward"] is True
        assert "FilterExpression" not in kwargs
        assert page.items == [{"ID": "A"}]
        assert page.next_token is None

    def test_query_sort_key_range_in_key_condition(self, mocked_table):
        """Index keys are narrowed in KeyConditionExpression, never in a filter."""
        gateway, _, table = mocked_table
        table.query.return_value = {"Items": []}

        gateway.query(
            Collection.CATALOG,
            "Status-Price-index",
            "Status",
            "active",
            filters=[Filter("IsArchived", "eq", False)],
            key_range=KeyRange("Price", "between", (Decimal("10"), Decimal("20"))),
        )

        kwargs = table.query.call_args.kwargs
        assert kwargs["KeyConditionExpression"] == Key("Status").eq("active") & Key("Price").between(
            Decimal("10"), Decimal("20")
        )
        assert kwargs["FilterExpression"] == Attr("IsArchived").eq(False)

    @pytest.mark.parametrize("op", ["eq", "gte", "lte"])
    def test_key_condition_single_bound(self, op):
        expected = Key("Status").eq("active") & getattr(Key("Price"), op)(Decimal("5"))
        assert _key_condition("Status", "active", KeyRange("Price", op, Decimal("5"))) == expected

    def test_key_condition_partition_only(self):
        assert _key_condition("GamingSystemID", "pathfinder", None) == Key("GamingSystemID").eq("pathfinder")

    def test_query_with_key_range_serializes(self, dynamo):
        gateway, stubber = dynamo
        stubber.add_response(
            "query",
            {
                "Items": [{"ID": {"S": "A"}, "Status": {"S": "active"}, "Price": {"N": "15"}}],
                "LastEvaluatedKey": {"ID": {"S": "A"}, "Status": {"S": "active"}, "Price": {"N": "15"}},
            },
        )
        page = gateway.query(
            Collection.CATALOG,
            "Status-Price-index",
            "Status",
            "active",
            key_range=KeyRange("Price", "gte", Decimal("10")),
            limit=1,
        )
        assert page.next_token == {"ID": "A", "Status": "active", "Price": Decimal("15")}

    def test_duplicate_check_queries_type_as_sort_key(self, mocked_table):
        """The (GamingSystemID, Type) lookup is one key-condition query."""
        gateway, _, table = mocked_table
        table.query.return_value = {"Items": []}
        set_storage_gateway(gateway)
        try:
            assert CatalogService._find_system_type("pathfinder", "Spells") is None
        finally:
            reset_storage_gateway()

        table.query.assert_called_once()
        kwargs = table.query.call_args.kwargs
        assert kwargs["IndexName"] == "GamingSystemID-Type-keys-index"
        assert kwargs["KeyConditionExpression"] == Key("GamingSystemID").eq("pathfinder") & Key("Type").eq(
            "Spells"
        )
        assert "FilterExpression" not in kwargs
        assert kwargs["Limit"] == 1

    def test_duplicate_check_finds_existing(self, mocked_table):
        gateway, _, table = mocked_table
        table.query.return_value = {"Items": [{"ID": "X", "Type": "Spells"}]}
        set_storage_gateway(gateway)
        try:
            assert CatalogService._find_system_type("pathfinder", "Spells")["ID"] == "X"
        finally:
            reset_storage_gateway()


class TestDynamoWrite:
    """Conditioned writes and error translation."""

    def test_put_with_condition(self, mocked_table):
        gateway, _, table = mocked_table
        gateway.put(Collection.CATALOG, {"ID": "X"}, Condition.MUST_NOT_EXIST)
        table.put_item.assert_called_once_with(
            Item={"ID": "X"},
            ConditionExpression="attribute_not_exists(#pk)",
            ExpressionAttributeNames={"#pk": "ID"},
        )

    def test_put_condition_failure(self, dynamo):
        gateway, stubber = dynamo
        stubber.add_client_error("put_item", service_error_code="ConditionalCheckFailedException")
        with pytest.raises(ConditionFailed) as exc:
            gateway.put(Collection.CATALOG, {"ID": "X"}, Condition.MUST_NOT_EXIST)
        assert exc.value.key == "X"
        assert exc.value.condition == Condition.MUST_NOT_EXIST

    def test_other_client_errors_propagate(self, dynamo):
        gateway, stubber = dynamo
        stubber.add_client_error("put_item", service_error_code="ResourceNotFoundException")
        with pytest.raises(ClientError):
            gateway.put(Collection.CATALOG, {"ID": "X"})

    def test_update_builds_set_expression(self, mocked_table):
        gateway, _, table = mocked_table
        table.update_item.return_value = {"Attributes": {"ID": "X", "Name": "New"}}

        record = gateway.update(Collection.CATALOG, "X", {"Name": "New", "Type": "Spells"})

        assert record == {"ID": "X", "Name": "New"}
        table.update_item.assert_called_once_with(
            Key={"ID": "X"},
            UpdateExpression="SET #f0 = :v0, #f1 = :v1",
            ExpressionAttributeNames={"#f0": "Name", "#f1": "Type", "#pk": "ID"},
            ExpressionAttributeValues={":v0": "New", ":v1": "Spells"},
            ReturnValues="ALL_NEW",
            ConditionExpression="attribute_exists(#pk)",
        )

    def test_update_merges_map_entries_by_path(self, mocked_table):
        gateway, _, table = mocked_table
        table.update_item.return_value = {"Attributes": {"ID": "X"}}

        gateway.update(
            Collection.CATALOG,
            "X",
            {"UpdatedAt": "2024-01-01T00:00:00.000Z"},
            merge={"Attributes": {"Color": "red", "Level": 2}},
        )

        table.update_item.assert_called_once_with(
            Key={"ID": "X"},
            UpdateExpression="SET #f0 = :v0, #m0.#m0k0 = :m0k0, #m0.#m0k1 = :m0k1",
            ExpressionAttributeNames={
                "#f0": "UpdatedAt",
                "#m0": "Attributes",
                "#m0k0": "Color",
                "#m0k1": "Level",
                "#pk": "ID",
            },
            ExpressionAttributeValues={
                ":v0": "2024-01-01T00:00:00.000Z",
                ":m0k0": "red",
                ":m0k1": 2,
            },
            ReturnValues="ALL_NEW",
            ConditionExpression="attribute_exists(#pk)",
        )

    def test_update_missing_item(self, mocked_table):
        gateway, _, table = mocked_table
        table.update_item.side_effect = _client_error("ConditionalCheckFailedException", "UpdateItem")
        with pytest.raises(ConditionFailed):
            gateway.update(Collection.CATALOG, "NOPE", {"Name": "x"})

    def test_delete_returns_old_record(self, dynamo):
        gateway, stubber = dynamo
        stubber.add_response("delete_item", {"Attributes": {"ID": {"S": "X"}, "Name": {"S": "Old"}}})
        assert gateway.delete(Collection.CATALOG, "X") == {"ID": "X", "Name": "Old"}

    def test_delete_missing_item(self, dynamo):
        gateway, stubber = dynamo
        stubber.add_client_error("delete_item", service_error_code="ConditionalCheckFailedException")
        with pytest.raises(ConditionFailed):
            gateway.delete(Collection.CATALOG, "NOPE")


class TestFilterExpression:
    """Filter -> boto3 condition translation."""

    def test_no_filters(self):
        assert _filter_expression(()) is None

    def test_single_filter(self):
        assert _filter_expression([Filter("IsArchived", "eq", False)]) == Attr("IsArchived").eq(False)

    def test_filters_are_anded(self):
        expression = _filter_expression(
            [Filter("Price", "gte", Decimal("10")), Filter("Price", "lte", Decimal("20"))]
        )
        assert expression == Attr("Price").gte(Decimal("10")) & Attr("Price").lte(Decimal("20"))


# ═══════════════════════════════════════════════════════════════════
# S3ImageStore
# ═══════════════════════════════════════════════════════════════════


class TestS3ImageStore:
    """Upload and prefix cleanup."""

    def test_upload(self, s3):
        store, stubber = s3
        stubber.add_response(
            "put_object",
            {},
            {
                "Bucket": "media-test",
                "Key": "pathfinder/X/product.jpg",
                "Body": b"jpeg",
                "ContentType": "image/jpeg",
                "CacheControl": "public, max-age=31536000",
                "ACL": "public-read",
            },
        )
        assert store.upload(b"jpeg", "pathfinder", "X") == "pathfinder/X/product.jpg"

    def test_delete_prefix_across_pages(self, s3):
        store, stubber = s3
        stubber.add_response(
            "list_objects_v2",
            {
                "Contents": [{"Key": "pathfinder/X/product.jpg"}],
                "IsTruncated": True,
                "NextContinuationToken": "t1",
            },
            {"Bucket": "media-test", "Prefix": "pathfinder/X/"},
        )
        stubber.add_response(
            "list_objects_v2",
            {"Contents": [{"Key": "pathfinder/X/thumb.jpg"}], "IsTruncated": False},
            {"Bucket": "media-test", "Prefix": "pathfinder/X/", "ContinuationToken": "t1"},
        )
        stubber.add_response(
            "delete_objects",
            {},
            {
                "Bucket": "media-test",
                "Delete": {
                    "Objects": [{"Key": "pathfinder/X/product.jpg"}, {"Key": "pathfinder/X/thumb.jpg"}],
                    "Quiet": True,
                },
            },
        )
        assert store.delete_prefix("pathfinder", "X") == 2

    def test_delete_prefix_nothing_stored(self, s3):
        store, stubber = s3
        stubber.add_response("list_objects_v2", {"IsTruncated": False, "KeyCount": 0})
        assert store.delete_prefix("pathfinder", "X") == 0

    def test_bucket_from_stage(self):
        store = S3ImageStore(StoremanSettings(STAGE="dev"), client=MagicMock())
        assert store.bucket == "dev-realmforge-shop-media"
        store = S3ImageStore(StoremanSettings(), client=MagicMock())
        assert store.bucket == "realmforge-shop-media"


# ═══════════════════════════════════════════════════════════════════
# InMemoryStorageGateway
# ═══════════════════════════════════════════════════════════════════


class TestInMemoryIndexRules:
    """The in-memory gateway refuses what DynamoDB refuses."""

    @pytest.mark.parametrize(
        "index,key_attribute,attribute",
        [
            ("Status-Price-index", "Status", "Price"),
            ("Status-Price-index", "Status", "Status"),
            ("GamingSystemID-Type-keys-index", "GamingSystemID", "Type"),
        ],
    )
    def test_filter_on_index_key_rejected(self, gateway, index, key_attribute, attribute):
        with pytest.raises(ValueError):
            gateway.query(Collection.CATALOG, index, key_attribute, "x", filters=[Filter(attribute, "eq", 1)])

    def test_key_range_must_name_sort_key(self, gateway):
        with pytest.raises(ValueError):
            gateway.query(
                Collection.CATALOG,
                "Status-Price-index",
                "Status",
                "active",
                key_range=KeyRange("Name", "eq", "x"),
            )

    def test_key_range_on_index_without_sort_key(self, gateway):
        with pytest.raises(ValueError):
            gateway.query(
                Collection.CATALOG,
                "GamingSystemID-index",
                "GamingSystemID",
                "pathfinder",
                key_range=KeyRange("Price", "gte", 0),
            )

    def test_update_merge_keeps_other_entries(self, gateway):
        gateway.put(Collection.CATALOG, make_record("X", Attributes={"Rarity": "rare"}))
        record = gateway.update(Collection.CATALOG, "X", {}, merge={"Attributes": {"Color": "red"}})
        assert record["Attributes"] == {"Rarity": "rare", "Color": "red"}

    def test_update_merge_into_missing_map(self, gateway):
        record = make_record("X")
        del record["Attributes"]
        gateway.put(Collection.CATALOG, record)
        with pytest.raises(ValueError):
            gateway.update(Collection.CATALOG, "X", {}, merge={"Attributes": {"Color": "red"}})
