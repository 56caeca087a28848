try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest
from botocore.exceptions import ClientError

from listlink.clients import (
    AlreadyExistsError,
    DynamoDBDocumentStore,
    StoreUnavailableError,
    TransactionConflictError,
)
from listlink.clients.document_store import format_timestamp
from listlink.core.config import MaintenanceSettings, StoreSettings
from listlink.models.records import LINK_CODES
from listlink.services import CleanupService


def _client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "Operation")


class FakeTable:
    def __init__(self) -> None:
        self.items = {}
        self.index_snapshot = None
        self.queries = 0

    def get_item(self, Key, ConsistentRead=False):
        item = self.items.get((Key["collection"], Key["key"]))
        return {"Item": dict(item)} if item is not None else {}

    def put_item(self, Item, ConditionExpression=None, ExpressionAttributeNames=None):
        ref = (Item["collection"], Item["key"])
        if ConditionExpression and ref in self.items:
            raise _client_error("ConditionalCheckFailedException")
        self.items[ref] = dict(Item)

    def delete_item(self, Key, ReturnValues=None):
        old = self.items.pop((Key["collection"], Key["key"]), None)
        if ReturnValues == "ALL_OLD" and old is not None:
            return {"Attributes": dict(old)}
        return {}

    def freeze_index(self) -> None:
        """Make index queries keep answering from the current items."""
        self.index_snapshot = [dict(item) for item in self.items.values()]

    def query(self, IndexName, KeyConditionExpression, Limit, ScanIndexForward, ExclusiveStartKey=None):
        partition, sort_range = KeyConditionExpression.get_expression()["values"]
        collection = partition.get_expression()["values"][1]
        field_key, threshold = sort_range.get_expression()["values"]
        field = field_key.name
        self.queries += 1

        source = self.index_snapshot
        if source is None:
            source = list(self.items.values())
        matches = sorted(
            (
                item
                for item in source
                if item["collection"] == collection and field in item and item[field] < threshold
            ),
            key=lambda item: (item[field], item["key"]),
        )
        if ExclusiveStartKey is not None:
            after = (ExclusiveStartKey[field], ExclusiveStartKey["key"])
            matches = [item for item in matches if (item[field], item["key"]) > after]
        return {"Items": [dict(item) for item in matches[:Limit]]}


class FakeClient:
    def __init__(self, failures: int = 0, error_code: str = "TransactionCanceledException") -> None:
        self.failures = failures
        self.error_code = error_code
        self.calls = []

    def transact_write_items(self, TransactItems):
        self.calls.append(TransactItems)
        if self.failures:
            self.failures -= 1
            raise _client_error(self.error_code)


def _store(failures: int = 0, error_code: str = "TransactionCanceledException"):
    table = FakeTable()
    client = FakeClient(failures, error_code)
    resource = SimpleNamespace(Table=lambda name: table, meta=SimpleNamespace(client=client))
    settings = StoreSettings(STORE_BACKEND="dynamodb", DYNAMODB_TABLE_NAME="documents")
    return DynamoDBDocumentStore(settings, resource=resource), table, client


def test_requires_table_name_for_dynamodb_backend() -> None:
    with pytest.raises(ValueError):
        StoreSettings(STORE_BACKEND="dynamodb", DYNAMODB_TABLE_NAME=None)


def test_create_maps_conditional_failure_to_already_exists() -> None:
    store, table, _ = _store()
    store.create("alexaLinkCodes", "ABC234", {"status": "pending"})

    with pytest.raises(AlreadyExistsError):
        store.create("alexaLinkCodes", "ABC234", {"status": "pending"})

    assert store.get("alexaLinkCodes", "ABC234") == {"status": "pending"}


def test_get_strips_reserved_attributes_and_decimals() -> None:
    store, table, _ = _store()
    table.items[("lists", "l1")] = {
        "collection": "lists",
        "key": "l1",
        "_version": Decimal(3),
        "count": Decimal(2),
        "ratio": Decimal("0.5"),
    }

    assert store.get("lists", "l1") == {"count": 2, "ratio": 0.5}


def test_transaction_writes_are_version_guarded() -> None:
    store, table, client = _store()
    table.items[("lists", "l1")] = {"collection": "lists", "key": "l1", "_version": Decimal(2)}

    def _apply(txn):
        txn.update("lists", "l1", {"name": "x"})
        txn.get("invites", "absent")
        txn.create("invites", "new", {"status": "active"})

    store.run_transaction(_apply)

    (items,) = client.calls
    puts = {entry["Put"]["Item"]["key"]["S"]: entry["Put"] for entry in items if "Put" in entry}
    assert puts["l1"]["ConditionExpression"] == "#v = :v"
    assert puts["l1"]["ExpressionAttributeValues"] == {":v": {"N": "2"}}
    assert puts["l1"]["Item"]["_version"] == {"N": "3"}
    assert puts["new"]["ConditionExpression"] == "attribute_not_exists(#pk)"


def test_read_only_transaction_skips_commit() -> None:
    store, _, client = _store()

    assert store.run_transaction(lambda txn: txn.get("lists", "l1")) is None
    assert client.calls == []


def test_transaction_retries_then_gives_up() -> None:
    store, _, client = _store(failures=2)
    store.run_transaction(lambda txn: txn.set("lists", "l1", {"name": "x"}))
    assert len(client.calls) == 3

    store, _, client = _store(failures=10)
    with pytest.raises(TransactionConflictError):
        store.run_transaction(lambda txn: txn.set("lists", "l1", {"name": "x"}))
    assert len(client.calls) == DynamoDBDocumentStore.MAX_TRANSACTION_ATTEMPTS


def test_backend_failures_surface_as_store_unavailable() -> None:
    store, table, _ = _store()

    def _throttled(**kwargs):
        raise _client_error("ProvisionedThroughputExceededException")

    table.get_item = _throttled
    table.put_item = _throttled
    table.query = _throttled

    with pytest.raises(StoreUnavailableError):
        store.get("lists", "l1")
    with pytest.raises(StoreUnavailableError):
        store.create("alexaLinkCodes", "ABC234", {"status": "pending"})
    with pytest.raises(StoreUnavailableError):
        store.query_before("alexaLinkCodes", "expiresAt", datetime.now(timezone.utc), limit=10)


def test_non_conflict_transaction_errors_are_not_retried() -> None:
    store, _, client = _store(failures=1, error_code="ValidationException")

    with pytest.raises(StoreUnavailableError):
        store.run_transaction(lambda txn: txn.set("lists", "l1", {"name": "x"}))
    assert len(client.calls) == 1


def test_delete_many_counts_only_existing_items() -> None:
    store, table, _ = _store()
    store.create("alexaLinkCodes", "AAA222", {"status": "pending"})

    assert store.delete_many("alexaLinkCodes", ["AAA222", "MISSING"]) == 1
    assert store.delete_many("alexaLinkCodes", ["AAA222"]) == 0


def test_cleanup_counts_are_exact_when_index_lags() -> None:
    store, table, _ = _store()
    stale = format_timestamp(datetime.now(timezone.utc) - timedelta(hours=1))
    for index in range(5):
        store.create(LINK_CODES, f"OLD{index:03d}", {"status": "pending", "expiresAt": stale})
    table.freeze_index()
    cleanup = CleanupService(store, MaintenanceSettings(CLEANUP_BATCH_SIZE=2))

    first = cleanup.perform_cleanup()
    assert first.link_codes_deleted == 5
    assert table.items == {}

    queries_before = table.queries
    second = cleanup.perform_cleanup()
    assert second.link_codes_deleted == 0
    assert second.total_deleted == 0
    assert table.queries - queries_before == 7
