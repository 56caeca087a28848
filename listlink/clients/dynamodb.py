"""
DynamoDB-backed document store for multi-instance deployments.

Items live in a single table with ``collection`` as partition key and ``key`` as
sort key; document fields are stored as top-level attributes so that timestamp
GSIs (``collection`` + ``expiresAt`` / ``createdAt``) can serve ordered queries.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple, TypeVar

import boto3
from boto3.dynamodb.conditions import Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from listlink.clients.document_store import (
    AlreadyExistsError,
    Cursor,
    Document,
    DocumentNotFoundError,
    StoreUnavailableError,
    StoredDocument,
    TransactionConflictError,
    format_timestamp,
    normalize_document,
)
from listlink.core.config import StoreSettings

logger = logging.getLogger(__name__)

T = TypeVar("T")

PARTITION_KEY = "collection"
SORT_KEY = "key"
VERSION_ATTRIBUTE = "_version"
_RESERVED = {PARTITION_KEY, SORT_KEY, VERSION_ATTRIBUTE}


def _from_dynamo(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {key: _from_dynamo(item) for key, item in value.items()}
    if isinstance(value, (list, set)):
        return [_from_dynamo(item) for item in value]
    return value


def _strip_item(item: Dict[str, Any]) -> Document:
    return {key: _from_dynamo(value) for key, value in item.items() if key not in _RESERVED}


def _error_code(exc: ClientError) -> Optional[str]:
    return exc.response.get("Error", {}).get("Code")


@contextmanager
def _backend_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except (BotoCoreError, ClientError) as exc:
        raise StoreUnavailableError(f"DynamoDB {operation} failed: {exc}") from exc


class DynamoDBTransaction:
    """Buffers writes and records read versions for optimistic commit."""

    def __init__(self, store: "DynamoDBDocumentStore") -> None:
        self._store = store
        self._read_versions: Dict[Tuple[str, str], Optional[int]] = {}
        self._writes: Dict[Tuple[str, str], Tuple[str, Any]] = {}

    def get(self, collection: str, key: str) -> Optional[Document]:
        ref = (collection, key)
        if ref in self._writes:
            kind, data = self._writes[ref]
            return None if kind == "delete" else dict(data)
        item = self._store._get_raw(collection, key)
        self._read_versions[ref] = (
            int(item.get(VERSION_ATTRIBUTE, 0)) if item is not None else None
        )
        return _strip_item(item) if item is not None else None

    def create(self, collection: str, key: str, data: Document) -> None:
        if self.get(collection, key) is not None:
            raise AlreadyExistsError(collection, key)
        self._writes[(collection, key)] = ("put", dict(data))

    def set(
        self, collection: str, key: str, data: Document, *, merge: bool = False
    ) -> None:
        if merge:
            data = {**(self.get(collection, key) or {}), **data}
        self._writes[(collection, key)] = ("put", dict(data))

    def update(self, collection: str, key: str, fields: Document) -> None:
        current = self.get(collection, key)
        if current is None:
            raise DocumentNotFoundError(collection, key)
        self._writes[(collection, key)] = ("put", {**current, **fields})

    def delete(self, collection: str, key: str) -> None:
        self._writes[(collection, key)] = ("delete", None)

    def build_transact_items(self, table_name: str) -> List[Dict[str, Any]]:
        if not self._writes:
            return []
        serialize = self._store._serialize_attributes
        items: List[Dict[str, Any]] = []
        for ref in set(self._read_versions) | set(self._writes):
            collection, key = ref
            key_attrs = serialize({PARTITION_KEY: collection, SORT_KEY: key})
            condition, names, values = self._version_condition(ref)
            write = self._writes.get(ref)
            if write is None:
                entry: Dict[str, Any] = {
                    "ConditionCheck": {"TableName": table_name, "Key": key_attrs}
                }
                body = entry["ConditionCheck"]
            elif write[0] == "delete":
                entry = {"Delete": {"TableName": table_name, "Key": key_attrs}}
                body = entry["Delete"]
            else:
                version = (self._read_versions.get(ref) or 0) + 1
                item = {
                    **normalize_document(write[1]),
                    PARTITION_KEY: collection,
                    SORT_KEY: key,
                    VERSION_ATTRIBUTE: version,
                }
                entry = {"Put": {"TableName": table_name, "Item": serialize(item)}}
                body = entry["Put"]
            if condition:
                body["ConditionExpression"] = condition
                body["ExpressionAttributeNames"] = names
                if values:
                    body["ExpressionAttributeValues"] = serialize(values)
            items.append(entry)
        return items

    def _version_condition(
        self, ref: Tuple[str, str]
    ) -> Tuple[Optional[str], Dict[str, str], Dict[str, Any]]:
        if ref not in self._read_versions:
            return None, {}, {}
        version = self._read_versions[ref]
        if version is None:
            return "attribute_not_exists(#pk)", {"#pk": PARTITION_KEY}, {}
        if version == 0:
            return (
                "attribute_exists(#pk) AND attribute_not_exists(#v)",
                {"#pk": PARTITION_KEY, "#v": VERSION_ATTRIBUTE},
                {},
            )
        return "#v = :v", {"#v": VERSION_ATTRIBUTE}, {":v": version}


class DynamoDBDocumentStore:
    """Document store operations on a single DynamoDB table."""

    MAX_TRANSACTION_ATTEMPTS = 5

    def __init__(
        self,
        settings: StoreSettings,
        *,
        resource: Any = None,
    ) -> None:
        self._settings = settings
        self._resource = resource or boto3.resource(
            "dynamodb", region_name=settings.region_name
        )
        self._table = self._resource.Table(settings.dynamodb_table_name)
        self._client = self._resource.meta.client
        self._serializer = TypeSerializer()
        self._indexes = {
            "expiresAt": settings.dynamodb_expires_at_index,
            "createdAt": settings.dynamodb_created_at_index,
        }

    def _serialize_attributes(self, values: Dict[str, Any]) -> Dict[str, Any]:
        return {key: self._serializer.serialize(value) for key, value in values.items()}

    def _get_raw(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        with _backend_errors("get_item"):
            response = self._table.get_item(
                Key={PARTITION_KEY: collection, SORT_KEY: key}, ConsistentRead=True
            )
        return response.get("Item")

    def _item(self, collection: str, key: str, data: Document) -> Dict[str, Any]:
        item = {k: v for k, v in normalize_document(data).items() if k not in _RESERVED}
        item.update({PARTITION_KEY: collection, SORT_KEY: key})
        return item

    def get(self, collection: str, key: str) -> Optional[Document]:
        item = self._get_raw(collection, key)
        return _strip_item(item) if item is not None else None

    def create(self, collection: str, key: str, data: Document) -> None:
        try:
            self._table.put_item(
                Item=self._item(collection, key, data),
                ConditionExpression="attribute_not_exists(#pk)",
                ExpressionAttributeNames={"#pk": PARTITION_KEY},
            )
        except ClientError as exc:
            if _error_code(exc) == "ConditionalCheckFailedException":
                raise AlreadyExistsError(collection, key) from exc
            raise StoreUnavailableError(f"DynamoDB put_item failed: {exc}") from exc
        except BotoCoreError as exc:
            raise StoreUnavailableError(f"DynamoDB put_item failed: {exc}") from exc

    def set(
        self, collection: str, key: str, data: Document, *, merge: bool = False
    ) -> None:
        if merge:
            self.run_transaction(lambda txn: txn.set(collection, key, data, merge=True))
            return
        with _backend_errors("put_item"):
            self._table.put_item(Item=self._item(collection, key, data))

    def update(self, collection: str, key: str, fields: Document) -> None:
        self.run_transaction(lambda txn: txn.update(collection, key, fields))

    def delete(self, collection: str, key: str) -> None:
        with _backend_errors("delete_item"):
            self._table.delete_item(Key={PARTITION_KEY: collection, SORT_KEY: key})

    def delete_many(self, collection: str, keys: Iterable[str]) -> int:
        """Delete ``keys``; returns how many of them still existed."""
        deleted = 0
        with _backend_errors("delete_item"):
            for key in keys:
                response = self._table.delete_item(
                    Key={PARTITION_KEY: collection, SORT_KEY: key},
                    ReturnValues="ALL_OLD",
                )
                if response.get("Attributes"):
                    deleted += 1
        return deleted

    def query_before(
        self,
        collection: str,
        field: str,
        threshold: datetime,
        *,
        limit: int,
        start_after: Optional[Cursor] = None,
    ) -> List[StoredDocument]:
        """Query the timestamp GSI for ``field`` in ascending order."""
        index_name = self._indexes.get(field)
        if index_name is None:
            raise ValueError(f"No index configured for field '{field}'")

        query_kwargs: Dict[str, Any] = {
            "IndexName": index_name,
            "KeyConditionExpression": Key(PARTITION_KEY).eq(collection)
            & Key(field).lt(format_timestamp(threshold)),
            "Limit": limit,
            "ScanIndexForward": True,
        }
        if start_after is not None:
            after_value, after_key = start_after
            query_kwargs["ExclusiveStartKey"] = {
                PARTITION_KEY: collection,
                SORT_KEY: after_key,
                field: after_value,
            }

        with _backend_errors("query"):
            response = self._table.query(**query_kwargs)
        return [
            StoredDocument(key=item[SORT_KEY], data=_strip_item(item))
            for item in response.get("Items", [])
        ]

    def run_transaction(self, func: Callable[[DynamoDBTransaction], T]) -> T:
        """Run ``func`` with optimistic concurrency, retrying on conflicts."""
        for attempt in range(1, self.MAX_TRANSACTION_ATTEMPTS + 1):
            txn = DynamoDBTransaction(self)
            result = func(txn)
            items = txn.build_transact_items(self._settings.dynamodb_table_name)
            if not items:
                return result
            try:
                self._client.transact_write_items(TransactItems=items)
                return result
            except (BotoCoreError, ClientError) as exc:
                if not (
                    isinstance(exc, ClientError)
                    and _error_code(exc) == "TransactionCanceledException"
                ):
                    raise StoreUnavailableError(
                        f"DynamoDB transact_write_items failed: {exc}"
                    ) from exc
                logger.info(
                    "DynamoDB transaction conflicted; retrying",
                    extra={"attempt": attempt},
                )
        raise TransactionConflictError(
            f"Transaction did not commit after {self.MAX_TRANSACTION_ATTEMPTS} attempts"
        )


__all__ = ["DynamoDBDocumentStore", "DynamoDBTransaction"]
