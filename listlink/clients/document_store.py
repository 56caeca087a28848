"""Shared contract for the document stores backing credentials, lists and invites."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Tuple, TypeVar

T = TypeVar("T")

Document = Dict[str, Any]
Cursor = Tuple[str, str]


class DocumentStoreError(Exception):
    """Base class for failures raised by a document store backend."""


class AlreadyExistsError(DocumentStoreError):
    """Raised by ``create`` when the key is already taken."""

    def __init__(self, collection: str, key: str) -> None:
        self.collection = collection
        self.key = key
        super().__init__(f"Document already exists in {collection}")


class DocumentNotFoundError(DocumentStoreError):
    """Raised by ``update`` when the target document is absent."""

    def __init__(self, collection: str, key: str) -> None:
        self.collection = collection
        self.key = key
        super().__init__(f"Document not found in {collection}")


class TransactionConflictError(DocumentStoreError):
    """Raised when a transaction could not be committed after retries."""


class StoreUnavailableError(DocumentStoreError):
    """Raised when the backend cannot serve a read or write."""


@dataclass(frozen=True, slots=True)
class StoredDocument:
    """A document returned from an ordered query, with its key."""

    key: str
    data: Document

    def cursor(self, field: str) -> Cursor:
        """Keyset cursor for resuming a query ordered by ``field``."""
        return (str(self.data.get(field)), self.key)


def format_timestamp(value: datetime) -> str:
    """Render a timestamp in the canonical, lexicographically sortable form."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a stored timestamp back into an aware datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_epoch_millis(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def normalize_document(value: Any) -> Any:
    """Convert datetimes (at any depth) to their stored string form."""
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, dict):
        return {key: normalize_document(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [normalize_document(item) for item in value]
    return value


def _default_json_serializer(value: Any) -> Any:
    if isinstance(value, datetime):
        return format_timestamp(value)
    raise TypeError(f"Type {type(value)!r} not serializable")


def dump_document(data: Document) -> str:
    return json.dumps(data, default=_default_json_serializer, separators=(",", ":"))


def load_document(raw: str) -> Document:
    return json.loads(raw)


class Transaction(Protocol):
    """Reads and writes that commit atomically."""

    def get(self, collection: str, key: str) -> Optional[Document]: ...

    def create(self, collection: str, key: str, data: Document) -> None: ...

    def set(self, collection: str, key: str, data: Document, *, merge: bool = False) -> None: ...

    def update(self, collection: str, key: str, fields: Document) -> None: ...

    def delete(self, collection: str, key: str) -> None: ...


class DocumentStore(Protocol):
    """Key/value document store with atomic create and transactions."""

    def get(self, collection: str, key: str) -> Optional[Document]: ...

    def create(self, collection: str, key: str, data: Document) -> None: ...

    def set(self, collection: str, key: str, data: Document, *, merge: bool = False) -> None: ...

    def update(self, collection: str, key: str, fields: Document) -> None: ...

    def delete(self, collection: str, key: str) -> None: ...

    def delete_many(self, collection: str, keys: Iterable[str]) -> int: ...

    def query_before(
        self,
        collection: str,
        field: str,
        threshold: datetime,
        *,
        limit: int,
        start_after: Optional[Cursor] = None,
    ) -> List[StoredDocument]: ...

    def run_transaction(self, func: Callable[[Transaction], T]) -> T: ...


__all__ = [
    "AlreadyExistsError",
    "Cursor",
    "Document",
    "DocumentNotFoundError",
    "DocumentStore",
    "DocumentStoreError",
    "StoreUnavailableError",
    "StoredDocument",
    "Transaction",
    "TransactionConflictError",
    "dump_document",
    "format_timestamp",
    "load_document",
    "normalize_document",
    "parse_timestamp",
    "to_epoch_millis",
]
