"""Expose document store backends."""

from .document_store import (
    AlreadyExistsError,
    DocumentNotFoundError,
    DocumentStore,
    DocumentStoreError,
    StoreUnavailableError,
    StoredDocument,
    Transaction,
    TransactionConflictError,
)
from .dynamodb import DynamoDBDocumentStore
from .sqlite_store import SQLiteDocumentStore

__all__ = [
    "AlreadyExistsError",
    "DocumentNotFoundError",
    "DocumentStore",
    "DocumentStoreError",
    "DynamoDBDocumentStore",
    "SQLiteDocumentStore",
    "StoreUnavailableError",
    "StoredDocument",
    "Transaction",
    "TransactionConflictError",
]
