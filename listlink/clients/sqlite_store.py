"""SQLite-backed document store used locally and in single-node deployments."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional, TypeVar

from listlink.clients.document_store import (
    AlreadyExistsError,
    Cursor,
    Document,
    DocumentNotFoundError,
    StoreUnavailableError,
    StoredDocument,
    dump_document,
    format_timestamp,
    load_document,
)

T = TypeVar("T")


class SQLiteTransaction:
    """Read/write view bound to a connection holding ``BEGIN IMMEDIATE``."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def get(self, collection: str, key: str) -> Optional[Document]:
        return _select(self._conn, collection, key)

    def create(self, collection: str, key: str, data: Document) -> None:
        _insert(self._conn, collection, key, data)

    def set(
        self, collection: str, key: str, data: Document, *, merge: bool = False
    ) -> None:
        if merge:
            current = _select(self._conn, collection, key) or {}
            data = {**current, **data}
        _upsert(self._conn, collection, key, data)

    def update(self, collection: str, key: str, fields: Document) -> None:
        current = _select(self._conn, collection, key)
        if current is None:
            raise DocumentNotFoundError(collection, key)
        _upsert(self._conn, collection, key, {**current, **fields})

    def delete(self, collection: str, key: str) -> None:
        self._conn.execute(
            "DELETE FROM documents WHERE collection = ? AND key = ?",
            (collection, key),
        )


class SQLiteDocumentStore:
    """Document store keyed by (collection, key) with JSON bodies."""

    def __init__(self, db_path: str, *, busy_timeout_seconds: float = 10.0) -> None:
        self._db_path = Path(db_path)
        self._busy_timeout = busy_timeout_seconds
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(
                self._db_path,
                timeout=self._busy_timeout,
                isolation_level=None,
                check_same_thread=False,
            )
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"SQLite store unavailable: {exc}") from exc
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"SQLite operation failed: {exc}") from exc
        finally:
            conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    collection TEXT NOT NULL,
                    key TEXT NOT NULL,
                    data TEXT NOT NULL,
                    PRIMARY KEY (collection, key)
                )
                """
            )

    def get(self, collection: str, key: str) -> Optional[Document]:
        with self._connection() as conn:
            return _select(conn, collection, key)

    def create(self, collection: str, key: str, data: Document) -> None:
        with self._connection() as conn:
            _insert(conn, collection, key, data)

    def set(
        self, collection: str, key: str, data: Document, *, merge: bool = False
    ) -> None:
        if merge:
            self.run_transaction(lambda txn: txn.set(collection, key, data, merge=True))
            return
        with self._connection() as conn:
            _upsert(conn, collection, key, data)

    def update(self, collection: str, key: str, fields: Document) -> None:
        self.run_transaction(lambda txn: txn.update(collection, key, fields))

    def delete(self, collection: str, key: str) -> None:
        with self._connection() as conn:
            conn.execute(
                "DELETE FROM documents WHERE collection = ? AND key = ?",
                (collection, key),
            )

    def delete_many(self, collection: str, keys: Iterable[str]) -> int:
        params = [(collection, key) for key in keys]
        if not params:
            return 0
        with self._transaction() as conn:
            cursor = conn.executemany(
                "DELETE FROM documents WHERE collection = ? AND key = ?",
                params,
            )
            return cursor.rowcount

    def query_before(
        self,
        collection: str,
        field: str,
        threshold: datetime,
        *,
        limit: int,
        start_after: Optional[Cursor] = None,
    ) -> List[StoredDocument]:
        """Return documents whose ``field`` precedes ``threshold``, oldest first."""
        path = f"$.{field}"
        sql = """
            SELECT key, data, json_extract(data, :path) AS ordering
            FROM documents
            WHERE collection = :collection
              AND json_extract(data, :path) IS NOT NULL
              AND json_extract(data, :path) < :threshold
        """
        params = {
            "path": path,
            "collection": collection,
            "threshold": format_timestamp(threshold),
            "limit": limit,
        }
        if start_after is not None:
            sql += """
              AND (json_extract(data, :path) > :after_value
                   OR (json_extract(data, :path) = :after_value AND key > :after_key))
            """
            params["after_value"], params["after_key"] = start_after
        sql += " ORDER BY ordering, key LIMIT :limit"

        with self._connection() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [StoredDocument(key=row["key"], data=load_document(row["data"])) for row in rows]

    def run_transaction(self, func: Callable[[SQLiteTransaction], T]) -> T:
        with self._transaction() as conn:
            return func(SQLiteTransaction(conn))


def _select(conn: sqlite3.Connection, collection: str, key: str) -> Optional[Document]:
    row = conn.execute(
        "SELECT data FROM documents WHERE collection = ? AND key = ?",
        (collection, key),
    ).fetchone()
    if not row:
        return None
    return load_document(row["data"])


def _insert(conn: sqlite3.Connection, collection: str, key: str, data: Document) -> None:
    try:
        conn.execute(
            "INSERT INTO documents (collection, key, data) VALUES (?, ?, ?)",
            (collection, key, dump_document(data)),
        )
    except sqlite3.IntegrityError as exc:
        raise AlreadyExistsError(collection, key) from exc


def _upsert(conn: sqlite3.Connection, collection: str, key: str, data: Document) -> None:
    conn.execute(
        """
        INSERT INTO documents (collection, key, data)
        VALUES (?, ?, ?)
        ON CONFLICT(collection, key) DO UPDATE SET data = excluded.data
        """,
        (collection, key, dump_document(data)),
    )


__all__ = ["SQLiteDocumentStore", "SQLiteTransaction"]
