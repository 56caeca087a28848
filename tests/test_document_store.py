try:
    from . import _bootstrap  # noqa: F401
    from ._support import START
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401
    from _support import START  # type: ignore

import sqlite3
from datetime import timedelta

import pytest

from listlink.clients import (
    AlreadyExistsError,
    DocumentNotFoundError,
    SQLiteDocumentStore,
    StoreUnavailableError,
    sqlite_store,
)
from listlink.clients.document_store import format_timestamp, parse_timestamp, to_epoch_millis


def test_create_refuses_to_overwrite(store) -> None:
    store.create("things", "k1", {"value": 1})

    with pytest.raises(AlreadyExistsError) as excinfo:
        store.create("things", "k1", {"value": 2})

    assert excinfo.value.collection == "things"
    assert store.get("things", "k1") == {"value": 1}


def test_same_key_in_different_collections_is_independent(store) -> None:
    store.create("a", "k", {"n": 1})
    store.create("b", "k", {"n": 2})

    assert store.get("a", "k") == {"n": 1}
    assert store.get("b", "k") == {"n": 2}


def test_set_merge_and_update(store) -> None:
    store.set("things", "k1", {"a": 1, "b": 2})
    store.set("things", "k1", {"b": 3}, merge=True)
    assert store.get("things", "k1") == {"a": 1, "b": 3}

    store.update("things", "k1", {"c": START})
    assert store.get("things", "k1")["c"] == format_timestamp(START)

    store.set("things", "k1", {"z": 0})
    assert store.get("things", "k1") == {"z": 0}


def test_update_missing_document_raises(store) -> None:
    with pytest.raises(DocumentNotFoundError):
        store.update("things", "absent", {"a": 1})


def test_transaction_rolls_back_on_error(store) -> None:
    store.create("things", "k1", {"value": 1})

    def _fail(txn):
        txn.update("things", "k1", {"value": 2})
        txn.create("things", "k2", {"value": 3})
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        store.run_transaction(_fail)

    assert store.get("things", "k1") == {"value": 1}
    assert store.get("things", "k2") is None


def test_transaction_returns_function_result(store) -> None:
    store.create("things", "k1", {"value": 1})

    def _take(txn):
        data = txn.get("things", "k1")
        txn.delete("things", "k1")
        return data

    assert store.run_transaction(_take) == {"value": 1}
    assert store.get("things", "k1") is None


def test_query_before_orders_and_pages_with_cursor(store) -> None:
    for index, key in enumerate(["c", "a", "d", "b"]):
        store.create("tokens", key, {"expiresAt": START + timedelta(minutes=index % 2)})
    store.create("tokens", "future", {"expiresAt": START + timedelta(days=1)})
    store.create("tokens", "no-expiry", {"other": True})

    threshold = START + timedelta(hours=1)
    first = store.query_before("tokens", "expiresAt", threshold, limit=3)
    assert [doc.key for doc in first] == ["c", "d", "a"]

    rest = store.query_before(
        "tokens", "expiresAt", threshold, limit=3, start_after=first[-1].cursor("expiresAt")
    )
    assert [doc.key for doc in rest] == ["b"]


def test_delete_many_counts_deleted_rows(store) -> None:
    for key in ("a", "b", "c"):
        store.create("things", key, {})

    assert store.delete_many("things", ["a", "b", "missing"]) == 2
    assert store.delete_many("things", []) == 0
    assert store.get("things", "c") == {}


def test_timestamp_helpers_are_sortable_and_convert_to_millis() -> None:
    earlier = format_timestamp(START)
    later = format_timestamp(START + timedelta(microseconds=1))

    assert earlier < later
    assert parse_timestamp(earlier) == START
    assert to_epoch_millis(START) == int(START.timestamp() * 1000)


def test_unopenable_database_is_store_unavailable(tmp_path) -> None:
    with pytest.raises(StoreUnavailableError):
        SQLiteDocumentStore(str(tmp_path))


def test_backend_error_inside_transaction_rolls_back(store, monkeypatch) -> None:
    store.create("lists", "l1", {"name": "before"})

    def _apply(txn):
        txn.update("lists", "l1", {"name": "after"})
        raise sqlite3.OperationalError("disk I/O error")

    with pytest.raises(StoreUnavailableError):
        store.run_transaction(_apply)
    assert store.get("lists", "l1") == {"name": "before"}

    def _locked(*args, **kwargs):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(sqlite_store, "_select", _locked)
    with pytest.raises(StoreUnavailableError):
        store.get("lists", "l1")
