"""Pytest configuration shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
    from ._support import FakeClock
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401
    from _support import FakeClock  # type: ignore

import pytest

from listlink.clients import SQLiteDocumentStore


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(tmp_path) -> SQLiteDocumentStore:
    return SQLiteDocumentStore(str(tmp_path / "documents.db"))
