"""Pytest configuration and test helpers."""

from __future__ import annotations

import sys
from contextlib import asynccontextmanager
from pathlib import Path

import pytest


# Ensure the application package is importable when running tests without an
# editable install. This mirrors the expected runtime layout where ``app`` sits
# at the project root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'radar.db'}"


@pytest.fixture
def open_store(database_url: str):
    """Return an async context manager yielding a store on a temporary database.

    The database file outlives each context so a test can reopen it from a
    fresh event loop.
    """

    from app.database import Database
    from app.services.document_store import DocumentStore

    @asynccontextmanager
    async def _open():
        database = Database(database_url)
        await database.create_all()
        try:
            yield DocumentStore(database.session_factory)
        finally:
            await database.dispose()

    return _open
