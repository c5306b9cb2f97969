"""Tests for the SQLite connection manager.

These tests verify that the connection manager initializes the schema,
keeps a persistent connection for :memory: databases, and reports
unusable database paths as StorageUnavailableError.
"""

from pathlib import Path

import pytest

from footfall.adapters.storage.sqlite_base import AsyncConnectionManager
from footfall.core.errors import StorageUnavailableError

pytestmark = pytest.mark.tier(1)

# Schema for testing - creates a simple test table
TEST_SCHEMA = """
CREATE TABLE IF NOT EXISTS test_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL
);
"""


class TestAsyncConnectionManager:
    """Tests for AsyncConnectionManager."""

    @pytest.mark.storage
    async def test_initializes_schema(self) -> None:
        """AsyncConnectionManager creates schema on first connection."""
        manager = AsyncConnectionManager(":memory:", TEST_SCHEMA)

        try:
            async with manager.connection() as conn:
                # Insert a row to verify schema was created
                await conn.execute(
                    "INSERT INTO test_items (name) VALUES (?)", ("test",)
                )
                await conn.commit()
                cursor = await conn.execute("SELECT COUNT(*) FROM test_items")
                row = await cursor.fetchone()
                assert row[0] == 1
        finally:
            await manager.close()

    @pytest.mark.storage
    async def test_memory_database_persists_between_connections(self) -> None:
        manager = AsyncConnectionManager(":memory:", TEST_SCHEMA)

        try:
            async with manager.connection() as conn:
                await conn.execute("INSERT INTO test_items (name) VALUES ('a')")
                await conn.commit()
            async with manager.connection() as conn:
                cursor = await conn.execute("SELECT name FROM test_items")
                assert await cursor.fetchall() == [("a",)]
        finally:
            await manager.close()

    @pytest.mark.storage
    async def test_file_database_is_created(self, tmp_path: Path) -> None:
        db_file = tmp_path / "items.db"
        manager = AsyncConnectionManager(str(db_file), TEST_SCHEMA)

        async with manager.connection() as conn:
            await conn.execute("INSERT INTO test_items (name) VALUES ('a')")
            await conn.commit()

        assert db_file.exists()

    @pytest.mark.storage
    async def test_unopenable_path_raises_storage_unavailable(
        self, tmp_path: Path
    ) -> None:
        manager = AsyncConnectionManager(
            str(tmp_path / "missing" / "dir" / "items.db"), TEST_SCHEMA
        )

        with pytest.raises(StorageUnavailableError):
            async with manager.connection():
                pass
