"""Connection management for the SQLite label store."""

import asyncio
import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import aiosqlite

from footfall.core.errors import StorageUnavailableError


class AsyncConnectionManager:
    """Opens aiosqlite connections and creates the schema on first use.

    A :memory: database lives only as long as its connection, so one
    connection is kept open for it and shared by all callers.

    Failures to open or initialize the database are raised as
    StorageUnavailableError.
    """

    def __init__(self, db_path: str, schema: str) -> None:
        self._db_path = db_path
        self._schema = schema
        self._initialized = False
        self._init_lock: asyncio.Lock | None = None
        self._persistent_conn: aiosqlite.Connection | None = None

    def _get_lock(self) -> asyncio.Lock:
        """Create the lock inside the running event loop on first use."""
        if self._init_lock is None:
            self._init_lock = asyncio.Lock()
        return self._init_lock

    @property
    def _is_memory(self) -> bool:
        return self._db_path == ":memory:"

    async def _ensure_initialized(self) -> None:
        """Initialize database schema once."""
        if self._initialized:
            return
        async with self._get_lock():
            if self._initialized:
                return
            try:
                if self._is_memory:
                    self._persistent_conn = await aiosqlite.connect(":memory:")
                    await self._persistent_conn.executescript(self._schema)
                else:
                    async with aiosqlite.connect(self._db_path) as db:
                        await db.execute("PRAGMA journal_mode=WAL")
                        await db.executescript(self._schema)
            except (sqlite3.Error, OSError) as exc:
                raise StorageUnavailableError(
                    f"cannot open database {self._db_path!r}: {exc}"
                ) from exc
            self._initialized = True

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get a database connection."""
        await self._ensure_initialized()
        if self._is_memory:
            if self._persistent_conn is None:
                raise StorageUnavailableError(
                    "memory database connection not initialized"
                )
            return self._persistent_conn
        try:
            return await aiosqlite.connect(self._db_path)
        except (sqlite3.Error, OSError) as exc:
            raise StorageUnavailableError(
                f"cannot open database {self._db_path!r}: {exc}"
            ) from exc

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """Yield a connection; file connections are closed on exit."""
        db = await self._get_connection()
        try:
            yield db
        finally:
            if not self._is_memory:
                await db.close()

    async def close(self) -> None:
        """Close the shared :memory: connection, discarding its data."""
        if self._persistent_conn is not None:
            await self._persistent_conn.close()
            self._persistent_conn = None
            self._initialized = False
