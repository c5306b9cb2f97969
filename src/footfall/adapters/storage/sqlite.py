"""SQLite label store adapter."""

import json
from collections.abc import AsyncIterator, Mapping, Sequence

from footfall.adapters.storage.sqlite_base import AsyncConnectionManager
from footfall.core.labels import METRIC_NAME
from footfall.core.models import LabelMatcher, MatchType, Series

_POINTS_SCHEMA = """
CREATE TABLE IF NOT EXISTS points (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    labels TEXT NOT NULL DEFAULT '{}',
    timestamp INTEGER NOT NULL,
    value REAL NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_points_name_timestamp ON points(name, timestamp);
CREATE INDEX IF NOT EXISTS idx_points_timestamp ON points(timestamp);
"""

_INSERT_POINT = """
INSERT INTO points (name, labels, timestamp, value) VALUES (?, ?, ?, ?)
"""

_SELECT_RANGE = """
SELECT labels, timestamp, value FROM points
WHERE timestamp >= ? AND timestamp < ?
ORDER BY timestamp ASC, id ASC
"""

_SELECT_RANGE_BY_NAME = """
SELECT labels, timestamp, value FROM points
WHERE name = ? AND timestamp >= ? AND timestamp < ?
ORDER BY timestamp ASC, id ASC
"""

_COUNT_POINTS = """
SELECT COUNT(*) FROM points
"""

_DELETE_POINTS_BEFORE = """
DELETE FROM points WHERE timestamp < ?
"""


def _encode_labels(labels: Mapping[str, str]) -> str:
    # Sorted keys make equal label sets encode identically.
    return json.dumps(dict(labels), sort_keys=True, separators=(",", ":"))


def _name_equality(matchers: Sequence[LabelMatcher]) -> str | None:
    for matcher in matchers:
        if matcher.type is MatchType.EQUAL and matcher.name == METRIC_NAME:
            return matcher.value
    return None


class SQLiteLabelStore:
    """SQLite implementation of LabelStorePort.

    Stores points in a SQLite database using aiosqlite for non-blocking
    async operations. Uses WAL mode for concurrent access.

    Each row holds one point with its label set encoded as JSON. A metric
    name equality matcher is evaluated in SQL; every other matcher is
    applied to the decoded label set. Rows with identical label sets are
    returned as one series.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._manager = AsyncConnectionManager(db_path, _POINTS_SCHEMA)

    async def append(
        self, labels: Mapping[str, str], timestamp: int, value: float
    ) -> None:
        """Write a point to storage."""
        async with self._manager.connection() as db:
            await db.execute(
                _INSERT_POINT,
                (
                    labels.get(METRIC_NAME, ""),
                    _encode_labels(labels),
                    int(timestamp),
                    float(value),
                ),
            )
            await db.commit()

    async def range_query(
        self, matchers: Sequence[LabelMatcher], start: int, end: int
    ) -> AsyncIterator[Series]:
        """Yield matching series restricted to [start, end).

        Raises:
            StorageUnavailableError: if the database cannot be opened.
        """
        name = _name_equality(matchers)
        if name is None:
            query, params = _SELECT_RANGE, (start, end)
        else:
            query, params = _SELECT_RANGE_BY_NAME, (name, start, end)

        grouped: dict[str, list[tuple[int, float]]] = {}
        async with self._manager.connection() as db:
            async with db.execute(query, params) as cursor:
                async for row in cursor:
                    grouped.setdefault(row[0], []).append((row[1], row[2]))

        for encoded, samples in grouped.items():
            labels = json.loads(encoded)
            if all(matcher.matches(labels) for matcher in matchers):
                yield Series(labels=labels, samples=samples)

    async def count(self) -> int:
        """Return total number of points in storage."""
        async with self._manager.connection() as db:
            async with db.execute(_COUNT_POINTS) as cursor:
                row = await cursor.fetchone()
                return row[0] if row else 0

    async def delete_before(self, timestamp: int) -> int:
        """Delete points with timestamp < given value."""
        async with self._manager.connection() as db:
            cursor = await db.execute(_DELETE_POINTS_BEFORE, (timestamp,))
            deleted = cursor.rowcount
            await db.commit()
            return deleted

    async def clear(self) -> None:
        """Clear all points from storage."""
        async with self._manager.connection() as db:
            await db.execute("DELETE FROM points")
            await db.commit()

    async def close(self) -> None:
        """Close persistent connection (for :memory: databases)."""
        await self._manager.close()
