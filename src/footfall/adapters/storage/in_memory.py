"""In-memory label store adapter."""

import threading
from collections.abc import AsyncIterator, Mapping, Sequence

from footfall.core.models import LabelMatcher, Series

_SeriesKey = frozenset[tuple[str, str]]


class InMemoryLabelStore:
    """In-memory implementation of LabelStorePort.

    Keeps one sample list per distinct label set. Suitable for testing and
    low-volume applications where persistence is not required. A lock makes
    it safe to share between threads.
    """

    def __init__(self) -> None:
        self._series: dict[_SeriesKey, list[tuple[int, float]]] = {}
        self._lock = threading.Lock()

    async def append(
        self, labels: Mapping[str, str], timestamp: int, value: float
    ) -> None:
        """Append a point to the series identified by ``labels``."""
        key: _SeriesKey = frozenset(labels.items())
        with self._lock:
            self._series.setdefault(key, []).append((timestamp, value))

    async def range_query(
        self, matchers: Sequence[LabelMatcher], start: int, end: int
    ) -> AsyncIterator[Series]:
        """Yield matching series restricted to [start, end)."""
        with self._lock:
            snapshot = [(key, list(samples)) for key, samples in self._series.items()]

        for key, samples in snapshot:
            labels = dict(key)
            if not all(matcher.matches(labels) for matcher in matchers):
                continue
            in_range = sorted(
                (sample for sample in samples if start <= sample[0] < end),
                key=lambda sample: sample[0],
            )
            if in_range:
                yield Series(labels=labels, samples=in_range)

    async def count(self) -> int:
        """Return total number of points in storage."""
        with self._lock:
            return sum(len(samples) for samples in self._series.values())

    async def delete_before(self, timestamp: int) -> int:
        """Delete points with timestamp < given value."""
        deleted = 0
        with self._lock:
            for key in list(self._series):
                samples = self._series[key]
                kept = [sample for sample in samples if sample[0] >= timestamp]
                deleted += len(samples) - len(kept)
                if kept:
                    self._series[key] = kept
                else:
                    del self._series[key]
        return deleted

    async def clear(self) -> None:
        """Clear all points from storage."""
        with self._lock:
            self._series.clear()

    async def close(self) -> None:
        """Nothing to release; present for interface parity with SQLite."""
