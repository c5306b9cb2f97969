"""Histogram builder: per-bucket counts over adaptively sized time buckets.

Bucket width depends on the total span:

- up to 3 days: 1 hour
- up to 31 days: 1 day
- up to 93 days: 1 week
- longer: 1 month (a fixed 31 day unit)
"""

from collections.abc import Mapping

from footfall.core.errors import QueryError
from footfall.core.logs import get_logger
from footfall.core.query import QueryEngine

logger = get_logger(__name__)

AGGREGATE_BY_HOUR = 60 * 60
AGGREGATE_BY_DAY = AGGREGATE_BY_HOUR * 24
AGGREGATE_BY_WEEK = AGGREGATE_BY_DAY * 7
AGGREGATE_BY_MONTH = AGGREGATE_BY_DAY * 31

Bucket = tuple[int, int]


def select_bucket_width(start: int, end: int) -> int:
    """Return the bucket width in seconds for the span between start and end."""
    hours = abs(end - start) / 3600

    if hours <= 24 * 3:
        return AGGREGATE_BY_HOUR
    if hours <= 24 * 31:
        return AGGREGATE_BY_DAY
    if hours <= 24 * 31 * 3:
        return AGGREGATE_BY_WEEK
    return AGGREGATE_BY_MONTH


def split(width: int, start: int, end: int) -> list[Bucket]:
    """Split [start, end) into consecutive buckets of ``width`` seconds.

    Buckets are produced by repeated addition from ``start``; the last one
    may reach past ``end``.
    """
    if width <= 0:
        raise ValueError("bucket width must be positive")

    buckets: list[Bucket] = []
    while start < end:
        buckets.append((start, start + width))
        start += width
    return buckets


class HistogramBuilder:
    """Builds (bucket start, value) series for charting.

    Each bucket is counted with its own query engine read.
    """

    def __init__(self, engine: QueryEngine) -> None:
        self.engine = engine

    async def count_histogram(
        self, metric: str, start: int, end: int
    ) -> list[tuple[int, int]]:
        """Count points of ``metric`` per bucket.

        Raises:
            QueryError: if the label store is unavailable.
        """
        buckets = split(select_bucket_width(start, end), start, end)
        return [
            (bucket_start, await self.engine.count(metric, bucket_start, bucket_end))
            for bucket_start, bucket_end in buckets
        ]

    async def visitors_histogram(
        self,
        metric: str,
        filters: Mapping[str, str] | None,
        start: int,
        end: int,
    ) -> list[tuple[int, int]]:
        """Count distinct visitors per bucket.

        A bucket whose query fails is reported as zero.
        """
        buckets = split(select_bucket_width(start, end), start, end)
        counts: list[tuple[int, int]] = []
        for bucket_start, bucket_end in buckets:
            try:
                count = await self.engine.count_visitors(
                    metric, filters, bucket_start, bucket_end
                )
            except QueryError:
                logger.warning(
                    "Counting visitors failed, reporting zero for bucket",
                    exc_info=True,
                    extra={"bucket_start": bucket_start},
                )
                count = 0
            counts.append((bucket_start, count))
        return counts
