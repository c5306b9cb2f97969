"""Query engine: filtering, counting and aggregating recorded points."""

from collections.abc import AsyncIterator, Callable, Mapping

from footfall.core import labels as lbl
from footfall.core.errors import QueryError, StorageUnavailableError
from footfall.core.models import (
    AggregatedResult,
    AggregationMethod,
    LabelMatcher,
    Point,
    Series,
)
from footfall.core.ports import LabelStorePort

GroupBy = Callable[[Point], str]


def group_by_label(label: str) -> GroupBy:
    """Group points by the value of ``label``; points without it are skipped."""

    def _group(point: Point) -> str:
        return point.labels.get(label, "")

    return _group


def group_by_route(point: Point) -> str:
    """Group points by ``"<METHOD> <route>"``.

    Keeps ``GET /user/{id}`` and ``POST /user/{id}`` apart. Points missing
    either the method or the route are skipped.
    """
    method = point.labels.get(lbl.HTTP_METHOD_LABEL, "")
    route = point.labels.get(lbl.HTTP_ROUTE_LABEL, "")
    if not method or not route:
        return ""
    return f"{method.upper()} {route}"


def _sorted_results(values: Mapping[str, float]) -> list[AggregatedResult]:
    # Stable sort: equal values keep the order in which keys were first seen.
    results = [AggregatedResult(label=key, value=val) for key, val in values.items()]
    results.sort(key=lambda r: r.value, reverse=True)
    return results


class QueryEngine:
    """Translates metric/filter/time-range requests into label store reads.

    Every public method performs exactly one range read. Accumulation
    structures are local to each call.
    """

    def __init__(self, store: LabelStorePort) -> None:
        self.store = store

    async def _series(
        self, matchers: list[LabelMatcher], start: int, end: int
    ) -> AsyncIterator[Series]:
        try:
            async for series in self.store.range_query(matchers, start, end):
                yield series
        except StorageUnavailableError as exc:
            raise QueryError(f"label store unavailable: {exc}") from exc

    async def query(
        self,
        metric: str,
        filters: Mapping[str, str] | None,
        start: int,
        end: int,
    ) -> list[Point]:
        """Return all points of ``metric`` matching ``filters`` in [start, end).

        Args:
            metric: Metric name. Empty matches any metric.
            filters: Label filter; keys ending in ``!=`` mean not-equal.
            start: Range start, Unix seconds, inclusive.
            end: Range end, Unix seconds, exclusive.

        Returns:
            Points ordered by timestamp, most recent first.

        Raises:
            QueryError: if the store is unavailable or a filter is invalid.
        """
        matchers = lbl.matchers_for_labels(metric, filters)
        points: list[Point] = []
        async for series in self._series(matchers, start, end):
            name = series.labels.get(lbl.METRIC_NAME, "")
            point_labels = {
                key: value
                for key, value in series.labels.items()
                if key != lbl.METRIC_NAME
            }
            for timestamp, value in series.samples:
                points.append(
                    Point(
                        timestamp=timestamp,
                        name=name,
                        value=value,
                        labels=dict(point_labels),
                    )
                )

        points.sort(key=lambda p: p.timestamp, reverse=True)
        return points

    async def count(self, metric: str, start: int, end: int) -> int:
        """Count points of ``metric`` in [start, end) without materializing them."""
        matchers = lbl.matchers_for_labels(metric, None)
        total = 0
        async for series in self._series(matchers, start, end):
            total += len(series.samples)
        return total

    async def count_visitors(
        self,
        metric: str,
        filters: Mapping[str, str] | None,
        start: int,
        end: int,
    ) -> int:
        """Count distinct visitor fingerprints among matching points."""
        points = await self.query(metric, filters, start, end)
        visitors = {
            point.labels[lbl.VISITOR_ID_LABEL]
            for point in points
            if point.labels.get(lbl.VISITOR_ID_LABEL)
        }
        return len(visitors)

    async def count_distinct_by_visitor(
        self,
        metric: str,
        group_by: GroupBy,
        filters: Mapping[str, str] | None,
        start: int,
        end: int,
    ) -> list[AggregatedResult]:
        """Count distinct visitors per group.

        Points without a visitor fingerprint are left out entirely, as are
        points whose group key is empty.

        Returns:
            One result per group, highest visitor count first.
        """
        groups: dict[str, set[str]] = {}
        for point in await self.query(metric, filters, start, end):
            visitor = point.labels.get(lbl.VISITOR_ID_LABEL, "")
            if not visitor:
                continue
            key = group_by(point)
            if key:
                groups.setdefault(key, set()).add(visitor)

        return _sorted_results({key: float(len(ids)) for key, ids in groups.items()})

    async def count_distinct_by_visitor_and_label(
        self,
        metric: str,
        label: str,
        filters: Mapping[str, str] | None,
        start: int,
        end: int,
    ) -> list[AggregatedResult]:
        """Count distinct visitors per value of ``label``.

        Grouping by the route label groups by method and route together.
        """
        if label == lbl.HTTP_ROUTE_LABEL:
            group_by = group_by_route
        else:
            group_by = group_by_label(label)
        return await self.count_distinct_by_visitor(
            metric, group_by, filters, start, end
        )

    async def aggregate_distinct(
        self,
        metric: str,
        group_by: GroupBy,
        filters: Mapping[str, str] | None,
        aggregate_by: AggregationMethod,
        start: int,
        end: int,
    ) -> list[AggregatedResult]:
        """Group matching points and reduce each group.

        Example:
            ```python
            rows = await engine.aggregate_distinct(
                HTTP_REQ_METRIC,
                group_by_label(CITY_LABEL),
                {COUNTRY_LABEL: "CH", not_equal(REGION_LABEL): "Zurich"},
                AggregationMethod.COUNT,
                0,
                int(time.time()),
            )
            ```

        Args:
            metric: Metric name.
            group_by: Computes the group key of a point; empty keys are skipped.
            filters: Label filter.
            aggregate_by: COUNT, SUM or AVG of point values.
            start: Range start, inclusive.
            end: Range end, exclusive.

        Returns:
            One result per group, highest value first.
        """
        counts: dict[str, int] = {}
        sums: dict[str, float] = {}
        for point in await self.query(metric, filters, start, end):
            key = group_by(point)
            if not key:
                continue
            counts[key] = counts.get(key, 0) + 1
            sums[key] = sums.get(key, 0.0) + point.value

        values: dict[str, float] = {}
        for key, count in counts.items():
            if aggregate_by == AggregationMethod.SUM:
                values[key] = sums[key]
            elif aggregate_by == AggregationMethod.AVG:
                values[key] = sums[key] / count
            else:
                values[key] = float(count)

        return _sorted_results(values)
