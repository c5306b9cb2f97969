"""Embedded runtime wiring storage, classification, recording and queries."""

import time
from collections.abc import Awaitable, Callable, Mapping
from typing import TypeVar

from footfall.adapters.geoip import MaxMindGeoLookup
from footfall.adapters.storage.in_memory import InMemoryLabelStore
from footfall.adapters.storage.sqlite import SQLiteLabelStore
from footfall.adapters.user_agent import HeuristicUserAgentParser
from footfall.core import labels as lbl
from footfall.core.classify import RequestClassifier
from footfall.core.config import FootfallOptions
from footfall.core.dashboard import (
    DEFAULT_DASHBOARD,
    Dashboard,
    DashboardAssembler,
    Report,
)
from footfall.core.histogram import HistogramBuilder
from footfall.core.logs import get_logger
from footfall.core.models import TrackedRequest
from footfall.core.ports import (
    GeoLookupPort,
    LabelStorePort,
    UserAgentParserPort,
)
from footfall.core.query import QueryEngine
from footfall.core.recorder import EventRecorder
from footfall.core.timeframe import parse_timeframe

logger = get_logger(__name__)

T = TypeVar("T")


class Footfall:
    """Analytics recorder embedded in a web server process.

    Holds the label store and the optional geo database, which are the only
    resources shared between requests. Everything else is stateless.

    Example:
        ```python
        footfall = Footfall.create(FootfallOptions(db_path="analytics.db"))
        if footfall.should_track(request.path):
            await footfall.track_http_request(request)
        report = await footfall.report("7d")
        ```
    """

    def __init__(
        self,
        options: FootfallOptions,
        store: LabelStorePort,
        user_agent_parser: UserAgentParserPort | None = None,
        geo_lookup: GeoLookupPort | None = None,
        dashboard: Dashboard = DEFAULT_DASHBOARD,
    ) -> None:
        self.options = options
        self.store = store
        self.geo_lookup = geo_lookup
        self.dashboard = dashboard
        self.classifier = RequestClassifier(
            options,
            user_agent_parser or HeuristicUserAgentParser(),
            geo_lookup,
        )
        self.recorder = EventRecorder(store, self.classifier)
        self.engine = QueryEngine(store)
        self.histograms = HistogramBuilder(self.engine)
        self.assembler = DashboardAssembler(self.engine, self.histograms)

    @classmethod
    def create(
        cls,
        options: FootfallOptions | None = None,
        store: LabelStorePort | None = None,
        dashboard: Dashboard = DEFAULT_DASHBOARD,
    ) -> "Footfall":
        """Build a runtime from options.

        Args:
            options: Runtime options; defaults are used if omitted.
            store: Label store to use. If omitted, a SQLite store is opened at
                ``options.db_path``, or an in-memory store when it is None.
            dashboard: Dashboard declaration served by report().

        Raises:
            ConfigurationError: if the GeoIP database cannot be opened.
        """
        options = options or FootfallOptions()
        if store is None:
            if options.db_path:
                store = SQLiteLabelStore(options.db_path)
            else:
                store = InMemoryLabelStore()

        geo_lookup = None
        if options.geoip_db_path is not None:
            geo_lookup = MaxMindGeoLookup(options.geoip_db_path)

        logger.debug(
            "Footfall runtime created",
            extra={
                "dashboard_path": options.dashboard_path,
                "geoip_enabled": geo_lookup is not None,
            },
        )
        return cls(options, store, geo_lookup=geo_lookup, dashboard=dashboard)

    # --- Tracking ---

    def should_track(self, path: str) -> bool:
        return self.classifier.should_track(path)

    async def track(
        self, metric: str, labels: Mapping[str, str] | None, value: float = 1.0
    ) -> None:
        """Record a custom event without request classification."""
        await self.recorder.track(metric, labels, value)

    async def track_with_request(
        self,
        metric: str,
        labels: Mapping[str, str] | None,
        request: TrackedRequest,
    ) -> bool:
        """Record a custom event enriched with the request's labels."""
        return await self.recorder.record_occurrence(metric, labels, request)

    async def track_http_request(self, request: TrackedRequest) -> bool:
        return await self.recorder.track_http_request(request)

    async def measure_http_request(
        self, request: TrackedRequest, work: Callable[[], Awaitable[T]]
    ) -> T:
        return await self.recorder.measure_duration(request, work)

    # --- Reporting ---

    async def report(self, timeframe: str | None = None) -> Report:
        """Build the dashboard report for a timeframe token (see parse_timeframe)."""
        start, end = parse_timeframe(timeframe)
        return await self.assembler.build(self.dashboard, start, end)

    async def count(
        self,
        metric: str = lbl.HTTP_REQ_METRIC,
        start: int = 0,
        end: int | None = None,
    ) -> int:
        """Count points of a metric, by default over all recorded time."""
        if end is None:
            end = int(time.time()) + 1
        return await self.engine.count(metric, start, end)

    # --- Lifecycle ---

    async def apply_retention(self, now: float | None = None) -> int:
        """Delete points older than the retention window.

        Returns:
            Number of deleted points, 0 if the store has no delete_before().
        """
        delete_before = getattr(self.store, "delete_before", None)
        if delete_before is None:
            return 0
        if now is None:
            now = time.time()
        cutoff = int(now) - self.options.retention_seconds
        deleted: int = await delete_before(cutoff)
        logger.debug("Retention applied", extra={"cutoff": cutoff, "deleted": deleted})
        return deleted

    async def close(self) -> None:
        close = getattr(self.store, "close", None)
        if close is not None:
            await close()
        if isinstance(self.geo_lookup, MaxMindGeoLookup):
            self.geo_lookup.close()
