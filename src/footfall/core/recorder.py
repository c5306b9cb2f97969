"""Event recording: appends classified events to the label store."""

import time
from collections.abc import Awaitable, Callable, Mapping
from typing import TypeVar

from footfall.core import labels as lbl
from footfall.core.classify import RequestClassifier
from footfall.core.logs import get_logger, log_exception
from footfall.core.models import TrackedRequest
from footfall.core.ports import LabelStorePort

logger = get_logger(__name__)

T = TypeVar("T")


class EventRecorder:
    """Writes occurrence and duration points for tracked requests."""

    def __init__(
        self,
        store: LabelStorePort,
        classifier: RequestClassifier,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.classifier = classifier
        self._clock = clock

    async def track(
        self, metric: str, labels: Mapping[str, str] | None, value: float
    ) -> None:
        """Append one point for ``metric`` at the current time.

        Labels are stored as given, without classification. Empty label
        values are not stored.
        """
        point_labels = lbl.merge_labels(labels, {lbl.METRIC_NAME: metric})
        await self.store.append(point_labels, int(self._clock()), value)

    async def track_one(self, metric: str, labels: Mapping[str, str] | None) -> None:
        """Append an occurrence (value 1) of ``metric``."""
        await self.track(metric, labels, 1.0)

    async def record_occurrence(
        self,
        metric: str,
        extra_labels: Mapping[str, str] | None,
        request: TrackedRequest,
    ) -> bool:
        """Classify a request and append one occurrence point for it.

        Args:
            metric: Metric name to record under.
            extra_labels: Caller labels merged below the built-in labels.
            request: The request being tracked.

        Returns:
            True if a point was written, False if the request was dropped.
        """
        classification = self.classifier.classify(request, extra_labels)
        if classification.dropped:
            logger.debug(
                "Request not tracked",
                extra={"path": request.path, "reason": classification.reason},
            )
            return False

        await self.track_one(metric, classification.labels)
        return True

    async def track_http_request(self, request: TrackedRequest) -> bool:
        """Record a page view (http_req occurrence) for a request."""
        return await self.record_occurrence(lbl.HTTP_REQ_METRIC, None, request)

    async def measure_duration(
        self, request: TrackedRequest, work: Callable[[], Awaitable[T]]
    ) -> T:
        """Run ``work`` and record its wall-clock duration in milliseconds.

        The duration point is written after ``work`` finishes, also when it
        raises. Exceptions from ``work`` propagate unchanged; a failed
        duration write is logged and never replaces them.
        """
        start = time.perf_counter()
        try:
            return await work()
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000.0
            try:
                await self.track(
                    lbl.HTTP_REQ_DURATION_METRIC,
                    {
                        lbl.HTTP_METHOD_LABEL: request.method,
                        lbl.HTTP_PATH_LABEL: request.path,
                        lbl.HTTP_ROUTE_LABEL: request.route,
                    },
                    elapsed_ms,
                )
            except Exception:
                log_exception(
                    "Error recording request duration",
                    method=request.method,
                    path=request.path,
                )
