"""Tests for the event recorder."""

import asyncio

import pytest

from footfall.adapters.user_agent import HeuristicUserAgentParser
from footfall.core import labels as lbl
from footfall.core.classify import RequestClassifier
from footfall.core.config import FootfallOptions
from footfall.core.recorder import EventRecorder
from tests.samples import DurationWriteFailingStore

pytestmark = [pytest.mark.tier(1), pytest.mark.core]

NOW = 1_700_000_000


@pytest.fixture
def recorder(store) -> EventRecorder:
    classifier = RequestClassifier(FootfallOptions(), HeuristicUserAgentParser())
    return EventRecorder(store, classifier, clock=lambda: NOW + 0.75)


async def _all_series(store):
    return [series async for series in store.range_query([], 0, NOW * 2)]


class TestTrack:
    """Tests for custom event tracking."""

    async def test_track_stores_point_with_metric_name(self, recorder, store) -> None:
        await recorder.track("signup", {"plan": "pro"}, 3.0)

        [series] = await _all_series(store)
        assert series.labels == {lbl.METRIC_NAME: "signup", "plan": "pro"}
        assert series.samples == [(NOW, 3.0)]

    async def test_track_one_records_value_one(self, recorder, store) -> None:
        await recorder.track_one("signup", None)

        [series] = await _all_series(store)
        assert series.samples == [(NOW, 1.0)]

    async def test_empty_labels_are_dropped(self, recorder, store) -> None:
        await recorder.track("signup", {"plan": "", "source": "ad"}, 1.0)

        [series] = await _all_series(store)
        assert "plan" not in series.labels


class TestRequestTracking:
    """Tests for request based recording."""

    async def test_track_http_request(self, recorder, store, make_request) -> None:
        assert await recorder.track_http_request(make_request(path="/pricing"))

        [series] = await _all_series(store)
        assert series.labels[lbl.METRIC_NAME] == lbl.HTTP_REQ_METRIC
        assert series.labels[lbl.HTTP_PATH_LABEL] == "/pricing"
        assert series.samples == [(NOW, 1.0)]

    async def test_record_occurrence_with_custom_metric(
        self, recorder, store, make_request
    ) -> None:
        await recorder.record_occurrence(
            "download", {"file": "report.pdf"}, make_request(path="/files")
        )

        [series] = await _all_series(store)
        assert series.labels[lbl.METRIC_NAME] == "download"
        assert series.labels["file"] == "report.pdf"
        assert series.labels[lbl.HTTP_PATH_LABEL] == "/files"

    async def test_dropped_request_writes_nothing(
        self, recorder, store, make_request
    ) -> None:
        assert not await recorder.track_http_request(make_request(headers={"dnt": "1"}))

        assert await store.count() == 0


class TestMeasureDuration:
    """Tests for EventRecorder.measure_duration."""

    async def test_records_elapsed_milliseconds(
        self, recorder, store, make_request
    ) -> None:
        request = make_request(method="GET", path="/slow", route="/slow")

        async def work() -> str:
            await asyncio.sleep(0.12)
            return "done"

        assert await recorder.measure_duration(request, work) == "done"

        [series] = await _all_series(store)
        assert series.labels == {
            lbl.METRIC_NAME: lbl.HTTP_REQ_DURATION_METRIC,
            lbl.HTTP_METHOD_LABEL: "GET",
            lbl.HTTP_PATH_LABEL: "/slow",
            lbl.HTTP_ROUTE_LABEL: "/slow",
        }
        [(timestamp, value)] = series.samples
        assert timestamp == NOW
        assert value >= 100.0

    async def test_records_duration_when_work_raises(
        self, recorder, store, make_request
    ) -> None:
        async def work() -> None:
            raise RuntimeError("handler failed")

        with pytest.raises(RuntimeError, match="handler failed"):
            await recorder.measure_duration(make_request(path="/boom"), work)

        [series] = await _all_series(store)
        assert series.labels[lbl.METRIC_NAME] == lbl.HTTP_REQ_DURATION_METRIC
        assert series.labels[lbl.HTTP_PATH_LABEL] == "/boom"

    async def test_failed_duration_write_keeps_work_exception(
        self, make_request, caplog
    ) -> None:
        classifier = RequestClassifier(FootfallOptions(), HeuristicUserAgentParser())
        recorder = EventRecorder(DurationWriteFailingStore(), classifier)

        async def work() -> None:
            raise RuntimeError("handler failed")

        with pytest.raises(RuntimeError, match="handler failed"):
            await recorder.measure_duration(make_request(path="/boom"), work)

        assert "Error recording request duration" in caplog.text

    async def test_failed_duration_write_keeps_work_result(self, make_request) -> None:
        classifier = RequestClassifier(FootfallOptions(), HeuristicUserAgentParser())
        recorder = EventRecorder(DurationWriteFailingStore(), classifier)

        async def work() -> str:
            return "done"

        assert await recorder.measure_duration(make_request(), work) == "done"
