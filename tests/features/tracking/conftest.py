"""BDD step definitions for page view tracking features."""

import asyncio
from dataclasses import dataclass, field
from typing import Any

import pytest
from pytest_bdd import given, parsers, then, when
from tests.samples import CHROME_DESKTOP_UA, GOOGLEBOT_UA

from footfall.adapters.frameworks.asgi import FootfallMiddleware, Receive, Scope, Send
from footfall.adapters.storage.in_memory import InMemoryLabelStore
from footfall.core import labels as lbl
from footfall.core.config import FootfallOptions
from footfall.core.dashboard import BOT_FILTER
from footfall.core.models import Point
from footfall.core.timeframe import parse_timeframe
from footfall.runtime.embedded import Footfall

run_async = asyncio.run


@dataclass
class TrackingScenarioContext:
    """Shared state between steps in a tracking scenario."""

    store: InMemoryLabelStore = field(default_factory=InMemoryLabelStore)
    app: Any = None
    options: dict[str, Any] = field(default_factory=dict)
    statuses: list[int] = field(default_factory=list)

    def footfall(self) -> Footfall:
        return Footfall(FootfallOptions(**self.options), self.store)


@pytest.fixture
def ctx() -> TrackingScenarioContext:
    """Fresh scenario context for each test."""
    return TrackingScenarioContext()


async def _ok_app(scope: Scope, receive: Receive, send: Send) -> None:
    await send({"type": "http.response.start", "status": 200, "headers": []})
    await send({"type": "http.response.body", "body": b"OK"})


async def simulate_request(
    ctx: TrackingScenarioContext, target: str, headers: dict[str, str]
) -> None:
    """Send one GET request through the middleware."""
    path, _, query = target.partition("?")
    scope: Scope = {
        "type": "http",
        "method": "GET",
        "path": path,
        "query_string": query.encode(),
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": ("198.51.100.20", 40000),
    }

    async def receive() -> dict[str, Any]:
        return {"type": "http.request", "body": b""}

    async def send(message: dict[str, Any]) -> None:
        if message["type"] == "http.response.start":
            ctx.statuses.append(message["status"])

    await FootfallMiddleware(ctx.app, ctx.footfall())(scope, receive, send)


def _page_views(ctx: TrackingScenarioContext) -> list[Point]:
    engine = ctx.footfall().engine
    return run_async(engine.query(lbl.HTTP_REQ_METRIC, {}, 0, 2**31))


# === Background Steps ===
@given("an in-memory label store")
def step_store(ctx: TrackingScenarioContext) -> None:
    ctx.store = InMemoryLabelStore()


@given("an ASGI app wrapped by the footfall middleware")
def step_app(ctx: TrackingScenarioContext) -> None:
    ctx.app = _ok_app


# === Configuration Steps ===
@given(parsers.parse('tracking ignores the prefix "{prefix}"'))
def step_ignore_prefix(ctx: TrackingScenarioContext, prefix: str) -> None:
    ctx.options["ignored_prefixes"] = (prefix,)


@given("tracking ignores Do Not Track")
def step_ignore_dnt(ctx: TrackingScenarioContext) -> None:
    ctx.options["ignore_dnt"] = True


@given("tracking ignores bots")
def step_ignore_bots(ctx: TrackingScenarioContext) -> None:
    ctx.options["ignore_bots"] = True


# === Request Steps ===
@when(parsers.re(r'a browser requests "(?P<target>[^"]+)"$'))
def step_browser_request(ctx: TrackingScenarioContext, target: str) -> None:
    run_async(simulate_request(ctx, target, {"User-Agent": CHROME_DESKTOP_UA}))


@when(
    parsers.parse('a browser requests "{target}" with header "{name}" set to "{value}"')
)
def step_browser_request_with_header(
    ctx: TrackingScenarioContext, target: str, name: str, value: str
) -> None:
    headers = {"User-Agent": CHROME_DESKTOP_UA, name: value}
    run_async(simulate_request(ctx, target, headers))


@when(parsers.parse('a crawler requests "{target}"'))
def step_crawler_request(ctx: TrackingScenarioContext, target: str) -> None:
    run_async(simulate_request(ctx, target, {"User-Agent": GOOGLEBOT_UA}))


# === Assertions ===
@then(parsers.parse("{count:d} page views are recorded"))
@then(parsers.parse("{count:d} page view is recorded"))
def step_page_view_count(ctx: TrackingScenarioContext, count: int) -> None:
    assert len(_page_views(ctx)) == count
    assert all(status == 200 for status in ctx.statuses)


@then(parsers.parse("{count:d} visitors are counted for today"))
@then(parsers.parse("{count:d} visitor is counted for today"))
def step_visitor_count(ctx: TrackingScenarioContext, count: int) -> None:
    start, end = parse_timeframe("t")
    engine = ctx.footfall().engine
    visitors = run_async(
        engine.count_visitors(lbl.HTTP_REQ_METRIC, BOT_FILTER, start, end)
    )
    assert visitors == count


@then(parsers.parse('the last page view has form factor "{form_factor}"'))
def step_form_factor(ctx: TrackingScenarioContext, form_factor: str) -> None:
    points = _page_views(ctx)
    assert points[0].labels[lbl.BROWSER_FORM_FACTOR_LABEL] == form_factor


@then(parsers.parse('the last page view has label "{name}" equal to "{value}"'))
def step_label_value(ctx: TrackingScenarioContext, name: str, value: str) -> None:
    points = _page_views(ctx)
    assert points[0].labels.get(name) == value
