"""Shared test fixtures for all test modules."""

from collections.abc import Callable
from pathlib import Path

import pytest

from footfall.adapters.storage.in_memory import InMemoryLabelStore
from footfall.core import labels as lbl
from footfall.core.config import FootfallOptions
from footfall.core.models import TrackedRequest
from footfall.runtime.embedded import Footfall
from tests.samples import CHROME_DESKTOP_UA, UnavailableLabelStore

try:
    import httpx
except ImportError:
    httpx = None


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    """Provide a temporary database path for SQLite label store tests."""
    return str(tmp_path / "footfall.db")


@pytest.fixture
def store() -> InMemoryLabelStore:
    """Fixture providing an empty in-memory label store."""
    return InMemoryLabelStore()


@pytest.fixture
def unavailable_store() -> UnavailableLabelStore:
    return UnavailableLabelStore()


@pytest.fixture
def footfall(store: InMemoryLabelStore) -> Footfall:
    """Runtime with default options over the in-memory store."""
    return Footfall(FootfallOptions(), store)


@pytest.fixture
def make_request() -> Callable[..., TrackedRequest]:
    """Factory fixture for TrackedRequest objects sent by a desktop browser.

    Keyword arguments override the defaults; ``headers`` are merged over the
    default browser headers.
    """

    def _make(
        method: str = "GET",
        path: str = "/",
        headers: dict[str, str] | None = None,
        query: dict[str, list[str]] | None = None,
        route: str = "",
        remote_addr: str = "203.0.113.7:51234",
    ) -> TrackedRequest:
        base_headers = {
            "user-agent": CHROME_DESKTOP_UA,
            "accept": "text/html",
            "accept-encoding": "gzip, br",
            "accept-language": "en-US,en;q=0.9",
        }
        base_headers.update(headers or {})
        return TrackedRequest(
            method=method,
            path=path,
            headers=base_headers,
            query=query or {},
            route=route,
            remote_addr=remote_addr,
        )

    return _make


@pytest.fixture
def append_point(
    store: InMemoryLabelStore,
) -> Callable[..., object]:
    """Factory fixture appending one point to the in-memory store.

    Usage:
        await append_point("http_req", 1000, visitor="a", **{"$http_path": "/"})
    """

    async def _append(
        metric: str,
        timestamp: int,
        value: float = 1.0,
        visitor: str = "",
        **labels: str,
    ) -> None:
        point_labels = {lbl.METRIC_NAME: metric, **labels}
        if visitor:
            point_labels[lbl.VISITOR_ID_LABEL] = visitor
        await store.append(point_labels, timestamp, value)

    return _append


# === ASGI Test Fixtures ===


@pytest.fixture
def basic_asgi_app():
    """Basic ASGI app fixture that returns 200 OK."""
    from footfall.adapters.frameworks.asgi import Receive, Scope, Send

    async def app(scope: Scope, receive: Receive, send: Send) -> None:
        """Simple ASGI app that returns 200 OK."""
        await send({"type": "http.response.start", "status": 200, "headers": []})
        await send({"type": "http.response.body", "body": b"OK"})

    return app


@pytest.fixture
def asgi_scope():
    """Factory fixture for creating ASGI scope dicts."""
    from footfall.adapters.frameworks.asgi import Scope

    def _scope(
        method: str = "GET",
        path: str = "/test",
        headers: list[tuple[bytes, bytes]] | None = None,
        query_string: bytes = b"",
        client: tuple[str, int] | None = ("203.0.113.7", 51234),
    ) -> Scope:
        scope: Scope = {
            "type": "http",
            "method": method,
            "path": path,
            "query_string": query_string,
            "headers": headers
            if headers is not None
            else [(b"user-agent", CHROME_DESKTOP_UA.encode())],
        }
        if client is not None:
            scope["client"] = client
        return scope

    return _scope


@pytest.fixture
def asgi_send_capture():
    """Fixture that returns a send callable and a responses list for capture."""

    responses: list[dict[str, object]] = []

    async def send(message: dict[str, object]) -> None:
        """Capture ASGI messages."""
        responses.append(message)

    return send, responses


@pytest.fixture
def asgi_test_client():
    """Factory fixture that creates an httpx.AsyncClient for ASGI testing.

    Usage:
        async def test_something(asgi_test_client):
            app = create_asgi_app(basic_app, footfall, accounts)
            async with asgi_test_client(app) as client:
                response = await client.get("/endpoint")
    """
    if httpx is None:
        pytest.skip("httpx not installed")

    def _get_client(app):
        """Return an AsyncClient context manager for the given app."""
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        )

    return _get_client
