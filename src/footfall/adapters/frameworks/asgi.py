"""ASGI adapter for request tracking, the dashboard endpoint and the pixel.

This adapter works with any ASGI server (uvicorn, hypercorn, daphne) and
wraps any ASGI application without requiring a web framework as a
dependency.
"""

import base64
import binascii
import hmac
import json
from collections.abc import Callable, Coroutine, Mapping
from dataclasses import replace
from typing import Any
from urllib.parse import parse_qs, urlsplit

from footfall.core import labels as lbl
from footfall.core.encoding import encode_points, encode_report
from footfall.core.logs import log_exception
from footfall.core.models import TrackedRequest
from footfall.core.timeframe import parse_timeframe
from footfall.runtime.embedded import Footfall

# ASGI type aliases
Scope = dict[str, Any]
Receive = Callable[[], Coroutine[Any, Any, dict[str, Any]]]
Send = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]
ASGIApp = Callable[[Scope, Receive, Send], Coroutine[Any, Any, None]]

# 1x1 transparent GIF
PIXEL_GIF = base64.b64decode(
    "R0lGODlhAQABAIAAAAAAAP///yH5BAEAAAAALAAAAAABAAEAAAIBRAA7"
)

PIXEL_HEADERS = (
    ("expires", "Thu, 01 Jan 1970 00:00:00 GMT"),
    (
        "cache-control",
        "private, max-age=0, no-cache, must-revalidate, proxy-revalidate",
    ),
)

AUTH_REALM = "footfall"


def _parse_query_params(scope: Scope) -> dict[str, list[str]]:
    """Parse query string from ASGI scope into parameter dictionary.

    Returns empty dict if query_string is missing or empty.
    """
    query_string = scope.get("query_string", b"").decode(errors="replace")
    return parse_qs(query_string)


def _first_param(params: dict[str, list[str]], name: str) -> str:
    values = params.get(name)
    return values[0] if values else ""


def _route_from_scope(scope: Scope) -> str:
    """Return the matched route template set by the framework's router.

    FastAPI stores the matched route object in ``scope["route"]``
    once routing happened; its ``path`` is the template (``/user/{id}``).
    """
    route = scope.get("route")
    if route is None:
        return ""
    if isinstance(route, str):
        return route
    return str(getattr(route, "path", ""))


def tracked_request_from_scope(scope: Scope) -> TrackedRequest:
    """Build a TrackedRequest from an ASGI HTTP scope.

    Args:
        scope: ASGI scope dictionary containing request metadata.

    Returns:
        Request with lower-cased header names, parsed query parameters and
        the peer address as ``host:port``.
    """
    headers: dict[str, str] = {}
    for name, value in scope.get("headers", []):
        # Repeated headers keep their first value.
        headers.setdefault(name.decode("latin-1").lower(), value.decode("latin-1"))

    remote_addr = ""
    client = scope.get("client")
    if client:
        host, port = client[0], client[1]
        remote_addr = f"[{host}]:{port}" if ":" in host else f"{host}:{port}"

    return TrackedRequest(
        method=scope.get("method", "GET"),
        path=scope.get("path", "/"),
        headers=headers,
        query=_parse_query_params(scope),
        route=_route_from_scope(scope),
        remote_addr=remote_addr,
    )


async def _send_response(
    send: Send,
    status: int,
    content_type: str,
    body: str | bytes,
    extra_headers: tuple[tuple[str, str], ...] = (),
) -> None:
    """Send an HTTP response with headers and body.

    Args:
        send: ASGI send callable for writing response.
        status: HTTP status code.
        content_type: Content-Type header value.
        body: Response body; strings are UTF-8 encoded.
        extra_headers: Additional (name, value) header pairs.
    """
    headers = [(b"content-type", content_type.encode())]
    headers.extend((name.encode(), value.encode()) for name, value in extra_headers)
    await send({"type": "http.response.start", "status": status, "headers": headers})
    payload = body.encode() if isinstance(body, str) else body
    await send({"type": "http.response.body", "body": payload})


async def _handle_endpoint(
    send: Send,
    endpoint_func: Callable[[], Coroutine[Any, Any, str]],
    content_type: str,
    log_message: str,
) -> None:
    """Execute an endpoint function with error handling and send response."""
    try:
        body = await endpoint_func()
        await _send_response(send, 200, content_type, body)
    except Exception:
        log_exception(log_message)
        error_body = json.dumps({"error": "Internal Server Error"})
        await _send_response(send, 500, "application/json", error_body)


def check_basic_auth(authorization: str, accounts: Mapping[str, str]) -> str | None:
    """Validate a Basic ``Authorization`` header value.

    Args:
        authorization: Raw header value, e.g. ``Basic YWRtaW46c2VjcmV0``.
        accounts: Allowed user names mapped to their passwords.

    Returns:
        The authenticated user name, or None if the credentials are missing
        or wrong.
    """
    scheme, _, encoded = authorization.partition(" ")
    if scheme.lower() != "basic" or not encoded:
        return None
    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    username, sep, password = decoded.partition(":")
    if not sep:
        return None
    expected = accounts.get(username)
    if expected is None:
        return None
    if not hmac.compare_digest(expected.encode(), password.encode()):
        return None
    return username


def pixel_request(request: TrackedRequest) -> TrackedRequest | None:
    """Turn a pixel hit into the request of the page that embeds the pixel.

    The tracked path comes from the ``Referer`` header, which is dropped so
    the page does not count as its own referrer.

    Returns:
        The rewritten request, or None if there is no usable ``Referer``.
    """
    referer = request.header("referer")
    if not referer:
        return None
    try:
        path = urlsplit(referer).path
    except ValueError:
        return None
    if not path:
        path = "/"
    headers = {k: v for k, v in request.headers.items() if k.lower() != "referer"}
    return replace(request, path=path, route="", headers=headers)


class FootfallMiddleware:
    """ASGI middleware that records a page view for every trackable request.

    The occurrence point is written after the wrapped app handled the
    request, so the route resolved by the framework's router is available.
    With ``measure_request_duration`` enabled a duration point is written as
    well. Exceptions from the wrapped app are re-raised after recording.
    """

    def __init__(self, app: ASGIApp, footfall: Footfall) -> None:
        """Initialize the middleware.

        Args:
            app: The ASGI application to wrap.
            footfall: Runtime used to classify and record requests.
        """
        self.app = app
        self.footfall = footfall

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI callable interface that processes requests through the wrapped app."""
        if scope["type"] != "http" or not self._trackable(scope["path"]):
            await self.app(scope, receive, send)
            return

        request = tracked_request_from_scope(scope)

        async def handle() -> None:
            try:
                await self.app(scope, receive, send)
            finally:
                request.route = _route_from_scope(scope)

        try:
            if self.footfall.options.measure_request_duration:
                await self.footfall.measure_http_request(request, handle)
            else:
                await handle()
        finally:
            await self._record(request)

    def _trackable(self, path: str) -> bool:
        # The pixel records the embedding page, never its own hit.
        if path == self.footfall.options.pixel_path:
            return False
        return self.footfall.should_track(path)

    async def _record(self, request: TrackedRequest) -> None:
        try:
            await self.footfall.track_http_request(request)
        except Exception:
            log_exception(
                "Error recording request", method=request.method, path=request.path
            )


def create_asgi_app(
    app: ASGIApp, footfall: Footfall, accounts: Mapping[str, str]
) -> ASGIApp:
    """Mount the dashboard and the pixel in front of an ASGI application.

    Routes:
        ``GET {dashboard_path}``: dashboard report as JSON, ``?t=`` timeframe.
        ``GET {dashboard_path}/points``: raw points as NDJSON, ``?metric=``
        (default ``http_req``) and ``?t=``.
        ``GET {pixel_path}``: tracking pixel, if a pixel path is configured.

    Both dashboard routes require basic authentication against ``accounts``.
    Every other request goes through FootfallMiddleware to ``app``.

    Args:
        app: The application to wrap.
        footfall: Runtime providing tracking and reporting.
        accounts: User names mapped to passwords for the dashboard.

    Returns:
        ASGI application callable.
    """
    options = footfall.options
    dashboard_path = options.dashboard_path.rstrip("/")
    points_path = f"{dashboard_path}/points"
    tracked_app = FootfallMiddleware(app, footfall)

    async def dashboard(scope: Scope, send: Send) -> None:
        request = tracked_request_from_scope(scope)
        if check_basic_auth(request.header("authorization"), accounts) is None:
            await _send_response(
                send,
                401,
                "text/plain",
                "Unauthorized",
                (("www-authenticate", f'Basic realm="{AUTH_REALM}"'),),
            )
            return

        params = request.query
        timeframe = _first_param(params, "t")
        if scope["path"].rstrip("/") == points_path:
            metric = _first_param(params, "metric") or lbl.HTTP_REQ_METRIC

            async def export_points() -> str:
                start, end = parse_timeframe(timeframe)
                points = await footfall.engine.query(metric, {}, start, end)
                return encode_points(points)

            await _handle_endpoint(
                send,
                export_points,
                "application/x-ndjson",
                "Error encoding points endpoint",
            )
        else:

            async def render_report() -> str:
                return encode_report(await footfall.report(timeframe))

            await _handle_endpoint(
                send,
                render_report,
                "application/json; charset=utf-8",
                "Error building dashboard report",
            )

    async def pixel(scope: Scope, send: Send) -> None:
        request = pixel_request(tracked_request_from_scope(scope))
        if request is not None and footfall.should_track(request.path):
            try:
                await footfall.track_http_request(request)
            except Exception:
                log_exception("Error recording pixel request", path=request.path)
        await _send_response(send, 200, "image/gif", PIXEL_GIF, PIXEL_HEADERS)

    async def asgi_app(scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await app(scope, receive, send)
            return

        path = scope["path"]
        if path.rstrip("/") in (dashboard_path, points_path):
            await dashboard(scope, send)
        elif options.pixel_path is not None and path == options.pixel_path:
            await pixel(scope, send)
        else:
            await tracked_app(scope, receive, send)

    return asgi_app
