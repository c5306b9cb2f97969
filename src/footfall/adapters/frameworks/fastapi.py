"""FastAPI adapter for the dashboard and pixel endpoints."""

import hmac
from collections.abc import Mapping
from typing import Annotated

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Query,
    Request,
    Response,
    status,
)
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from footfall.adapters.frameworks.asgi import (
    PIXEL_GIF,
    PIXEL_HEADERS,
    pixel_request,
    tracked_request_from_scope,
)
from footfall.core import labels as lbl
from footfall.core.encoding import encode_points, encode_report
from footfall.core.logs import log_exception
from footfall.core.timeframe import parse_timeframe
from footfall.runtime.embedded import Footfall


def create_footfall_router(
    footfall: Footfall, accounts: Mapping[str, str]
) -> APIRouter:
    """Create a FastAPI router with the dashboard and pixel endpoints.

    Request tracking itself is done by FootfallMiddleware, which is added to
    the application separately:

    ```python
    app.add_middleware(FootfallMiddleware, footfall=footfall)
    app.include_router(create_footfall_router(footfall, {"admin": "secret"}))
    ```

    Args:
        footfall: Runtime providing tracking and reporting.
        accounts: User names mapped to passwords for the dashboard.

    Returns:
        APIRouter with the dashboard, points export and, if configured,
        pixel endpoints.
    """
    router = APIRouter()
    security = HTTPBasic(realm="footfall")
    dashboard_path = footfall.options.dashboard_path.rstrip("/")

    def authenticate(
        credentials: Annotated[HTTPBasicCredentials, Depends(security)],
    ) -> str:
        expected = accounts.get(credentials.username)
        if expected is None or not hmac.compare_digest(
            expected.encode(), credentials.password.encode()
        ):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Incorrect username or password",
                headers={"WWW-Authenticate": 'Basic realm="footfall"'},
            )
        return credentials.username

    @router.get(dashboard_path)
    async def get_dashboard(
        _user: Annotated[str, Depends(authenticate)],
        t: str = Query(default=""),
    ) -> Response:
        """Return the dashboard report as JSON.

        Args:
            t: Timeframe token (t, 24h, 7d, 30d, 12m, mtd, ytd).
        """
        report = await footfall.report(t)
        return Response(
            content=encode_report(report),
            media_type="application/json",
        )

    @router.get(f"{dashboard_path}/points")
    async def get_points(
        _user: Annotated[str, Depends(authenticate)],
        metric: str = Query(default=lbl.HTTP_REQ_METRIC),
        t: str = Query(default=""),
    ) -> Response:
        """Return the points of a metric in NDJSON format, most recent first."""
        start, end = parse_timeframe(t)
        points = await footfall.engine.query(metric, {}, start, end)
        return Response(
            content=encode_points(points),
            media_type="application/x-ndjson",
        )

    if footfall.options.pixel_path is not None:

        @router.get(footfall.options.pixel_path)
        async def get_pixel(request: Request) -> Response:
            """Track the page embedding the pixel and return a 1x1 GIF."""
            tracked = pixel_request(tracked_request_from_scope(request.scope))
            if tracked is not None and footfall.should_track(tracked.path):
                try:
                    await footfall.track_http_request(tracked)
                except Exception:
                    log_exception("Error recording pixel request", path=tracked.path)
            return Response(
                content=PIXEL_GIF,
                media_type="image/gif",
                headers=dict(PIXEL_HEADERS),
            )

    return router
