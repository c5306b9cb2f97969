"""Example FastAPI application with page view tracking and the dashboard.

Run with:
    uvicorn examples.fastapi_example:app --reload

Endpoints:
    /                         - tracked page
    /users/{user_id}          - tracked page, recorded with its route template
    /signup                   - records a custom "signup" event
    /_footfall?t=7d           - dashboard report as JSON (admin / secret)
    /_footfall/points         - raw http_req points as NDJSON
    /_footfall/points?metric=signup
    /px.gif                   - tracking pixel for static pages

Static pages hosted elsewhere can be tracked with:
    <img src="http://localhost:8000/px.gif" alt="" width="1" height="1">
"""

import asyncio
import contextlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from footfall import Footfall, FootfallMiddleware, FootfallOptions
from footfall.adapters.frameworks.asgi import tracked_request_from_scope
from footfall.adapters.frameworks.fastapi import create_footfall_router

RETENTION_INTERVAL_SECONDS = 3600

footfall = Footfall.create(
    FootfallOptions(
        db_path="footfall.db",
        pixel_path="/px.gif",
        measure_request_duration=True,
        ignore_common_paths=True,
    )
)


async def _retention_loop() -> None:
    while True:
        await footfall.apply_retention()
        await asyncio.sleep(RETENTION_INTERVAL_SECONDS)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Run retention in the background and close the store on shutdown."""
    task = asyncio.create_task(_retention_loop())
    yield
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task
    await footfall.close()


app = FastAPI(title="Footfall Example", lifespan=lifespan)
app.add_middleware(FootfallMiddleware, footfall=footfall)
app.include_router(create_footfall_router(footfall, {"admin": "secret"}))


@app.get("/")
async def root() -> dict[str, str]:
    return {"message": "Hello! Check /_footfall for the dashboard."}


@app.get("/users/{user_id}")
async def get_user(user_id: int) -> dict[str, int]:
    """Every user page is counted under the route /users/{user_id}."""
    return {"id": user_id}


@app.post("/signup")
async def signup(request: Request, plan: str = "free") -> dict[str, str]:
    """Record a custom event carrying the visitor's request labels."""
    await footfall.track_with_request(
        "signup", {"plan": plan}, tracked_request_from_scope(request.scope)
    )
    return {"status": "ok"}
