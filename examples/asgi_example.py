"""Example of tracking a plain ASGI application without a framework.

Run with:
    uvicorn examples.asgi_example:app

Endpoints:
    /                 - tracked page
    /health           - never tracked (ignored prefix)
    /stats            - dashboard report as JSON (admin / secret)
    /stats/points     - raw points as NDJSON

Query the dashboard:
    curl -u admin:secret 'http://localhost:8000/stats?t=24h'
"""

from footfall import Footfall, FootfallOptions, create_asgi_app
from footfall.adapters.frameworks.asgi import Receive, Scope, Send

footfall = Footfall.create(
    FootfallOptions(
        db_path=":memory:",
        dashboard_path="/stats",
        ignored_prefixes=("/health",),
    )
)


async def hello_app(scope: Scope, receive: Receive, send: Send) -> None:
    """Minimal ASGI application."""
    if scope["type"] != "http":
        return
    await send(
        {
            "type": "http.response.start",
            "status": 200,
            "headers": [(b"content-type", b"text/plain")],
        }
    )
    await send({"type": "http.response.body", "body": b"Hello, world!"})


app = create_asgi_app(hello_app, footfall, {"admin": "secret"})
