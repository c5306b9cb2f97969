"""footfall: embeddable, privacy-preserving web analytics."""

from footfall.adapters.frameworks.asgi import (
    FootfallMiddleware,
    create_asgi_app,
    tracked_request_from_scope,
)
from footfall.adapters.storage import InMemoryLabelStore, SQLiteLabelStore
from footfall.core.config import FootfallOptions
from footfall.core.dashboard import (
    DEFAULT_DASHBOARD,
    Dashboard,
    DashboardStat,
    Report,
)
from footfall.core.errors import (
    ConfigurationError,
    FootfallError,
    QueryError,
    StatValidationError,
    StorageUnavailableError,
)
from footfall.core.logs import get_logger
from footfall.core.models import (
    AggregatedResult,
    AggregationMethod,
    Point,
    TrackedRequest,
)
from footfall.core.timeframe import parse_timeframe
from footfall.runtime import Footfall

__all__ = [
    "DEFAULT_DASHBOARD",
    "AggregatedResult",
    "AggregationMethod",
    "ConfigurationError",
    "Dashboard",
    "DashboardStat",
    "Footfall",
    "FootfallError",
    "FootfallMiddleware",
    "FootfallOptions",
    "InMemoryLabelStore",
    "Point",
    "QueryError",
    "Report",
    "SQLiteLabelStore",
    "StatValidationError",
    "StorageUnavailableError",
    "TrackedRequest",
    "create_asgi_app",
    "get_logger",
    "parse_timeframe",
    "tracked_request_from_scope",
]
