"""Construction options for the embedded analytics runtime."""

from dataclasses import dataclass

from footfall.core.errors import ConfigurationError

DEFAULT_DASHBOARD_PATH = "/_footfall"
DEFAULT_RETENTION_SECONDS = 15 * 24 * 60 * 60


def _is_valid_path_arg(path: str) -> bool:
    return len(path) >= 2 and path.startswith("/")


@dataclass(frozen=True)
class FootfallOptions:
    """Options for building a Footfall runtime.

    Invalid values raise ConfigurationError when the options are created,
    so misconfiguration fails at startup rather than per request.

    Attributes:
        db_path: SQLite database file. None keeps points in memory.
        dashboard_path: Mount path of the dashboard. Requests under it are
            never tracked.
        pixel_path: Mount path of the tracking pixel. None disables it.
        geoip_db_path: MaxMind City database. None disables geo lookup.
        measure_request_duration: Record a duration point per request.
        ignore_common_paths: Skip favicon, static assets and common scraper
            probes.
        ignore_bots: Drop requests whose form factor resolves to bot.
        ignore_dnt: Track requests even if they send ``DNT: 1``.
        ignored_prefixes: Extra path prefixes that are never tracked.
        retention_seconds: How long points are kept by apply_retention().
    """

    db_path: str | None = None
    dashboard_path: str = DEFAULT_DASHBOARD_PATH
    pixel_path: str | None = None
    geoip_db_path: str | None = None
    measure_request_duration: bool = False
    ignore_common_paths: bool = False
    ignore_bots: bool = False
    ignore_dnt: bool = False
    ignored_prefixes: tuple[str, ...] = ()
    retention_seconds: int = DEFAULT_RETENTION_SECONDS

    def __post_init__(self) -> None:
        if not _is_valid_path_arg(self.dashboard_path):
            raise ConfigurationError(
                "dashboard_path must start with / and have at least one more character"
            )
        if self.pixel_path is not None and not _is_valid_path_arg(self.pixel_path):
            raise ConfigurationError(
                "pixel_path must start with / and have at least one more character"
            )
        if self.geoip_db_path is not None and not self.geoip_db_path:
            raise ConfigurationError("geoip_db_path is empty")
        if self.retention_seconds < 0:
            raise ConfigurationError("retention_seconds must not be negative")
        for prefix in self.ignored_prefixes:
            if not prefix:
                raise ConfigurationError(
                    "ignored_prefixes must not contain empty strings"
                )
        # Accept any iterable of prefixes but store an immutable tuple.
        object.__setattr__(self, "ignored_prefixes", tuple(self.ignored_prefixes))
