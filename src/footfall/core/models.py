"""Core domain models for analytics data."""

import re
from dataclasses import dataclass, field
from enum import Enum, IntEnum

Labels = dict[str, str]


@dataclass(frozen=True)
class Point:
    """A single recorded observation.

    Attributes:
        timestamp: Unix timestamp in seconds.
        name: Metric name (e.g., http_req).
        value: The recorded value, 1 for occurrence counting.
        labels: Label key/value pairs, without the reserved metric-name key.
    """

    timestamp: int
    name: str
    value: float = 1.0
    labels: Labels = field(default_factory=dict)


@dataclass(frozen=True)
class Series:
    """All samples of one label set returned by a label store range query.

    Attributes:
        labels: Full label set, including the reserved metric-name key.
        samples: (timestamp, value) pairs in ascending timestamp order.
    """

    labels: Labels
    samples: list[tuple[int, float]] = field(default_factory=list)


@dataclass(frozen=True)
class AggregatedResult:
    """A (group key, reduced value) pair produced by grouping points."""

    label: str
    value: float


class AggregationMethod(IntEnum):
    """How grouped points are reduced to a single value."""

    COUNT = 0
    SUM = 1
    AVG = 2


class MatchType(Enum):
    EQUAL = "="
    NOT_EQUAL = "!="
    REGEX = "=~"


@dataclass(frozen=True)
class LabelMatcher:
    """Constraint on a single label of a series.

    A label that is absent from a series compares as the empty string, so a
    NOT_EQUAL matcher accepts series that lack the label entirely.
    """

    type: MatchType
    name: str
    value: str

    def matches(self, labels: Labels) -> bool:
        actual = labels.get(self.name, "")
        if self.type is MatchType.EQUAL:
            return actual == self.value
        if self.type is MatchType.NOT_EQUAL:
            return actual != self.value
        return re.fullmatch(self.value, actual) is not None


@dataclass
class TrackedRequest:
    """The parts of an HTTP request needed to classify it.

    Attributes:
        method: HTTP method.
        path: Request path, without query string.
        headers: Request headers. Lookups through header() are case-insensitive.
        query: Query parameters as returned by urllib.parse.parse_qs.
        route: Matched route template (e.g. /user/{id}) when the framework knows it.
        client_ip: Client address if already resolved by the host.
        remote_addr: Transport-level peer address, "host:port".
    """

    method: str
    path: str
    headers: dict[str, str] = field(default_factory=dict)
    query: dict[str, list[str]] = field(default_factory=dict)
    route: str = ""
    client_ip: str = ""
    remote_addr: str = ""

    def header(self, name: str) -> str:
        """Return the first value of a header, or an empty string."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return ""

    def query_param(self, name: str) -> str:
        values = self.query.get(name)
        return values[0] if values else ""


@dataclass(frozen=True)
class UserAgent:
    """Result of parsing a User-Agent header."""

    name: str = ""
    version: str = ""
    device: str = ""
    os: str = ""
    os_version: str = ""
    is_desktop: bool = False
    is_mobile: bool = False
    is_tablet: bool = False
    is_bot: bool = False


@dataclass(frozen=True)
class Location:
    """Geographic location resolved from an IP address."""

    country: str = ""
    region: str = ""
    city: str = ""


@dataclass(frozen=True)
class Classification:
    """Outcome of classifying a tracked request.

    Attributes:
        labels: Merged label set to store.
        dropped: True when the request must not be recorded (opt-out or bot).
        reason: Why the request was dropped, empty otherwise.
    """

    labels: Labels
    dropped: bool = False
    reason: str = ""
