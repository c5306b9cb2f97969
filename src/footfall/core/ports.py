"""Port interfaces for the collaborators of the analytics core.

These protocols define the contracts that adapters must implement.
The core depends only on these interfaces, not concrete implementations.
"""

from collections.abc import AsyncIterator, Mapping, Sequence
from typing import Protocol, runtime_checkable

from footfall.core.models import LabelMatcher, Location, Series, UserAgent


@runtime_checkable
class LabelStorePort(Protocol):
    """Port for append-only labeled time-series storage.

    Examples: InMemoryLabelStore, SQLiteLabelStore.
    Implementations must be safe for concurrent use by several request
    handlers; the core does no locking of its own.
    """

    async def append(
        self, labels: Mapping[str, str], timestamp: int, value: float
    ) -> None:
        """Append one point.

        Args:
            labels: Label set including the reserved metric-name key.
            timestamp: Unix timestamp in seconds.
            value: Point value.
        """
        ...

    def range_query(
        self, matchers: Sequence[LabelMatcher], start: int, end: int
    ) -> AsyncIterator[Series]:
        """Yield every series matching all matchers within [start, end).

        Series without samples in the range are not yielded.

        Raises:
            StorageUnavailableError: if a reader cannot be opened.
        """
        ...


@runtime_checkable
class GeoLookupPort(Protocol):
    """Port for IP-to-location resolution."""

    def lookup(self, ip: str) -> Location | None:
        """Return the location of an IP address, or None if unknown."""
        ...


@runtime_checkable
class UserAgentParserPort(Protocol):
    """Port for User-Agent header classification."""

    def parse(self, user_agent: str) -> UserAgent:
        """Parse a raw User-Agent header value."""
        ...
