"""Error types raised by footfall.

Enrichment failures (geo lookup, user-agent parsing) are never raised; they
degrade to empty labels inside the request classifier.
"""


class FootfallError(Exception):
    """Base class for all footfall errors."""


class StorageUnavailableError(FootfallError):
    """The label store could not open a reader or connection."""


class QueryError(FootfallError):
    """A query could not be executed.

    Raised when the label store is unavailable (the original
    StorageUnavailableError is chained as ``__cause__``) or when a label
    filter cannot be turned into a matcher.
    """


class StatValidationError(FootfallError):
    """A dashboard stat declaration is incomplete or contradictory."""


class ConfigurationError(FootfallError):
    """Invalid construction options. Raised at initialization, never per request."""
