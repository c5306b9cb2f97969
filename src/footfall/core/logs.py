"""Logging helpers.

footfall logs through the standard library ``logging`` module under the
``footfall`` logger hierarchy and installs no handlers of its own.
"""

import logging

_ROOT_LOGGER = "footfall"


def get_logger(name: str) -> logging.Logger:
    """Return a logger inside the footfall hierarchy.

    Args:
        name: Usually ``__name__`` of the calling module.

    Returns:
        Logger named ``name`` if it already lives under ``footfall``,
        otherwise ``footfall.<name>``.
    """
    if name == _ROOT_LOGGER or name.startswith(_ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_ROOT_LOGGER}.{name}")


def log_exception(message: str, **attributes: str | int | float | bool) -> None:
    """Log the exception currently being handled at ERROR level.

    Must be called from inside an ``except`` block.

    Args:
        message: Human readable description of what failed.
        **attributes: Structured fields attached to the record as ``extra``.
    """
    get_logger(_ROOT_LOGGER).error(message, exc_info=True, extra=attributes)
