"""Runtime wiring for embedding footfall in a web server."""

from footfall.runtime.embedded import Footfall

__all__ = ["Footfall"]
