"""Label store adapters implementing LabelStorePort."""

from footfall.adapters.storage.in_memory import InMemoryLabelStore
from footfall.adapters.storage.sqlite import SQLiteLabelStore

__all__ = [
    "InMemoryLabelStore",
    "SQLiteLabelStore",
]
