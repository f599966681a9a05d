"""Core package for the DETRAN document checklist project."""

from .catalog import CatalogState, CatalogStore
from .completion import ChecklistViewer, CompletionState
from .config import Settings, get_settings
from .health import BackendHealthMonitor
from .search import ServiceSearchIndex

__all__ = [
    "BackendHealthMonitor",
    "CatalogState",
    "CatalogStore",
    "ChecklistViewer",
    "CompletionState",
    "ServiceSearchIndex",
    "Settings",
    "get_settings",
]
