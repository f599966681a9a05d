"""Catalog storage backends."""

from .base import (
    BackendError,
    BackendInitialisationError,
    CatalogBackend,
    ServiceNotFoundError,
)
from .json_file import JsonFileBackend
from .postgrest import PostgRESTBackend

__all__ = [
    "BackendError",
    "BackendInitialisationError",
    "CatalogBackend",
    "JsonFileBackend",
    "PostgRESTBackend",
    "ServiceNotFoundError",
]
