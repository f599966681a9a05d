"""Bootstrap helpers for the catalog backend and shared state."""

from __future__ import annotations

import asyncio
import logging

from .backends import (
    BackendInitialisationError,
    CatalogBackend,
    JsonFileBackend,
    PostgRESTBackend,
)
from .catalog import CatalogState, CatalogStore
from .config import Settings
from .health import BackendHealthMonitor

logger = logging.getLogger(__name__)


def load_catalog_state(settings: Settings) -> tuple[CatalogState, CatalogStore]:
    """Load the last catalog snapshot of a remote backend, or start empty.

    The JSON backend owns its own file; for it the returned store points at
    the same file and the state is filled by ``initialise``.
    """

    if settings.backend == JsonFileBackend.backend_id:
        return CatalogState(), CatalogStore(settings.catalog_path)

    store = CatalogStore(settings.cache_path)
    try:
        state = store.load() or CatalogState()
    except (OSError, ValueError) as exc:
        logger.warning("cache_unreadable path=%s error=%s", store.path, exc)
        state = CatalogState()
    return state, store


async def initialise_backend(
    settings: Settings,
    catalog_state: CatalogState,
    health_monitor: BackendHealthMonitor,
    *,
    store: CatalogStore | None = None,
) -> CatalogBackend:
    backend: CatalogBackend
    if settings.backend == JsonFileBackend.backend_id:
        backend = JsonFileBackend(
            settings,
            catalog_state=catalog_state,
            health_monitor=health_monitor,
            store=store,
        )
    elif settings.backend == PostgRESTBackend.backend_id:
        backend = PostgRESTBackend(
            settings,
            catalog_state=catalog_state,
            health_monitor=health_monitor,
        )
    else:
        raise BackendInitialisationError(f"Unknown backend '{settings.backend}' in configuration")

    await backend.initialise()
    return backend


async def shutdown_backend(backend: CatalogBackend) -> None:
    try:
        await backend.shutdown()
    except asyncio.CancelledError:
        logger.debug("Backend shutdown cancelled; ignoring.")
    except Exception as exc:
        logger.warning("Backend shutdown raised an exception: %s", exc, exc_info=exc)
