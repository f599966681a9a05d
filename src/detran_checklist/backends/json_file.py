"""Catalog backend storing every service in a local JSON file."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from typing import Any

from ..catalog import (
    CatalogError,
    CatalogState,
    CatalogStore,
    build_service,
    find_section_owner,
    merge_service_edit,
    reorder_items,
    reorder_sections,
)
from ..config import Settings
from ..health import BackendHealthMonitor
from ..metrics import record_backend_request
from ..models import Service, ServiceCategory, ServiceInput
from ..seed import initial_services
from .base import BackendError, CatalogBackend, ServiceNotFoundError

logger = logging.getLogger(__name__)


class JsonFileBackend(CatalogBackend):
    """The catalog file is the source of truth; the shared state is its live copy."""

    backend_id = "json"
    display_name = "JSON file"

    def __init__(
        self,
        settings: Settings,
        *,
        catalog_state: CatalogState | None = None,
        health_monitor: BackendHealthMonitor | None = None,
        store: CatalogStore | None = None,
    ) -> None:
        super().__init__(settings, catalog_state=catalog_state)
        self._store = store or CatalogStore(settings.catalog_path)
        self._health_monitor = health_monitor
        self._write_lock = asyncio.Lock()

    async def initialise(self) -> None:
        try:
            loaded = await asyncio.to_thread(self._store.load)
        except (OSError, ValueError) as exc:
            raise BackendError(f"Unable to read catalog {self._store.path}: {exc}") from exc
        if loaded is not None:
            self.catalog_state.replace_all(loaded.services.values())
        elif self.settings.seed_initial_services:
            self.catalog_state.replace_all(initial_services())
            await self._save("seed")
            logger.info("catalog_seeded path=%s", self._store.path)
        logger.info(
            "backend_initialised backend=%s services=%d",
            self.backend_id,
            len(self.catalog_state.services),
        )

    async def _save(self, operation: str) -> None:
        start = time.perf_counter()
        async with self._write_lock:
            try:
                await asyncio.to_thread(self._store.save, self.catalog_state)
            except OSError as exc:
                self._record(operation, start, success=False, error=exc)
                raise BackendError(f"Unable to write catalog {self._store.path}: {exc}") from exc
        self._record(operation, start, success=True)

    def _record(
        self, operation: str, start: float, *, success: bool, error: Exception | None = None
    ) -> None:
        duration = time.perf_counter() - start
        record_backend_request(
            self.backend_id,
            operation,
            cache_hit=False,
            outcome="success" if success else "error",
            duration_seconds=duration,
        )
        if self._health_monitor:
            self._health_monitor.record_request(
                backend=self.backend_id,
                operation=operation,
                duration_ms=duration * 1000,
                success=success,
                error_message=str(error) if error else None,
            )

    def _require(self, service_id: str) -> Service:
        service = self.catalog_state.get_service(service_id)
        if service is None:
            raise ServiceNotFoundError(service_id)
        return service

    async def list_services(self, category: ServiceCategory | None = None) -> Sequence[Service]:
        return self.catalog_state.list_services(category)

    async def get_service(self, service_id: str) -> Service:
        return self._require(service_id)

    async def _commit(self, operation: str, service: Service) -> Service:
        # keep the previous tree so a failed write leaves memory unchanged
        previous = self.catalog_state.get_service(service.id)
        stored = self.catalog_state.upsert_service(service)
        try:
            await self._save(operation)
        except BackendError:
            if previous is None:
                self.catalog_state.remove_service(service.id)
            else:
                self.catalog_state.upsert_service(previous)
            raise
        return stored

    async def create_service(self, form: ServiceInput) -> Service:
        service = await self._commit("create", build_service(form))
        logger.info("service_created id=%s title=%s", service.id, service.title)
        return service

    async def update_service(self, service_id: str, form: ServiceInput) -> Service:
        existing = self._require(service_id)
        service = await self._commit("update", merge_service_edit(existing, form))
        logger.info("service_updated id=%s", service.id)
        return service

    async def delete_service(self, service_id: str) -> None:
        removed = self.catalog_state.remove_service(service_id)
        if removed is None:
            raise ServiceNotFoundError(service_id)
        try:
            await self._save("delete")
        except BackendError:
            self.catalog_state.upsert_service(removed)
            raise
        logger.info("service_deleted id=%s", service_id)

    async def reorder_sections(self, service_id: str, section_ids: Sequence[str]) -> Service:
        service = reorder_sections(self._require(service_id), section_ids)
        return await self._commit("reorder_sections", service)

    async def reorder_items(self, section_id: str, item_ids: Sequence[str]) -> Service:
        owner = find_section_owner(self.catalog_state.services.values(), section_id)
        if owner is None:
            raise CatalogError(f"Section '{section_id}' not found.")
        service = reorder_items(owner, section_id, item_ids)
        return await self._commit("reorder_items", service)

    async def import_services(self, services: Sequence[Service]) -> int:
        previous = {service.id: self.catalog_state.get_service(service.id) for service in services}
        for service in services:
            self.catalog_state.upsert_service(service)
        try:
            await self._save("import")
        except BackendError:
            for service_id, old in previous.items():
                if old is None:
                    self.catalog_state.remove_service(service_id)
                else:
                    self.catalog_state.upsert_service(old)
            raise
        return len(services)

    async def get_status(self) -> dict[str, Any]:
        status: dict[str, Any] = {
            "backend": self.backend_id,
            "path": str(self._store.path),
            "services": len(self.catalog_state.services),
        }
        if self._health_monitor:
            status["health"] = self._health_monitor.summary()
        return status
