"""Backend abstraction for catalog storage."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from ..catalog import CatalogState
from ..catalog import duplicate_service as copy_service
from ..config import Settings
from ..models import Service, ServiceCategory, ServiceInput


class BackendError(Exception):
    """Base exception raised for storage failures."""


class BackendInitialisationError(BackendError):
    """Raised when a backend cannot initialise correctly."""


class ServiceNotFoundError(BackendError, LookupError):
    """Raised when a service id does not resolve."""

    def __init__(self, service_id: str) -> None:
        super().__init__(f"Service '{service_id}' not found.")
        self.service_id = service_id


class CatalogBackend(ABC):
    """Abstract base class defining the catalog storage interface.

    Every successful call mirrors its outcome into the shared ``CatalogState``
    so callers can fall back to it when the backend is unreachable.
    """

    backend_id: str
    display_name: str
    # True when the catalog lives elsewhere and the local snapshot is a cache.
    mirrors_remote: bool = False

    def __init__(self, settings: Settings, *, catalog_state: CatalogState | None = None) -> None:
        self._settings = settings
        self._catalog_state = catalog_state or CatalogState()

    @property
    def settings(self) -> Settings:
        """Return application settings."""

        return self._settings

    @property
    def catalog_state(self) -> CatalogState:
        return self._catalog_state

    @abstractmethod
    async def initialise(self) -> None:
        """Perform any asynchronous setup required before serving requests."""

    @abstractmethod
    async def list_services(
        self, category: ServiceCategory | None = None
    ) -> Sequence[Service]:
        """Return services, optionally restricted to a category."""

    @abstractmethod
    async def get_service(self, service_id: str) -> Service:
        """Return one service with sections and items ordered by position."""

    @abstractmethod
    async def create_service(self, form: ServiceInput) -> Service:
        """Create a service from form input."""

    @abstractmethod
    async def update_service(self, service_id: str, form: ServiceInput) -> Service:
        """Apply an edit, keeping ids of records that still match."""

    @abstractmethod
    async def delete_service(self, service_id: str) -> None:
        """Delete a service with its sections and items."""

    @abstractmethod
    async def reorder_sections(self, service_id: str, section_ids: Sequence[str]) -> Service:
        """Persist a new order of a service's sections."""

    @abstractmethod
    async def reorder_items(self, section_id: str, item_ids: Sequence[str]) -> Service:
        """Persist a new order of a section's items; returns the owning service."""

    @abstractmethod
    async def import_services(self, services: Sequence[Service]) -> int:
        """Write complete service trees (used for seeding); returns the count."""

    async def duplicate_service(self, service_id: str) -> Service:
        """Copy a service under fresh ids."""

        original = await self.get_service(service_id)
        copy = copy_service(original)
        await self.import_services([copy])
        return copy

    async def get_status(self) -> dict[str, Any]:
        """Return backend status information."""

        return {
            "backend": self.backend_id,
        }

    async def shutdown(self) -> None:
        """Hook invoked during application shutdown to release resources."""

        return None
