"""Catalog backend talking to a PostgREST (Supabase) API."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Sequence
from typing import Any, Dict, Iterable, List

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..catalog import (
    CatalogError,
    CatalogState,
    build_service,
    merge_service_edit,
    reorder_items,
    reorder_sections,
    service_from_dict,
)
from ..config import Settings
from ..health import BackendHealthMonitor
from ..models import ChecklistSection, Service, ServiceCategory, ServiceInput
from ..rest_client import RestClient
from .base import BackendError, BackendInitialisationError, CatalogBackend, ServiceNotFoundError

logger = logging.getLogger(__name__)

UPSERT_HEADERS = {"Prefer": "resolution=merge-duplicates,return=minimal"}
MINIMAL_HEADERS = {"Prefer": "return=minimal"}


def _in_filter(ids: Iterable[str]) -> str:
    return "in.(" + ",".join(ids) + ")"


def service_row(service: Service) -> dict[str, Any]:
    return {
        "id": service.id,
        "title": service.title,
        "category": service.category.value,
        "description": service.description,
    }


def section_row(service_id: str, section: ChecklistSection) -> dict[str, Any]:
    return {
        "id": section.id,
        "service_id": service_id,
        "title": section.title,
        "is_optional": section.is_optional,
        "is_alternative": section.is_alternative,
        "position": section.position,
    }


def item_rows(section: ChecklistSection) -> List[dict[str, Any]]:
    return [
        {
            "id": item.id,
            "checklist_id": section.id,
            "text": item.text,
            "observation": item.observation,
            "tags": [tag.value for tag in item.tags],
            "is_optional": item.is_optional,
            "position": item.position,
        }
        for item in section.items
    ]


class PostgRESTBackend(CatalogBackend):
    """Reads and writes the services/checklists/checklist_items tables."""

    backend_id = "postgrest"
    display_name = "PostgREST"
    mirrors_remote = True

    def __init__(
        self,
        settings: Settings,
        *,
        catalog_state: CatalogState | None = None,
        health_monitor: BackendHealthMonitor | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(settings, catalog_state=catalog_state)
        if settings.postgrest_url is None:
            raise BackendInitialisationError("CHECKLIST_POSTGREST_URL is required for the postgrest backend")
        headers: dict[str, str] = {}
        if settings.postgrest_api_key:
            headers["apikey"] = settings.postgrest_api_key
            headers["Authorization"] = f"Bearer {settings.postgrest_api_key}"
        self._health_monitor = health_monitor
        self._client = RestClient(
            settings,
            base_url=str(settings.postgrest_url),
            backend=self.backend_id,
            headers=headers,
            monitor=health_monitor,
            transport=transport,
        )
        prefix = settings.table_prefix
        self._services_table = f"{prefix}services"
        self._sections_table = f"{prefix}checklists"
        self._items_table = f"{prefix}checklist_items"

    async def initialise(self) -> None:
        logger.info("backend_initialised backend=%s url=%s", self.backend_id, self.settings.postgrest_url)

    async def shutdown(self) -> None:
        await self._client.close()

    @retry(
        wait=wait_exponential(multiplier=1, min=1, max=6),
        stop=stop_after_attempt(3),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _select(
        self, table: str, params: Dict[str, str], *, use_cache: bool = True
    ) -> List[dict[str, Any]]:
        rows = await self._client.get_json(table, params={"select": "*", **params}, use_cache=use_cache)
        return list(rows or [])

    async def _write(
        self,
        method: str,
        table: str,
        *,
        params: Dict[str, str] | None = None,
        body: Any = None,
        headers: Dict[str, str] | None = None,
    ) -> None:
        await self._client.send(method, table, params=params, json_body=body, headers=headers or MINIMAL_HEADERS)

    async def _load_trees(
        self, service_rows: Sequence[dict[str, Any]], *, use_cache: bool = True
    ) -> List[Service]:
        if not service_rows:
            return []
        service_ids = [str(row["id"]) for row in service_rows]
        section_rows = await self._select(
            self._sections_table,
            {"service_id": _in_filter(service_ids), "order": "position.asc"},
            use_cache=use_cache,
        )
        item_rows_: List[dict[str, Any]] = []
        if section_rows:
            item_rows_ = await self._select(
                self._items_table,
                {
                    "checklist_id": _in_filter(str(row["id"]) for row in section_rows),
                    "order": "position.asc",
                },
                use_cache=use_cache,
            )

        items_by_section: Dict[str, List[dict[str, Any]]] = defaultdict(list)
        for row in item_rows_:
            items_by_section[str(row["checklist_id"])].append(row)
        sections_by_service: Dict[str, List[dict[str, Any]]] = defaultdict(list)
        for row in section_rows:
            sections_by_service[str(row["service_id"])].append(
                {**row, "items": items_by_section.get(str(row["id"]), [])}
            )

        return [
            service_from_dict({**row, "sections": sections_by_service.get(str(row["id"]), [])})
            for row in service_rows
        ]

    async def _fetch_service(self, service_id: str, *, use_cache: bool = True) -> Service:
        rows = await self._select(
            self._services_table, {"id": f"eq.{service_id}"}, use_cache=use_cache
        )
        if not rows:
            raise ServiceNotFoundError(service_id)
        (service,) = await self._load_trees(rows[:1], use_cache=use_cache)
        return self.catalog_state.upsert_service(service)

    async def list_services(self, category: ServiceCategory | None = None) -> Sequence[Service]:
        params = {"order": "title.asc"}
        if category is not None:
            params["category"] = f"eq.{ServiceCategory(category).value}"
        try:
            rows = await self._select(self._services_table, params)
            services = await self._load_trees(rows)
        except httpx.HTTPError as exc:
            raise BackendError(f"Unable to list services: {exc}") from exc
        if category is None:
            self.catalog_state.replace_all(services)
        else:
            for service in services:
                self.catalog_state.upsert_service(service)
        return services

    async def get_service(self, service_id: str) -> Service:
        try:
            return await self._fetch_service(service_id)
        except httpx.HTTPError as exc:
            raise BackendError(f"Unable to load service '{service_id}': {exc}") from exc

    async def _insert_tree(self, service: Service, *, upsert: bool) -> None:
        headers = UPSERT_HEADERS if upsert else MINIMAL_HEADERS
        await self._write("POST", self._services_table, body=[service_row(service)], headers=headers)
        if service.sections:
            await self._write(
                "POST",
                self._sections_table,
                body=[section_row(service.id, section) for section in service.sections],
                headers=headers,
            )
        rows = [row for section in service.sections for row in item_rows(section)]
        if rows:
            await self._write("POST", self._items_table, body=rows, headers=headers)

    async def create_service(self, form: ServiceInput) -> Service:
        service = build_service(form)
        try:
            await self._insert_tree(service, upsert=False)
        except httpx.HTTPError as exc:
            raise BackendError(f"Unable to create service: {exc}") from exc
        logger.info("service_created id=%s title=%s", service.id, service.title)
        return self.catalog_state.upsert_service(service)

    async def update_service(self, service_id: str, form: ServiceInput) -> Service:
        try:
            existing = await self._fetch_service(service_id, use_cache=False)
            service = merge_service_edit(existing, form)

            kept_sections = {section.id for section in service.sections}
            kept_items = {item.id for section in service.sections for item in section.items}
            stale_items = [
                item.id
                for section in existing.sections
                for item in section.items
                if item.id not in kept_items
            ]
            stale_sections = [
                section.id for section in existing.sections if section.id not in kept_sections
            ]

            if stale_items:
                await self._write("DELETE", self._items_table, params={"id": _in_filter(stale_items)})
            if stale_sections:
                await self._write(
                    "DELETE", self._sections_table, params={"id": _in_filter(stale_sections)}
                )
            await self._write(
                "PATCH",
                self._services_table,
                params={"id": f"eq.{service.id}"},
                body={key: value for key, value in service_row(service).items() if key != "id"},
            )
            await self._insert_tree(service, upsert=True)
        except httpx.HTTPError as exc:
            raise BackendError(f"Unable to update service '{service_id}': {exc}") from exc
        logger.info("service_updated id=%s", service.id)
        return self.catalog_state.upsert_service(service)

    async def delete_service(self, service_id: str) -> None:
        try:
            existing = await self._fetch_service(service_id, use_cache=False)
            section_ids = [section.id for section in existing.sections]
            if section_ids:
                await self._write(
                    "DELETE", self._items_table, params={"checklist_id": _in_filter(section_ids)}
                )
                await self._write(
                    "DELETE", self._sections_table, params={"service_id": f"eq.{service_id}"}
                )
            await self._write("DELETE", self._services_table, params={"id": f"eq.{service_id}"})
        except httpx.HTTPError as exc:
            raise BackendError(f"Unable to delete service '{service_id}': {exc}") from exc
        self.catalog_state.remove_service(service_id)
        logger.info("service_deleted id=%s", service_id)

    async def _patch_positions(self, table: str, ids: Sequence[str]) -> None:
        await asyncio.gather(
            *(
                self._write("PATCH", table, params={"id": f"eq.{row_id}"}, body={"position": index})
                for index, row_id in enumerate(ids)
            )
        )

    async def reorder_sections(self, service_id: str, section_ids: Sequence[str]) -> Service:
        try:
            existing = await self._fetch_service(service_id, use_cache=False)
            service = reorder_sections(existing, section_ids)
            await self._patch_positions(self._sections_table, section_ids)
        except httpx.HTTPError as exc:
            raise BackendError(f"Unable to reorder sections of '{service_id}': {exc}") from exc
        return self.catalog_state.upsert_service(service)

    async def reorder_items(self, section_id: str, item_ids: Sequence[str]) -> Service:
        try:
            rows = await self._select(
                self._sections_table, {"id": f"eq.{section_id}"}, use_cache=False
            )
            if not rows:
                raise CatalogError(f"Section '{section_id}' not found.")
            existing = await self._fetch_service(str(rows[0]["service_id"]), use_cache=False)
            service = reorder_items(existing, section_id, item_ids)
            await self._patch_positions(self._items_table, item_ids)
        except httpx.HTTPError as exc:
            raise BackendError(f"Unable to reorder items of '{section_id}': {exc}") from exc
        return self.catalog_state.upsert_service(service)

    async def import_services(self, services: Sequence[Service]) -> int:
        try:
            for service in services:
                await self._insert_tree(service, upsert=True)
                self.catalog_state.upsert_service(service)
        except httpx.HTTPError as exc:
            raise BackendError(f"Unable to import services: {exc}") from exc
        return len(services)

    async def get_status(self) -> dict[str, Any]:
        status: dict[str, Any] = {
            "backend": self.backend_id,
            "url": str(self.settings.postgrest_url),
            "services_cached": len(self.catalog_state.services),
        }
        if self._health_monitor:
            status["health"] = self._health_monitor.summary()
        return status
