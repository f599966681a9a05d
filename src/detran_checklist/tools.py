"""MCP tool handlers that orchestrate backend calls, the viewer and auth."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from . import engine
from .auth import AuthService
from .backends import BackendError, CatalogBackend, ServiceNotFoundError
from .catalog import CatalogState
from .completion import ChecklistViewer, ServiceView
from .metrics import record_tool_invocation
from .models import Service, ServiceCategory, ServiceInput, ServiceSummary, User, UserInput
from .search import ServiceSearchIndex

logger = logging.getLogger(__name__)

PersistCallable = Callable[[], Awaitable[None]] | None


async def _persist(persist_state: PersistCallable) -> None:
    if not persist_state:
        return
    await persist_state()


@contextmanager
def _instrumented(tool: str) -> Iterator[None]:
    start = time.perf_counter()
    status = "success"
    try:
        yield
    except Exception:
        status = "error"
        raise
    finally:
        record_tool_invocation(tool, status, time.perf_counter() - start)


def _with_warnings(payload: dict[str, Any], warnings: list[str]) -> dict[str, Any]:
    if warnings:
        payload["warnings"] = warnings
    return payload


async def _load_services(
    backend: CatalogBackend,
    catalog_state: CatalogState,
    *,
    category: ServiceCategory | None,
    warnings: list[str],
    persist_state: PersistCallable,
) -> tuple[list[Service], str]:
    try:
        services = list(await backend.list_services(category))
        await _persist(persist_state)
        return services, "live"
    except BackendError as exc:
        cached = catalog_state.list_services(category)
        if not cached:
            raise
        logger.warning("list_fallback_to_cache backend=%s error=%s", backend.backend_id, exc)
        warnings.append(str(exc))
        return cached, "cache"


async def _load_service(
    backend: CatalogBackend,
    catalog_state: CatalogState,
    *,
    service_id: str,
    warnings: list[str],
    persist_state: PersistCallable,
) -> tuple[Service, str]:
    try:
        service = await backend.get_service(service_id)
        await _persist(persist_state)
        return service, "live"
    except ServiceNotFoundError:
        raise
    except BackendError as exc:
        cached = catalog_state.get_service(service_id)
        if cached is None:
            raise
        logger.warning("get_fallback_to_cache service=%s error=%s", service_id, exc)
        warnings.append(str(exc))
        return cached, "cache"


def _service_view_payload(
    view: ServiceView, *, source: str, warnings: list[str] | None = None
) -> dict[str, Any]:
    merged = view.merged()
    payload: dict[str, Any] = {
        "source": source,
        "service": merged.model_dump(mode="json"),
        "progress": engine.service_progress(merged).model_dump(mode="json"),
        "item_progress": engine.item_progress(merged).model_dump(mode="json"),
        "sections": [
            summary.model_dump(mode="json") for summary in engine.section_summaries(merged)
        ],
        "is_complete": engine.is_service_complete(merged),
    }
    return _with_warnings(payload, warnings or [])


def _session_payload(user: User | None) -> dict[str, Any]:
    return {
        "authenticated": user is not None,
        "user": user.model_dump(mode="json") if user is not None else None,
    }


def _refresh_open_view(viewer: ChecklistViewer, service: Service) -> None:
    view = viewer.view_for(service.id)
    if view is not None:
        view.refresh(service)
        logger.debug("view_refreshed service=%s", service.id)


async def _ensure_view(
    backend: CatalogBackend,
    catalog_state: CatalogState,
    viewer: ChecklistViewer,
    *,
    service_id: str,
    warnings: list[str],
    persist_state: PersistCallable,
) -> tuple[ServiceView, str]:
    view = viewer.view_for(service_id)
    if view is not None:
        return view, "session"
    service, source = await _load_service(
        backend,
        catalog_state,
        service_id=service_id,
        warnings=warnings,
        persist_state=persist_state,
    )
    return viewer.open(service), source


# Viewer tools


async def list_services_tool(
    backend: CatalogBackend,
    catalog_state: CatalogState,
    *,
    category: str | None = None,
    persist_state: PersistCallable = None,
) -> dict[str, Any]:
    warnings: list[str] = []
    wanted = ServiceCategory(category) if category is not None else None
    with _instrumented("list_services"):
        services, source = await _load_services(
            backend,
            catalog_state,
            category=wanted,
            warnings=warnings,
            persist_state=persist_state,
        )

    payload: dict[str, Any] = {
        "source": source,
        "services": [
            ServiceSummary.from_service(service).model_dump(mode="json") for service in services
        ],
    }
    return _with_warnings(payload, warnings)


async def search_services_tool(
    backend: CatalogBackend,
    catalog_state: CatalogState,
    *,
    query: str,
    category: str | None = None,
    limit: int | None = None,
    persist_state: PersistCallable = None,
) -> dict[str, Any]:
    warnings: list[str] = []
    effective_limit = limit or 10
    with _instrumented("search_services"):
        _, source = await _load_services(
            backend,
            catalog_state,
            category=None,
            warnings=warnings,
            persist_state=persist_state,
        )
        index = ServiceSearchIndex(catalog_state)
        results = index.search(query, category=category, limit=effective_limit)

    payload: dict[str, Any] = {
        "source": source,
        "results": [result.model_dump(mode="json") for result in results],
        "limit": effective_limit,
    }
    return _with_warnings(payload, warnings)


async def get_service_tool(
    backend: CatalogBackend,
    catalog_state: CatalogState,
    viewer: ChecklistViewer,
    *,
    service_id: str,
    persist_state: PersistCallable = None,
) -> dict[str, Any]:
    warnings: list[str] = []
    with _instrumented("get_service"):
        service, source = await _load_service(
            backend,
            catalog_state,
            service_id=service_id,
            warnings=warnings,
            persist_state=persist_state,
        )
        view = viewer.open(service)
    return _service_view_payload(view, source=source, warnings=warnings)


async def toggle_item_tool(
    backend: CatalogBackend,
    catalog_state: CatalogState,
    viewer: ChecklistViewer,
    *,
    service_id: str,
    section_id: str,
    item_id: str,
    persist_state: PersistCallable = None,
) -> dict[str, Any]:
    warnings: list[str] = []
    with _instrumented("toggle_item"):
        view, source = await _ensure_view(
            backend,
            catalog_state,
            viewer,
            service_id=service_id,
            warnings=warnings,
            persist_state=persist_state,
        )
        view.toggle(section_id, item_id)
    return _service_view_payload(view, source=source, warnings=warnings)


async def reset_checklist_tool(
    backend: CatalogBackend,
    catalog_state: CatalogState,
    viewer: ChecklistViewer,
    *,
    service_id: str,
    persist_state: PersistCallable = None,
) -> dict[str, Any]:
    warnings: list[str] = []
    with _instrumented("reset_checklist"):
        view, source = await _ensure_view(
            backend,
            catalog_state,
            viewer,
            service_id=service_id,
            warnings=warnings,
            persist_state=persist_state,
        )
        view.reset()
    return _service_view_payload(view, source=source, warnings=warnings)


async def get_progress_tool(viewer: ChecklistViewer) -> dict[str, Any]:
    with _instrumented("get_progress"):
        view = viewer.current
        if view is None:
            raise ValueError("No service is open; call get_service first.")
    return _service_view_payload(view, source="session")


async def leave_service_tool(viewer: ChecklistViewer) -> dict[str, Any]:
    with _instrumented("leave_service"):
        view = viewer.current
        service_id = view.service_id if view is not None else None
        viewer.leave()
    return {"left": service_id is not None, "service_id": service_id}


# Auth tools


async def login_tool(auth: AuthService, *, email: str, password: str) -> dict[str, Any]:
    with _instrumented("login"):
        auth.login(email, password)
    return _session_payload(auth.current_user())


async def logout_tool(auth: AuthService) -> dict[str, Any]:
    with _instrumented("logout"):
        auth.logout()
    return _session_payload(None)


async def whoami_tool(auth: AuthService) -> dict[str, Any]:
    with _instrumented("whoami"):
        user = auth.current_user()
    return _session_payload(user)


# Admin tools


async def create_service_tool(
    backend: CatalogBackend,
    auth: AuthService,
    *,
    service: dict[str, Any],
    persist_state: PersistCallable = None,
) -> dict[str, Any]:
    with _instrumented("create_service"):
        auth.require_admin()
        form = ServiceInput.model_validate(service)
        created = await backend.create_service(form)
        await _persist(persist_state)
    return {"service": created.model_dump(mode="json")}


async def update_service_tool(
    backend: CatalogBackend,
    auth: AuthService,
    viewer: ChecklistViewer,
    *,
    service_id: str,
    service: dict[str, Any],
    persist_state: PersistCallable = None,
) -> dict[str, Any]:
    with _instrumented("update_service"):
        auth.require_admin()
        form = ServiceInput.model_validate(service)
        updated = await backend.update_service(service_id, form)
        _refresh_open_view(viewer, updated)
        await _persist(persist_state)
    return {"service": updated.model_dump(mode="json")}


async def duplicate_service_tool(
    backend: CatalogBackend,
    auth: AuthService,
    *,
    service_id: str,
    persist_state: PersistCallable = None,
) -> dict[str, Any]:
    with _instrumented("duplicate_service"):
        auth.require_admin()
        copy = await backend.duplicate_service(service_id)
        await _persist(persist_state)
    return {"service": copy.model_dump(mode="json")}


async def delete_service_tool(
    backend: CatalogBackend,
    auth: AuthService,
    viewer: ChecklistViewer,
    *,
    service_id: str,
    persist_state: PersistCallable = None,
) -> dict[str, Any]:
    with _instrumented("delete_service"):
        auth.require_admin()
        await backend.delete_service(service_id)
        if viewer.view_for(service_id) is not None:
            viewer.leave()
        await _persist(persist_state)
    return {"deleted": True, "service_id": service_id}


async def reorder_sections_tool(
    backend: CatalogBackend,
    auth: AuthService,
    viewer: ChecklistViewer,
    *,
    service_id: str,
    section_ids: Sequence[str],
    persist_state: PersistCallable = None,
) -> dict[str, Any]:
    with _instrumented("reorder_sections"):
        auth.require_admin()
        service = await backend.reorder_sections(service_id, list(section_ids))
        _refresh_open_view(viewer, service)
        await _persist(persist_state)
    return {"service": service.model_dump(mode="json")}


async def reorder_items_tool(
    backend: CatalogBackend,
    auth: AuthService,
    viewer: ChecklistViewer,
    *,
    section_id: str,
    item_ids: Sequence[str],
    persist_state: PersistCallable = None,
) -> dict[str, Any]:
    with _instrumented("reorder_items"):
        auth.require_admin()
        service = await backend.reorder_items(section_id, list(item_ids))
        _refresh_open_view(viewer, service)
        await _persist(persist_state)
    return {"service": service.model_dump(mode="json")}


async def list_users_tool(auth: AuthService) -> dict[str, Any]:
    with _instrumented("list_users"):
        users = auth.list_users()
    return {"users": [user.model_dump(mode="json") for user in users]}


async def create_user_tool(auth: AuthService, **fields: Any) -> dict[str, Any]:
    with _instrumented("create_user"):
        auth.require_admin()
        user = auth.create_user(UserInput.model_validate(fields))
    return {"user": user.model_dump(mode="json")}


async def remove_user_tool(auth: AuthService, *, user_id: str) -> dict[str, Any]:
    with _instrumented("remove_user"):
        auth.remove_user(user_id)
    return {"removed": True, "user_id": user_id}


# Operator tools


async def get_backend_status_tool(
    backend: CatalogBackend,
    catalog_state: CatalogState,
    viewer: ChecklistViewer,
) -> dict[str, Any]:
    with _instrumented("get_backend_status"):
        status = await backend.get_status()
    view = viewer.current
    return {
        "backend": status,
        "catalog": {
            "services_cached": len(catalog_state.services),
            "open_service_id": view.service_id if view is not None else None,
        },
    }
