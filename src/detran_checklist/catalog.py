"""In-memory catalog of services, editing helpers and JSON snapshots."""

from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path
from typing import Dict, Iterable, List, Sequence

from .legacy import normalise_service_payload
from .models import (
    ChecklistItem,
    ChecklistSection,
    Service,
    ServiceCategory,
    ServiceInput,
)

logger = logging.getLogger(__name__)

# Completion is session state; it never leaves the process.
PERSISTED_EXCLUDE = {"sections": {"__all__": {"items": {"__all__": {"is_completed"}}}}}

COPY_SUFFIX = " (cópia)"


class CatalogError(ValueError):
    """Raised when a catalog edit cannot be applied."""


def new_id() -> str:
    return str(uuid.uuid4())


def service_to_dict(service: Service) -> dict[str, object]:
    return service.model_dump(mode="json", exclude=PERSISTED_EXCLUDE)


def service_from_dict(payload: dict[str, object]) -> Service:
    return strip_completion(Service.model_validate(normalise_service_payload(payload)))


def strip_completion(service: Service) -> Service:
    if not any(item.is_completed for section in service.sections for item in section.items):
        return service
    return Service.model_validate(service_to_dict(service))


def build_service(form: ServiceInput, *, service_id: str | None = None) -> Service:
    """Create a brand new service tree from form input."""

    sections = [
        ChecklistSection(
            id=new_id(),
            title=section.title,
            is_optional=section.is_optional,
            is_alternative=section.is_alternative,
            position=section_index,
            items=[
                ChecklistItem(
                    id=new_id(),
                    text=item.text,
                    observation=item.observation,
                    tags=item.tags,
                    is_optional=item.is_optional,
                    position=item_index,
                )
                for item_index, item in enumerate(section.items)
            ],
        )
        for section_index, section in enumerate(form.sections)
    ]
    return Service(
        id=service_id or new_id(),
        title=form.title,
        category=form.category,
        description=form.description,
        sections=sections,
    )


def merge_service_edit(existing: Service, form: ServiceInput) -> Service:
    """Apply an edit while keeping the ids of records that still match.

    A section keeps its id when the input names it, otherwise when an existing
    section has the same title. Items are matched the same way within their
    section, by id and then by text.
    """

    sections_by_id = {section.id: section for section in existing.sections}
    sections_by_title: Dict[str, ChecklistSection] = {}
    for section in existing.sections:
        sections_by_title.setdefault(section.title, section)

    claimed_sections: set[str] = set()
    sections: List[ChecklistSection] = []
    for section_index, section_input in enumerate(form.sections):
        match = None
        if section_input.id and section_input.id in sections_by_id:
            match = sections_by_id[section_input.id]
        elif section_input.title in sections_by_title:
            match = sections_by_title[section_input.title]
        if match is not None and match.id in claimed_sections:
            match = None
        if match is not None:
            claimed_sections.add(match.id)

        items_by_id = {item.id: item for item in match.items} if match else {}
        items_by_text: Dict[str, ChecklistItem] = {}
        for item in match.items if match else []:
            items_by_text.setdefault(item.text, item)

        claimed_items: set[str] = set()
        items: List[ChecklistItem] = []
        for item_index, item_input in enumerate(section_input.items):
            previous = None
            if item_input.id and item_input.id in items_by_id:
                previous = items_by_id[item_input.id]
            elif item_input.text in items_by_text:
                previous = items_by_text[item_input.text]
            if previous is not None and previous.id in claimed_items:
                previous = None
            if previous is not None:
                claimed_items.add(previous.id)
            items.append(
                ChecklistItem(
                    id=previous.id if previous else new_id(),
                    text=item_input.text,
                    observation=item_input.observation,
                    tags=item_input.tags,
                    is_optional=item_input.is_optional,
                    position=item_index,
                    is_completed=previous.is_completed if previous else False,
                )
            )

        sections.append(
            ChecklistSection(
                id=match.id if match else new_id(),
                title=section_input.title,
                is_optional=section_input.is_optional,
                is_alternative=section_input.is_alternative,
                position=section_index,
                items=items,
            )
        )

    return Service(
        id=existing.id,
        title=form.title,
        category=form.category,
        description=form.description,
        sections=sections,
    )


def duplicate_service(service: Service) -> Service:
    sections = [
        section.model_copy(
            update={
                "id": new_id(),
                "items": [
                    item.model_copy(update={"id": new_id(), "is_completed": False})
                    for item in section.items
                ],
            }
        )
        for section in service.sections
    ]
    return service.model_copy(
        update={"id": new_id(), "title": service.title + COPY_SUFFIX, "sections": sections}
    )


def _check_permutation(current: Sequence[str], ordered_ids: Sequence[str], label: str) -> None:
    if len(ordered_ids) != len(set(ordered_ids)) or set(ordered_ids) != set(current):
        raise CatalogError(
            f"{label} order must list each of {len(current)} ids exactly once"
        )


def reorder_sections(service: Service, ordered_ids: Sequence[str]) -> Service:
    by_id = {section.id: section for section in service.sections}
    _check_permutation(list(by_id), ordered_ids, "Section")
    sections = [
        by_id[section_id].model_copy(update={"position": position})
        for position, section_id in enumerate(ordered_ids)
    ]
    return service.model_copy(update={"sections": sections})


def reorder_items(service: Service, section_id: str, ordered_ids: Sequence[str]) -> Service:
    sections = list(service.sections)
    for index, section in enumerate(sections):
        if section.id != section_id:
            continue
        by_id = {item.id: item for item in section.items}
        _check_permutation(list(by_id), ordered_ids, "Item")
        items = [
            by_id[item_id].model_copy(update={"position": position})
            for position, item_id in enumerate(ordered_ids)
        ]
        sections[index] = section.model_copy(update={"items": items})
        return service.model_copy(update={"sections": sections})
    raise CatalogError(f"Section '{section_id}' not found in service '{service.id}'")


def find_section_owner(services: Iterable[Service], section_id: str) -> Service | None:
    for service in services:
        if any(section.id == section_id for section in service.sections):
            return service
    return None


class CatalogState:
    """Ordered container of the services known to this process."""

    def __init__(self) -> None:
        self.services: Dict[str, Service] = {}

    def list_services(self, category: ServiceCategory | str | None = None) -> List[Service]:
        if category is None:
            return list(self.services.values())
        wanted = ServiceCategory(category)
        return [service for service in self.services.values() if service.category == wanted]

    def get_service(self, service_id: str) -> Service | None:
        return self.services.get(service_id)

    def upsert_service(self, service: Service) -> Service:
        service = strip_completion(service)
        self.services[service.id] = service
        return service

    def remove_service(self, service_id: str) -> Service | None:
        return self.services.pop(service_id, None)

    def replace_all(self, services: Iterable[Service]) -> None:
        self.services.clear()
        for service in services:
            self.upsert_service(service)

    def to_dict(self) -> dict[str, object]:
        return {"services": [service_to_dict(service) for service in self.services.values()]}

    @classmethod
    def from_dict(cls, payload: dict[str, object]) -> "CatalogState":
        instance = cls()
        services_payload = payload.get("services", []) or []
        for item in services_payload:  # type: ignore[union-attr]
            instance.upsert_service(service_from_dict(item))
        return instance


class CatalogStore:
    """Load/store catalog snapshots from JSON files."""

    def __init__(self, snapshot_path: Path) -> None:
        self._path = snapshot_path

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> CatalogState | None:
        if not self._path.exists():
            return None
        with self._path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        state = CatalogState.from_dict(payload)
        logger.debug("catalog_loaded path=%s services=%d", self._path, len(state.services))
        return state

    def save(self, state: CatalogState) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("w", encoding="utf-8") as handle:
            json.dump(state.to_dict(), handle, ensure_ascii=False, indent=2)
