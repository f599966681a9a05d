"""Session-local completion state and the service detail view lifecycle."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import FrozenSet

from . import engine
from .models import Service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionState:
    """Ids of the items checked off during one viewing session."""

    completed_ids: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def from_service(cls, service: Service) -> "CompletionState":
        return cls(
            frozenset(
                item.id
                for section in service.sections
                for item in section.items
                if item.is_completed
            )
        )

    @property
    def is_empty(self) -> bool:
        return not self.completed_ids

    def apply(self, service: Service) -> Service:
        """Return ``service`` with ``is_completed`` set from this state."""

        sections = []
        for section in service.sections:
            items = []
            for item in section.items:
                completed = item.id in self.completed_ids
                if item.is_completed != completed:
                    item = item.model_copy(update={"is_completed": completed})
                items.append(item)
            sections.append(section.model_copy(update={"items": items}))
        return service.model_copy(update={"sections": sections})

    def prune(self, service: Service) -> "CompletionState":
        known = {item.id for section in service.sections for item in section.items}
        return CompletionState(self.completed_ids & known)


class ServiceView:
    """A persisted service together with the viewer's completion state."""

    def __init__(self, service: Service, state: CompletionState | None = None) -> None:
        self._service = engine.reset_all_items(service)
        self._state = (state or CompletionState()).prune(self._service)

    @property
    def service_id(self) -> str:
        return self._service.id

    @property
    def service(self) -> Service:
        """The persisted tree, with every item unchecked."""

        return self._service

    @property
    def state(self) -> CompletionState:
        return self._state

    def merged(self) -> Service:
        return self._state.apply(self._service)

    def toggle(self, section_id: str, item_id: str) -> Service:
        updated = engine.toggle_item(self.merged(), section_id, item_id)
        self._state = CompletionState.from_service(updated)
        return updated

    def reset(self) -> Service:
        updated = engine.reset_all_items(self.merged())
        self._state = CompletionState.from_service(updated)
        return updated

    def refresh(self, service: Service) -> Service:
        """Swap in an edited version of the service, keeping surviving checks."""

        self._service = engine.reset_all_items(service)
        self._state = self._state.prune(self._service)
        return self.merged()


class ChecklistViewer:
    """Tracks the single service detail view open in this session."""

    def __init__(self) -> None:
        self._current: ServiceView | None = None

    @property
    def current(self) -> ServiceView | None:
        return self._current

    def open(self, service: Service) -> ServiceView:
        """Open ``service``; re-opening the current service keeps its state."""

        if self._current is not None:
            if self._current.service_id == service.id:
                self._current.refresh(service)
                return self._current
            self.leave()
        self._current = ServiceView(service)
        logger.debug("view_opened service=%s", service.id)
        return self._current

    def view_for(self, service_id: str) -> ServiceView | None:
        if self._current is not None and self._current.service_id == service_id:
            return self._current
        return None

    def leave(self) -> Service | None:
        """Close the current view, resetting its checklist.

        The reset service is returned for inspection only; it is never
        persisted.
        """

        view = self._current
        if view is None:
            return None
        self._current = None
        cleared = view.reset()
        logger.debug("view_left service=%s", view.service_id)
        return cleared
