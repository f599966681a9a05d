"""Checklist completion and progress rules.

Every function here is a pure function of the service (or section) passed in.
Nothing is cached and nothing is mutated: ``toggle_item`` and
``reset_all_items`` return new values and share untouched sections/items with
their input.

Two measures of progress coexist on purpose:

* ``is_section_complete`` treats a regular section with no required items as
  *not* complete, so empty sections never count towards a finished service;
* ``section_progress_percentage`` reports the same section as 100%, since
  there is nothing left to do in it.
"""

from __future__ import annotations

import logging
from typing import List

from .models import (
    ChecklistItem,
    ChecklistSection,
    ItemProgress,
    SectionSummary,
    Service,
    ServiceProgress,
)

logger = logging.getLogger(__name__)


def section_required_items(section: ChecklistSection) -> List[ChecklistItem]:
    """Return the non-optional items of a section, in order."""

    return [item for item in section.items if not item.is_optional]


def is_section_complete(section: ChecklistSection) -> bool:
    if section.is_alternative:
        # any item satisfies the choice, optional ones included
        return any(item.is_completed for item in section.items)

    required = section_required_items(section)
    return len(required) > 0 and all(item.is_completed for item in required)


def section_progress_percentage(section: ChecklistSection) -> float:
    required = section_required_items(section)
    if not required:
        return 100.0
    completed = sum(1 for item in required if item.is_completed)
    return 100.0 * completed / len(required)


def required_sections(service: Service) -> List[ChecklistSection]:
    return [section for section in service.sections if not section.is_optional]


def is_service_complete(service: Service) -> bool:
    sections = required_sections(service)
    return len(sections) > 0 and all(is_section_complete(section) for section in sections)


def service_progress(service: Service) -> ServiceProgress:
    """Return progress measured in required sections satisfied.

    This is the measure behind "everything done" banners; alternative sections
    count once no matter how many of their items are checked.
    """

    sections = required_sections(service)
    completed_count = sum(1 for section in sections if is_section_complete(section))
    total_count = len(sections)
    percentage = 100.0 * completed_count / total_count if total_count > 0 else 0.0
    return ServiceProgress(
        completed_count=completed_count,
        total_count=total_count,
        percentage=percentage,
    )


def item_progress(service: Service) -> ItemProgress:
    """Return item counters for display only.

    ``completed``/``total`` cover every item. The ``required_*`` counters
    cover non-optional items in non-optional sections.
    """

    completed = total = required_completed = required_total = 0
    for section in service.sections:
        for item in section.items:
            total += 1
            if item.is_completed:
                completed += 1
            if not item.is_optional and not section.is_optional:
                required_total += 1
                if item.is_completed:
                    required_completed += 1
    return ItemProgress(
        completed=completed,
        total=total,
        required_completed=required_completed,
        required_total=required_total,
    )


def section_summaries(service: Service) -> List[SectionSummary]:
    return [
        SectionSummary(
            section_id=section.id,
            title=section.title,
            is_optional=section.is_optional,
            is_alternative=section.is_alternative,
            is_complete=is_section_complete(section),
            percentage=section_progress_percentage(section),
        )
        for section in service.sections
    ]


def toggle_item(service: Service, section_id: str, item_id: str) -> Service:
    """Flip one item's completion and return the updated service.

    Unknown ids leave the service untouched.
    """

    for section_index, section in enumerate(service.sections):
        if section.id != section_id:
            continue
        for item_index, item in enumerate(section.items):
            if item.id != item_id:
                continue
            items = list(section.items)
            items[item_index] = item.model_copy(update={"is_completed": not item.is_completed})
            sections = list(service.sections)
            sections[section_index] = section.model_copy(update={"items": items})
            return service.model_copy(update={"sections": sections})
        break

    logger.debug(
        "toggle_ignored service=%s section=%s item=%s", service.id, section_id, item_id
    )
    return service


def reset_all_items(service: Service) -> Service:
    sections = [
        section.model_copy(
            update={
                "items": [
                    item.model_copy(update={"is_completed": False}) if item.is_completed else item
                    for item in section.items
                ]
            }
        )
        for section in service.sections
    ]
    return service.model_copy(update={"sections": sections})
