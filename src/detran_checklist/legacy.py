"""Normalisation of older catalog payload shapes.

Earlier data revisions grouped individual *items* into alternative sets via a
shared ``alternativeOf`` marker instead of flagging a whole section as
alternative. Only whole-section alternatives are evaluated by the engine, so
item-level groups are migrated here, when a payload is loaded:

* each group found in a section becomes its own alternative section, titled
  after the group's first (representative) item and inheriting the parent's
  ``is_optional`` flag;
* the new sections follow the section they were taken from;
* a section emptied by the migration is dropped, and one left holding only
  optional items becomes optional, because a required section without
  required items is never complete;
* groups inside a section that is already alternative only lose their marker.

The same pass also accepts camelCase keys, ``checklists`` instead of
``sections``, the single ``tag`` field, null tag lists and missing positions.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

_KEY_ALIASES = {
    "isOptional": "is_optional",
    "isAlternative": "is_alternative",
    "isCompleted": "is_completed",
    "alternativeOf": "alternative_of",
    "checklists": "sections",
}

GROUP_KEYS = ("alternative_of", "alternativeOf")


def alternative_group_of(item: Any) -> str | None:
    """Return the alternative group marker of a raw or model item."""

    if isinstance(item, Mapping):
        for key in GROUP_KEYS:
            value = item.get(key)
            if value:
                return str(value)
        return None
    for key in GROUP_KEYS:
        value = getattr(item, key, None)
        if value:
            return str(value)
    return None


def _is_completed(item: Any) -> bool:
    if isinstance(item, Mapping):
        return bool(item.get("is_completed", item.get("isCompleted", False)))
    return bool(getattr(item, "is_completed", False))


def is_group_satisfied(items: Iterable[Any], group_id: str) -> bool:
    return any(
        _is_completed(item) for item in items if alternative_group_of(item) == group_id
    )


def _position(payload: Mapping[str, Any], default: int) -> int:
    value = payload.get("position")
    return default if value is None else int(value)


def _rename_keys(payload: Mapping[str, Any]) -> Dict[str, Any]:
    return {_KEY_ALIASES.get(key, key): value for key, value in payload.items()}


def _normalise_item(payload: Mapping[str, Any], position: int) -> Dict[str, Any]:
    item = _rename_keys(payload)
    tags = item.pop("tags", None)
    tag = item.pop("tag", None)
    if tags is None:
        tags = [tag] if tag else []
    item["tags"] = list(tags)
    item["position"] = _position(item, position)
    item["is_optional"] = bool(item.get("is_optional") or False)
    return item


def _split_groups(section: Dict[str, Any]) -> List[Dict[str, Any]]:
    items: List[Dict[str, Any]] = section.get("items", [])
    groups: Dict[str, List[Dict[str, Any]]] = {}
    remaining: List[Dict[str, Any]] = []
    for item in items:
        group_id = alternative_group_of(item)
        item.pop("alternative_of", None)
        if group_id is None:
            remaining.append(item)
        else:
            groups.setdefault(group_id, []).append(item)

    if not groups or section.get("is_alternative"):
        # in an alternative section any single item already satisfies it
        return [section]

    logger.info(
        "legacy_groups_migrated section=%s groups=%d", section.get("id"), len(groups)
    )
    result: List[Dict[str, Any]] = []
    if remaining:
        leftover = {**section, "items": remaining}
        if all(item["is_optional"] for item in remaining):
            leftover["is_optional"] = True
        result.append(leftover)
    for group_id, members in groups.items():
        representative = members[0]
        result.append(
            {
                "id": f"{section.get('id')}-{group_id}",
                "title": representative.get("text") or section.get("title", ""),
                "is_optional": bool(section.get("is_optional")),
                "is_alternative": True,
                "items": members,
            }
        )
    return result


def normalise_section_payloads(sections: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    raw = [_rename_keys(section) for section in sections]
    ordered = [
        section
        for _, section in sorted(
            enumerate(raw), key=lambda pair: (_position(pair[1], pair[0]), pair[0])
        )
    ]

    normalised: List[Dict[str, Any]] = []
    for section in ordered:
        items = [
            _normalise_item(item, index)
            for index, item in enumerate(section.get("items") or [])
        ]
        section["items"] = sorted(items, key=lambda entry: entry["position"])
        section["is_optional"] = bool(section.get("is_optional") or False)
        section["is_alternative"] = bool(section.get("is_alternative") or False)
        normalised.extend(_split_groups(section))

    result = []
    for position, section in enumerate(normalised):
        section = {**section, "position": position}
        section["items"] = [
            {**item, "position": index} for index, item in enumerate(section["items"])
        ]
        result.append(section)
    return result


def normalise_service_payload(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a payload ready for ``Service.model_validate``."""

    service = _rename_keys(payload)
    service["sections"] = normalise_section_payloads(service.get("sections") or [])
    return service
