"""JSON Schema definitions for MCP tools."""

from __future__ import annotations

from .models import ItemTag, ServiceCategory

CATEGORY_SCHEMA = {
    "type": "string",
    "enum": [category.value for category in ServiceCategory],
}

TAG_SCHEMA = {
    "type": "string",
    "enum": [tag.value for tag in ItemTag],
}

ITEM_SCHEMA = {
    "type": "object",
    "properties": {
        "id": {"type": "string"},
        "text": {"type": "string"},
        "observation": {"type": ["string", "null"]},
        "tags": {"type": "array", "items": TAG_SCHEMA},
        "is_optional": {"type": "boolean"},
        "position": {"type": "integer"},
        "is_completed": {"type": "boolean"},
    },
    "required": ["id", "text", "tags", "is_optional", "position", "is_completed"],
    "additionalProperties": False,
}

SECTION_SCHEMA = {
    "type": "object",
    "properties": {
        "id": {"type": "string"},
        "title": {"type": "string"},
        "items": {"type": "array", "items": ITEM_SCHEMA},
        "is_optional": {"type": "boolean"},
        "is_alternative": {"type": "boolean"},
        "position": {"type": "integer"},
    },
    "required": ["id", "title", "items", "is_optional", "is_alternative", "position"],
    "additionalProperties": False,
}

SERVICE_SCHEMA = {
    "type": "object",
    "properties": {
        "id": {"type": "string"},
        "title": {"type": "string"},
        "category": CATEGORY_SCHEMA,
        "description": {"type": "string"},
        "sections": {"type": "array", "items": SECTION_SCHEMA},
    },
    "required": ["id", "title", "category", "description", "sections"],
    "additionalProperties": False,
}

SERVICE_SUMMARY_SCHEMA = {
    "type": "object",
    "properties": {
        "id": {"type": "string"},
        "title": {"type": "string"},
        "category": CATEGORY_SCHEMA,
        "excerpt": {"type": ["string", "null"]},
        "section_count": {"type": "integer"},
        "item_count": {"type": "integer"},
        "score": {"type": ["number", "null"]},
    },
    "required": ["id", "title", "category"],
    "additionalProperties": False,
}

SERVICE_PROGRESS_SCHEMA = {
    "type": "object",
    "properties": {
        "completed_count": {"type": "integer"},
        "total_count": {"type": "integer"},
        "percentage": {"type": "number", "minimum": 0, "maximum": 100},
    },
    "required": ["completed_count", "total_count", "percentage"],
    "additionalProperties": False,
}

ITEM_PROGRESS_SCHEMA = {
    "type": "object",
    "properties": {
        "completed": {"type": "integer"},
        "total": {"type": "integer"},
        "required_completed": {"type": "integer"},
        "required_total": {"type": "integer"},
    },
    "required": ["completed", "total", "required_completed", "required_total"],
    "additionalProperties": False,
}

SECTION_SUMMARY_SCHEMA = {
    "type": "object",
    "properties": {
        "section_id": {"type": "string"},
        "title": {"type": "string"},
        "is_optional": {"type": "boolean"},
        "is_alternative": {"type": "boolean"},
        "is_complete": {"type": "boolean"},
        "percentage": {"type": "number", "minimum": 0, "maximum": 100},
    },
    "required": [
        "section_id",
        "title",
        "is_optional",
        "is_alternative",
        "is_complete",
        "percentage",
    ],
    "additionalProperties": False,
}

USER_SCHEMA = {
    "type": "object",
    "properties": {
        "id": {"type": "string"},
        "email": {"type": "string"},
        "name": {"type": ["string", "null"]},
        "is_admin": {"type": "boolean"},
    },
    "required": ["id", "email", "is_admin"],
    "additionalProperties": False,
}

WARNINGS_SCHEMA = {
    "type": "array",
    "items": {"type": "string"},
}

ITEM_INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "id": {"type": "string"},
        "text": {"type": "string", "minLength": 1},
        "observation": {"type": ["string", "null"]},
        "tags": {"type": ["array", "null"], "items": TAG_SCHEMA},
        "is_optional": {"type": "boolean"},
    },
    "required": ["text"],
    "additionalProperties": False,
}

SECTION_INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "id": {"type": "string"},
        "title": {"type": "string", "minLength": 1},
        "is_optional": {"type": "boolean"},
        "is_alternative": {"type": "boolean"},
        "items": {"type": "array", "items": ITEM_INPUT_SCHEMA},
    },
    "required": ["title"],
    "additionalProperties": False,
}

SERVICE_INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "title": {"type": "string", "minLength": 3},
        "category": CATEGORY_SCHEMA,
        "description": {"type": "string", "minLength": 10},
        "sections": {"type": "array", "items": SECTION_INPUT_SCHEMA, "minItems": 1},
    },
    "required": ["title", "description", "sections"],
    "additionalProperties": False,
}

EMPTY_INPUT_SCHEMA = {
    "type": "object",
    "additionalProperties": False,
}

LIST_SERVICES_INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "category": CATEGORY_SCHEMA,
    },
    "additionalProperties": False,
}

LIST_SERVICES_OUTPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "source": {"type": "string"},
        "services": {"type": "array", "items": SERVICE_SUMMARY_SCHEMA},
        "warnings": WARNINGS_SCHEMA,
    },
    "required": ["source", "services"],
    "additionalProperties": False,
}

SEARCH_SERVICES_INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "query": {"type": "string"},
        "category": CATEGORY_SCHEMA,
        "limit": {"type": "integer", "minimum": 1},
    },
    "required": ["query"],
    "additionalProperties": False,
}

SEARCH_SERVICES_OUTPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "source": {"type": "string"},
        "results": {"type": "array", "items": SERVICE_SUMMARY_SCHEMA},
        "limit": {"type": "integer"},
        "warnings": WARNINGS_SCHEMA,
    },
    "required": ["source", "results", "limit"],
    "additionalProperties": False,
}

SERVICE_ID_INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "service_id": {"type": "string"},
    },
    "required": ["service_id"],
    "additionalProperties": False,
}

TOGGLE_ITEM_INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "service_id": {"type": "string"},
        "section_id": {"type": "string"},
        "item_id": {"type": "string"},
    },
    "required": ["service_id", "section_id", "item_id"],
    "additionalProperties": False,
}

SERVICE_VIEW_OUTPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "source": {"type": "string"},
        "service": SERVICE_SCHEMA,
        "progress": SERVICE_PROGRESS_SCHEMA,
        "item_progress": ITEM_PROGRESS_SCHEMA,
        "sections": {"type": "array", "items": SECTION_SUMMARY_SCHEMA},
        "is_complete": {"type": "boolean"},
        "warnings": WARNINGS_SCHEMA,
    },
    "required": ["source", "service", "progress", "item_progress", "sections", "is_complete"],
    "additionalProperties": False,
}

LEAVE_SERVICE_OUTPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "left": {"type": "boolean"},
        "service_id": {"type": ["string", "null"]},
    },
    "required": ["left", "service_id"],
    "additionalProperties": False,
}

LOGIN_INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "email": {"type": "string"},
        "password": {"type": "string"},
    },
    "required": ["email", "password"],
    "additionalProperties": False,
}

SESSION_OUTPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "authenticated": {"type": "boolean"},
        "user": {"anyOf": [USER_SCHEMA, {"type": "null"}]},
    },
    "required": ["authenticated", "user"],
    "additionalProperties": False,
}

CREATE_SERVICE_INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "service": SERVICE_INPUT_SCHEMA,
    },
    "required": ["service"],
    "additionalProperties": False,
}

UPDATE_SERVICE_INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "service_id": {"type": "string"},
        "service": SERVICE_INPUT_SCHEMA,
    },
    "required": ["service_id", "service"],
    "additionalProperties": False,
}

ADMIN_SERVICE_OUTPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "service": SERVICE_SCHEMA,
    },
    "required": ["service"],
    "additionalProperties": False,
}

DELETE_SERVICE_OUTPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "deleted": {"type": "boolean"},
        "service_id": {"type": "string"},
    },
    "required": ["deleted", "service_id"],
    "additionalProperties": False,
}

REORDER_SECTIONS_INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "service_id": {"type": "string"},
        "section_ids": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["service_id", "section_ids"],
    "additionalProperties": False,
}

REORDER_ITEMS_INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "section_id": {"type": "string"},
        "item_ids": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["section_id", "item_ids"],
    "additionalProperties": False,
}

LIST_USERS_OUTPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "users": {"type": "array", "items": USER_SCHEMA},
    },
    "required": ["users"],
    "additionalProperties": False,
}

CREATE_USER_INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": "string", "minLength": 3, "maxLength": 100},
        "email": {"type": "string"},
        "password": {"type": "string", "minLength": 8},
        "is_admin": {"type": "boolean"},
    },
    "required": ["name", "email", "password"],
    "additionalProperties": False,
}

USER_OUTPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "user": USER_SCHEMA,
    },
    "required": ["user"],
    "additionalProperties": False,
}

REMOVE_USER_INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "user_id": {"type": "string"},
    },
    "required": ["user_id"],
    "additionalProperties": False,
}

REMOVE_USER_OUTPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "removed": {"type": "boolean"},
        "user_id": {"type": "string"},
    },
    "required": ["removed", "user_id"],
    "additionalProperties": False,
}

BACKEND_STATUS_OUTPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "backend": {"type": "object"},
        "catalog": {
            "type": "object",
            "properties": {
                "services_cached": {"type": "integer"},
                "open_service_id": {"type": ["string", "null"]},
            },
            "required": ["services_cached", "open_service_id"],
            "additionalProperties": False,
        },
    },
    "required": ["backend", "catalog"],
    "additionalProperties": False,
}
