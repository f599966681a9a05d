"""Data models for services, checklist sections, items and users."""

from __future__ import annotations

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PASSWORD_PATTERN = re.compile(
    r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&#])[A-Za-z\d@$!%*?&#]{8,}$"
)


class ServiceCategory(str, Enum):
    """Closed set of catalog categories."""

    VEHICLE = "Veículo"
    LICENSE = "Habilitação"
    INFRACTIONS = "Infrações"
    OTHER = "Outros"


class ItemTag(str, Enum):
    """Closed vocabulary describing the expected form of a document."""

    ORIGINAL = "Original"
    PHYSICAL = "Físico"
    DIGITAL = "Digital"
    DIGITAL_OR_PHYSICAL = "Digital ou Físico"
    ORIGINAL_AND_COPY = "Original e Cópia"


def _clean_tags(value: object) -> list[object]:
    if value is None:
        return []
    if isinstance(value, (str, ItemTag)):
        value = [value]
    seen: list[object] = []
    for tag in value:  # type: ignore[union-attr]
        if tag not in seen:
            seen.append(tag)
    return seen


class ChecklistItem(BaseModel):
    """A single document or requirement line inside a section.

    ``is_completed`` is session-local interaction state. It is stripped by the
    catalog before anything is persisted (see ``catalog.PERSISTED_EXCLUDE``).
    """

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    observation: str | None = None
    tags: list[ItemTag] = Field(default_factory=list)
    is_optional: bool = False
    position: int = 0
    is_completed: bool = False

    @field_validator("tags", mode="before")
    @classmethod
    def _normalise_tags(cls, value: object) -> list[object]:
        return _clean_tags(value)


class ChecklistSection(BaseModel):
    """A named group of checklist items belonging to one service."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    items: list[ChecklistItem] = Field(default_factory=list)
    is_optional: bool = False
    is_alternative: bool = Field(
        default=False,
        description="Section is satisfied when any one of its items is completed.",
    )
    position: int = 0


class Service(BaseModel):
    """A catalog entry with its ordered checklist sections."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    category: ServiceCategory
    description: str = ""
    sections: list[ChecklistSection] = Field(default_factory=list)


class ServiceSummary(BaseModel):
    """Lightweight result used in listings and search."""

    id: str
    title: str
    category: ServiceCategory
    excerpt: str | None = None
    section_count: int = 0
    item_count: int = 0
    score: float | None = Field(
        default=None,
        description="Optional relevance score supplied by search implementation.",
    )

    @classmethod
    def from_service(cls, service: Service) -> "ServiceSummary":
        excerpt = service.description[:160] if service.description else None
        return cls(
            id=service.id,
            title=service.title,
            category=service.category,
            excerpt=excerpt,
            section_count=len(service.sections),
            item_count=sum(len(section.items) for section in service.sections),
        )


class ServiceProgress(BaseModel):
    """Share of required sections that are satisfied."""

    completed_count: int
    total_count: int
    percentage: float


class ItemProgress(BaseModel):
    """Item-level counters shown next to the progress bar."""

    completed: int
    total: int
    required_completed: int
    required_total: int


class SectionSummary(BaseModel):
    """Per-section completion facts for display."""

    section_id: str
    title: str
    is_optional: bool
    is_alternative: bool
    is_complete: bool
    percentage: float


class ItemInput(BaseModel):
    """Item payload submitted by the administration form."""

    id: str | None = None
    text: str = Field(min_length=1)
    observation: str | None = None
    tags: list[ItemTag] = Field(default_factory=list)
    is_optional: bool = False

    @field_validator("tags", mode="before")
    @classmethod
    def _normalise_tags(cls, value: object) -> list[object]:
        return _clean_tags(value)

    @field_validator("observation")
    @classmethod
    def _blank_observation(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value


class SectionInput(BaseModel):
    """Section payload submitted by the administration form."""

    id: str | None = None
    title: str = Field(min_length=1)
    is_optional: bool = False
    is_alternative: bool = False
    items: list[ItemInput] = Field(default_factory=list)


class ServiceInput(BaseModel):
    """Service payload submitted by the administration form."""

    title: str = Field(min_length=3)
    category: ServiceCategory = ServiceCategory.VEHICLE
    description: str = Field(min_length=10)
    sections: list[SectionInput] = Field(min_length=1)


class User(BaseModel):
    """Public view of an account."""

    id: str
    email: str
    name: str | None = None
    is_admin: bool = False


class UserAccount(User):
    """Stored account, including the password hash."""

    password_hash: str

    def public(self) -> User:
        return User(id=self.id, email=self.email, name=self.name, is_admin=self.is_admin)


class UserInput(BaseModel):
    """Payload for creating a new account."""

    name: str = Field(min_length=3, max_length=100)
    email: str
    password: str
    is_admin: bool = False

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        value = value.strip().lower()
        if not EMAIL_PATTERN.match(value):
            raise ValueError("invalid email address")
        return value

    @field_validator("password")
    @classmethod
    def _check_password(cls, value: str) -> str:
        if not PASSWORD_PATTERN.match(value):
            raise ValueError(
                "password must have at least 8 characters with an uppercase letter, "
                "a lowercase letter, a digit and one of @$!%*?&#"
            )
        return value
