"""Application configuration utilities."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AnyHttpUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_data_dir() -> Path:
    module_root = Path(__file__).resolve().parents[2]
    if (module_root / "pyproject.toml").exists():
        return module_root / "data"
    return Path.home() / ".local" / "share" / "detran-checklist"


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    data_dir: Path = Field(
        default_factory=_default_data_dir,
        alias="CHECKLIST_DATA_DIR",
        description="Directory holding the JSON catalog, the catalog cache and user accounts.",
    )
    backend: Literal["json", "postgrest"] = Field(
        default="json",
        alias="CHECKLIST_BACKEND",
        description="Catalog storage backend: local JSON file or a PostgREST API.",
    )
    postgrest_url: AnyHttpUrl | None = Field(
        default=None,
        alias="CHECKLIST_POSTGREST_URL",
        description="Base URL of the PostgREST API (e.g. https://project.supabase.co/rest/v1/).",
    )
    postgrest_api_key: str | None = Field(
        default=None,
        alias="CHECKLIST_POSTGREST_API_KEY",
        description="API key sent as 'apikey' and bearer token to the PostgREST API.",
    )
    table_prefix: str = Field(
        default="ckdt_",
        alias="CHECKLIST_TABLE_PREFIX",
        description="Prefix of the services/checklists/checklist_items tables.",
    )
    concurrency: int = Field(
        default=4,
        alias="CHECKLIST_CONCURRENCY",
        ge=1,
        description="Maximum number of concurrent backend requests.",
    )
    timeout_seconds: float = Field(
        default=15.0,
        alias="CHECKLIST_TIMEOUT",
        gt=0,
        description="HTTP timeout in seconds for backend calls.",
    )
    cache_ttl_seconds: int = Field(
        default=60,
        alias="CHECKLIST_CACHE_TTL",
        ge=0,
        description="TTL (seconds) of cached backend reads; 0 disables the cache.",
    )
    user_agent: str = Field(
        default="DETRAN-Checklist/0.1",
        alias="CHECKLIST_USER_AGENT",
        description="User-Agent header presented to remote servers.",
    )
    seed_initial_services: bool = Field(
        default=True,
        alias="CHECKLIST_SEED",
        description="Populate an empty JSON catalog with the built-in DETRAN services.",
    )
    admin_email: str = Field(
        default="admin@detran.local",
        alias="CHECKLIST_ADMIN_EMAIL",
        description="Email of the administrator created when no account exists.",
    )
    admin_password: str | None = Field(
        default=None,
        alias="CHECKLIST_ADMIN_PASSWORD",
        description="Password of the bootstrap administrator; no account is created when unset.",
    )
    admin_name: str = Field(
        default="Administrador",
        alias="CHECKLIST_ADMIN_NAME",
    )

    model_config = SettingsConfigDict(
        env_prefix="CHECKLIST_",
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
    )

    @property
    def catalog_path(self) -> Path:
        return Path(self.data_dir) / "catalog.json"

    @property
    def cache_path(self) -> Path:
        return Path(self.data_dir) / "catalog-cache.json"

    @property
    def users_path(self) -> Path:
        return Path(self.data_dir) / "users.json"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached instance of application settings."""

    settings = Settings()
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    return settings
