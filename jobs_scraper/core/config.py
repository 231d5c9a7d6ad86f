"""Configuration models, query schema and YAML loader."""

import os
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs, urlparse

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from jobs_scraper.core.filters import (
    ExperienceLevelFilter,
    OnSiteOrRemoteFilter,
    RelevanceFilter,
    TimeFilter,
    TypeFilter,
    resolve_member_name,
)

DEFAULT_LOCATION = "Worldwide"
DEFAULT_LIMIT = 25

_FILTER_ENUMS: dict[str, type] = {
    "relevance": RelevanceFilter,
    "time": TimeFilter,
    "type": TypeFilter,
    "experience": ExperienceLevelFilter,
    "on_site_or_remote": OnSiteOrRemoteFilter,
}


class FilterSet(BaseModel):
    """Search filters. Multi-valued dimensions take one value or a list."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    company_jobs_url: str | None = None
    relevance: RelevanceFilter | None = None
    time: TimeFilter | None = None
    type: TypeFilter | list[TypeFilter] | None = None
    experience: ExperienceLevelFilter | list[ExperienceLevelFilter] | None = None
    on_site_or_remote: OnSiteOrRemoteFilter | list[OnSiteOrRemoteFilter] | None = None

    @field_validator(*_FILTER_ENUMS, mode="before")
    @classmethod
    def accept_member_names(cls, v: Any, info: ValidationInfo) -> Any:
        enum_cls = _FILTER_ENUMS[info.field_name]
        if isinstance(v, (list, tuple)):
            return [resolve_member_name(enum_cls, item) for item in v]
        return resolve_member_name(enum_cls, v)

    @field_validator("company_jobs_url")
    @classmethod
    def company_url_has_id(cls, v: str | None) -> str | None:
        if v is None:
            return v
        if not parse_qs(urlparse(v).query).get("f_C"):
            msg = "company_jobs_url must contain an f_C query parameter"
            raise ValueError(msg)
        return v


class QueryOptions(BaseModel):
    """Options for one query. Every field has a built-in default."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    locations: list[str] = Field(default_factory=list)
    page_offset: int = Field(default=0, ge=0)
    limit: int = Field(default=DEFAULT_LIMIT, ge=0)
    filters: FilterSet | None = None
    optimize: bool = False
    apply_link: bool = False
    skip_promoted_jobs: bool = False
    # Source of a JS function evaluated in the page, returning the description text.
    description_fn: str | None = None

    @field_validator("locations")
    @classmethod
    def locations_not_blank(cls, v: list[str]) -> list[str]:
        for location in v:
            if not location.strip():
                msg = "locations must not contain blank entries"
                raise ValueError(msg)
        return [location.strip() for location in v]


class Query(BaseModel):
    """A query after planning. Frozen: options never change once planned."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    text: str | None = Field(default=None, validation_alias=AliasChoices("text", "query"))
    options: QueryOptions = Field(default_factory=QueryOptions)

    @property
    def keyword(self) -> str:
        return self.text or ""


class BrowserConfig(BaseModel):
    """Browser session configuration."""

    cookies_path: str = "config/linkedin_cookies.json"
    li_at_cookie: str | None = Field(default_factory=lambda: os.environ.get("LI_AT_COOKIE") or None)
    cdp_url: str | None = None
    timeout_ms: int = Field(default=30000, ge=1000)
    slow_mo_ms: int = Field(default=0, ge=0)

    @property
    def is_existing_browser(self) -> bool:
        return bool(self.cdp_url)


class DatabaseConfig(BaseModel):
    """Dedup store configuration."""

    path: str = "data/jobs.db"


class Settings(BaseModel):
    """Top-level settings loaded from YAML.

    ``options`` and ``queries`` stay raw mappings here: they are merged and
    validated by the query planner, which owns the layering rules.
    """

    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    options: dict[str, Any] = Field(default_factory=dict)
    queries: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator("queries")
    @classmethod
    def at_least_one_query(cls, v: list[dict[str, Any]]) -> list[dict[str, Any]]:
        if not v:
            msg = "at least one query must be configured"
            raise ValueError(msg)
        return v

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)
