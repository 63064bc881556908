"""
Application configuration models and helpers.

Centralizes settings management so both the FastAPI app and the asynchronous
search worker share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file into the environment."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class QueueSettings(BaseSettings):
    """Retry and retention policy for search jobs."""

    max_attempts: int = Field(3, ge=1, validation_alias="JOB_MAX_ATTEMPTS")
    backoff_seconds: float = Field(
        1.0,
        ge=0,
        validation_alias="JOB_BACKOFF_SECONDS",
        description="Delay before the first retry.",
    )
    backoff_multiplier: float = Field(
        2.0, ge=1, validation_alias="JOB_BACKOFF_MULTIPLIER"
    )
    max_backoff_seconds: float = Field(
        60.0, ge=0, validation_alias="JOB_BACKOFF_MAX_SECONDS"
    )
    completed_retention_seconds: int = Field(
        3600, validation_alias="JOB_COMPLETED_RETENTION_SECONDS"
    )
    completed_retention_count: int = Field(
        100, validation_alias="JOB_COMPLETED_RETENTION_COUNT"
    )
    failed_retention_seconds: int = Field(
        7200, validation_alias="JOB_FAILED_RETENTION_SECONDS"
    )
    failed_retention_count: int = Field(
        50, validation_alias="JOB_FAILED_RETENTION_COUNT"
    )
    stall_seconds: float = Field(
        300.0,
        gt=0,
        validation_alias="JOB_STALL_SECONDS",
        description="Age of an active claim after which its worker is presumed dead.",
    )


class WorkerSettings(BaseSettings):
    """Execution limits for the background search worker."""

    concurrency: int = Field(5, ge=1, validation_alias="WORKER_CONCURRENCY")
    poll_interval_seconds: float = Field(
        1.0, gt=0, validation_alias="WORKER_POLL_INTERVAL"
    )
    search_timeout_seconds: float = Field(
        30.0, gt=0, validation_alias="SEARCH_TIMEOUT_SECONDS"
    )
    enrichment_timeout_seconds: float = Field(
        120.0,
        gt=0,
        validation_alias="ENRICHMENT_TIMEOUT_SECONDS",
        description="Upper bound for a single contact-enrichment call.",
    )
    enrichment_company_limit: int = Field(
        20, ge=0, validation_alias="ENRICHMENT_COMPANY_LIMIT"
    )


class USASpendingSettings(BaseSettings):
    """Settings for the USASpending.gov award search API."""

    base_url: str = Field(
        "https://api.usaspending.gov/api/v2", validation_alias="USASPENDING_BASE_URL"
    )
    page_limit: int = Field(500, ge=1, validation_alias="USASPENDING_PAGE_LIMIT")
    lookback_years: int = Field(
        3,
        ge=1,
        validation_alias="USASPENDING_LOOKBACK_YEARS",
        description="Fiscal years searched when no time period is supplied.",
    )


class ApifySettings(BaseSettings):
    """Configuration for Apollo contact enrichment through Apify."""

    api_key: Optional[str] = Field(
        None,
        validation_alias="APIFY_API_KEY",
        description="When omitted the worker falls back to synthetic contacts.",
    )
    people_actor: str = Field(
        "coladeu~apollo-people-leads-scraper", validation_alias="APIFY_PEOPLE_ACTOR"
    )
    max_companies: int = Field(10, ge=1, validation_alias="APIFY_MAX_COMPANIES")
    contacts_per_company: int = Field(
        3, ge=1, validation_alias="APIFY_CONTACTS_PER_COMPANY"
    )

    @field_validator("people_actor")
    @classmethod
    def _normalize_actor(cls, value: str) -> str:
        """The REST API addresses actors as ``owner~name``."""
        return value.strip().replace("/", "~")


class CacheSettings(BaseSettings):
    """Search result memoization."""

    enabled: bool = Field(True, validation_alias="SEARCH_CACHE_ENABLED")
    search_ttl_seconds: int = Field(3600, validation_alias="SEARCH_CACHE_TTL_SECONDS")


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application and worker."""

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    db_path: str = Field(
        "data/fedleads.db",
        validation_alias="FEDLEADS_DB_PATH",
        description="SQLite file holding jobs, leads, search history and cache.",
    )
    queue: QueueSettings = Field(default_factory=QueueSettings)
    worker: WorkerSettings = Field(default_factory=WorkerSettings)
    usaspending: USASpendingSettings = Field(default_factory=USASpendingSettings)
    apify: ApifySettings = Field(default_factory=ApifySettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "ApifySettings",
    "CacheSettings",
    "QueueSettings",
    "USASpendingSettings",
    "WorkerSettings",
    "get_settings",
]
