"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from app.clients import LeadStore, RetentionPolicy, SQLiteCache, SQLiteJobStore, StallPolicy
from app.core.config import get_settings
from app.services import SearchJobService


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_job_store() -> SQLiteJobStore:
    """Provide the shared SQLite job store."""
    settings = _settings()
    queue = settings.queue
    return SQLiteJobStore(
        settings.db_path,
        retention=RetentionPolicy(
            completed_seconds=queue.completed_retention_seconds,
            completed_count=queue.completed_retention_count,
            failed_seconds=queue.failed_retention_seconds,
            failed_count=queue.failed_retention_count,
        ),
        stall=StallPolicy(
            lease_seconds=queue.stall_seconds, max_attempts=queue.max_attempts
        ),
    )


@lru_cache()
def get_lead_store() -> LeadStore:
    """Provide the lead and search-history store."""
    return LeadStore(_settings().db_path)


@lru_cache()
def get_cache() -> SQLiteCache:
    """Provide the search cache shared with the worker's database file."""
    return SQLiteCache(_settings().db_path)


def get_search_job_service() -> SearchJobService:
    """Build a search job service."""
    return SearchJobService(get_job_store())


__all__ = ["get_cache", "get_job_store", "get_lead_store", "get_search_job_service"]
