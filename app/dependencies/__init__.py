"""Expose dependency helpers for FastAPI routers."""

from .clients import get_cache, get_job_store, get_lead_store, get_search_job_service

__all__ = [
    "get_cache",
    "get_job_store",
    "get_lead_store",
    "get_search_job_service",
]
