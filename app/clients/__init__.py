"""Expose constructed client wrappers."""

from .apollo import ApolloEnrichmentClient, EnrichmentError
from .cache import SQLiteCache, generate_cache_key
from .job_store import RetentionPolicy, SQLiteJobStore, StallPolicy
from .sqlite_store import LeadStore
from .usaspending import (
    SearchProviderError,
    SearchProviderRejectedError,
    SearchProviderTimeoutError,
    USASpendingClient,
)

__all__ = [
    "ApolloEnrichmentClient",
    "EnrichmentError",
    "LeadStore",
    "RetentionPolicy",
    "SQLiteCache",
    "SQLiteJobStore",
    "SearchProviderError",
    "SearchProviderRejectedError",
    "SearchProviderTimeoutError",
    "StallPolicy",
    "USASpendingClient",
    "generate_cache_key",
]
