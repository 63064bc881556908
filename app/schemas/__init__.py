"""Public schema exports."""

from .cache import CacheInvalidationRequest
from .search import (
    JobCancelResponse,
    JobProgressView,
    JobQueuedResponse,
    JobStatusResponse,
    SearchFilters,
    TimePeriod,
)

__all__ = [
    "CacheInvalidationRequest",
    "JobCancelResponse",
    "JobProgressView",
    "JobQueuedResponse",
    "JobStatusResponse",
    "SearchFilters",
    "TimePeriod",
]
