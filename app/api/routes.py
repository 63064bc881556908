"""
FastAPI routes for contractor search jobs, stored leads and the search cache.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.core.errors import JobNotFoundError, PersistenceError
from app.dependencies import get_cache, get_lead_store, get_search_job_service
from app.schemas import (
    CacheInvalidationRequest,
    JobCancelResponse,
    JobQueuedResponse,
    JobStatusResponse,
    SearchFilters,
)

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.post("/jobs", response_model=JobQueuedResponse, status_code=HTTPStatus.ACCEPTED)
async def submit_search_job(
    filters: SearchFilters,
    job_service: Annotated[Any, Depends(get_search_job_service)],
    user_id: Optional[str] = Query(
        default=None, description="Optional user identifier recorded with the search."
    ),
) -> JobQueuedResponse:
    """Queue a contractor search; poll the returned job id for progress."""
    job = job_service.enqueue_search(filters=filters, user_id=user_id)
    return JobQueuedResponse(
        job_id=job.job_id,
        status=job.state.value,
        message="Search job queued. Poll /api/jobs/{job_id} for progress.",
    )


@router.get(
    "/jobs/{job_id}",
    response_model=JobStatusResponse,
    response_model_exclude_none=True,
    status_code=HTTPStatus.OK,
)
async def get_search_job_status(
    job_id: str,
    job_service: Annotated[Any, Depends(get_search_job_service)],
) -> dict:
    """Return progress, result or failure details for a job."""
    try:
        return job_service.get_status(job_id)
    except JobNotFoundError as exc:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="Job not found.") from exc


@router.post("/jobs/{job_id}/cancel", response_model=JobCancelResponse, status_code=HTTPStatus.OK)
async def cancel_search_job(
    job_id: str,
    job_service: Annotated[Any, Depends(get_search_job_service)],
) -> dict:
    """Remove a job; a running pipeline stops at its next step."""
    return job_service.cancel(job_id)


@router.get("/queue/metrics", status_code=HTTPStatus.OK)
async def get_queue_metrics(
    job_service: Annotated[Any, Depends(get_search_job_service)],
) -> dict:
    return job_service.metrics()


@router.get("/searches", status_code=HTTPStatus.OK)
async def list_recent_searches(
    lead_store: Annotated[Any, Depends(get_lead_store)],
    user_id: Optional[str] = Query(default=None),
    limit: int = Query(default=10, ge=1, le=100),
) -> dict:
    """Most recent search-history records, newest first."""
    try:
        searches = lead_store.recent_searches(limit=limit, user_id=user_id)
    except PersistenceError as exc:
        logger.exception("Failed to load search history")
        raise HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            detail="Search history unavailable.",
        ) from exc
    return {"searches": searches}


@router.get("/companies", status_code=HTTPStatus.OK)
async def list_companies(
    lead_store: Annotated[Any, Depends(get_lead_store)],
    state: Optional[str] = Query(default=None, max_length=100),
    industry: Optional[str] = Query(default=None, max_length=200),
    min_score: int = Query(default=0, ge=0, le=100),
    limit: int = Query(default=100, ge=1, le=500),
) -> dict:
    """Stored leads, highest opportunity score first."""
    try:
        companies = lead_store.search_companies(
            state=state, industry=industry, min_score=min_score, limit=limit
        )
    except PersistenceError as exc:
        logger.exception("Failed to load companies")
        raise HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            detail="Failed to fetch companies.",
        ) from exc
    return {"companies": companies, "count": len(companies)}


@router.get("/companies/{company_key}", status_code=HTTPStatus.OK)
async def get_company(
    company_key: str,
    lead_store: Annotated[Any, Depends(get_lead_store)],
) -> dict:
    try:
        company = lead_store.get_company(company_key)
    except PersistenceError as exc:
        logger.exception("Failed to load company %s", company_key)
        raise HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            detail="Failed to fetch company.",
        ) from exc
    if company is None:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="Company not found.")
    return company


@router.get("/cache/stats", status_code=HTTPStatus.OK)
async def get_cache_stats(
    cache: Annotated[Any, Depends(get_cache)],
) -> dict:
    """Counters for this process plus live entries per prefix from the shared table."""
    return {
        "stats": cache.stats.to_dict(),
        "entries": cache.entry_counts(),
        "message": "Cache statistics retrieved successfully",
    }


@router.post("/cache/invalidate", status_code=HTTPStatus.OK)
async def invalidate_cache(
    request: CacheInvalidationRequest,
    cache: Annotated[Any, Depends(get_cache)],
) -> dict:
    if request.all:
        removed = cache.clear()
        logger.info("All cache cleared (%d entries)", removed)
        return {
            "success": True,
            "keys_deleted": removed,
            "message": "All cache cleared successfully",
        }
    removed = cache.clear(request.prefix)
    logger.info("Cache invalidated for prefix %s (%d entries)", request.prefix, removed)
    return {
        "success": True,
        "prefix": request.prefix,
        "keys_deleted": removed,
        "message": f"Invalidated {removed} cache entries for prefix: {request.prefix}",
    }
