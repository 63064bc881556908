"""
Service helpers for enqueuing search jobs and reporting their lifecycle.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Dict, Optional

from app.clients.job_store import SQLiteJobStore
from app.core.errors import JobNotFoundError
from app.models.job import Job, JobState
from app.schemas.search import SearchFilters

logger = logging.getLogger(__name__)


class SearchJobService:
    """Queue contractor searches and translate job snapshots for pollers."""

    def __init__(self, store: SQLiteJobStore) -> None:
        self._store = store

    def enqueue_search(
        self, *, filters: SearchFilters, user_id: Optional[str] = None
    ) -> Job:
        """Persist a queued job; the worker picks it up asynchronously."""
        return self._store.enqueue(filters.to_payload(), user_id=user_id)

    def get_status(self, job_id: str) -> Dict[str, Any]:
        job = self._store.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return self.build_status(job)

    def cancel(self, job_id: str) -> Dict[str, Any]:
        removed = self._store.cancel(job_id)
        message = "Job cancelled successfully" if removed else "Job not found or already completed"
        return {"job_id": job_id, "success": removed, "message": message}

    def metrics(self) -> Dict[str, int]:
        return self._store.metrics()

    @staticmethod
    def build_status(job: Job) -> Dict[str, Any]:
        """Status document: always progress and attempts, plus state-specific fields."""
        status: Dict[str, Any] = {
            "job_id": job.job_id,
            "status": job.state.value,
            "progress": asdict(job.progress),
            "attempts": job.attempts,
            "created_at": job.created_at.isoformat(),
        }
        if job.started_at:
            status["started_at"] = job.started_at.isoformat()

        if job.state is JobState.COMPLETED:
            status["result"] = job.result
            if job.finished_at:
                status["completed_at"] = job.finished_at.isoformat()
                status["duration"] = (job.finished_at - job.created_at).total_seconds()
        elif job.error:
            status["error"] = job.error
            status["error_code"] = job.error_code
            status["retryable"] = job.retryable
            if job.state is JobState.FAILED and job.finished_at:
                status["failed_at"] = job.finished_at.isoformat()
            elif job.state is JobState.QUEUED:
                status["next_attempt_at"] = job.available_at.isoformat()
        return status


__all__ = ["SearchJobService"]
