"""
Per-job execution: run the search graph and record the outcome on the job.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from app.clients.job_store import SQLiteJobStore
from app.core.errors import JobCancelledError, error_code, is_retryable
from app.models.job import Job
from app.utils.http import RetryConfig
from workers.search_jobs.graph import completion_progress

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SearchJobProcessor:
    """Execute one claimed job and apply the retry policy on failure."""

    def __init__(
        self,
        *,
        store: SQLiteJobStore,
        graph: Any,
        retry_config: RetryConfig | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._graph = graph
        self._retry = retry_config or RetryConfig()
        self._clock = clock

    async def process(self, job: Job) -> Optional[Job]:
        """Return the job's final snapshot for this attempt, or None if cancelled."""
        extra = {"job_id": job.job_id, "attempt": job.attempts}
        logger.info("Processing search job", extra=extra)
        try:
            final_state = await self._graph.ainvoke({"job": job})
        except JobCancelledError:
            logger.info("Search job cancelled, discarding attempt", extra=extra)
            return None
        except Exception as exc:
            logger.exception("Search job attempt failed", extra=extra)
            return self._record_failure(job, exc)

        latest: Job = final_state["job"]
        now = self._clock()
        completed = latest.complete(
            final_state.get("result") or {},
            completion_progress(final_state.get("message") or "Search complete"),
            now,
        )
        if not self._store.save(completed):
            logger.info("Search job removed before completion was recorded", extra=extra)
            return None
        result = completed.result or {}
        logger.info(
            "Search job completed: %d leads from %d contracts in %.2fs",
            result.get("total_companies", 0),
            result.get("total_contracts", 0),
            (now - completed.created_at).total_seconds(),
            extra=extra,
        )
        return completed

    def _record_failure(self, job: Job, exc: Exception) -> Optional[Job]:
        current = self._store.get(job.job_id)
        if current is None:
            logger.info("Search job removed while failing, nothing to record", extra={"job_id": job.job_id})
            return None

        now = self._clock()
        message = str(exc) or exc.__class__.__name__
        code = error_code(exc)
        retryable = is_retryable(exc)
        if retryable and self._retry.should_retry(current.attempts):
            delay = self._retry.delay_for(current.attempts)
            updated = current.schedule_retry(
                error=message,
                error_code=code,
                available_at=now + timedelta(seconds=delay),
            )
            logger.warning(
                "Retrying search job in %.1fs (attempt %d of %d)",
                delay,
                current.attempts,
                self._retry.attempts,
                extra={"job_id": job.job_id},
            )
        else:
            updated = current.fail(error=message, error_code=code, retryable=retryable, now=now)
            logger.error(
                "Search job failed after %d attempt(s): %s",
                current.attempts,
                message,
                extra={"job_id": job.job_id},
            )
        if not self._store.save(updated):
            return None
        return updated


__all__ = ["SearchJobProcessor"]
