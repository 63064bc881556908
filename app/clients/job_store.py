"""SQLite-backed job store acting as the search job queue."""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

from app.models.job import Job, JobProgress, JobState

logger = logging.getLogger(__name__)

_CLAIM_ATTEMPTS = 3
STALLED_ERROR_CODE = "JOB_STALLED"


@dataclass(frozen=True, slots=True)
class RetentionPolicy:
    """How long (and how many) finished jobs are kept before being reaped."""

    completed_seconds: int = 3600
    completed_count: int = 100
    failed_seconds: int = 7200
    failed_count: int = 50


@dataclass(frozen=True, slots=True)
class StallPolicy:
    """When an ``active`` job is presumed abandoned by a dead worker."""

    lease_seconds: float = 300.0
    max_attempts: int = 3


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ts(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _build_job_id(now: datetime) -> str:
    """Millisecond timestamp plus a random suffix."""
    return f"search-{int(now.timestamp() * 1000)}-{uuid4().hex[:9]}"


class SQLiteJobStore:
    """Persist search jobs as whole snapshots keyed by job id."""

    def __init__(
        self,
        db_path: str,
        *,
        retention: RetentionPolicy | None = None,
        stall: StallPolicy | None = None,
    ) -> None:
        self._db_path = Path(db_path)
        self._retention = retention or RetentionPolicy()
        self._stall = stall or StallPolicy()
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, timeout=10.0, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS search_jobs (
                    job_id TEXT PRIMARY KEY,
                    state TEXT NOT NULL,
                    available_at TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    finished_at TEXT,
                    data TEXT NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_search_jobs_state "
                "ON search_jobs (state, available_at)"
            )

    def enqueue(
        self,
        payload: Dict[str, Any],
        *,
        user_id: str | None = None,
        now: datetime | None = None,
    ) -> Job:
        """Write a fresh ``queued`` job and return it."""
        now = now or _utcnow()
        self.prune(now=now)
        while True:
            job = Job(
                job_id=_build_job_id(now),
                payload=payload,
                user_id=user_id,
                created_at=now,
                available_at=now,
            )
            try:
                with self._connect() as conn:
                    conn.execute(
                        """
                        INSERT INTO search_jobs
                            (job_id, state, available_at, created_at, finished_at, data)
                        VALUES (?, ?, ?, ?, ?, ?)
                        """,
                        (
                            job.job_id,
                            job.state.value,
                            _ts(job.available_at),
                            _ts(job.created_at),
                            None,
                            json.dumps(job.to_record()),
                        ),
                    )
            except sqlite3.IntegrityError:
                logger.warning("Job id collision, regenerating", extra={"job_id": job.job_id})
                continue
            logger.info("Search job added to queue", extra={"job_id": job.job_id})
            return job

    def get(self, job_id: str) -> Optional[Job]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT data FROM search_jobs WHERE job_id = ?", (job_id,)
            ).fetchone()
        if not row:
            return None
        return Job.from_record(json.loads(row["data"]))

    def cancel(self, job_id: str) -> bool:
        """Remove the job record; in-flight work notices at its next step."""
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM search_jobs WHERE job_id = ?", (job_id,))
        removed = cursor.rowcount > 0
        if removed:
            logger.info("Job cancelled", extra={"job_id": job_id})
        else:
            logger.warning("Attempted to cancel non-existent job", extra={"job_id": job_id})
        return removed

    def claim_next(self, *, now: datetime | None = None) -> Optional[Job]:
        """Move the oldest due ``queued`` job to ``active`` and return it."""
        now = now or _utcnow()
        self.prune(now=now)
        self.recover_stalled(now=now)
        for _ in range(_CLAIM_ATTEMPTS):
            with self._connect() as conn:
                row = conn.execute(
                    """
                    SELECT data FROM search_jobs
                    WHERE state = ? AND available_at <= ?
                    ORDER BY available_at, created_at, rowid
                    LIMIT 1
                    """,
                    (JobState.QUEUED.value, _ts(now)),
                ).fetchone()
                if not row:
                    return None
                job = Job.from_record(json.loads(row["data"])).activate(now)
                cursor = conn.execute(
                    """
                    UPDATE search_jobs SET state = ?, data = ?
                    WHERE job_id = ? AND state = ?
                    """,
                    (
                        job.state.value,
                        json.dumps(job.to_record()),
                        job.job_id,
                        JobState.QUEUED.value,
                    ),
                )
            if cursor.rowcount == 1:
                return job
        return None

    def save(self, job: Job) -> bool:
        """Replace an existing snapshot; returns False when the record is gone."""
        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE search_jobs
                SET state = ?, available_at = ?, finished_at = ?, data = ?
                WHERE job_id = ?
                """,
                (
                    job.state.value,
                    _ts(job.available_at),
                    _ts(job.finished_at),
                    json.dumps(job.to_record()),
                    job.job_id,
                ),
            )
        return cursor.rowcount > 0

    def update_progress(self, job: Job, progress: JobProgress) -> Optional[Job]:
        """Persist progress unless it would move the percentage backwards.

        Returns None when the record is gone or no longer ``active``.
        """
        if progress.percentage < job.progress.percentage:
            logger.debug(
                "Skipping regressive progress update",
                extra={"job_id": job.job_id, "step": progress.step},
            )
            return job if self._is_active(job.job_id) else None
        updated = job.with_progress(progress)
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE search_jobs SET data = ? WHERE job_id = ? AND state = ?",
                (json.dumps(updated.to_record()), job.job_id, JobState.ACTIVE.value),
            )
        if cursor.rowcount == 0:
            return None
        logger.debug(
            "Progress %s%%", progress.percentage, extra={"job_id": job.job_id, "step": progress.step}
        )
        return updated

    def _is_active(self, job_id: str) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM search_jobs WHERE job_id = ? AND state = ?",
                (job_id, JobState.ACTIVE.value),
            ).fetchone()
        return row is not None

    def recover_stalled(self, *, now: datetime | None = None) -> int:
        """Requeue ``active`` jobs whose attempt outlived the stall lease.

        Jobs that already used every attempt are failed instead. A record that
        changed between the read and the write is left alone. A worker still
        running a recovered attempt sees its next progress write rejected.
        """
        now = now or _utcnow()
        deadline = now - timedelta(seconds=self._stall.lease_seconds)
        recovered = 0
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT data FROM search_jobs WHERE state = ?", (JobState.ACTIVE.value,)
            ).fetchall()
            for row in rows:
                job = Job.from_record(json.loads(row["data"]))
                if job.started_at is None or job.started_at > deadline:
                    continue
                message = (
                    f"Search job stalled: no outcome {self._stall.lease_seconds:g}s "
                    "after it was claimed"
                )
                if job.attempts >= self._stall.max_attempts:
                    updated = job.fail(
                        error=message, error_code=STALLED_ERROR_CODE, retryable=True, now=now
                    )
                else:
                    updated = job.schedule_retry(
                        error=message, error_code=STALLED_ERROR_CODE, available_at=now
                    )
                cursor = conn.execute(
                    """
                    UPDATE search_jobs
                    SET state = ?, available_at = ?, finished_at = ?, data = ?
                    WHERE job_id = ? AND state = ? AND data = ?
                    """,
                    (
                        updated.state.value,
                        _ts(updated.available_at),
                        _ts(updated.finished_at),
                        json.dumps(updated.to_record()),
                        job.job_id,
                        JobState.ACTIVE.value,
                        row["data"],
                    ),
                )
                if cursor.rowcount:
                    recovered += 1
                    logger.warning(
                        "Recovered stalled search job as %s",
                        updated.state.value,
                        extra={"job_id": job.job_id, "attempt": job.attempts},
                    )
        return recovered

    def prune(self, *, now: datetime | None = None) -> int:
        """Reap finished jobs outside their retention window."""
        now = now or _utcnow()
        policy = self._retention
        removed = 0
        with self._connect() as conn:
            for state, max_age, max_count in (
                (JobState.COMPLETED, policy.completed_seconds, policy.completed_count),
                (JobState.FAILED, policy.failed_seconds, policy.failed_count),
            ):
                threshold = _ts(now - timedelta(seconds=max_age))
                removed += conn.execute(
                    "DELETE FROM search_jobs WHERE state = ? AND finished_at < ?",
                    (state.value, threshold),
                ).rowcount
                removed += conn.execute(
                    """
                    DELETE FROM search_jobs
                    WHERE state = ? AND job_id NOT IN (
                        SELECT job_id FROM search_jobs
                        WHERE state = ?
                        ORDER BY finished_at DESC
                        LIMIT ?
                    )
                    """,
                    (state.value, state.value, max_count),
                ).rowcount
        return removed

    def metrics(self, *, now: datetime | None = None) -> Dict[str, int]:
        now = now or _utcnow()
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT state, COUNT(*) AS total FROM search_jobs GROUP BY state"
            ).fetchall()
            delayed = conn.execute(
                "SELECT COUNT(*) FROM search_jobs WHERE state = ? AND available_at > ?",
                (JobState.QUEUED.value, _ts(now)),
            ).fetchone()[0]
        counts = {row["state"]: row["total"] for row in rows}
        queued = counts.get(JobState.QUEUED.value, 0)
        metrics = {
            "waiting": queued - delayed,
            "delayed": delayed,
            "active": counts.get(JobState.ACTIVE.value, 0),
            "completed": counts.get(JobState.COMPLETED.value, 0),
            "failed": counts.get(JobState.FAILED.value, 0),
        }
        metrics["total"] = sum(metrics.values())
        return metrics

    def list_jobs(self, *, limit: int = 50) -> List[Job]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT data FROM search_jobs ORDER BY created_at DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [Job.from_record(json.loads(row["data"])) for row in rows]


__all__ = ["RetentionPolicy", "SQLiteJobStore", "STALLED_ERROR_CODE", "StallPolicy"]
