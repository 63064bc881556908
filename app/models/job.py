"""
Immutable search job snapshots.

Every state transition returns a new ``Job``; the job store persists whole
snapshots so concurrent readers always see a complete record.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

TOTAL_STEPS = 5


class JobState(str, Enum):
    QUEUED = "queued"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.FAILED)


@dataclass(frozen=True, slots=True)
class JobProgress:
    step: str = "queued"
    current: int = 0
    total: int = TOTAL_STEPS
    percentage: int = 0
    message: str = ""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _format_ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True, slots=True)
class Job:
    job_id: str
    payload: Dict[str, Any]
    state: JobState = JobState.QUEUED
    user_id: Optional[str] = None
    progress: JobProgress = field(default_factory=JobProgress)
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    retryable: Optional[bool] = None
    attempts: int = 0
    created_at: datetime = field(default_factory=_utcnow)
    available_at: datetime = field(default_factory=_utcnow)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def activate(self, now: datetime) -> "Job":
        return replace(
            self,
            state=JobState.ACTIVE,
            attempts=self.attempts + 1,
            started_at=now,
        )

    def with_progress(self, progress: JobProgress) -> "Job":
        return replace(self, progress=progress)

    def complete(
        self, result: Dict[str, Any], progress: JobProgress, now: datetime
    ) -> "Job":
        return replace(
            self,
            state=JobState.COMPLETED,
            progress=progress,
            result=result,
            error=None,
            error_code=None,
            retryable=None,
            finished_at=now,
        )

    def schedule_retry(
        self, *, error: str, error_code: str, available_at: datetime
    ) -> "Job":
        """Return to the queue; the last error stays visible to pollers."""
        return replace(
            self,
            state=JobState.QUEUED,
            error=error,
            error_code=error_code,
            retryable=True,
            available_at=available_at,
        )

    def fail(
        self, *, error: str, error_code: str, retryable: bool, now: datetime
    ) -> "Job":
        return replace(
            self,
            state=JobState.FAILED,
            error=error,
            error_code=error_code,
            retryable=retryable,
            finished_at=now,
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "payload": self.payload,
            "state": self.state.value,
            "user_id": self.user_id,
            "progress": asdict(self.progress),
            "result": self.result,
            "error": self.error,
            "error_code": self.error_code,
            "retryable": self.retryable,
            "attempts": self.attempts,
            "created_at": _format_ts(self.created_at),
            "available_at": _format_ts(self.available_at),
            "started_at": _format_ts(self.started_at),
            "finished_at": _format_ts(self.finished_at),
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Job":
        return cls(
            job_id=record["job_id"],
            payload=record.get("payload") or {},
            state=JobState(record["state"]),
            user_id=record.get("user_id"),
            progress=JobProgress(**(record.get("progress") or {})),
            result=record.get("result"),
            error=record.get("error"),
            error_code=record.get("error_code"),
            retryable=record.get("retryable"),
            attempts=record.get("attempts", 0),
            created_at=_parse_ts(record["created_at"]),
            available_at=_parse_ts(record.get("available_at")) or _parse_ts(record["created_at"]),
            started_at=_parse_ts(record.get("started_at")),
            finished_at=_parse_ts(record.get("finished_at")),
        )


__all__ = ["Job", "JobProgress", "JobState", "TOTAL_STEPS"]
