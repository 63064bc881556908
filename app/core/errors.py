"""
Error taxonomy shared by the search worker, the job store and the API layer.

``retryable`` decides whether the job store schedules another attempt after a
failure or marks the job as failed straight away.
"""

from __future__ import annotations


class LeadPipelineError(RuntimeError):
    """Base class for failures raised while producing leads."""

    code = "PIPELINE_ERROR"
    retryable = False

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


class TransientError(LeadPipelineError):
    """Network or timeout failure that is safe to retry."""

    code = "TRANSIENT_ERROR"
    retryable = True


class PermanentError(LeadPipelineError):
    """Failure that will recur on every attempt."""

    code = "PERMANENT_ERROR"


class FilterValidationError(PermanentError):
    """Search filters were malformed."""

    code = "VALIDATION_ERROR"


class PersistenceError(LeadPipelineError):
    """Lead or search-history write failed."""

    code = "DATABASE_ERROR"


class JobNotFoundError(LeadPipelineError):
    """The job id is unknown or its record has been reaped."""

    code = "JOB_NOT_FOUND"

    def __init__(self, job_id: str) -> None:
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id


class JobCancelledError(LeadPipelineError):
    """The job record disappeared while the pipeline was running."""

    code = "JOB_CANCELLED"

    def __init__(self, job_id: str) -> None:
        super().__init__(f"Job {job_id} was cancelled")
        self.job_id = job_id


def is_retryable(exc: BaseException) -> bool:
    """Unknown exceptions are retried; classified ones declare their policy."""
    if isinstance(exc, LeadPipelineError):
        return exc.retryable
    return True


def error_code(exc: BaseException) -> str:
    if isinstance(exc, LeadPipelineError):
        return exc.code
    return "UNEXPECTED_ERROR"


__all__ = [
    "FilterValidationError",
    "JobCancelledError",
    "JobNotFoundError",
    "LeadPipelineError",
    "PermanentError",
    "PersistenceError",
    "TransientError",
    "error_code",
    "is_retryable",
]
