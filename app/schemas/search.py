"""
Pydantic models for contractor search jobs.
"""

from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, constr, model_validator

CodeString = constr(pattern=r"^[a-zA-Z0-9_-]+$", min_length=1, max_length=10)

MAX_AWARD_AMOUNT = 1_000_000_000_000


class TimePeriod(BaseModel):
    """Inclusive award date window."""

    model_config = ConfigDict(extra="forbid")

    start_date: date
    end_date: date

    @model_validator(mode="after")
    def _check_order(self) -> "TimePeriod":
        if self.start_date > self.end_date:
            raise ValueError("start_date must be before or equal to end_date")
        return self


class SearchFilters(BaseModel):
    """Filters accepted by the contractor search."""

    model_config = ConfigDict(extra="forbid")

    industry: Optional[str] = Field(
        None, max_length=200, description="NAICS code; overrides naics_codes."
    )
    naics_codes: Optional[List[CodeString]] = Field(None, max_length=50)
    psc_codes: Optional[List[CodeString]] = Field(None, max_length=50)

    location: Optional[str] = Field(
        None,
        max_length=100,
        description="Place-of-performance state code, or 'USA' for nationwide.",
    )
    performance_location: Optional[str] = Field(None, max_length=100)

    agency: Optional[str] = Field(None, max_length=200, description="Awarding toptier agency name.")
    agency_codes: Optional[List[CodeString]] = Field(None, max_length=50)

    keywords: Optional[str] = Field(None, max_length=500)
    recipient_search: Optional[str] = Field(None, max_length=200)

    min_award_amount: Optional[float] = Field(None, ge=0, le=MAX_AWARD_AMOUNT)
    max_award_amount: Optional[float] = Field(None, ge=0, le=MAX_AWARD_AMOUNT)

    timeperiod: Optional[TimePeriod] = None

    award_types: Optional[List[constr(max_length=50)]] = Field(None, max_length=20)
    set_aside_types: Optional[List[constr(max_length=100)]] = Field(None, max_length=20)
    competition_levels: Optional[List[constr(max_length=100)]] = Field(None, max_length=20)

    covid19_only: Optional[bool] = None
    infrastructure_only: Optional[bool] = None
    small_business_only: Optional[bool] = None

    @model_validator(mode="after")
    def _check_award_range(self) -> "SearchFilters":
        if (
            self.min_award_amount is not None
            and self.max_award_amount is not None
            and self.min_award_amount > self.max_award_amount
        ):
            raise ValueError("min_award_amount must be less than or equal to max_award_amount")
        return self

    def to_payload(self) -> Dict[str, Any]:
        """JSON-safe dict of the supplied filters, as stored on the job."""
        return self.model_dump(mode="json", exclude_none=True)


class JobProgressView(BaseModel):
    step: str
    current: int
    total: int
    percentage: int
    message: str


class JobQueuedResponse(BaseModel):
    job_id: str
    status: str = "queued"
    message: str


class JobCancelResponse(BaseModel):
    job_id: str
    success: bool
    message: str


class JobStatusResponse(BaseModel):
    """Poll-able view of a search job."""

    job_id: str
    status: str
    progress: JobProgressView
    attempts: int
    created_at: str
    started_at: Optional[str] = None
    result: Optional[Dict[str, Any]] = None
    completed_at: Optional[str] = None
    duration: Optional[float] = Field(None, description="Seconds from creation to completion.")
    error: Optional[str] = None
    error_code: Optional[str] = None
    retryable: Optional[bool] = None
    failed_at: Optional[str] = None
    next_attempt_at: Optional[str] = None


__all__ = [
    "JobCancelResponse",
    "JobProgressView",
    "JobQueuedResponse",
    "JobStatusResponse",
    "SearchFilters",
    "TimePeriod",
]
