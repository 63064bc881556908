"""
Data models shared across the search worker package.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, TypedDict

from app.models.awards import AggregatedCompany, EnrichedLead, Enrichment, RawAward
from app.models.job import Job


class SearchState(TypedDict, total=False):
    """State tracked inside the LangGraph workflow."""

    job: Job
    awards: List[RawAward]
    companies: List[AggregatedCompany]
    enrichments: Dict[str, Enrichment]
    leads: List[EnrichedLead]
    result: Optional[Dict[str, Any]]
    message: str


__all__ = ["SearchState"]
