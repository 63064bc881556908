"""Service layer exports."""

from .aggregation import aggregate_by_company
from .enrichment import generate_synthetic_enrichment, is_decision_maker
from .leads import build_enriched_lead, build_leads
from .scoring import calculate_sales_intelligence
from .search_jobs import SearchJobService

__all__ = [
    "SearchJobService",
    "aggregate_by_company",
    "build_enriched_lead",
    "build_leads",
    "calculate_sales_intelligence",
    "generate_synthetic_enrichment",
    "is_decision_maker",
]
