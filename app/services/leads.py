"""Assemble scored, enriched leads from company rollups."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Mapping, Optional

from app.models.awards import AggregatedCompany, EnrichedLead, Enrichment
from app.services.enrichment import find_decision_makers
from app.services.scoring import calculate_sales_intelligence

BEST_CONTACT_TIME = "Tuesday-Thursday, 10am-2pm EST"


def build_enriched_lead(
    company: AggregatedCompany,
    enrichment: Optional[Enrichment] = None,
    *,
    now: datetime | None = None,
) -> EnrichedLead:
    enrichment = enrichment or Enrichment()
    intelligence = calculate_sales_intelligence(company, now=now)
    intelligence.best_contact_time = BEST_CONTACT_TIME
    intelligence.decision_makers = find_decision_makers(enrichment.contacts)
    info = enrichment.company_info
    return EnrichedLead(
        company=company,
        contacts=list(enrichment.contacts),
        company_size=info.size,
        industry=info.industry,
        website=info.website,
        linkedin=info.linkedin,
        description=info.description,
        specialities=list(info.specialities),
        sales_intelligence=intelligence,
    )


def build_leads(
    companies: List[AggregatedCompany],
    enrichments: Mapping[str, Enrichment],
    *,
    now: datetime | None = None,
) -> List[EnrichedLead]:
    """Score every company, attaching the enrichment found under its name."""
    return [
        build_enriched_lead(company, enrichments.get(company.company_name), now=now)
        for company in companies
    ]


def summarize_result(
    leads: List[EnrichedLead], *, total_contracts: int
) -> Dict[str, object]:
    return {
        "leads": [lead.to_dict() for lead in leads],
        "total_contracts": total_contracts,
        "total_companies": len(leads),
    }


__all__ = ["BEST_CONTACT_TIME", "build_enriched_lead", "build_leads", "summarize_result"]
