"""
Opportunity scoring for aggregated companies.

Points are accumulated per factor (award volume, contract count, agency
breadth, recency, active work, longevity) and the total is clamped to 0-100.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Tuple

from app.models.awards import (
    AggregatedCompany,
    RelationshipStrength,
    SalesIntelligence,
    SpendingTrend,
)
from app.services.aggregation import parse_award_date

MAX_SCORE = 100
MIN_SCORE = 0

RECOMMENDED_APPROACHES = {
    RelationshipStrength.STRATEGIC: (
        "Executive-level engagement. Propose strategic partnership or enterprise solutions."
    ),
    RelationshipStrength.ESTABLISHED: (
        "Target specific agency relationships. Propose solutions aligned with their "
        "proven capabilities."
    ),
    RelationshipStrength.EMERGING: (
        "Build relationship through value-add content. Focus on their growth areas."
    ),
    RelationshipStrength.NEW: (
        "Educational approach. Help them understand government contracting opportunities."
    ),
}

# (threshold, points) pairs, highest tier first; a value must exceed the threshold.
_CONTRACT_COUNT_TIERS = ((50, 15), (20, 10), (5, 5))
_ACTIVE_CONTRACT_TIERS = ((10, 15), (5, 10), (0, 5))
_LONGEVITY_TIERS = ((10, 15), (5, 10), (2, 5))
# (max days since last contract, points)
_RECENCY_TIERS = ((180, 20), (365, 15), (730, 10))


def _tier_points(value: float, tiers: Tuple[Tuple[float, int], ...]) -> Tuple[int, bool]:
    """Return the points for ``value`` and whether the top tier was reached."""
    for index, (threshold, points) in enumerate(tiers):
        if value > threshold:
            return points, index == 0
    return 0, False


def _format_millions(amount: float) -> str:
    return f"${amount / 1_000_000:.1f}M"


def days_since(date_text: str, *, now: datetime) -> float:
    parsed = parse_award_date(date_text)
    if parsed is None:
        return float("inf")
    return (now - parsed).total_seconds() / 86400


def classify_relationship(company: AggregatedCompany) -> RelationshipStrength:
    """First matching rule wins."""
    if company.years_in_business < 2 or company.contract_count < 3:
        return RelationshipStrength.NEW
    if company.years_in_business < 5 or company.agency_count < 3:
        return RelationshipStrength.EMERGING
    if company.years_in_business < 10 or company.total_awards < 20_000_000:
        return RelationshipStrength.ESTABLISHED
    return RelationshipStrength.STRATEGIC


def classify_spending_trend(company: AggregatedCompany) -> SpendingTrend:
    """Activity heuristic; there is no time series to detect a decline."""
    if company.active_contracts > company.contract_count * 0.3:
        return SpendingTrend.GROWING
    return SpendingTrend.STABLE


def calculate_sales_intelligence(
    company: AggregatedCompany, *, now: datetime | None = None
) -> SalesIntelligence:
    """Score a company and explain the score with human-readable insights."""
    now = now or datetime.now(timezone.utc)
    score = 0
    insights: List[str] = []

    if company.total_awards > 50_000_000:
        score += 30
        insights.append(
            f"Major federal contractor with {_format_millions(company.total_awards)} in awards"
        )
    elif company.total_awards > 10_000_000:
        score += 20
        insights.append(
            f"Significant contractor with {_format_millions(company.total_awards)} in awards"
        )
    elif company.total_awards > 1_000_000:
        score += 10

    points, top_tier = _tier_points(company.contract_count, _CONTRACT_COUNT_TIERS)
    score += points
    if top_tier:
        insights.append(f"Highly active with {company.contract_count} contracts")

    if company.agency_count > 5:
        score += 5
        insights.append(f"Works with {company.agency_count} different agencies")

    elapsed = days_since(company.last_contract_date, now=now)
    for index, (max_days, points) in enumerate(_RECENCY_TIERS):
        if elapsed < max_days:
            score += points
            if index == 0:
                insights.append("Recent contract activity (last 6 months)")
            break

    points, top_tier = _tier_points(company.active_contracts, _ACTIVE_CONTRACT_TIERS)
    score += points
    if top_tier:
        insights.append(f"{company.active_contracts} active ongoing contracts")

    points, top_tier = _tier_points(company.years_in_business, _LONGEVITY_TIERS)
    score += points
    if top_tier:
        insights.append(
            f"{company.years_in_business} years of federal contracting experience"
        )

    if company.set_aside_programs:
        insights.append(f"Participates in: {', '.join(company.set_aside_programs[:2])}")

    if company.multi_state_operator:
        insights.append(
            f"Multi-state operator in {len(company.performance_states)} states"
        )

    strength = classify_relationship(company)
    return SalesIntelligence(
        opportunity_score=max(MIN_SCORE, min(MAX_SCORE, score)),
        relationship_strength=strength,
        spending_trend=classify_spending_trend(company),
        key_insights=insights,
        recommended_approach=RECOMMENDED_APPROACHES[strength],
    )


__all__ = [
    "RECOMMENDED_APPROACHES",
    "calculate_sales_intelligence",
    "classify_relationship",
    "classify_spending_trend",
    "days_since",
]
