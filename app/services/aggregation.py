"""
Roll award records up into company profiles.

Pure and deterministic: the only implicit input is the reference time, which
callers may pin through ``now``.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Optional

from app.models.awards import (
    AgencyRollup,
    AggregatedCompany,
    ClassificationRollup,
    CompetitionLevel,
    RawAward,
)

logger = logging.getLogger(__name__)

TOP_AGENCY_LIMIT = 10
TOP_CLASSIFICATION_LIMIT = 5

_FULL_AND_OPEN = ("FULL AND OPEN",)
_SOLE_SOURCE = ("SOLE SOURCE", "NOT COMPETED")
_LIMITED = ("NOT AVAILABLE FOR COMPETITION",)


@dataclass
class _AgencyTally:
    code: str
    spending: float = 0.0
    count: int = 0


@dataclass
class _CodeTally:
    description: str
    count: int = 0


def parse_award_date(value: str) -> Optional[datetime]:
    """Parse an ISO date (or datetime) as UTC; anything else yields None."""
    if not value:
        return None
    text = value.strip()
    try:
        if len(text) == 10:
            parsed_date = date.fromisoformat(text)
            return datetime(
                parsed_date.year, parsed_date.month, parsed_date.day, tzinfo=timezone.utc
            )
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _matches(extent: str, needles: Iterable[str]) -> bool:
    return any(needle in extent for needle in needles)


def _unique(values: Iterable[str]) -> List[str]:
    """Distinct non-empty values in first-seen order."""
    return list(dict.fromkeys(value for value in values if value))


def _rank_codes(tallies: Dict[str, _CodeTally]) -> List[ClassificationRollup]:
    ranked = sorted(
        (
            ClassificationRollup(code=code, description=tally.description, contract_count=tally.count)
            for code, tally in tallies.items()
        ),
        key=lambda rollup: rollup.contract_count,
        reverse=True,
    )
    return ranked[:TOP_CLASSIFICATION_LIMIT]


def group_awards(awards: Iterable[RawAward]) -> Dict[str, List[RawAward]]:
    """Partition awards by recipient identity (UEI, else recipient name)."""
    groups: Dict[str, List[RawAward]] = defaultdict(list)
    skipped = 0
    for award in awards:
        key = award.group_key
        if not key:
            skipped += 1
            continue
        groups[key].append(award)
    if skipped:
        logger.debug("Skipped %d awards without recipient identity", skipped)
    return dict(groups)


def summarize_company(
    awards: List[RawAward], *, now: datetime | None = None
) -> AggregatedCompany:
    """Build the rollup for one non-empty group of awards."""
    if not awards:
        raise ValueError("Cannot summarize an empty award group")
    now = now or datetime.now(timezone.utc)
    first = awards[0]

    total_awards = sum(award.award_amount for award in awards)
    contract_count = len(awards)

    start_dates = [d for d in (parse_award_date(a.start_date) for a in awards) if d]
    end_dates = [d for d in (parse_award_date(a.end_date) for a in awards) if d]
    first_contract = min(start_dates) if start_dates else now
    last_contract = max(start_dates) if start_dates else now

    agencies: Dict[str, _AgencyTally] = {}
    naics: Dict[str, _CodeTally] = {}
    psc: Dict[str, _CodeTally] = {}
    for award in awards:
        if award.awarding_agency_name:
            tally = agencies.setdefault(
                award.awarding_agency_name, _AgencyTally(code=award.awarding_agency_code)
            )
            tally.spending += award.award_amount
            tally.count += 1
        if award.naics_code:
            naics.setdefault(award.naics_code, _CodeTally(award.naics_description)).count += 1
        if award.psc_code:
            psc.setdefault(award.psc_code, _CodeTally(award.psc_description)).count += 1

    top_agencies = sorted(
        (
            AgencyRollup(
                name=name,
                code=tally.code,
                total_spending=tally.spending,
                contract_count=tally.count,
            )
            for name, tally in agencies.items()
        ),
        key=lambda rollup: rollup.total_spending,
        reverse=True,
    )[:TOP_AGENCY_LIMIT]

    competition = CompetitionLevel(
        full_and_open=sum(1 for a in awards if _matches(a.extent_competed, _FULL_AND_OPEN)),
        sole_source=sum(1 for a in awards if _matches(a.extent_competed, _SOLE_SOURCE)),
        limited_competition=sum(1 for a in awards if _matches(a.extent_competed, _LIMITED)),
    )

    performance_states = _unique(a.performance_state for a in awards)

    return AggregatedCompany(
        company_name=first.recipient_name,
        uei=first.recipient_uei,
        duns=first.recipient_duns,
        recipient_type=first.recipient_type,
        recipient_scope=first.recipient_scope,
        primary_location=f"{first.recipient_city}, {first.recipient_state}".strip(),
        city=first.recipient_city,
        state=first.recipient_state,
        congressional_district=first.recipient_congressional_district,
        total_awards=total_awards,
        total_obligations=sum(a.total_obligation for a in awards),
        total_outlays=sum(a.total_outlays for a in awards),
        contract_count=contract_count,
        avg_contract_value=total_awards / contract_count,
        largest_contract_value=max(a.award_amount for a in awards),
        first_contract_date=first_contract.date().isoformat(),
        last_contract_date=last_contract.date().isoformat(),
        active_contracts=sum(1 for end in end_dates if end > now),
        years_in_business=max(1, now.year - first_contract.year),
        top_agencies=top_agencies,
        agency_count=len(agencies),
        top_naics=_rank_codes(naics),
        top_psc=_rank_codes(psc),
        contract_types=_unique(a.contract_type for a in awards),
        set_aside_programs=_unique(a.set_aside_type for a in awards),
        competition_level=competition,
        covid19_recipient=any(a.covid19_obligations > 0 for a in awards),
        infrastructure_recipient=any(a.infrastructure_obligations > 0 for a in awards),
        disaster_funding_recipient=any(len(a.def_codes) > 0 for a in awards),
        performance_states=performance_states,
        multi_state_operator=len(performance_states) > 1,
    )


def aggregate_by_company(
    awards: Iterable[RawAward], *, now: datetime | None = None
) -> List[AggregatedCompany]:
    """Group awards per recipient and rank companies by total award value."""
    now = now or datetime.now(timezone.utc)
    companies = [
        summarize_company(group, now=now) for group in group_awards(awards).values()
    ]
    companies.sort(key=lambda company: company.total_awards, reverse=True)
    return companies


__all__ = [
    "TOP_AGENCY_LIMIT",
    "TOP_CLASSIFICATION_LIMIT",
    "aggregate_by_company",
    "group_awards",
    "parse_award_date",
    "summarize_company",
]
