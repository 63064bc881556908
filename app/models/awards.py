"""
Domain models for federal award records and the company profiles built from them.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True, slots=True)
class RawAward:
    """One award row as returned by the contract search provider."""

    award_id: str = ""
    award_type: str = ""
    award_description: str = ""

    recipient_name: str = ""
    recipient_uei: str = ""
    recipient_duns: str = ""
    recipient_type: str = ""
    recipient_scope: str = ""
    recipient_city: str = ""
    recipient_state: str = ""
    recipient_country: str = ""
    recipient_zip: str = ""
    recipient_congressional_district: str = ""

    performance_city: str = ""
    performance_state: str = ""
    performance_country: str = ""
    performance_zip: str = ""
    performance_congressional_district: str = ""
    performance_scope: str = ""

    award_amount: float = 0.0
    total_obligation: float = 0.0
    total_outlays: float = 0.0

    start_date: str = ""
    end_date: str = ""
    last_modified_date: str = ""

    awarding_agency_code: str = ""
    awarding_agency_name: str = ""
    awarding_sub_agency_code: str = ""
    awarding_sub_agency_name: str = ""
    funding_agency_code: str = ""
    funding_agency_name: str = ""
    funding_sub_agency_code: str = ""
    funding_sub_agency_name: str = ""

    naics_code: str = ""
    naics_description: str = ""
    psc_code: str = ""
    psc_description: str = ""

    contract_type: str = ""
    contract_pricing_type: str = ""
    set_aside_type: str = ""
    extent_competed: str = ""

    cfda_number: str = ""
    cfda_title: str = ""

    def_codes: Tuple[str, ...] = ()
    covid19_obligations: float = 0.0
    infrastructure_obligations: float = 0.0

    @property
    def group_key(self) -> str:
        """UEI when present, otherwise the recipient name."""
        return self.recipient_uei or self.recipient_name

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RawAward":
        values = dict(data)
        values["def_codes"] = tuple(values.get("def_codes") or ())
        return cls(**values)


@dataclass(frozen=True, slots=True)
class AgencyRollup:
    name: str
    code: str
    total_spending: float
    contract_count: int


@dataclass(frozen=True, slots=True)
class ClassificationRollup:
    """Contract count for a NAICS or PSC code."""

    code: str
    description: str
    contract_count: int


@dataclass(frozen=True, slots=True)
class CompetitionLevel:
    full_and_open: int = 0
    sole_source: int = 0
    limited_competition: int = 0


@dataclass(frozen=True, slots=True)
class AggregatedCompany:
    """Company-level rollup of every award sharing one recipient identity."""

    company_name: str
    uei: str
    duns: str
    recipient_type: str
    recipient_scope: str
    primary_location: str
    city: str
    state: str
    congressional_district: str

    total_awards: float
    total_obligations: float
    total_outlays: float
    contract_count: int
    avg_contract_value: float
    largest_contract_value: float

    first_contract_date: str
    last_contract_date: str
    active_contracts: int
    years_in_business: int

    top_agencies: List[AgencyRollup]
    agency_count: int
    top_naics: List[ClassificationRollup]
    top_psc: List[ClassificationRollup]

    contract_types: List[str]
    set_aside_programs: List[str]
    competition_level: CompetitionLevel

    covid19_recipient: bool
    infrastructure_recipient: bool
    disaster_funding_recipient: bool

    performance_states: List[str]
    multi_state_operator: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class RelationshipStrength(str, Enum):
    """Depth of a company's federal relationships, weakest first."""

    NEW = "New"
    EMERGING = "Emerging"
    ESTABLISHED = "Established"
    STRATEGIC = "Strategic"

    @property
    def rank(self) -> int:
        return list(RelationshipStrength).index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, RelationshipStrength):
            return NotImplemented
        return self.rank < other.rank


class SpendingTrend(str, Enum):
    GROWING = "Growing"
    STABLE = "Stable"
    # Part of the taxonomy; the activity heuristic never yields it.
    DECLINING = "Declining"


@dataclass(slots=True)
class Contact:
    name: str
    title: str
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    linkedin: str = ""
    photo_url: Optional[str] = None
    organization_name: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class CompanyInfo:
    size: str = ""
    industry: str = ""
    website: str = ""
    linkedin: str = ""
    description: str = ""
    specialities: List[str] = field(default_factory=list)


@dataclass(slots=True)
class Enrichment:
    """Contacts and profile data returned for one company name."""

    contacts: List[Contact] = field(default_factory=list)
    company_info: CompanyInfo = field(default_factory=CompanyInfo)


@dataclass(slots=True)
class SalesIntelligence:
    opportunity_score: int
    relationship_strength: RelationshipStrength
    spending_trend: SpendingTrend
    key_insights: List[str]
    recommended_approach: str
    best_contact_time: str = ""
    decision_makers: List[Contact] = field(default_factory=list)


@dataclass(slots=True)
class EnrichedLead:
    """A scored company profile merged with its enrichment data."""

    company: AggregatedCompany
    contacts: List[Contact]
    company_size: str
    industry: str
    website: str
    linkedin: str
    description: str
    specialities: List[str]
    sales_intelligence: SalesIntelligence

    @property
    def company_key(self) -> str:
        return self.company.uei or self.company.company_name

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        intelligence = payload["sales_intelligence"]
        intelligence["relationship_strength"] = self.sales_intelligence.relationship_strength.value
        intelligence["spending_trend"] = self.sales_intelligence.spending_trend.value
        return payload


__all__ = [
    "AgencyRollup",
    "AggregatedCompany",
    "ClassificationRollup",
    "CompanyInfo",
    "CompetitionLevel",
    "Contact",
    "EnrichedLead",
    "Enrichment",
    "RawAward",
    "RelationshipStrength",
    "SalesIntelligence",
    "SpendingTrend",
]
