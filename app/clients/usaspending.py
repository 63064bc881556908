"""Contract award search against the USASpending.gov v2 API."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

import httpx

from app.core.errors import PermanentError, TransientError
from app.models.awards import RawAward

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.usaspending.gov/api/v2"
DEFAULT_AWARD_TYPES = ["A", "B", "C", "D"]

AWARD_FIELDS = [
    "Award ID",
    "Award Type",
    "Award Description",
    "Recipient Name",
    "Recipient UEI",
    "Recipient DUNS",
    "Recipient Parent UEI",
    "Recipient Parent Name",
    "Recipient Business Type",
    "Recipient Location City Name",
    "Recipient Location State Code",
    "Recipient Location Country Name",
    "Recipient Location ZIP Code",
    "Recipient Location Congressional District",
    "Place of Performance City Name",
    "Place of Performance State Code",
    "Place of Performance Country Name",
    "Place of Performance ZIP Code",
    "Place of Performance Congressional District",
    "Award Amount",
    "Total Obligation",
    "Total Outlays",
    "Start Date",
    "End Date",
    "Last Modified Date",
    "Awarding Agency",
    "Awarding Agency Code",
    "Awarding Sub Agency",
    "Awarding Sub Agency Code",
    "Funding Agency",
    "Funding Agency Code",
    "Funding Sub Agency",
    "Funding Sub Agency Code",
    "NAICS Code",
    "NAICS Description",
    "PSC Code",
    "PSC Description",
    "Contract Award Type",
    "Contract Pricing",
    "Type of Set Aside",
    "Extent Competed",
    "SAI Number",
    "CFDA Title",
    "DEF Codes",
    "COVID-19 Obligations",
    "COVID-19 Outlays",
    "Infrastructure Obligations",
    "Infrastructure Outlays",
]

_DOMESTIC_COUNTRY = "UNITED STATES"


class SearchProviderError(TransientError):
    """Award search failed in a way that may succeed on retry."""

    code = "SEARCH_PROVIDER_ERROR"


class SearchProviderTimeoutError(SearchProviderError):
    code = "SEARCH_PROVIDER_TIMEOUT"


class SearchProviderRejectedError(PermanentError):
    """The provider refused the request (4xx other than 429)."""

    code = "SEARCH_PROVIDER_REJECTED"


def build_search_payload(
    filters: Mapping[str, Any],
    *,
    today: date | None = None,
    page_limit: int = 500,
    lookback_years: int = 3,
) -> Dict[str, Any]:
    """Translate search filters into a ``spending_by_award`` request body."""
    today = today or date.today()
    api_filters: Dict[str, Any] = {}

    timeperiod = filters.get("timeperiod")
    if timeperiod:
        api_filters["time_period"] = [
            {
                "start_date": str(timeperiod["start_date"]),
                "end_date": str(timeperiod["end_date"]),
            }
        ]
    else:
        api_filters["time_period"] = [
            {
                "start_date": f"{today.year - lookback_years}-10-01",
                "end_date": f"{today.year}-09-30",
            }
        ]

    api_filters["award_type_codes"] = list(filters.get("award_types") or DEFAULT_AWARD_TYPES)

    if filters.get("industry"):
        api_filters["naics_codes"] = [filters["industry"]]
    elif filters.get("naics_codes"):
        api_filters["naics_codes"] = list(filters["naics_codes"])

    if filters.get("psc_codes"):
        api_filters["psc_codes"] = list(filters["psc_codes"])

    location = filters.get("location")
    if location and location != "USA":
        api_filters["place_of_performance_locations"] = [
            {"country": "USA", "state": location}
        ]

    if filters.get("recipient_search"):
        api_filters["recipient_search_text"] = [filters["recipient_search"]]

    if filters.get("keywords"):
        api_filters["keywords"] = [filters["keywords"]]

    if filters.get("agency"):
        api_filters["agencies"] = [
            {"type": "awarding", "tier": "toptier", "name": filters["agency"]}
        ]

    lower = filters.get("min_award_amount")
    upper = filters.get("max_award_amount")
    if lower or upper:
        bounds: Dict[str, float] = {}
        if lower is not None:
            bounds["lower_bound"] = lower
        if upper is not None:
            bounds["upper_bound"] = upper
        api_filters["award_amounts"] = [bounds]

    if filters.get("set_aside_types"):
        api_filters["set_aside_type_codes"] = list(filters["set_aside_types"])

    if filters.get("competition_levels"):
        api_filters["extent_competed_type_codes"] = list(filters["competition_levels"])

    return {
        "filters": api_filters,
        "fields": list(AWARD_FIELDS),
        "page": 1,
        "limit": page_limit,
        "order": "desc",
        "sort": "Award Amount",
    }


def _text(row: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        value = row.get(key)
        if value:
            return str(value)
    return ""


def _amount(row: Mapping[str, Any], *keys: str) -> float:
    for key in keys:
        value = row.get(key)
        if value in (None, ""):
            continue
        try:
            return float(value)
        except (TypeError, ValueError):
            return 0.0
    return 0.0


def parse_award_row(row: Mapping[str, Any]) -> RawAward:
    """Map one API result row onto ``RawAward``; missing values become empty/zero."""
    recipient_country = _text(row, "Recipient Location Country Name")
    performance_country = _text(row, "Place of Performance Country Name")
    def_codes = row.get("DEF Codes")
    if isinstance(def_codes, list):
        codes = tuple(str(code) for code in def_codes if code)
    else:
        codes = (str(def_codes),) if def_codes else ()
    return RawAward(
        award_id=_text(row, "Award ID", "generated_unique_award_id"),
        award_type=_text(row, "Award Type", "type"),
        award_description=_text(row, "Award Description", "description"),
        recipient_name=_text(row, "Recipient Name", "recipient_name"),
        recipient_uei=_text(row, "Recipient UEI", "recipient_uei"),
        recipient_duns=_text(row, "Recipient DUNS", "recipient_duns"),
        recipient_type=_text(row, "Recipient Business Type"),
        recipient_scope="Domestic" if recipient_country == _DOMESTIC_COUNTRY else "Foreign",
        recipient_city=_text(row, "Recipient Location City Name"),
        recipient_state=_text(row, "Recipient Location State Code"),
        recipient_country=recipient_country,
        recipient_zip=_text(row, "Recipient Location ZIP Code"),
        recipient_congressional_district=_text(
            row, "Recipient Location Congressional District"
        ),
        performance_city=_text(row, "Place of Performance City Name"),
        performance_state=_text(row, "Place of Performance State Code"),
        performance_country=performance_country,
        performance_zip=_text(row, "Place of Performance ZIP Code"),
        performance_congressional_district=_text(
            row, "Place of Performance Congressional District"
        ),
        performance_scope="Domestic" if performance_country == _DOMESTIC_COUNTRY else "Foreign",
        award_amount=_amount(row, "Award Amount", "total_obligation"),
        total_obligation=_amount(row, "Total Obligation", "total_obligation"),
        total_outlays=_amount(row, "Total Outlays", "total_outlays"),
        start_date=_text(row, "Start Date", "period_of_performance_start_date"),
        end_date=_text(row, "End Date", "period_of_performance_current_end_date"),
        last_modified_date=_text(row, "Last Modified Date", "last_modified_date"),
        awarding_agency_code=_text(row, "Awarding Agency Code"),
        awarding_agency_name=_text(row, "Awarding Agency", "awarding_agency_name"),
        awarding_sub_agency_code=_text(row, "Awarding Sub Agency Code"),
        awarding_sub_agency_name=_text(row, "Awarding Sub Agency"),
        funding_agency_code=_text(row, "Funding Agency Code"),
        funding_agency_name=_text(row, "Funding Agency"),
        funding_sub_agency_code=_text(row, "Funding Sub Agency Code"),
        funding_sub_agency_name=_text(row, "Funding Sub Agency"),
        naics_code=_text(row, "NAICS Code", "naics_code"),
        naics_description=_text(row, "NAICS Description", "naics_description"),
        psc_code=_text(row, "PSC Code", "product_or_service_code"),
        psc_description=_text(row, "PSC Description", "product_or_service_co_desc"),
        contract_type=_text(row, "Contract Award Type"),
        contract_pricing_type=_text(row, "Contract Pricing"),
        set_aside_type=_text(row, "Type of Set Aside"),
        extent_competed=_text(row, "Extent Competed"),
        cfda_number=_text(row, "SAI Number", "cfda_number"),
        cfda_title=_text(row, "CFDA Title"),
        def_codes=codes,
        covid19_obligations=_amount(row, "COVID-19 Obligations"),
        infrastructure_obligations=_amount(row, "Infrastructure Obligations"),
    )


class USASpendingClient:
    """Search federal contract awards."""

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        page_limit: int = 500,
        lookback_years: int = 3,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._page_limit = page_limit
        self._lookback_years = lookback_years
        self._timeout = timeout
        self._transport = transport

    async def search(self, filters: Mapping[str, Any]) -> List[RawAward]:
        payload = build_search_payload(
            filters,
            page_limit=self._page_limit,
            lookback_years=self._lookback_years,
        )
        url = f"{self._base_url}/search/spending_by_award/"
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(url, json=payload)
        except httpx.TimeoutException as exc:
            raise SearchProviderTimeoutError(f"USASpending request timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise SearchProviderError(f"USASpending request failed: {exc}") from exc

        status = response.status_code
        if status == 429 or status >= 500:
            raise SearchProviderError(f"USASpending API error: HTTP {status}")
        if status >= 400:
            logger.error("USASpending rejected search: %s", response.text[:500])
            raise SearchProviderRejectedError(f"USASpending API error: HTTP {status}")

        try:
            body = response.json()
        except ValueError as exc:
            raise SearchProviderError("USASpending returned malformed JSON") from exc

        rows = body.get("results") or []
        logger.info("USASpending returned %d results", len(rows))
        return [parse_award_row(row) for row in rows]


__all__ = [
    "AWARD_FIELDS",
    "SearchProviderError",
    "SearchProviderRejectedError",
    "SearchProviderTimeoutError",
    "USASpendingClient",
    "build_search_payload",
    "parse_award_row",
]
