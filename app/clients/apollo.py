"""Contact enrichment via the Apollo people scraper hosted on Apify."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from app.core.errors import TransientError
from app.models.awards import CompanyInfo, Contact, Enrichment
from app.utils.http import RetryConfig, request_with_retry

logger = logging.getLogger(__name__)

DEFAULT_PEOPLE_ACTOR = "coladeu~apollo-people-leads-scraper"

TARGET_JOB_TITLES = [
    "Government Leasing",
    "Federal Leasing",
    "Leasing Director",
    "Leasing Manager",
    "VP of Leasing",
    "Asset Manager",
    "Property Manager",
    "Director of Real Estate",
    "VP Real Estate",
    "Owner",
    "Principal",
    "Managing Partner",
    "CEO",
    "President",
    "Business Development",
    "Government Contracts",
    "Government Relations",
]


class EnrichmentError(TransientError):
    """Enrichment provider could not be reached or answered with an error."""

    code = "ENRICHMENT_ERROR"


def split_name(full_name: str) -> Tuple[str, str]:
    parts = full_name.split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


def _first(item: Dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = item.get(key)
        if value:
            return str(value)
    return ""


def _to_contact(item: Dict[str, Any], company_name: str) -> Contact:
    full_name = _first(item, "full_name", "name")
    first_name = _first(item, "first_name", "firstName")
    if first_name:
        last_name = _first(item, "last_name", "lastName")
    else:
        first_name, last_name = split_name(full_name)
    return Contact(
        name=full_name,
        title=_first(item, "title", "position"),
        email=_first(item, "email"),
        first_name=first_name,
        last_name=last_name,
        phone=_first(item, "phone"),
        linkedin=_first(item, "linkedin_url", "linkedinUrl"),
        photo_url=_first(item, "photo_url", "photoUrl") or None,
        organization_name=_first(item, "organization_name", "company") or company_name,
    )


def group_people_by_company(items: Sequence[Dict[str, Any]]) -> Dict[str, Enrichment]:
    """Group scraped people under the organisation they work for."""
    grouped: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
    for item in items:
        company_name = _first(item, "company", "organization_name")
        if company_name:
            grouped[company_name].append(item)

    enriched: Dict[str, Enrichment] = {}
    for company_name, people in grouped.items():
        enriched[company_name] = Enrichment(
            contacts=[_to_contact(person, company_name) for person in people],
            company_info=CompanyInfo(linkedin=_first(people[0], "linkedin_url")),
        )
    return enriched


class ApolloEnrichmentClient:
    """Run the Apollo people actor synchronously and collect its dataset items."""

    _BASE_URL = "https://api.apify.com/v2"

    def __init__(
        self,
        *,
        api_key: str,
        actor: str = DEFAULT_PEOPLE_ACTOR,
        max_companies: int = 10,
        contacts_per_company: int = 3,
        wait_seconds: int = 120,
        retry_config: Optional[RetryConfig] = None,
    ) -> None:
        self._api_key = api_key
        self._actor = actor
        self._max_companies = max_companies
        self._contacts_per_company = contacts_per_company
        self._wait_seconds = wait_seconds
        self._retry_config = retry_config or RetryConfig(attempts=2)

    async def enrich(self, company_names: Sequence[str]) -> Dict[str, Enrichment]:
        """Return enrichment keyed by organisation name; empty when nothing matched."""
        names = [name for name in company_names if name][: self._max_companies]
        if not names:
            return {}

        run_input = {
            "searchQuery": names,
            "maxResults": self._contacts_per_company,
            "includeEmails": True,
            "includePhones": True,
            "jobTitles": TARGET_JOB_TITLES,
        }
        url = f"{self._BASE_URL}/acts/{self._actor}/run-sync-get-dataset-items"
        params = {"token": self._api_key, "timeout": self._wait_seconds}

        logger.info("Enriching %d companies with Apify", len(names))
        try:
            async with httpx.AsyncClient(timeout=self._wait_seconds + 10) as client:
                response = await request_with_retry(
                    client.post,
                    url,
                    params=params,
                    json=run_input,
                    retry_config=self._retry_config,
                )
        except httpx.HTTPError as exc:
            raise EnrichmentError(f"Apify enrichment failed: {exc}") from exc

        try:
            items = response.json()
        except ValueError as exc:
            raise EnrichmentError("Apify returned malformed JSON") from exc
        if not isinstance(items, list):
            raise EnrichmentError("Apify returned an unexpected payload")

        logger.info("Retrieved %d results from Apify", len(items))
        return group_people_by_company(items)


__all__ = [
    "ApolloEnrichmentClient",
    "EnrichmentError",
    "TARGET_JOB_TITLES",
    "group_people_by_company",
    "split_name",
]
