"""Tool abstractions used by the search pipeline."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import ValidationError

from app.clients.apollo import ApolloEnrichmentClient, EnrichmentError
from app.clients.cache import SEARCH_PREFIX, SQLiteCache, generate_cache_key
from app.clients.job_store import SQLiteJobStore
from app.clients.sqlite_store import LeadStore
from app.clients.usaspending import SearchProviderTimeoutError, USASpendingClient
from app.core.errors import FilterValidationError, JobCancelledError
from app.models.awards import AggregatedCompany, EnrichedLead, Enrichment, RawAward
from app.models.job import Job, JobProgress
from app.schemas.search import SearchFilters
from app.services.enrichment import generate_synthetic_enrichment

logger = logging.getLogger(__name__)


class SearchTools:
    """Facade over the job store and external integrations used by the pipeline."""

    def __init__(
        self,
        *,
        job_store: SQLiteJobStore,
        search_client: USASpendingClient,
        lead_store: LeadStore,
        enrichment_client: ApolloEnrichmentClient | None = None,
        cache: SQLiteCache | None = None,
        cache_ttl_seconds: int = 3600,
        search_timeout_seconds: float = 30.0,
        enrichment_timeout_seconds: float = 120.0,
        enrichment_company_limit: int = 20,
    ) -> None:
        self._jobs = job_store
        self._search = search_client
        self._leads = lead_store
        self._enrichment = enrichment_client
        self._cache = cache
        self._cache_ttl = cache_ttl_seconds
        self._search_timeout = search_timeout_seconds
        self._enrichment_timeout = enrichment_timeout_seconds
        self.enrichment_company_limit = enrichment_company_limit

    def report_progress(self, job: Job, progress: JobProgress) -> Job:
        """Write progress; a missing record means the job was cancelled."""
        updated = self._jobs.update_progress(job, progress)
        if updated is None:
            logger.info("Cancellation observed", extra={"job_id": job.job_id, "step": progress.step})
            raise JobCancelledError(job.job_id)
        logger.info(progress.message, extra={"job_id": job.job_id, "step": progress.step})
        return updated

    async def search_awards(self, filters: Mapping[str, Any]) -> List[RawAward]:
        """Run the provider search, memoized by filter payload."""
        try:
            SearchFilters.model_validate(dict(filters))
        except ValidationError as exc:
            raise FilterValidationError(f"Invalid search filters: {exc.error_count()} error(s)") from exc

        cache_key = generate_cache_key(SEARCH_PREFIX, dict(filters))
        if self._cache is not None:
            cached = self._cache.get(cache_key)
            if cached is not None:
                logger.info("Search cache hit for %s", cache_key)
                return [RawAward.from_dict(row) for row in cached]
            logger.info("Search cache miss for %s", cache_key)

        try:
            awards = await asyncio.wait_for(
                self._search.search(filters), timeout=self._search_timeout
            )
        except asyncio.TimeoutError as exc:
            raise SearchProviderTimeoutError(
                f"Award search exceeded {self._search_timeout:g}s"
            ) from exc

        if self._cache is not None:
            self._cache.set(cache_key, [award.to_dict() for award in awards], self._cache_ttl)
        return awards

    async def enrich_companies(
        self, companies: Sequence[AggregatedCompany], *, job_id: str
    ) -> Dict[str, Enrichment]:
        """Contacts for the top companies, falling back to synthetic data."""
        names = [company.company_name for company in companies[: self.enrichment_company_limit]]
        if not names:
            return {}

        enriched: Dict[str, Enrichment] = {}
        if self._enrichment is None:
            logger.debug("No enrichment provider configured, using synthetic contacts", extra={"job_id": job_id})
        else:
            try:
                enriched = await asyncio.wait_for(
                    self._enrichment.enrich(names), timeout=self._enrichment_timeout
                )
            except asyncio.TimeoutError:
                logger.warning(
                    "Enrichment timed out after %gs, using synthetic contacts",
                    self._enrichment_timeout,
                    extra={"job_id": job_id},
                )
            except EnrichmentError as exc:
                logger.warning(
                    "Enrichment failed (%s), using synthetic contacts", exc, extra={"job_id": job_id}
                )
            else:
                if not enriched:
                    logger.warning(
                        "Enrichment returned no results, using synthetic contacts",
                        extra={"job_id": job_id},
                    )

        if not enriched:
            enriched = {name: generate_synthetic_enrichment(name) for name in names}
        return enriched

    def persist(
        self,
        *,
        leads: List[EnrichedLead],
        filters: Mapping[str, Any],
        raw_count: int,
        user_id: Optional[str],
        job_id: str,
    ) -> bool:
        """Save leads and the search record; failures are logged, never raised."""
        try:
            self._leads.save(leads)
            self._leads.record_search(filters, raw_count, len(leads), user_id)
        except Exception:
            logger.exception("Error saving results to database", extra={"job_id": job_id})
            return False
        logger.info("Results saved to database", extra={"job_id": job_id})
        return True


__all__ = ["SearchTools"]
