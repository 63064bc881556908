"""Local worker pool that processes queued search jobs from SQLite."""

from __future__ import annotations

import asyncio
import logging

from app.clients.apollo import ApolloEnrichmentClient
from app.clients.cache import SQLiteCache
from app.clients.job_store import RetentionPolicy, SQLiteJobStore, StallPolicy
from app.clients.sqlite_store import LeadStore
from app.clients.usaspending import USASpendingClient
from app.core.config import AppSettings, get_settings
from app.core.logging import configure_logging
from app.utils.http import RetryConfig
from workers.search_jobs.graph import create_search_graph
from workers.search_jobs.handler import SearchJobProcessor
from workers.search_jobs.tools import SearchTools

logger = logging.getLogger(__name__)


class SearchJobWorker:
    """Run up to ``concurrency`` jobs at once, each slot claiming one job at a time."""

    def __init__(
        self,
        store: SQLiteJobStore,
        processor: SearchJobProcessor,
        *,
        concurrency: int = 5,
        poll_interval_seconds: float = 1.0,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._store = store
        self._processor = processor
        self._concurrency = concurrency
        self._poll_interval = poll_interval_seconds
        self._stopping = asyncio.Event()

    async def run_forever(self) -> None:
        logger.info("Search worker started with concurrency %d", self._concurrency)
        self._stopping.clear()
        await asyncio.gather(
            *(self._slot(index, drain=False) for index in range(self._concurrency))
        )
        logger.info("Search worker stopped")

    async def run_until_idle(self) -> None:
        """Process jobs until none is due (delayed retries are left queued)."""
        self._stopping.clear()
        await asyncio.gather(
            *(self._slot(index, drain=True) for index in range(self._concurrency))
        )

    def stop(self) -> None:
        """Ask every slot to exit after its current job."""
        self._stopping.set()

    async def _slot(self, index: int, *, drain: bool) -> None:
        while not self._stopping.is_set():
            job = self._store.claim_next()
            if job is None:
                if drain:
                    return
                await self._idle()
                continue
            logger.info(
                "Slot %d claimed search job",
                index,
                extra={"job_id": job.job_id, "attempt": job.attempts},
            )
            try:
                await self._processor.process(job)
            except Exception:
                logger.exception(
                    "Failed processing search job, leaving it for stall recovery",
                    extra={"job_id": job.job_id, "attempt": job.attempts},
                )

    async def _idle(self) -> None:
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=self._poll_interval)
        except asyncio.TimeoutError:
            return


def build_worker(settings: AppSettings) -> SearchJobWorker:
    """Wire the worker from settings."""
    queue = settings.queue
    store = SQLiteJobStore(
        settings.db_path,
        retention=RetentionPolicy(
            completed_seconds=queue.completed_retention_seconds,
            completed_count=queue.completed_retention_count,
            failed_seconds=queue.failed_retention_seconds,
            failed_count=queue.failed_retention_count,
        ),
        stall=StallPolicy(
            lease_seconds=queue.stall_seconds, max_attempts=queue.max_attempts
        ),
    )
    enrichment_client = None
    if settings.apify.api_key:
        enrichment_client = ApolloEnrichmentClient(
            api_key=settings.apify.api_key,
            actor=settings.apify.people_actor,
            max_companies=settings.apify.max_companies,
            contacts_per_company=settings.apify.contacts_per_company,
            wait_seconds=int(settings.worker.enrichment_timeout_seconds),
        )
    tools = SearchTools(
        job_store=store,
        search_client=USASpendingClient(
            base_url=settings.usaspending.base_url,
            page_limit=settings.usaspending.page_limit,
            lookback_years=settings.usaspending.lookback_years,
            timeout=settings.worker.search_timeout_seconds,
        ),
        lead_store=LeadStore(settings.db_path),
        enrichment_client=enrichment_client,
        cache=SQLiteCache(settings.db_path) if settings.cache.enabled else None,
        cache_ttl_seconds=settings.cache.search_ttl_seconds,
        search_timeout_seconds=settings.worker.search_timeout_seconds,
        enrichment_timeout_seconds=settings.worker.enrichment_timeout_seconds,
        enrichment_company_limit=settings.worker.enrichment_company_limit,
    )
    processor = SearchJobProcessor(
        store=store,
        graph=create_search_graph(tools),
        retry_config=RetryConfig(
            attempts=queue.max_attempts,
            backoff_seconds=queue.backoff_seconds,
            multiplier=queue.backoff_multiplier,
            max_backoff_seconds=queue.max_backoff_seconds,
        ),
    )
    return SearchJobWorker(
        store,
        processor,
        concurrency=settings.worker.concurrency,
        poll_interval_seconds=settings.worker.poll_interval_seconds,
    )


async def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    worker = build_worker(settings)
    await worker.run_forever()


if __name__ == "__main__":  # pragma: no cover - manual execution path
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Search worker stopped")
