try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from app.clients.cache import SQLiteCache
from app.clients.job_store import SQLiteJobStore
from app.clients.sqlite_store import LeadStore
from app.core.errors import PersistenceError
from app.main import app
from app.models.awards import RawAward
from app.models.job import JobProgress
from app.services.aggregation import aggregate_by_company
from app.services.enrichment import generate_synthetic_enrichment
from app.services.leads import build_leads
from app.services.search_jobs import SearchJobService

pytestmark = pytest.mark.anyio("asyncio")


class BrokenLeadStore:
    def recent_searches(self, *, limit: int = 10, user_id=None):
        raise PersistenceError("database is locked")

    def search_companies(self, **filters):
        raise PersistenceError("database is locked")


@pytest.fixture()
def overrides(tmp_path):
    from app import dependencies

    store = SQLiteJobStore(str(tmp_path / "jobs.db"))
    lead_store = LeadStore(str(tmp_path / "leads.db"))

    app.dependency_overrides.clear()
    app.dependency_overrides.update(
        {
            dependencies.get_search_job_service: lambda: SearchJobService(store),
            dependencies.get_lead_store: lambda: lead_store,
        }
    )

    yield store, lead_store

    app.dependency_overrides.clear()


@pytest.fixture()
async def client(overrides):
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
    ) as test_client:
        yield test_client


async def test_health(client):
    response = await client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


async def test_submit_search_queues_job(overrides, client):
    store, _ = overrides

    response = await client.post(
        "/api/jobs",
        params={"user_id": "user-1"},
        json={"industry": "541512", "location": "VA", "min_award_amount": 1000},
    )

    assert response.status_code == 202
    body = response.json()
    assert body["status"] == "queued"
    assert body["job_id"].startswith("search-")
    job = store.get(body["job_id"])
    assert job.payload == {"industry": "541512", "location": "VA", "min_award_amount": 1000.0}
    assert job.user_id == "user-1"


@pytest.mark.parametrize(
    "payload",
    [
        {"unknown_filter": "x"},
        {"min_award_amount": 500, "max_award_amount": 100},
        {"naics_codes": ["54 1512"]},
        {"naics_codes": ["12345678901"]},
        {"min_award_amount": -1},
        {"timeperiod": {"start_date": "2024-10-01", "end_date": "2023-09-30"}},
    ],
)
async def test_submit_rejects_invalid_filters(overrides, client, payload):
    store, _ = overrides

    response = await client.post("/api/jobs", json=payload)

    assert response.status_code == 422
    assert store.metrics()["total"] == 0


async def test_status_for_unknown_job_is_404(client):
    response = await client.get("/api/jobs/search-0-missing")
    assert response.status_code == 404


async def test_status_for_queued_job(overrides, client):
    store, _ = overrides
    job = store.enqueue({"industry": "541512"})

    response = await client.get(f"/api/jobs/{job.job_id}")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "queued"
    assert body["attempts"] == 0
    assert body["progress"]["percentage"] == 0
    assert "result" not in body
    assert "error" not in body


async def test_status_for_completed_job_includes_result_and_duration(overrides, client):
    store, _ = overrides
    created = datetime.now(timezone.utc)
    store.enqueue({}, now=created)
    job = store.claim_next(now=created)
    finished = created + timedelta(seconds=4)
    store.save(
        job.complete(
            {"leads": [], "total_contracts": 0, "total_companies": 0},
            JobProgress(step="complete", current=5, percentage=100, message="No results found"),
            finished,
        )
    )

    body = (await client.get(f"/api/jobs/{job.job_id}")).json()

    assert body["status"] == "completed"
    assert body["progress"]["percentage"] == 100
    assert body["result"]["total_companies"] == 0
    assert body["duration"] == pytest.approx(4.0)
    assert body["completed_at"] == finished.isoformat()
    assert body["started_at"] == created.isoformat()


async def test_status_for_failed_and_retrying_jobs(overrides, client):
    store, _ = overrides
    now = datetime.now(timezone.utc)
    store.enqueue({}, now=now)
    store.enqueue({}, now=now)
    failing = store.claim_next(now=now)
    retrying = store.claim_next(now=now)
    store.save(
        failing.fail(
            error="USASpending API error: HTTP 400",
            error_code="SEARCH_PROVIDER_REJECTED",
            retryable=False,
            now=now,
        )
    )
    next_attempt = now + timedelta(seconds=2)
    store.save(
        retrying.schedule_retry(
            error="USASpending API error: HTTP 503",
            error_code="SEARCH_PROVIDER_ERROR",
            available_at=next_attempt,
        )
    )

    failed = (await client.get(f"/api/jobs/{failing.job_id}")).json()
    queued = (await client.get(f"/api/jobs/{retrying.job_id}")).json()

    assert failed["status"] == "failed"
    assert failed["error_code"] == "SEARCH_PROVIDER_REJECTED"
    assert failed["retryable"] is False
    assert "failed_at" in failed
    assert queued["status"] == "queued"
    assert queued["retryable"] is True
    assert queued["attempts"] == 1
    assert queued["next_attempt_at"] == next_attempt.isoformat()


async def test_cancel_removes_job(overrides, client):
    store, _ = overrides
    job = store.enqueue({})

    response = await client.post(f"/api/jobs/{job.job_id}/cancel")

    assert response.status_code == 200
    assert response.json() == {
        "job_id": job.job_id,
        "success": True,
        "message": "Job cancelled successfully",
    }
    assert store.get(job.job_id) is None
    assert (await client.get(f"/api/jobs/{job.job_id}")).status_code == 404


async def test_cancel_unknown_job_reports_failure(client):
    response = await client.post("/api/jobs/search-0-missing/cancel")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Job not found or already completed"


async def test_queue_metrics(overrides, client):
    store, _ = overrides
    store.enqueue({})
    store.enqueue({})
    store.claim_next()

    body = (await client.get("/api/queue/metrics")).json()

    assert body["waiting"] == 1
    assert body["active"] == 1
    assert body["total"] == 2


async def test_recent_searches(overrides, client):
    _, lead_store = overrides
    lead_store.record_search({"industry": "541512"}, 10, 3, user_id="user-1")
    lead_store.record_search({"industry": "236220"}, 4, 2, user_id="user-2")

    response = await client.get("/api/searches", params={"user_id": "user-1"})

    assert response.status_code == 200
    searches = response.json()["searches"]
    assert len(searches) == 1
    assert searches[0]["filters"] == {"industry": "541512"}
    assert searches[0]["results_count"] == 10


async def test_recent_searches_unavailable(client):
    from app import dependencies

    app.dependency_overrides[dependencies.get_lead_store] = lambda: BrokenLeadStore()

    response = await client.get("/api/searches")

    assert response.status_code == 500


@pytest.fixture()
def cache(overrides, tmp_path):
    from app import dependencies

    cache = SQLiteCache(str(tmp_path / "cache.db"))
    app.dependency_overrides[dependencies.get_cache] = lambda: cache
    return cache


async def test_cache_stats_report_entries_per_prefix(cache, client):
    cache.set("usaspending:a", [1], 60)
    cache.set("usaspending:b", [2], 60)
    cache.set("enrichment:a", [3], 60)
    cache.get("usaspending:a")

    response = await client.get("/api/cache/stats")

    assert response.status_code == 200
    body = response.json()
    assert body["entries"] == {"usaspending": 2, "enrichment": 1}
    assert body["stats"]["hits"] == 1
    assert body["stats"]["sets"] == 3


async def test_cache_invalidate_by_prefix(cache, client):
    cache.set("usaspending:a", [1], 60)
    cache.set("enrichment:a", [2], 60)

    response = await client.post("/api/cache/invalidate", json={"prefix": "usaspending"})

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "prefix": "usaspending",
        "keys_deleted": 1,
        "message": "Invalidated 1 cache entries for prefix: usaspending",
    }
    assert cache.entry_counts() == {"enrichment": 1}


async def test_cache_invalidate_all(cache, client):
    cache.set("usaspending:a", [1], 60)
    cache.set("enrichment:a", [2], 60)

    response = await client.post("/api/cache/invalidate", json={"all": True})

    assert response.status_code == 200
    assert response.json()["keys_deleted"] == 2
    assert cache.entry_counts() == {}


@pytest.mark.parametrize(
    "payload",
    [{}, {"all": False}, {"prefix": "sessions"}, {"prefix": "search", "force": True}],
)
async def test_cache_invalidate_requires_known_target(cache, client, payload):
    cache.set("usaspending:a", [1], 60)

    response = await client.post("/api/cache/invalidate", json=payload)

    assert response.status_code == 422
    assert cache.entry_counts() == {"usaspending": 1}


def _store_leads(lead_store):
    awards = [
        RawAward(
            recipient_name="Acme Federal",
            recipient_uei="ACME1",
            recipient_state="VA",
            award_amount=5_000_000.0,
        ),
        RawAward(recipient_name="Beta LLC", recipient_state="MD", award_amount=10_000.0),
    ]
    leads = build_leads(
        aggregate_by_company(awards),
        {"Acme Federal": generate_synthetic_enrichment("Acme Federal")},
    )
    lead_store.save(leads)


async def test_list_companies(overrides, client):
    _, lead_store = overrides
    _store_leads(lead_store)

    response = await client.get("/api/companies", params={"state": "VA"})

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 1
    assert body["companies"][0]["company"]["uei"] == "ACME1"
    assert len(body["companies"][0]["contacts"]) == 2
    assert (await client.get("/api/companies")).json()["count"] == 2


async def test_get_company_by_key(overrides, client):
    _, lead_store = overrides
    _store_leads(lead_store)

    found = await client.get("/api/companies/ACME1")
    missing = await client.get("/api/companies/NOPE1")

    assert found.status_code == 200
    assert found.json()["company"]["company_name"] == "Acme Federal"
    assert missing.status_code == 404


async def test_list_companies_unavailable(client):
    from app import dependencies

    app.dependency_overrides[dependencies.get_lead_store] = lambda: BrokenLeadStore()

    response = await client.get("/api/companies")

    assert response.status_code == 500
