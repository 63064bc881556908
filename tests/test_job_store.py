from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from app.clients.job_store import RetentionPolicy, SQLiteJobStore, StallPolicy
from app.models.job import JobProgress, JobState

NOW = datetime(2025, 6, 1, 12, tzinfo=timezone.utc)


@pytest.fixture
def store(tmp_path: Path) -> SQLiteJobStore:
    return SQLiteJobStore(str(tmp_path / "jobs.db"))


def _progress(step: str, percentage: int) -> JobProgress:
    return JobProgress(step=step, current=1, percentage=percentage, message=step)


def test_enqueue_creates_queued_job_with_prefixed_id(store: SQLiteJobStore) -> None:
    job = store.enqueue({"industry": "541512"}, user_id="user-1", now=NOW)

    assert re.fullmatch(r"search-\d+-[0-9a-f]{9}", job.job_id)
    stored = store.get(job.job_id)
    assert stored is not None
    assert stored.state is JobState.QUEUED
    assert stored.payload == {"industry": "541512"}
    assert stored.user_id == "user-1"
    assert stored.attempts == 0
    assert stored.progress.percentage == 0


def test_job_ids_are_unique(store: SQLiteJobStore) -> None:
    ids = {store.enqueue({}, now=NOW).job_id for _ in range(20)}
    assert len(ids) == 20


def test_claim_next_activates_oldest_due_job(store: SQLiteJobStore) -> None:
    first = store.enqueue({"n": 1}, now=NOW)
    store.enqueue({"n": 2}, now=NOW + timedelta(seconds=1))

    claimed = store.claim_next(now=NOW + timedelta(seconds=5))

    assert claimed is not None
    assert claimed.job_id == first.job_id
    assert claimed.state is JobState.ACTIVE
    assert claimed.attempts == 1
    assert store.get(first.job_id).state is JobState.ACTIVE


def test_claim_next_skips_jobs_not_yet_due(store: SQLiteJobStore) -> None:
    job = store.enqueue({}, now=NOW)
    claimed = store.claim_next(now=NOW)
    retry = claimed.schedule_retry(
        error="boom", error_code="TRANSIENT_ERROR", available_at=NOW + timedelta(seconds=30)
    )
    assert store.save(retry)

    assert store.claim_next(now=NOW + timedelta(seconds=10)) is None
    again = store.claim_next(now=NOW + timedelta(seconds=31))
    assert again is not None
    assert again.job_id == job.job_id
    assert again.attempts == 2


def test_progress_only_moves_forward(store: SQLiteJobStore) -> None:
    store.enqueue({}, now=NOW)
    job = store.claim_next(now=NOW)

    job = store.update_progress(job, _progress("aggregating", 40))
    assert job.progress.percentage == 40

    unchanged = store.update_progress(job, _progress("searching", 20))
    assert unchanged.progress.percentage == 40
    assert store.get(job.job_id).progress.step == "aggregating"


def test_progress_update_on_cancelled_job_returns_none(store: SQLiteJobStore) -> None:
    store.enqueue({}, now=NOW)
    job = store.claim_next(now=NOW)
    assert store.cancel(job.job_id) is True

    assert store.update_progress(job, _progress("searching", 20)) is None
    assert store.get(job.job_id) is None


def test_progress_update_requires_active_state(store: SQLiteJobStore) -> None:
    job = store.enqueue({}, now=NOW)
    assert store.update_progress(job, _progress("searching", 20)) is None


def test_save_does_not_resurrect_deleted_job(store: SQLiteJobStore) -> None:
    store.enqueue({}, now=NOW)
    job = store.claim_next(now=NOW)
    store.cancel(job.job_id)

    completed = job.complete({"leads": []}, _progress("complete", 100), NOW)

    assert store.save(completed) is False
    assert store.get(job.job_id) is None


def test_cancel_unknown_job_reports_false(store: SQLiteJobStore) -> None:
    assert store.cancel("search-0-missing") is False


def test_completed_jobs_are_pruned_after_retention(tmp_path: Path) -> None:
    store = SQLiteJobStore(
        str(tmp_path / "jobs.db"),
        retention=RetentionPolicy(completed_seconds=60, failed_seconds=120),
    )
    store.enqueue({}, now=NOW)
    done = store.claim_next(now=NOW)
    store.save(done.complete({}, _progress("complete", 100), NOW))
    store.enqueue({}, now=NOW)
    failed = store.claim_next(now=NOW)
    store.save(failed.fail(error="nope", error_code="PERMANENT_ERROR", retryable=False, now=NOW))

    assert store.prune(now=NOW + timedelta(seconds=30)) == 0
    assert store.prune(now=NOW + timedelta(seconds=90)) == 1
    assert store.get(done.job_id) is None
    assert store.get(failed.job_id) is not None
    assert store.prune(now=NOW + timedelta(seconds=150)) == 1
    assert store.get(failed.job_id) is None


def test_completed_jobs_are_capped_by_count(tmp_path: Path) -> None:
    store = SQLiteJobStore(
        str(tmp_path / "jobs.db"),
        retention=RetentionPolicy(completed_count=2),
    )
    finished = []
    for offset in range(3):
        moment = NOW + timedelta(seconds=offset)
        store.enqueue({}, now=moment)
        job = store.claim_next(now=moment)
        store.save(job.complete({}, _progress("complete", 100), moment))
        finished.append(job.job_id)

    store.prune(now=NOW + timedelta(seconds=5))

    assert store.get(finished[0]) is None
    assert store.get(finished[1]) is not None
    assert store.get(finished[2]) is not None


def test_metrics_count_jobs_by_state(store: SQLiteJobStore) -> None:
    store.enqueue({}, now=NOW)
    store.enqueue({}, now=NOW)
    store.enqueue({}, now=NOW)
    active = store.claim_next(now=NOW)
    delayed = store.claim_next(now=NOW)
    store.save(
        delayed.schedule_retry(
            error="slow", error_code="TRANSIENT_ERROR", available_at=NOW + timedelta(hours=1)
        )
    )

    metrics = store.metrics(now=NOW)

    assert metrics == {
        "waiting": 1,
        "delayed": 1,
        "active": 1,
        "completed": 0,
        "failed": 0,
        "total": 3,
    }
    assert active.state is JobState.ACTIVE


def test_list_jobs_returns_newest_first(store: SQLiteJobStore) -> None:
    older = store.enqueue({}, now=NOW)
    newer = store.enqueue({}, now=NOW + timedelta(seconds=1))

    assert [job.job_id for job in store.list_jobs()] == [newer.job_id, older.job_id]


def test_regressive_progress_still_observes_cancellation(store: SQLiteJobStore) -> None:
    store.enqueue({}, now=NOW)
    job = store.claim_next(now=NOW)
    job = store.update_progress(job, _progress("analyzing", 80))
    assert store.cancel(job.job_id) is True

    assert store.update_progress(job, _progress("searching", 20)) is None


def test_stalled_active_job_is_requeued(store: SQLiteJobStore) -> None:
    store.enqueue({}, now=NOW)
    job = store.claim_next(now=NOW)

    assert store.recover_stalled(now=NOW + timedelta(seconds=10)) == 0
    assert store.get(job.job_id).state is JobState.ACTIVE

    assert store.recover_stalled(now=NOW + timedelta(seconds=301)) == 1
    requeued = store.get(job.job_id)
    assert requeued.state is JobState.QUEUED
    assert requeued.error_code == "JOB_STALLED"
    assert requeued.retryable is True

    again = store.claim_next(now=NOW + timedelta(seconds=301))
    assert again.job_id == job.job_id
    assert again.attempts == 2


def test_stalled_job_out_of_attempts_is_failed(tmp_path: Path) -> None:
    store = SQLiteJobStore(
        str(tmp_path / "jobs.db"),
        stall=StallPolicy(lease_seconds=60, max_attempts=1),
    )
    store.enqueue({}, now=NOW)
    job = store.claim_next(now=NOW)

    assert store.claim_next(now=NOW + timedelta(seconds=61)) is None

    failed = store.get(job.job_id)
    assert failed.state is JobState.FAILED
    assert failed.error_code == "JOB_STALLED"
    assert failed.retryable is True
    assert failed.finished_at == NOW + timedelta(seconds=61)
    assert store.metrics(now=NOW + timedelta(seconds=61))["active"] == 0
