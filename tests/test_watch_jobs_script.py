"""Tests for the terminal job watcher."""

from __future__ import annotations

from pathlib import Path

import pytest

from app.clients.job_store import SQLiteJobStore
from scripts import watch_jobs


def test_poll_jobs_prints_only_changes(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    store = SQLiteJobStore(str(tmp_path / "jobs.db"))
    job = store.enqueue({"industry": "541512"})

    seen = watch_jobs.poll_jobs(store, {})
    first = capsys.readouterr().out
    assert f"JOB {job.job_id} QUEUED" in first

    seen = watch_jobs.poll_jobs(store, seen)
    assert capsys.readouterr().out == ""

    store.claim_next()
    seen = watch_jobs.poll_jobs(store, seen)
    active = capsys.readouterr().out
    assert "ACTIVE" in active
    assert "attempts=1" in active

    store.cancel(job.job_id)
    seen = watch_jobs.poll_jobs(store, seen)
    assert f"JOB {job.job_id} removed" in capsys.readouterr().out
    assert seen == {}
