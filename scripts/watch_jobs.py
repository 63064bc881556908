"""Watch the local job store and print search job state transitions."""

from __future__ import annotations

import sqlite3
import time
from datetime import datetime
from typing import Dict, Tuple

from app.clients.job_store import SQLiteJobStore
from app.core.config import get_settings

# job id -> (state, step, percentage)
Snapshot = Dict[str, Tuple[str, str, int]]


def _print_header(title: str) -> None:
    line = "=" * len(title)
    print(f"\n{title}\n{line}")


def _timestamp() -> str:
    return datetime.now().strftime("%H:%M:%S")


def poll_jobs(store: SQLiteJobStore, previous: Snapshot, *, limit: int = 50) -> Snapshot:
    """Print every job whose state or progress changed since ``previous``."""
    current: Snapshot = {}
    for job in store.list_jobs(limit=limit):
        progress = job.progress
        marker = (job.state.value, progress.step, progress.percentage)
        current[job.job_id] = marker
        if previous.get(job.job_id) == marker:
            continue
        line = (
            f"[{_timestamp()}] JOB {job.job_id} {job.state.value.upper()}"
            f" | {progress.step} {progress.percentage}% | attempts={job.attempts}"
        )
        if progress.message:
            line += f" | {progress.message}"
        if job.error:
            line += f" | error={job.error}"
        print(line)

    for job_id in previous.keys() - current.keys():
        print(f"[{_timestamp()}] JOB {job_id} removed")
    return current


def watch(poll_interval: float = 1.0) -> None:
    settings = get_settings()
    store = SQLiteJobStore(settings.db_path)

    _print_header("Watching search jobs (Ctrl+C to exit)")
    seen: Snapshot = {}
    while True:
        try:
            seen = poll_jobs(store, seen)
        except sqlite3.Error as exc:
            print(f"[{_timestamp()}] SQLite error: {exc}")
        time.sleep(poll_interval)


if __name__ == "__main__":  # pragma: no cover - manual execution path
    try:
        watch()
    except KeyboardInterrupt:
        print("\nStopped watching.")
