"""Background search worker package.

Claims queued search jobs from the SQLite job store and runs the lead
pipeline for each of them.
"""

from __future__ import annotations

from typing import Any


def __getattr__(name: str) -> Any:
    if name == "SearchJobWorker":
        from .worker import SearchJobWorker as loaded_worker

        return loaded_worker
    raise AttributeError(name)


__all__ = ["SearchJobWorker"]
