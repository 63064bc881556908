"""
Logging utilities for the FastAPI application and background workers.

Provides a consistent logging format and configuration.
"""

import logging
import sys

_JOB_CONTEXT_FIELDS = ("job_id", "attempt", "step")


class _JobContextFilter(logging.Filter):
    """Append job identifiers passed via ``extra`` to the rendered message."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = [
            f"{name}={getattr(record, name)}"
            for name in _JOB_CONTEXT_FIELDS
            if getattr(record, name, None) is not None
        ]
        record.job_context = f" [{' '.join(context)}]" if context else ""
        return True


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with a sensible default format."""
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(_JobContextFilter())
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s%(job_context)s",
        handlers=[handler],
    )


__all__ = ["configure_logging"]
