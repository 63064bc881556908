"""Pre-flight check for FedLeads configuration.

Loads ``AppSettings`` from a ``.env`` file the same way the API and the search
worker do, checks that the shared SQLite database can be created, and prints
the effective runtime profile (queue policy, worker limits, enrichment mode,
cache). ``record`` and ``verify`` additionally keep a checksum of the ``.env``
file so unexpected edits are caught before a restart.

Example usages::

    python -m scripts.check_env check --env-file /opt/fedleads/.env

    python -m scripts.check_env record --env-file /opt/fedleads/.env \
        --hash-file /opt/fedleads/.env.sha256

    # Later, from cron/systemd:
    python -m scripts.check_env verify --env-file /opt/fedleads/.env \
        --hash-file /opt/fedleads/.env.sha256
"""

from __future__ import annotations

import argparse
import hashlib
import os
import sys
from pathlib import Path
from typing import List

from pydantic import ValidationError

from app.core.config import AppSettings, _load_env_file

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_RUNTIME_ERROR = 5


class ConfigProblem(Exception):
    """Settings parsed, but the environment cannot run them."""


def _compute_hash(env_file: Path) -> str:
    return hashlib.sha256(env_file.read_bytes()).hexdigest()


def _load_settings(env_file: Path) -> AppSettings:
    if not env_file.exists():
        raise FileNotFoundError(f"Environment file {env_file} does not exist.")
    _load_env_file(str(env_file))
    return AppSettings()  # type: ignore[call-arg]


def _check_database_path(db_path: str) -> None:
    """The directory holding the SQLite file must exist or be creatable, and be writable."""
    directory = Path(db_path).resolve().parent
    ancestor = directory
    while not ancestor.exists():
        ancestor = ancestor.parent
    if not ancestor.is_dir():
        raise ConfigProblem(f"FEDLEADS_DB_PATH {db_path}: {ancestor} is not a directory")
    if not os.access(ancestor, os.W_OK):
        raise ConfigProblem(f"FEDLEADS_DB_PATH {db_path}: {ancestor} is not writable")


def describe(settings: AppSettings) -> List[str]:
    """Human-readable summary of the settings the services will run with."""
    queue = settings.queue
    worker = settings.worker
    if settings.apify.api_key:
        enrichment = (
            f"Apify actor {settings.apify.people_actor} "
            f"(top {worker.enrichment_company_limit} companies, "
            f"{settings.apify.contacts_per_company} contacts each)"
        )
    else:
        enrichment = "synthetic contacts (APIFY_API_KEY not set)"
    cache = (
        f"enabled, ttl {settings.cache.search_ttl_seconds}s"
        if settings.cache.enabled
        else "disabled"
    )
    return [
        f"environment: {settings.environment}",
        f"database:    {settings.db_path}",
        f"queue:       {queue.max_attempts} attempts, backoff {queue.backoff_seconds:g}s "
        f"x{queue.backoff_multiplier:g} (max {queue.max_backoff_seconds:g}s), "
        f"stall lease {queue.stall_seconds:g}s",
        f"worker:      concurrency {worker.concurrency}, search timeout "
        f"{worker.search_timeout_seconds:g}s, enrichment timeout "
        f"{worker.enrichment_timeout_seconds:g}s",
        f"search:      {settings.usaspending.base_url} "
        f"(page limit {settings.usaspending.page_limit})",
        f"enrichment:  {enrichment}",
        f"cache:       {cache}",
    ]


def _record_checksum(env_file: Path, hash_file: Path) -> int:
    checksum = _compute_hash(env_file)
    hash_file.write_text(f"{checksum}\n", encoding="utf-8")
    print(f"Recorded checksum to {hash_file} ({checksum})")
    return EXIT_OK


def _verify_checksum(env_file: Path, hash_file: Path) -> int:
    if not hash_file.exists():
        print(
            f"Checksum baseline {hash_file} is missing; run 'record' first.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    expected = hash_file.read_text(encoding="utf-8").strip()
    actual = _compute_hash(env_file)
    if expected == actual:
        print("Environment checksum OK.")
        return EXIT_OK

    print(
        "Environment checksum mismatch!\n"
        f"  expected: {expected}\n"
        f"  actual:   {actual}",
        file=sys.stderr,
    )
    return EXIT_CHECKSUM_ERROR


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate FedLeads settings and detect .env drift."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    for command, help_text in (
        ("check", "Validate settings and print the runtime profile."),
        ("record", "Validate settings and store the checksum baseline."),
        ("verify", "Validate settings and compare the checksum with the baseline."),
    ):
        subparser = subparsers.add_parser(command, help=help_text)
        subparser.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Path to the environment file (default: .env).",
        )
        if command != "check":
            subparser.add_argument("--hash-file", required=True, type=Path)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    env_file: Path = args.env_file

    try:
        settings = _load_settings(env_file)
        _check_database_path(settings.db_path)
    except FileNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except ValidationError as exc:
        print(f"Settings validation failed:\n{exc.json(indent=2)}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR
    except ConfigProblem as exc:
        print(f"Settings validation failed: {exc}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR

    if args.command == "check":
        print("\n".join(describe(settings)))
        return EXIT_OK
    if args.command == "record":
        return _record_checksum(env_file, args.hash_file)
    return _verify_checksum(env_file, args.hash_file)


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
