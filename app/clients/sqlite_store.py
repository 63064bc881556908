"""SQLite persistence for enriched leads and search history."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional
from uuid import uuid4

from app.core.errors import PersistenceError
from app.models.awards import EnrichedLead


class LeadStore:
    """Upsert company leads with their contacts and record executed searches."""

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, timeout=10.0, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS companies (
                    company_key TEXT PRIMARY KEY,
                    uei TEXT,
                    name TEXT NOT NULL,
                    state TEXT,
                    industry TEXT,
                    opportunity_score INTEGER NOT NULL,
                    data TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS contacts (
                    company_key TEXT NOT NULL,
                    position INTEGER NOT NULL,
                    data TEXT NOT NULL,
                    PRIMARY KEY (company_key, position)
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS searches (
                    search_id TEXT PRIMARY KEY,
                    user_id TEXT,
                    filters TEXT NOT NULL,
                    results_count INTEGER NOT NULL,
                    companies_found INTEGER NOT NULL,
                    searched_at TEXT NOT NULL
                )
                """
            )

    def save(self, leads: Iterable[EnrichedLead]) -> int:
        """Upsert one company row per lead and replace its contacts."""
        now = datetime.now(timezone.utc).isoformat()
        saved = 0
        try:
            with self._connect() as conn:
                for lead in leads:
                    payload = lead.to_dict()
                    key = lead.company_key
                    conn.execute(
                        """
                        INSERT INTO companies
                            (company_key, uei, name, state, industry,
                             opportunity_score, data, updated_at)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                        ON CONFLICT(company_key) DO UPDATE SET
                            uei = excluded.uei,
                            name = excluded.name,
                            state = excluded.state,
                            industry = excluded.industry,
                            opportunity_score = excluded.opportunity_score,
                            data = excluded.data,
                            updated_at = excluded.updated_at
                        """,
                        (
                            key,
                            lead.company.uei or None,
                            lead.company.company_name,
                            lead.company.state or None,
                            lead.industry or None,
                            lead.sales_intelligence.opportunity_score,
                            json.dumps(payload),
                            now,
                        ),
                    )
                    conn.execute("DELETE FROM contacts WHERE company_key = ?", (key,))
                    conn.executemany(
                        "INSERT INTO contacts (company_key, position, data) VALUES (?, ?, ?)",
                        [
                            (key, index, json.dumps(contact))
                            for index, contact in enumerate(payload["contacts"])
                        ],
                    )
                    saved += 1
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to save leads: {exc}") from exc
        return saved

    def record_search(
        self,
        filters: Mapping[str, Any],
        raw_count: int,
        company_count: int,
        user_id: Optional[str] = None,
    ) -> str:
        searched_at = datetime.now(timezone.utc)
        search_id = f"search-{int(searched_at.timestamp() * 1000)}-{uuid4().hex[:6]}"
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO searches
                        (search_id, user_id, filters, results_count, companies_found, searched_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        search_id,
                        user_id,
                        json.dumps(dict(filters), default=str),
                        raw_count,
                        company_count,
                        searched_at.isoformat(),
                    ),
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to record search: {exc}") from exc
        return search_id

    def recent_searches(
        self, *, limit: int = 10, user_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        query = "SELECT * FROM searches"
        params: List[Any] = []
        if user_id:
            query += " WHERE user_id = ?"
            params.append(user_id)
        query += " ORDER BY searched_at DESC, rowid DESC LIMIT ?"
        params.append(limit)
        try:
            with self._connect() as conn:
                rows = conn.execute(query, params).fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to load search history: {exc}") from exc
        return [
            {
                "search_id": row["search_id"],
                "user_id": row["user_id"],
                "filters": json.loads(row["filters"]),
                "results_count": row["results_count"],
                "companies_found": row["companies_found"],
                "searched_at": row["searched_at"],
            }
            for row in rows
        ]

    def get_company(self, company_key: str) -> Optional[Dict[str, Any]]:
        """Stored lead keyed by UEI (or name) with its current contacts."""
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT data FROM companies WHERE company_key = ?", (company_key,)
                ).fetchone()
                if not row:
                    return None
                contacts = conn.execute(
                    "SELECT data FROM contacts WHERE company_key = ? ORDER BY position",
                    (company_key,),
                ).fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to load company: {exc}") from exc
        lead = json.loads(row["data"])
        lead["contacts"] = [json.loads(contact["data"]) for contact in contacts]
        return lead

    def search_companies(
        self,
        *,
        state: Optional[str] = None,
        industry: Optional[str] = None,
        min_score: int = 0,
        limit: int = 100,
    ) -> List[Dict[str, Any]]:
        """Stored leads matching the filters, highest opportunity score first."""
        query = "SELECT company_key FROM companies"
        conditions: List[str] = []
        params: List[Any] = []
        if state:
            conditions.append("state = ?")
            params.append(state)
        if industry:
            conditions.append("industry = ?")
            params.append(industry)
        if min_score > 0:
            conditions.append("opportunity_score >= ?")
            params.append(min_score)
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY opportunity_score DESC, updated_at DESC LIMIT ?"
        params.append(limit)
        try:
            with self._connect() as conn:
                keys = [row["company_key"] for row in conn.execute(query, params).fetchall()]
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to search companies: {exc}") from exc
        companies = []
        for key in keys:
            lead = self.get_company(key)
            if lead is not None:
                companies.append(lead)
        return companies


__all__ = ["LeadStore"]
