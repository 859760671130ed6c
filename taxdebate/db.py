#!/usr/bin/env python3
"""Database initialization and repositories for stored debates.

Provides:
- Schema initialization with migrations
- DebateRecord / RunRecord: the persisted shape of a finished session
- DebateRepository: CRUD for the debates table
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from taxdebate.utils import REPO_ROOT

DB_PATH = REPO_ROOT / "debates.db"


@dataclass
class RunRecord:
    """One Best-of-N run inside a stored debate."""

    id: str
    minimizer_model: str
    hawk_model: str
    minimizer_response: str = ""
    hawk_response: str = ""
    minimizer_summary: str | None = None
    hawk_summary: str | None = None

    def to_payload(self) -> dict:
        payload: dict[str, object] = {
            "id": self.id,
            "minimizer_model": self.minimizer_model,
            "hawk_model": self.hawk_model,
            "minimizer_response": self.minimizer_response,
            "hawk_response": self.hawk_response,
        }
        if self.minimizer_summary is not None:
            payload["minimizer_summary"] = self.minimizer_summary
        if self.hawk_summary is not None:
            payload["hawk_summary"] = self.hawk_summary
        return payload

    @classmethod
    def from_payload(cls, raw: dict) -> RunRecord:
        return cls(
            id=str(raw.get("id") or ""),
            minimizer_model=str(raw.get("minimizer_model") or ""),
            hawk_model=str(raw.get("hawk_model") or ""),
            minimizer_response=str(raw.get("minimizer_response") or ""),
            hawk_response=str(raw.get("hawk_response") or ""),
            minimizer_summary=raw.get("minimizer_summary"),
            hawk_summary=raw.get("hawk_summary"),
        )


@dataclass
class DebateRecord:
    """Debate record."""

    topic: str
    is_multi_run: bool = False
    minimizer_response: str = ""
    hawk_response: str = ""
    minimizer_summary: str | None = None
    hawk_summary: str | None = None
    minimizer_model: str = ""
    hawk_model: str = ""
    runs: list[RunRecord] = field(default_factory=list)
    sources: list[dict] = field(default_factory=list)
    id: str | None = None
    created_at: str | None = None

    def to_payload(self) -> dict:
        return {
            "id": self.id,
            "created_at": self.created_at,
            "topic": self.topic,
            "is_multi_run": self.is_multi_run,
            "minimizer_response": self.minimizer_response,
            "hawk_response": self.hawk_response,
            "minimizer_summary": self.minimizer_summary,
            "hawk_summary": self.hawk_summary,
            "minimizer_model": self.minimizer_model,
            "hawk_model": self.hawk_model,
            "runs": [r.to_payload() for r in self.runs],
            "sources": list(self.sources),
        }

    @classmethod
    def from_payload(cls, raw: dict) -> DebateRecord:
        topic = raw.get("topic")
        if not isinstance(topic, str) or not topic.strip():
            raise ValueError("topic is required")
        runs = raw.get("runs") or []
        sources = raw.get("sources") or []
        if not isinstance(runs, list) or not isinstance(sources, list):
            raise ValueError("runs and sources must be lists")
        return cls(
            topic=topic,
            is_multi_run=bool(raw.get("is_multi_run", False)),
            minimizer_response=str(raw.get("minimizer_response") or ""),
            hawk_response=str(raw.get("hawk_response") or ""),
            minimizer_summary=raw.get("minimizer_summary"),
            hawk_summary=raw.get("hawk_summary"),
            minimizer_model=str(raw.get("minimizer_model") or ""),
            hawk_model=str(raw.get("hawk_model") or ""),
            runs=[RunRecord.from_payload(r) for r in runs if isinstance(r, dict)],
            sources=[s for s in sources if isinstance(s, dict)],
        )


class DebateRepository:
    """Repository for debates table."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def _row_to_debate(self, row: sqlite3.Row) -> DebateRecord:
        runs_raw = json.loads(row["runs"] or "[]")
        return DebateRecord(
            id=row["id"],
            created_at=row["created_at"],
            topic=row["topic"],
            is_multi_run=bool(row["is_multi_run"]),
            minimizer_response=row["minimizer_response"] or "",
            hawk_response=row["hawk_response"] or "",
            minimizer_summary=row["minimizer_summary"],
            hawk_summary=row["hawk_summary"],
            minimizer_model=row["minimizer_model"] or "",
            hawk_model=row["hawk_model"] or "",
            runs=[RunRecord.from_payload(r) for r in runs_raw],
            sources=json.loads(row["sources"] or "[]"),
        )

    def add(self, record: DebateRecord) -> DebateRecord:
        record.id = record.id or uuid.uuid4().hex
        record.created_at = record.created_at or datetime.now().isoformat()
        self.conn.execute(
            """INSERT INTO debates
               (id, created_at, topic, is_multi_run,
                minimizer_response, hawk_response, minimizer_summary, hawk_summary,
                minimizer_model, hawk_model, runs, sources)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                record.id,
                record.created_at,
                record.topic,
                int(record.is_multi_run),
                record.minimizer_response,
                record.hawk_response,
                record.minimizer_summary,
                record.hawk_summary,
                record.minimizer_model,
                record.hawk_model,
                json.dumps([r.to_payload() for r in record.runs]),
                json.dumps(record.sources),
            ),
        )
        self.conn.commit()
        return record

    def get(self, debate_id: str) -> DebateRecord | None:
        row = self.conn.execute(
            "SELECT * FROM debates WHERE id = ?", (debate_id,)
        ).fetchone()
        return self._row_to_debate(row) if row else None

    def list_recent(self, limit: int = 20) -> list[DebateRecord]:
        rows = self.conn.execute(
            "SELECT * FROM debates ORDER BY created_at DESC LIMIT ?", (limit,)
        ).fetchall()
        return [self._row_to_debate(row) for row in rows]

    def delete(self, debate_id: str) -> bool:
        cursor = self.conn.execute("DELETE FROM debates WHERE id = ?", (debate_id,))
        self.conn.commit()
        return cursor.rowcount > 0


def init_db(db_path: Path | str = DB_PATH) -> sqlite3.Connection:
    """Initialize SQLite database with schema and migrations."""
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row

    try:
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA busy_timeout=5000")
    except sqlite3.OperationalError:
        # Best-effort; some environments may reject specific pragmas.
        pass

    conn.execute("""
        CREATE TABLE IF NOT EXISTS debates (
            id TEXT PRIMARY KEY,
            created_at TEXT NOT NULL,
            topic TEXT NOT NULL,
            is_multi_run INTEGER DEFAULT 0,
            minimizer_response TEXT DEFAULT '',
            hawk_response TEXT DEFAULT '',
            minimizer_summary TEXT,
            hawk_summary TEXT,
            minimizer_model TEXT DEFAULT '',
            hawk_model TEXT DEFAULT ''
        )
    """)

    # History listing is newest-first on every page load.
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_debates_created_at ON debates(created_at DESC)"
    )

    # Migrations for existing databases
    migrations = [
        ("runs", "TEXT DEFAULT '[]'"),
        ("sources", "TEXT DEFAULT '[]'"),
    ]
    for col_name, col_type in migrations:
        try:
            conn.execute(f"ALTER TABLE debates ADD COLUMN {col_name} {col_type}")
            conn.commit()
        except sqlite3.OperationalError:
            pass

    conn.commit()
    return conn
