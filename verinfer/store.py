"""
Inference Store — SQLite Persistence

Holds users (verification statistics only), queries, and the
generated inferences with their verification outcome and logical
metrics. Tables are created on startup if missing.

Writes are serialized with a lock; every call opens its own
connection so the store is safe to share across request handlers.
"""

from __future__ import annotations

import json
import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

_STAT_FIELDS = (
    "total_queries",
    "total_verifications",
    "correct_verifications",
    "high_coherence_verifications",
)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        total_queries INTEGER NOT NULL DEFAULT 0,
        total_verifications INTEGER NOT NULL DEFAULT 0,
        correct_verifications INTEGER NOT NULL DEFAULT 0,
        high_coherence_verifications INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS queries (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL REFERENCES users(id),
        topic TEXT NOT NULL,
        context TEXT NOT NULL,
        metadata TEXT NOT NULL DEFAULT '{}',
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS inferences (
        id TEXT PRIMARY KEY,
        query_id TEXT NOT NULL REFERENCES queries(id) ON DELETE CASCADE,
        inference_a TEXT NOT NULL,
        inference_b TEXT NOT NULL,
        inference_c TEXT NOT NULL,
        selected_inference TEXT CHECK (selected_inference IN ('A', 'B', 'C')),
        custom_inference TEXT,
        verification_correct INTEGER,
        verification_rationale TEXT,
        data_type TEXT NOT NULL CHECK (data_type IN ('1st-party', '3rd-party')),
        source_link TEXT,
        confidence_score REAL CHECK (confidence_score >= 0 AND confidence_score <= 1),
        logical_consistency REAL,
        evidence_strength REAL,
        reasoning_clarity REAL,
        created_at TEXT NOT NULL,
        verified_at TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_queries_user_id ON queries(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_inferences_query_id ON inferences(query_id)",
    "CREATE INDEX IF NOT EXISTS idx_inferences_verified_at ON inferences(verified_at)",
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _query_row(row: sqlite3.Row) -> dict:
    data = dict(row)
    data["metadata"] = json.loads(data.get("metadata") or "{}")
    return data


def _inference_row(row: sqlite3.Row) -> dict:
    data = dict(row)
    if data.get("verification_correct") is not None:
        data["verification_correct"] = bool(data["verification_correct"])
    return data


class InferenceStore:
    """SQLite-backed storage for queries, inferences, and user stats."""

    def __init__(self, db_path: str = "verinfer.db"):
        self.db_path = db_path
        self._lock = threading.Lock()
        self._init_db()

    def _init_db(self):
        with self._get_conn() as conn:
            for statement in _SCHEMA:
                conn.execute(statement)
            conn.commit()

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    # --- Users ---

    def _ensure_user(self, conn: sqlite3.Connection, user_id: str) -> None:
        conn.execute(
            "INSERT OR IGNORE INTO users (id, created_at) VALUES (?, ?)",
            (user_id, _now()),
        )

    def get_user(self, user_id: str) -> dict:
        """Return the user's stats row, creating it on first use."""
        with self._lock:
            with self._get_conn() as conn:
                self._ensure_user(conn, user_id)
                conn.commit()
                row = conn.execute(
                    "SELECT * FROM users WHERE id = ?", (user_id,),
                ).fetchone()
        return dict(row)

    def increment_stat(self, user_id: str, field: str) -> None:
        """Increment one of the whitelisted user counters."""
        if field not in _STAT_FIELDS:
            raise ValueError(f"Invalid stat field: {field}")
        with self._lock:
            with self._get_conn() as conn:
                self._ensure_user(conn, user_id)
                # Field name is whitelisted above
                conn.execute(
                    f"UPDATE users SET {field} = {field} + 1 WHERE id = ?",
                    (user_id,),
                )
                conn.commit()

    def preferred_data_type(self, user_id: str) -> Optional[str]:
        """Most common data type among inferences the user has verified."""
        with self._get_conn() as conn:
            row = conn.execute(
                """SELECT i.data_type, COUNT(*) AS n
                   FROM inferences i JOIN queries q ON i.query_id = q.id
                   WHERE q.user_id = ? AND i.verified_at IS NOT NULL
                   GROUP BY i.data_type
                   ORDER BY n DESC, i.data_type ASC
                   LIMIT 1""",
                (user_id,),
            ).fetchone()
        return row["data_type"] if row else None

    # --- Queries ---

    def create_query(
        self,
        user_id: str,
        topic: str,
        context: str,
        metadata: Optional[dict] = None,
    ) -> dict:
        query_id = str(uuid.uuid4())
        with self._lock:
            with self._get_conn() as conn:
                self._ensure_user(conn, user_id)
                conn.execute(
                    """INSERT INTO queries (id, user_id, topic, context, metadata, created_at)
                       VALUES (?, ?, ?, ?, ?, ?)""",
                    (query_id, user_id, topic, context,
                     json.dumps(metadata or {}, default=str), _now()),
                )
                conn.commit()
        return self.get_query(query_id)

    def get_query(self, query_id: str) -> Optional[dict]:
        with self._get_conn() as conn:
            row = conn.execute(
                "SELECT * FROM queries WHERE id = ?", (query_id,),
            ).fetchone()
        return _query_row(row) if row else None

    def list_queries(self, user_id: str, limit: int = 50, offset: int = 0) -> list[dict]:
        with self._get_conn() as conn:
            rows = conn.execute(
                """SELECT * FROM queries WHERE user_id = ?
                   ORDER BY created_at DESC, rowid DESC
                   LIMIT ? OFFSET ?""",
                (user_id, limit, offset),
            ).fetchall()
        return [_query_row(r) for r in rows]

    def count_queries(self, user_id: str) -> int:
        with self._get_conn() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM queries WHERE user_id = ?", (user_id,),
            ).fetchone()
        return row[0] if row else 0

    # --- Inferences ---

    def create_inference(
        self,
        query_id: str,
        inference_a: str,
        inference_b: str,
        inference_c: str,
        data_type: str,
        source_link: Optional[str] = None,
    ) -> dict:
        inference_id = str(uuid.uuid4())
        with self._lock:
            with self._get_conn() as conn:
                conn.execute(
                    """INSERT INTO inferences
                       (id, query_id, inference_a, inference_b, inference_c,
                        data_type, source_link, created_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                    (inference_id, query_id, inference_a, inference_b, inference_c,
                     data_type, source_link, _now()),
                )
                conn.commit()
        return self.get_inference(inference_id)

    def get_inference(self, inference_id: str) -> Optional[dict]:
        with self._get_conn() as conn:
            row = conn.execute(
                "SELECT * FROM inferences WHERE id = ?", (inference_id,),
            ).fetchone()
        return _inference_row(row) if row else None

    def inferences_for_query(self, query_id: str) -> list[dict]:
        """All inferences of a query, newest first."""
        with self._get_conn() as conn:
            rows = conn.execute(
                """SELECT * FROM inferences WHERE query_id = ?
                   ORDER BY created_at DESC, rowid DESC""",
                (query_id,),
            ).fetchall()
        return [_inference_row(r) for r in rows]

    def recent_inference_texts(self, user_id: str, limit: int = 20) -> list[str]:
        """Texts (A, B, C) of the user's most recent inferences."""
        with self._get_conn() as conn:
            rows = conn.execute(
                """SELECT i.inference_a, i.inference_b, i.inference_c
                   FROM inferences i JOIN queries q ON i.query_id = q.id
                   WHERE q.user_id = ?
                   ORDER BY i.created_at DESC, i.rowid DESC
                   LIMIT ?""",
                (user_id, limit),
            ).fetchall()
        return [text for r in rows for text in r]

    def verify_inference(
        self,
        inference_id: str,
        selected: str,
        custom_inference: Optional[str],
        correct: bool,
        rationale: str,
        confidence: float,
        logical_metrics: Optional[dict[str, float]] = None,
    ) -> dict:
        """Record a verification. A custom selection stores no letter."""
        metrics = logical_metrics or {}
        with self._lock:
            with self._get_conn() as conn:
                conn.execute(
                    """UPDATE inferences
                       SET selected_inference = ?,
                           custom_inference = ?,
                           verification_correct = ?,
                           verification_rationale = ?,
                           confidence_score = ?,
                           logical_consistency = ?,
                           evidence_strength = ?,
                           reasoning_clarity = ?,
                           verified_at = ?
                       WHERE id = ?""",
                    (
                        None if selected == "custom" else selected,
                        custom_inference,
                        int(correct),
                        rationale,
                        confidence,
                        metrics.get("consistency"),
                        metrics.get("evidence_strength"),
                        metrics.get("reasoning_clarity"),
                        _now(),
                        inference_id,
                    ),
                )
                conn.commit()
        return self.get_inference(inference_id)

    def unverified(self, limit: int = 10) -> list[dict]:
        """Oldest unverified inferences, with their query's topic and context."""
        with self._get_conn() as conn:
            rows = conn.execute(
                """SELECT i.*, q.topic, q.context
                   FROM inferences i JOIN queries q ON i.query_id = q.id
                   WHERE i.verified_at IS NULL
                   ORDER BY i.created_at ASC, i.rowid ASC
                   LIMIT ?""",
                (limit,),
            ).fetchall()
        return [_inference_row(r) for r in rows]

    def verified_correct_texts(self, user_id: str, limit: int = 20) -> list[str]:
        """The chosen text of the user's inferences verified as correct."""
        with self._get_conn() as conn:
            rows = conn.execute(
                """SELECT i.* FROM inferences i JOIN queries q ON i.query_id = q.id
                   WHERE q.user_id = ? AND i.verification_correct = 1
                   ORDER BY i.verified_at DESC
                   LIMIT ?""",
                (user_id, limit),
            ).fetchall()
        return [chosen_text(_inference_row(r)) for r in rows]

    def verification_stats(self) -> dict[str, Any]:
        with self._get_conn() as conn:
            row = conn.execute(
                """SELECT COUNT(*) AS total,
                          COUNT(verified_at) AS verified,
                          COUNT(CASE WHEN verification_correct = 1 THEN 1 END) AS correct
                   FROM inferences"""
            ).fetchone()
        total, verified, correct = row["total"], row["verified"], row["correct"]
        accuracy = correct / verified if verified > 0 else 0.0
        return {
            "total": total,
            "verified": verified,
            "correct": correct,
            "accuracy": round(accuracy, 2),
        }


def chosen_text(inference: dict) -> str:
    """Custom text if present, else the selected letter's text, else A."""
    if inference.get("custom_inference"):
        return inference["custom_inference"]
    selected = inference.get("selected_inference")
    if selected in ("B", "C"):
        return inference[f"inference_{selected.lower()}"]
    return inference["inference_a"]


def _get_store() -> InferenceStore:
    """Factory — reads db path from config."""
    from verinfer.config import settings
    return InferenceStore(db_path=settings.DB_PATH)


store = _get_store()
