"""SQLite-backed learning store.

One table holds the counters for both domains::

    learning (domain, canonical_key, entity_id, usage_count, block_count, last_used_at)

with a unique index on (domain, canonical_key, entity_id). Each confirmation or
rejection is a single ``INSERT ... ON CONFLICT DO UPDATE`` statement, so
concurrent writers for the same pair never lose an increment.

A second table, ``learning_log``, keeps one row per submitted decision.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

import structlog

from gmatch.types import Domain, LearningLogEntry, LearningRecord

log = structlog.get_logger()

DEFAULT_DB_PATH = Path("gmatch_learning.db")

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS learning (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        domain TEXT NOT NULL CHECK(domain IN ('supplier', 'bank')),
        canonical_key TEXT NOT NULL,
        entity_id INTEGER NOT NULL,
        usage_count INTEGER NOT NULL DEFAULT 0 CHECK(usage_count >= 0),
        block_count INTEGER NOT NULL DEFAULT 0 CHECK(block_count >= 0),
        last_used_at TEXT,
        updated_at TEXT NOT NULL,
        UNIQUE(domain, canonical_key, entity_id)
    )
"""

_INDEX = """
    CREATE INDEX IF NOT EXISTS idx_learning_key
    ON learning(domain, canonical_key)
"""

_UPSERT_USAGE = """
    INSERT INTO learning (domain, canonical_key, entity_id, usage_count, block_count, last_used_at, updated_at)
    VALUES (?, ?, ?, 1, 0, ?, ?)
    ON CONFLICT(domain, canonical_key, entity_id)
    DO UPDATE SET
        usage_count = learning.usage_count + 1,
        last_used_at = excluded.last_used_at,
        updated_at = excluded.updated_at
"""

_UPSERT_BLOCK = """
    INSERT INTO learning (domain, canonical_key, entity_id, usage_count, block_count, last_used_at, updated_at)
    VALUES (?, ?, ?, 0, 1, NULL, ?)
    ON CONFLICT(domain, canonical_key, entity_id)
    DO UPDATE SET
        block_count = learning.block_count + 1,
        updated_at = excluded.updated_at
"""

_LOG_SCHEMA = """
    CREATE TABLE IF NOT EXISTS learning_log (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        domain TEXT NOT NULL CHECK(domain IN ('supplier', 'bank')),
        raw_input TEXT NOT NULL,
        normalized_input TEXT NOT NULL,
        suggested_entity_id INTEGER,
        chosen_entity_id INTEGER,
        rejected_entity_ids TEXT NOT NULL DEFAULT '[]',
        decision_result TEXT NOT NULL CHECK(decision_result IN ('confirmed', 'rejected', 'skipped')),
        created_at TEXT NOT NULL
    )
"""

_SELECT_COLUMNS = "canonical_key, entity_id, usage_count, block_count, last_used_at"


def init_learning_db(db_path: Path = DEFAULT_DB_PATH) -> None:
    """Create the learning and learning_log tables if they do not exist."""
    conn = sqlite3.connect(db_path)
    try:
        conn.execute(_SCHEMA)
        conn.execute(_INDEX)
        conn.execute(_LOG_SCHEMA)
        conn.commit()
        log.info("learning_db_initialized", path=str(db_path))
    finally:
        conn.close()


def _row_to_record(row: sqlite3.Row) -> LearningRecord:
    last_used = row["last_used_at"]
    return LearningRecord(
        canonical_key=row["canonical_key"],
        entity_id=int(row["entity_id"]),
        usage_count=int(row["usage_count"]),
        block_count=int(row["block_count"]),
        last_used_at=datetime.fromisoformat(last_used) if last_used else None,
    )


class SQLiteLearningStore:
    """LearningStore for one domain, stored in a SQLite file."""

    def __init__(self, domain: Domain, db_path: Path | str = DEFAULT_DB_PATH, timeout: float = 5.0) -> None:
        self.domain = domain
        self.db_path = Path(db_path)
        self.timeout = timeout
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        init_learning_db(self.db_path)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        return conn

    def find_learning_record(self, canonical_key: str, entity_id: int) -> LearningRecord | None:
        conn = self._connect()
        try:
            row = conn.execute(
                f"SELECT {_SELECT_COLUMNS} FROM learning "
                "WHERE domain = ? AND canonical_key = ? AND entity_id = ?",
                (self.domain, canonical_key, entity_id),
            ).fetchone()
            return _row_to_record(row) if row else None
        finally:
            conn.close()

    def list_learning_records(self, canonical_key: str) -> list[LearningRecord]:
        conn = self._connect()
        try:
            rows = conn.execute(
                f"SELECT {_SELECT_COLUMNS} FROM learning "
                "WHERE domain = ? AND canonical_key = ? ORDER BY entity_id",
                (self.domain, canonical_key),
            ).fetchall()
            return [_row_to_record(row) for row in rows]
        finally:
            conn.close()

    def list_records_for_entity(self, entity_id: int) -> list[LearningRecord]:
        conn = self._connect()
        try:
            rows = conn.execute(
                f"SELECT {_SELECT_COLUMNS} FROM learning "
                "WHERE domain = ? AND entity_id = ? "
                "ORDER BY usage_count DESC, last_used_at IS NULL, last_used_at DESC, canonical_key",
                (self.domain, entity_id),
            ).fetchall()
            return [_row_to_record(row) for row in rows]
        finally:
            conn.close()

    def upsert_usage(self, canonical_key: str, entity_id: int) -> LearningRecord:
        now = datetime.now(timezone.utc).isoformat()
        return self._write(_UPSERT_USAGE, (self.domain, canonical_key, entity_id, now, now), canonical_key, entity_id)

    def upsert_block(self, canonical_key: str, entity_id: int) -> LearningRecord:
        now = datetime.now(timezone.utc).isoformat()
        return self._write(_UPSERT_BLOCK, (self.domain, canonical_key, entity_id, now), canonical_key, entity_id)

    def _write(self, statement: str, params: tuple, canonical_key: str, entity_id: int) -> LearningRecord:
        conn = self._connect()
        try:
            # The read-back happens inside the write transaction, before commit.
            conn.execute(statement, params)
            row = conn.execute(
                f"SELECT {_SELECT_COLUMNS} FROM learning "
                "WHERE domain = ? AND canonical_key = ? AND entity_id = ?",
                (self.domain, canonical_key, entity_id),
            ).fetchone()
            conn.commit()
            return _row_to_record(row)
        finally:
            conn.close()


class SQLiteLearningLog:
    """LearningLog stored next to the counters, one row per submitted decision."""

    def __init__(self, db_path: Path | str = DEFAULT_DB_PATH, timeout: float = 5.0) -> None:
        self.db_path = Path(db_path)
        self.timeout = timeout
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        init_learning_db(self.db_path)

    def append(self, entry: LearningLogEntry) -> None:
        created_at = entry.created_at or datetime.now(timezone.utc)
        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        try:
            conn.execute(
                "INSERT INTO learning_log (domain, raw_input, normalized_input, suggested_entity_id, "
                "chosen_entity_id, rejected_entity_ids, decision_result, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    entry.domain,
                    entry.raw_input,
                    entry.normalized_input,
                    entry.suggested_entity_id,
                    entry.chosen_entity_id,
                    json.dumps(entry.rejected_entity_ids),
                    entry.decision_result,
                    created_at.isoformat(),
                ),
            )
            conn.commit()
        finally:
            conn.close()

    def entries(self, domain: Domain | None = None) -> list[LearningLogEntry]:
        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        try:
            query = "SELECT * FROM learning_log"
            params: tuple = ()
            if domain is not None:
                query += " WHERE domain = ?"
                params = (domain,)
            rows = conn.execute(query + " ORDER BY id", params).fetchall()
        finally:
            conn.close()
        return [
            LearningLogEntry(
                domain=row["domain"],
                raw_input=row["raw_input"],
                normalized_input=row["normalized_input"],
                decision_result=row["decision_result"],
                suggested_entity_id=row["suggested_entity_id"],
                chosen_entity_id=row["chosen_entity_id"],
                rejected_entity_ids=json.loads(row["rejected_entity_ids"]),
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]
