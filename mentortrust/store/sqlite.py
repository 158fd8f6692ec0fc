"""SQLite storage backend.

Profiles and verification records live in two tables. ``user_id`` is unique
on the record table and every update is a compare-and-swap on ``version``,
so concurrent writers in separate processes get the same conflict signal as
the in-memory backend.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from dataclasses import replace
from pathlib import Path
from typing import Any

from mentortrust.models import Profile, VerificationRecord

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS profiles (
    user_id TEXT PRIMARY KEY,
    type TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS mentor_verifications (
    user_id TEXT PRIMARY KEY,
    source_handle TEXT,
    source_verified INTEGER,
    source_evidence TEXT NOT NULL DEFAULT '{}',
    documents_verified INTEGER NOT NULL DEFAULT 0,
    document_results TEXT NOT NULL DEFAULT '[]',
    identity_verified INTEGER NOT NULL DEFAULT 0,
    identity_methods TEXT NOT NULL DEFAULT '{}',
    status TEXT NOT NULL,
    channel_errors TEXT NOT NULL DEFAULT '{}',
    version INTEGER NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""

_COLUMNS = (
    "user_id",
    "source_handle",
    "source_verified",
    "source_evidence",
    "documents_verified",
    "document_results",
    "identity_verified",
    "identity_methods",
    "status",
    "channel_errors",
    "version",
    "created_at",
    "updated_at",
)

_JSON_COLUMNS = ("source_evidence", "document_results", "identity_methods", "channel_errors")


def _to_row(record: VerificationRecord, version: int) -> dict[str, Any]:
    data = record.to_dict()
    row = {col: data[col] for col in _COLUMNS}
    for col in _JSON_COLUMNS:
        row[col] = json.dumps(row[col], sort_keys=True)
    row["source_verified"] = None if record.source_verified is None else int(record.source_verified)
    row["documents_verified"] = int(record.documents_verified)
    row["identity_verified"] = int(record.identity_verified)
    row["version"] = version
    return row


def _from_row(row: sqlite3.Row) -> VerificationRecord:
    data = dict(row)
    for col in _JSON_COLUMNS:
        data[col] = json.loads(data[col])
    if data["source_verified"] is not None:
        data["source_verified"] = bool(data["source_verified"])
    return VerificationRecord.from_dict(data)


class SQLiteStore:
    """sqlite3-backed store implementing both store contracts."""

    def __init__(self, db_path: str | Path = ":memory:") -> None:
        self._db_path = str(db_path)
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        with self._lock, self._conn:
            self._conn.executescript(_SCHEMA)
        logger.info("SQLiteStore: using database at %s", self._db_path)

    # -- Profiles -------------------------------------------------------------

    def put_profile(self, user_id: str, profile_type: str) -> Profile:
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT INTO profiles (user_id, type) VALUES (?, ?) "
                "ON CONFLICT(user_id) DO UPDATE SET type = excluded.type",
                (user_id, profile_type),
            )
        return Profile(user_id=user_id, type=profile_type)

    def get_profile(self, user_id: str) -> Profile | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT p.user_id, p.type, v.user_id IS NOT NULL AS has_record "
                "FROM profiles p LEFT JOIN mentor_verifications v ON v.user_id = p.user_id "
                "WHERE p.user_id = ?",
                (user_id,),
            ).fetchone()
        if row is None:
            return None
        return Profile(user_id=row["user_id"], type=row["type"], has_verification_record=bool(row["has_record"]))

    # -- Records --------------------------------------------------------------

    def get(self, user_id: str) -> VerificationRecord | None:
        with self._lock:
            row = self._conn.execute(
                f"SELECT {', '.join(_COLUMNS)} FROM mentor_verifications WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        return _from_row(row) if row is not None else None

    def create(self, record: VerificationRecord) -> VerificationRecord | None:
        row = _to_row(record, version=1)
        placeholders = ", ".join(f":{col}" for col in _COLUMNS)
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    f"INSERT INTO mentor_verifications ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
                    row,
                )
        except sqlite3.IntegrityError:
            return None
        return replace(record.copy(), version=1)

    def update(self, record: VerificationRecord, expected_version: int) -> VerificationRecord | None:
        row = _to_row(record, version=expected_version + 1)
        row["expected_version"] = expected_version
        assignments = ", ".join(f"{col} = :{col}" for col in _COLUMNS if col not in ("user_id", "created_at"))
        with self._lock, self._conn:
            cursor = self._conn.execute(
                f"UPDATE mentor_verifications SET {assignments} "
                "WHERE user_id = :user_id AND version = :expected_version",
                row,
            )
        if cursor.rowcount != 1:
            return None
        return replace(record.copy(), version=expected_version + 1)

    def ping(self) -> bool:
        try:
            with self._lock:
                self._conn.execute("SELECT 1").fetchone()
        except sqlite3.Error:
            logger.warning("SQLiteStore ping failed for %s", self._db_path)
            return False
        return True

    def close(self) -> None:
        with self._lock:
            self._conn.close()
