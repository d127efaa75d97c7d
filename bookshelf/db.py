"""Persistence helpers for the bookshelf service.

The library is kept in an SQLite database used as a durable string-keyed
blob store: each collection (``books``, ``users``, ``bookmarks``,
``notes``, ``sessions``) and each scalar setting is one row of the ``kv``
table whose value is a JSON document. Collections are always read and
replaced whole; ``update_collection`` runs read, reduce and write inside a
single transaction so a reader never observes a half-written collection.
There is no atomicity across collections.

Each helper opens its own connection on demand using the standard
``sqlite3`` module and closes it as soon as possible. The ``jobs`` table
tracks background ingest work with ``status`` and ``progress`` columns.
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel

from .models import LibrarySettings

logger = logging.getLogger(__name__)

DB_PATH = os.environ.get("BOOKSHELF_DB", str(Path("bookshelf.db")))

BOOKS = "books"
USERS = "users"
BOOKMARKS = "bookmarks"
NOTES = "notes"
SESSIONS = "sessions"
COLLECTIONS = (BOOKS, USERS, BOOKMARKS, NOTES, SESSIONS)

# Scalar settings are stored under their own keys, one row each.
SETTING_KEYS = (
    "companyName",
    "themeColor",
    "fontSize",
    "logoUrl",
    "primaryColor",
    "secondaryColor",
    "accentColor",
    "brandingSettings",
)

M = TypeVar("M", bound=BaseModel)


def get_connection() -> sqlite3.Connection:
    """Return a new SQLite connection with row_factory set to dict-like."""
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    return conn


def init_db() -> None:
    """Create the ``kv`` and ``jobs`` tables if they do not exist.

    Idempotent: it can be called on every startup without harming
    existing data.
    """
    conn = get_connection()
    cur = conn.cursor()
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS kv (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS jobs (
            id TEXT PRIMARY KEY,
            type TEXT,
            payload TEXT,
            status TEXT,
            progress INTEGER,
            error TEXT,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
        """
    )
    cur.execute("CREATE INDEX IF NOT EXISTS idx_jobs_status ON jobs(type, status)")
    conn.commit()
    conn.close()


def _read_value(cur: sqlite3.Cursor, key: str) -> Optional[Any]:
    cur.execute("SELECT value FROM kv WHERE key = ?", (key,))
    row = cur.fetchone()
    return json.loads(row["value"]) if row else None


def _write_value(cur: sqlite3.Cursor, key: str, value: Any) -> None:
    cur.execute(
        """
        INSERT INTO kv(key, value) VALUES (?, ?)
        ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                       updated_at = CURRENT_TIMESTAMP
        """,
        (key, json.dumps(value, ensure_ascii=False)),
    )


def get_value(key: str) -> Optional[Any]:
    """Return the decoded JSON value stored under ``key`` or None."""
    conn = get_connection()
    try:
        return _read_value(conn.cursor(), key)
    finally:
        conn.close()


def set_value(key: str, value: Any) -> None:
    """Store ``value`` (JSON encodable) under ``key``, replacing any old value."""
    conn = get_connection()
    try:
        _write_value(conn.cursor(), key, value)
        conn.commit()
    finally:
        conn.close()


def get_collection(key: str) -> List[Dict[str, Any]]:
    """Return the whole collection stored under ``key`` (empty if absent)."""
    return get_value(key) or []


def replace_collection(key: str, items: Sequence[Dict[str, Any]]) -> None:
    """Replace the whole collection stored under ``key``."""
    set_value(key, list(items))
    logger.debug("Replaced collection %s (%d items)", key, len(items))


def update_collection(key: str,
                      reducer: Callable[[List[Dict[str, Any]]], List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """Read a collection, compute its successor with ``reducer`` and swap it in.

    The read and the write happen in one transaction. The new collection
    is returned.
    """
    conn = get_connection()
    try:
        cur = conn.cursor()
        cur.execute("BEGIN IMMEDIATE")
        current = _read_value(cur, key) or []
        updated = list(reducer(list(current)))
        _write_value(cur, key, updated)
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
    logger.debug("Updated collection %s (%d -> %d items)", key, len(current), len(updated))
    return updated


def load_records(key: str, model: Type[M]) -> List[M]:
    """Return the collection under ``key`` parsed into ``model`` instances."""
    return [model.model_validate(item) for item in get_collection(key)]


def save_records(key: str, records: Sequence[BaseModel]) -> None:
    replace_collection(key, [r.model_dump(mode="json", by_alias=True) for r in records])


def load_settings() -> LibrarySettings:
    """Assemble the scalar settings rows into a ``LibrarySettings`` object."""
    values: Dict[str, Any] = {}
    conn = get_connection()
    try:
        cur = conn.cursor()
        for key in SETTING_KEYS:
            value = _read_value(cur, key)
            if value is not None:
                values[key] = value
    finally:
        conn.close()
    return LibrarySettings.model_validate(values)


def save_settings(settings: LibrarySettings) -> None:
    """Write every scalar setting back to its own row."""
    data = settings.model_dump(mode="json", by_alias=True)
    conn = get_connection()
    try:
        cur = conn.cursor()
        for key in SETTING_KEYS:
            _write_value(cur, key, data[key])
        conn.commit()
    finally:
        conn.close()


def insert_job(job: Dict[str, Any]) -> None:
    """Insert or update a job row in the jobs table.

    Jobs are uniquely identified by ``id``. The ``payload`` field is
    serialized to JSON when stored.
    """
    payload_json = json.dumps(job.get("payload")) if job.get("payload") is not None else None
    values = [job.get("id"), job.get("type"), payload_json,
              job.get("status"), job.get("progress", 0), job.get("error")]
    conn = get_connection()
    cur = conn.cursor()
    try:
        cur.execute(
            """
            INSERT INTO jobs(id, type, payload, status, progress, error)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            values,
        )
    except sqlite3.IntegrityError:
        cur.execute(
            """
            UPDATE jobs SET type = ?, payload = ?, status = ?, progress = ?, error = ?,
                           updated_at = CURRENT_TIMESTAMP WHERE id = ?
            """,
            values[1:] + [job["id"]],
        )
    conn.commit()
    conn.close()


def update_job(job_id: str, *, status: Optional[str] = None, progress: Optional[int] = None,
               error: Optional[str] = None, payload: Optional[Dict[str, Any]] = None) -> None:
    """Update status/progress/error/payload fields on a job.

    Only provided arguments will be updated. The ``updated_at`` field
    automatically records when the row was modified.
    """
    parts: List[str] = []
    params: List[Any] = []
    if status is not None:
        parts.append("status = ?")
        params.append(status)
    if progress is not None:
        parts.append("progress = ?")
        params.append(progress)
    if error is not None:
        parts.append("error = ?")
        params.append(error)
    if payload is not None:
        parts.append("payload = ?")
        params.append(json.dumps(payload))
    if not parts:
        return
    params.append(job_id)
    set_clause = ", ".join(parts)
    conn = get_connection()
    cur = conn.cursor()
    cur.execute(
        f"UPDATE jobs SET {set_clause}, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
        params,
    )
    conn.commit()
    conn.close()


def _job_from_row(row: sqlite3.Row) -> Dict[str, Any]:
    data = dict(row)
    if data.get("payload"):
        data["payload"] = json.loads(data["payload"])
    return data


def get_job(job_id: str) -> Optional[Dict[str, Any]]:
    """Return a job record as a dict, with its payload decoded."""
    conn = get_connection()
    cur = conn.cursor()
    cur.execute("SELECT * FROM jobs WHERE id = ?", (job_id,))
    row = cur.fetchone()
    conn.close()
    return _job_from_row(row) if row else None


def find_jobs(job_type: str, statuses: Sequence[str]) -> List[Dict[str, Any]]:
    """Return jobs of ``job_type`` whose status is one of ``statuses``."""
    placeholders = ", ".join("?" for _ in statuses)
    conn = get_connection()
    cur = conn.cursor()
    cur.execute(
        f"SELECT * FROM jobs WHERE type = ? AND status IN ({placeholders}) ORDER BY created_at ASC",
        [job_type, *statuses],
    )
    rows = cur.fetchall()
    conn.close()
    return [_job_from_row(row) for row in rows]


def delete_job(job_id: str) -> None:
    conn = get_connection()
    cur = conn.cursor()
    cur.execute("DELETE FROM jobs WHERE id = ?", (job_id,))
    conn.commit()
    conn.close()
