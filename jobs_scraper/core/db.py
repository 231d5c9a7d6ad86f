"""SQLite storage for already-scraped jobs (dedup records)."""

import sqlite3
from datetime import datetime
from pathlib import Path

from jobs_scraper.core.schemas import JobRecord

_JOBS_TABLE = """
CREATE TABLE IF NOT EXISTS jobs (
    job_id      TEXT PRIMARY KEY,
    query       TEXT NOT NULL DEFAULT '',
    location    TEXT NOT NULL DEFAULT '',
    record_json TEXT NOT NULL,
    saved_at    TEXT NOT NULL
);
"""


def init_db(path: str | Path) -> sqlite3.Connection:
    """Create the database and tables, returning a connection."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(_JOBS_TABLE)
    conn.commit()
    return conn


def save_job(conn: sqlite3.Connection, record: JobRecord) -> bool:
    """Insert or replace a job record keyed by job_id.

    Returns True if the job was not stored before.
    """
    if not record.job_id:
        msg = "cannot store a job without job_id"
        raise ValueError(msg)
    existed = job_exists(conn, record.job_id)
    conn.execute(
        """
        INSERT INTO jobs (job_id, query, location, record_json, saved_at)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT(job_id)
        DO UPDATE SET
            query = excluded.query,
            location = excluded.location,
            record_json = excluded.record_json,
            saved_at = excluded.saved_at
        """,
        (
            record.job_id,
            record.query,
            record.location,
            record.model_dump_json(),
            datetime.now().isoformat(),
        ),
    )
    conn.commit()
    return not existed


def job_exists(conn: sqlite3.Connection, job_id: str) -> bool:
    row = conn.execute("SELECT 1 FROM jobs WHERE job_id = ? LIMIT 1", (job_id,)).fetchone()
    return row is not None


def read_job(conn: sqlite3.Connection, job_id: str) -> JobRecord | None:
    """Return the stored record, or None if the job was never saved."""
    row = conn.execute("SELECT record_json FROM jobs WHERE job_id = ?", (job_id,)).fetchone()
    if row is None:
        return None
    return JobRecord.model_validate_json(row["record_json"])


def list_job_ids(conn: sqlite3.Connection) -> list[str]:
    """Return stored job ids in insertion order."""
    rows = conn.execute("SELECT job_id FROM jobs ORDER BY rowid").fetchall()
    return [row["job_id"] for row in rows]
