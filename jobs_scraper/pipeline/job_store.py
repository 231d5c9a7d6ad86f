"""Dedup store: which jobs were already scraped in earlier runs.

Storage lives in SQLite; the pagination loop only ever calls ``contains``.
"""

import logging
import sqlite3

from jobs_scraper.core.db import job_exists, list_job_ids, read_job, save_job
from jobs_scraper.core.schemas import JobRecord

logger = logging.getLogger(__name__)


class JobStore:
    """Existence/read/write over job ids.

    Usage::

        store = JobStore(init_db("data/jobs.db"))
        if not store.contains(record.job_id):
            store.save(record)
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def contains(self, job_id: str) -> bool:
        if not job_id:
            return False
        return job_exists(self._conn, job_id)

    def save(self, record: JobRecord) -> bool:
        """Persist a record. Returns True if it was new."""
        is_new = save_job(self._conn, record)
        logger.debug("Saved job %s (%s)", record.job_id, "new" if is_new else "updated")
        return is_new

    def read(self, job_id: str) -> JobRecord:
        record = read_job(self._conn, job_id)
        if record is None:
            raise KeyError(job_id)
        return record

    def list(self) -> list[str]:
        return list_job_ids(self._conn)
