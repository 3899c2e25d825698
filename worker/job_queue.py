"""
Job queue over the jobs table.

claim() is the only cross-worker synchronization point: it moves the oldest
queued job to running with a compare-and-swap update, so two workers racing
for the same row cannot both win. Progress and event writes are advisory and
never raise into the caller.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import aiosqlite

from core.models import EventLevel, Job, JobEvent, JobStatus, utcnow_iso
from worker.database import Database, dump_json

logger = logging.getLogger(__name__)

CLAIMED_MESSAGE = "Claimed by worker"

# Richest row shape first; the first one the events table accepts wins
EVENT_ROW_SHAPES = (
    ("job_id", "level", "event_type", "message", "metadata", "created_at"),
    ("job_id", "event_type", "message", "metadata", "created_at"),
    ("job_id", "level", "message", "metadata"),
    ("job_id", "level", "message"),
    ("job_id", "message"),
)

UNKNOWN_COLUMN_HINTS = (
    "no column named",
    "has no column",
    "unknown column",
    "does not exist",
    "could not find the",
)


def _now() -> str:
    return utcnow_iso()


def coerce_level(level) -> EventLevel:
    try:
        return EventLevel(level)
    except ValueError:
        return EventLevel.INFO


def is_unknown_column_error(error: BaseException) -> bool:
    message = str(error).lower()
    return any(hint in message for hint in UNKNOWN_COLUMN_HINTS)


class JobQueue:
    """Claim, progress, completion and event logging for listing jobs."""

    def __init__(self, db: Database, events_table: str = "job_events"):
        self.db = db
        self.events_table = events_table

    async def claim(self) -> Optional[Job]:
        """
        Claim the oldest queued job for this worker.

        Returns the claimed job, or None when nothing is queued or another
        worker won the race for the selected row.
        """
        now = _now()
        progress = dump_json({"percent": 0, "message": CLAIMED_MESSAGE})

        async with self.db.connect() as db:
            await db.execute("BEGIN IMMEDIATE")

            cursor = await db.execute(
                """
                SELECT id FROM jobs
                WHERE status = 'queued'
                ORDER BY created_at ASC, rowid ASC
                LIMIT 1
                """
            )
            row = await cursor.fetchone()
            await cursor.close()
            if not row:
                await db.commit()
                return None

            job_id = row["id"]
            cursor = await db.execute(
                """UPDATE jobs
                   SET status = 'running', progress = ?, updated_at = ?
                   WHERE id = ? AND status = 'queued'""",
                (progress, now, job_id),
            )
            claimed = cursor.rowcount
            await db.commit()

            if claimed == 0:
                logger.debug(f"Lost claim race for job {job_id}")
                return None

            cursor = await db.execute("SELECT * FROM jobs WHERE id = ?", (job_id,))
            row = await cursor.fetchone()

        logger.info(f"Claimed job {job_id}")
        return Job.from_row(row)

    async def get(self, job_id: str) -> Optional[Job]:
        row = await self.db.fetchone("SELECT * FROM jobs WHERE id = ?", (job_id,))
        return Job.from_row(row) if row else None

    async def update_progress(self, job_id: str, percent: int, message: str) -> bool:
        """Record progress. Failures are logged and reported, never raised."""
        percent = max(0, min(100, int(percent)))
        try:
            changed = await self.db.execute(
                "UPDATE jobs SET progress = ?, updated_at = ? WHERE id = ?",
                (dump_json({"percent": percent, "message": message}), _now(), job_id),
            )
        except Exception as e:
            logger.warning(f"Progress update failed for job {job_id}: {e}")
            return False
        return changed > 0

    async def complete(self, job_id: str, result: Dict[str, Any]) -> bool:
        """Mark a running job completed. Returns False if it was not running."""
        changed = await self.db.execute(
            """UPDATE jobs
               SET status = ?, result = ?, error = NULL, progress = ?, updated_at = ?
               WHERE id = ? AND status = ?""",
            (
                JobStatus.COMPLETED.value,
                dump_json(result),
                dump_json({"percent": 100, "message": "Completed"}),
                _now(),
                job_id,
                JobStatus.RUNNING.value,
            ),
        )
        if not changed:
            logger.warning(f"complete() ignored for job {job_id}: not running")
        return changed > 0

    async def fail(self, job_id: str, message: str) -> bool:
        """Mark a running job failed. Returns False if it was not running."""
        changed = await self.db.execute(
            """UPDATE jobs
               SET status = ?, error = ?, progress = ?, updated_at = ?
               WHERE id = ? AND status = ?""",
            (
                JobStatus.FAILED.value,
                dump_json({"message": message}),
                dump_json({"percent": 0, "message": "Failed"}),
                _now(),
                job_id,
                JobStatus.RUNNING.value,
            ),
        )
        if not changed:
            logger.warning(f"fail() ignored for job {job_id}: not running")
        return changed > 0

    async def log_event(
        self,
        job_id: str,
        level: EventLevel | str,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        event_type: Optional[str] = None,
    ) -> bool:
        """
        Append a job event, degrading to poorer row shapes when the events
        table lacks columns. Never raises.
        """
        event = JobEvent(
            job_id=job_id,
            message=message,
            level=coerce_level(level),
            event_type=event_type,
            metadata=dict(metadata or {}),
        )
        values = {
            "job_id": event.job_id,
            "level": event.level.value,
            "event_type": event.kind,
            "message": event.message,
            "metadata": dump_json(event.metadata),
            "created_at": event.created_at,
        }

        try:
            async with self.db.connect() as db:
                for columns in EVENT_ROW_SHAPES:
                    placeholders = ", ".join("?" for _ in columns)
                    sql = (
                        f"INSERT INTO {self.events_table} ({', '.join(columns)}) "
                        f"VALUES ({placeholders})"
                    )
                    try:
                        await db.execute(sql, tuple(values[c] for c in columns))
                        await db.commit()
                        return True
                    except aiosqlite.Error as e:
                        if not is_unknown_column_error(e):
                            raise
                        logger.debug(f"Event shape {columns} rejected: {e}")
            logger.warning(f"No event row shape accepted for job {job_id}")
        except Exception as e:
            logger.warning(f"Failed to log event for job {job_id}: {e}")
        return False
