"""
Progress reporting bound to one job.

Processors talk to this instead of the queue directly, so they never need a
job id and never see persistence errors.
"""

import logging
from typing import Any, Dict, Optional

from core.models import EventLevel

logger = logging.getLogger(__name__)


class ProgressReporter:
    """Percent/message progress plus structured events for a single job."""

    def __init__(self, queue, job_id: str, marketplace: str = ""):
        self.queue = queue
        self.job_id = job_id
        self.marketplace = marketplace
        self.last_percent = 0

    async def report(self, percent: int, message: str) -> None:
        self.last_percent = percent
        logger.info(f"[{self.job_id}] {percent}% {message}")
        await self.queue.update_progress(self.job_id, percent, message)

    async def event(
        self,
        level: EventLevel,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        event_type: Optional[str] = None,
    ) -> None:
        data = dict(metadata or {})
        if self.marketplace:
            data.setdefault("marketplace", self.marketplace)
        await self.queue.log_event(self.job_id, level, message, data, event_type=event_type)

    async def info(self, message: str, **metadata) -> None:
        await self.event(EventLevel.INFO, message, metadata)

    async def warning(self, message: str, **metadata) -> None:
        logger.warning(f"[{self.job_id}] {message}")
        await self.event(EventLevel.WARNING, message, metadata)

    async def error(self, message: str, **metadata) -> None:
        logger.error(f"[{self.job_id}] {message}")
        await self.event(EventLevel.ERROR, message, metadata)

    async def success(self, message: str, **metadata) -> None:
        await self.event(EventLevel.SUCCESS, message, metadata)


class NullProgressReporter(ProgressReporter):
    """Reporter that only logs. Used when a processor runs outside a job."""

    def __init__(self, job_id: str = "-", marketplace: str = ""):
        super().__init__(queue=None, job_id=job_id, marketplace=marketplace)

    async def report(self, percent: int, message: str) -> None:
        self.last_percent = percent
        logger.info(f"[{self.job_id}] {percent}% {message}")

    async def event(self, level, message, metadata=None, event_type=None) -> None:
        logger.debug(f"[{self.job_id}] {level}: {message}")
