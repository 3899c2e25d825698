#!/usr/bin/env python3
"""
Listing Queue Worker

Polls the jobs table and runs each claimed job to a terminal state:
- claims the oldest queued job (compare-and-swap, one winner per job)
- bootstraps an authenticated browser context from the user's captured session
- runs the marketplace processor (photos -> form -> submit)
- marks the job completed or failed; stale sessions flag the account for re-auth

Each worker processes jobs sequentially. Run several processes to scale out.
"""

from __future__ import annotations

import asyncio
import re
import traceback
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

from browser.session_bootstrapper import SessionBootstrapper
from core.errors import JobTimeoutError, ListingAutomationError, ValidationError, is_auth_failure
from core.models import EventLevel, Job, PlatformAccount, SessionPayload
from core.photo_ingestion import PhotoIngestion, ScratchSpace
from core.storage_client import StorageClient
from processors import ListingPayload, ListingResult, get_processor_class
from worker.accounts import AccountStore
from worker.config import AppConfig, get_config
from worker.job_queue import JobQueue
from worker.logging_config import log_job_event, logger
from worker.progress import ProgressReporter


def _scratch_prefix(job_id: str) -> str:
    return "job_" + re.sub(r"[^A-Za-z0-9]", "", job_id)[:12] + "_"


@dataclass
class QueueWorker:
    queue: JobQueue
    accounts: AccountStore
    browser: Any
    config: AppConfig = field(default_factory=get_config)
    storage: Optional[StorageClient] = None
    worker_id: str = field(default_factory=lambda: f"worker_{uuid.uuid4().hex[:10]}")
    _task: Optional[asyncio.Task] = None
    _stop_event: asyncio.Event = field(default_factory=asyncio.Event)

    def start(self):
        if self._task and not self._task.done():
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self.run_loop(), name=f"listing-worker:{self.worker_id}")
        logger.info(f"QueueWorker started: {self.worker_id}")

    async def stop(self):
        self._stop_event.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info(f"QueueWorker stopped: {self.worker_id}")

    async def run_loop(self):
        while not self._stop_event.is_set():
            try:
                job_id = await self.run_once()
                if not job_id:
                    await asyncio.sleep(self.config.POLL_INTERVAL_SECONDS)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"QueueWorker loop error: {e}")
                await asyncio.sleep(self.config.LOOP_ERROR_BACKOFF_SECONDS)

    async def run_once(self) -> Optional[str]:
        """Claim and process at most one job. Returns its id, or None when idle."""
        job = await self.queue.claim()
        if job is None:
            return None
        await self.process_job(job)
        return job.id

    async def process_job(self, job: Job) -> bool:
        """Run one claimed job to completed or failed. Returns True on success."""
        marketplace = job.target_marketplace
        reporter = ProgressReporter(self.queue, job.id, marketplace)
        scratch = ScratchSpace(root=self.config.SCRATCH_DIR, prefix=_scratch_prefix(job.id))
        account: Optional[PlatformAccount] = None
        log_job_event(job.id, marketplace, "running")

        try:
            processor_cls = get_processor_class(marketplace)
            payload = ListingPayload.from_dict(job.payload).validate()
            if not job.user_id:
                raise ValidationError("Job has no user_id; cannot look up a marketplace account")

            account = await self.accounts.get_platform_account(job.user_id, marketplace)
            session = self.accounts.load_session(account)
            await reporter.report(5, "Preparing browser session")

            result = await self._with_job_timeout(
                self._run_processor(processor_cls, session, payload, reporter, scratch)
            )

            await self.queue.complete(job.id, result.to_dict())
            await reporter.success("Listing created", listing_url=result.listing_url)
            log_job_event(job.id, marketplace, "completed")
            return True

        except Exception as e:
            await self._handle_failure(job, marketplace, account, e, reporter)
            return False

        finally:
            scratch.cleanup()

    async def _run_processor(
        self,
        processor_cls,
        session: SessionPayload,
        payload: ListingPayload,
        reporter: ProgressReporter,
        scratch: ScratchSpace,
    ) -> ListingResult:
        bootstrapper = SessionBootstrapper(self.browser, self.config)
        browser_session = await bootstrapper.create_context(
            session, processor_cls.cookie_url, processor_cls.marketplace
        )
        # Released here too in case run() never gets to its own cleanup
        try:
            await reporter.info(
                "Session cookies injected", readback=browser_session.readback.to_dict()
            )

            photos = PhotoIngestion(
                scratch,
                storage=self.storage,
                default_bucket=self.config.DEFAULT_STORAGE_BUCKET,
                http_timeout=self.config.PHOTO_FETCH_TIMEOUT_SECONDS,
                storage_timeout=self.config.STORAGE_DOWNLOAD_TIMEOUT_SECONDS,
                max_parallel=self.config.MAX_PARALLEL_PHOTO_FETCHES,
            )
            processor = processor_cls(browser_session, photos, reporter, self.config)
            return await processor.run(payload)
        finally:
            await browser_session.close()

    async def _with_job_timeout(self, coro):
        timeout = self.config.JOB_TIMEOUT_SECONDS
        if not timeout:
            return await coro
        try:
            return await asyncio.wait_for(coro, timeout=timeout)
        except asyncio.TimeoutError as e:
            raise JobTimeoutError(f"Job exceeded {timeout:g}s wall-clock limit") from e

    async def _handle_failure(
        self,
        job: Job,
        marketplace: str,
        account: Optional[PlatformAccount],
        error: Exception,
        reporter: ProgressReporter,
    ):
        message = str(error) or type(error).__name__
        if not isinstance(error, ListingAutomationError):
            logger.error(f"Unexpected error in job {job.id}", exc_info=error)

        await reporter.event(
            EventLevel.ERROR,
            message,
            {
                "error_type": type(error).__name__,
                "fatal": getattr(error, "fatal", True),
                "stack": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
            },
            event_type="job_failed",
        )
        await self.queue.fail(job.id, message)

        if account is not None and is_auth_failure(error):
            await self.accounts.mark_needs_reauth(account.id)

        log_job_event(job.id, marketplace, "failed", error=message)
