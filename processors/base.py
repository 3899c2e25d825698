"""
Marketplace processor base class.

A processor drives one listing through a fixed pipeline on one browser
session:

    INIT -> IMAGES_UPLOADED -> FORM_FILLED -> SUBMITTED -> URL_EXTRACTED -> DONE

Any exception moves it to FAILED. cleanup() releases the page and context
on every exit path; run() guarantees that with try/finally.

Subclasses describe their site with selector chains and success rules and
implement _fill_fields(); the upload, submit and blocker handling here is
shared.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlparse

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from browser.dom_interaction import (
    any_visible,
    fill_text,
    select_dropdown_option,
    set_toggle,
    wait_for_file_input,
)
from browser.selectors import SelectorCandidate, SelectorChain, is_visible, is_visible_and_enabled
from browser.session_bootstrapper import BrowserSession
from core.errors import (
    AuthenticationRequiredError,
    ElementNotFoundError,
    ImageUploadError,
    JobTimeoutError,
    NavigationTimeout,
    SubmitBlockedError,
    SubmitError,
    ValidationError,
    VerificationWallError,
)
from core.photo_ingestion import PhotoIngestion, ResolvedPhoto
from processors.payload import ListingPayload
from processors.success import SubmitOutcome, SuccessRules, detect_submit_success
from worker.config import AppConfig, get_config
from worker.progress import NullProgressReporter, ProgressReporter

logger = logging.getLogger(__name__)

LOGIN_PATH_SEGMENTS = frozenset({"login", "signin", "sign-in", "authenticate", "auth"})


class ProcessorState(str, Enum):
    INIT = "init"
    IMAGES_UPLOADED = "images_uploaded"
    FORM_FILLED = "form_filled"
    SUBMITTED = "submitted"
    URL_EXTRACTED = "url_extracted"
    DONE = "done"
    FAILED = "failed"


NEXT_STATE = {
    ProcessorState.INIT: ProcessorState.IMAGES_UPLOADED,
    ProcessorState.IMAGES_UPLOADED: ProcessorState.FORM_FILLED,
    ProcessorState.FORM_FILLED: ProcessorState.SUBMITTED,
    ProcessorState.SUBMITTED: ProcessorState.URL_EXTRACTED,
    ProcessorState.URL_EXTRACTED: ProcessorState.DONE,
}


class ProcessorStateError(RuntimeError):
    """A pipeline step was called out of order."""


@dataclass
class FillReport:
    filled: List[str] = field(default_factory=list)
    skipped: Dict[str, str] = field(default_factory=dict)

    def mark(self, name: str, ok: bool, reason: str = "not found"):
        if ok:
            self.filled.append(name)
        else:
            self.skipped[name] = reason


@dataclass
class ListingResult:
    marketplace: str
    listing_id: Optional[str]
    listing_url: Optional[str]
    photos_uploaded: int = 0
    fill: FillReport = field(default_factory=FillReport)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "listingId": self.listing_id,
            "listingUrl": self.listing_url,
            "marketplace": self.marketplace,
            "photosUploaded": self.photos_uploaded,
            "filledFields": list(self.fill.filled),
            "skippedFields": dict(self.fill.skipped),
        }


class MarketplaceProcessor(ABC):
    """Shared upload/fill/submit pipeline for one marketplace."""

    marketplace: str = ""
    create_url: str = ""
    cookie_url: str = ""
    success_rules: SuccessRules

    file_inputs: SelectorChain
    uploader_openers: SelectorChain
    submit_buttons: SelectorChain
    thumbnail_selector: Optional[str] = None
    verification_selectors: Sequence[str] = ()
    verification_path_hints: Sequence[str] = ()
    inline_error_selectors: Sequence[str] = ()

    def __init__(
        self,
        session: BrowserSession,
        photos: PhotoIngestion,
        reporter: Optional[ProgressReporter] = None,
        config: Optional[AppConfig] = None,
    ):
        self.session = session
        self.page = session.page
        self.photos = photos
        self.reporter = reporter or NullProgressReporter(marketplace=self.marketplace)
        self.config = config or get_config()
        self.state = ProcessorState.INIT
        self.listing_id: Optional[str] = None
        self.listing_url: Optional[str] = None
        self.photos_uploaded = 0
        self._closed = False

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _require_state(self, expected: ProcessorState):
        if self.state != expected:
            raise ProcessorStateError(
                f"{self.marketplace}: expected state {expected.value}, got {self.state.value}"
            )

    def _advance(self):
        self.state = NEXT_STATE[self.state]
        logger.debug(f"{self.marketplace} processor -> {self.state.value}")

    # ------------------------------------------------------------------
    # Navigation and blockers
    # ------------------------------------------------------------------

    async def open_create_page(self):
        if not (self.page.url or "").startswith(self.create_url):
            try:
                await self.page.goto(self.create_url, wait_until="domcontentloaded")
            except PlaywrightTimeoutError:
                # Partially loaded pages are still usable; blocker checks decide
                logger.warning(f"{self.marketplace}: create page load timed out, continuing")
        await self.check_blockers()

    def check_login_redirect(self):
        path = urlparse(self.page.url or "").path.lower()
        segments = {part for part in path.split("/") if part}
        if segments & LOGIN_PATH_SEGMENTS:
            raise AuthenticationRequiredError(
                f"{self.marketplace} redirected to login ({self.page.url}); session expired"
            )

    async def check_verification_wall(self):
        url = (self.page.url or "").lower()
        if any(hint in url for hint in self.verification_path_hints):
            raise VerificationWallError(f"{self.marketplace} verification checkpoint at {self.page.url}")
        hit = await any_visible(self.page, self.verification_selectors)
        if hit:
            raise VerificationWallError(f"{self.marketplace} verification wall detected ({hit})")

    async def check_blockers(self):
        self.check_login_redirect()
        await self.check_verification_wall()

    async def collect_inline_errors(self) -> List[str]:
        messages = []
        for selector in self.inline_error_selectors:
            try:
                locator = self.page.locator(selector)
                for index in range(min(await locator.count(), 5)):
                    element = locator.nth(index)
                    if await is_visible(element):
                        text = (await element.inner_text()).strip()
                        if text:
                            messages.append(text)
            except Exception as e:
                logger.debug(f"Inline error probe {selector!r} failed: {e}")
        return messages

    # ------------------------------------------------------------------
    # Pipeline steps
    # ------------------------------------------------------------------

    async def upload_images(self, refs: Sequence[Any]) -> List[ResolvedPhoto]:
        self._require_state(ProcessorState.INIT)
        await self.open_create_page()

        photos = await self.photos.resolve_all(refs)
        if not photos:
            raise ValidationError(f"None of the {len(refs)} photos could be fetched")
        await self.reporter.info(f"Resolved {len(photos)} of {len(refs)} photos")

        for index, photo in enumerate(photos, start=1):
            try:
                file_input = await wait_for_file_input(self.page, self.file_inputs, self.uploader_openers)
                if file_input is None:
                    raise ElementNotFoundError("photo file input", self.file_inputs.selectors)
                await file_input.set_input_files(str(photo.path))
                await self.wait_for_thumbnail(index)
            except ImageUploadError:
                raise
            except Exception as e:
                raise ImageUploadError(index, str(e)) from e

            self.photos_uploaded = index
            await self.reporter.report(10 + int(25 * index / len(photos)), f"Uploaded photo {index}/{len(photos)}")

        await self.after_upload(len(photos))
        self._advance()
        return photos

    async def wait_for_thumbnail(self, index: int):
        """Bounded settle wait for the index-th thumbnail. Never fails the upload."""
        if not self.thumbnail_selector:
            return
        try:
            await self.page.locator(self.thumbnail_selector).nth(index - 1).wait_for(
                state="attached", timeout=self.config.IMAGE_SETTLE_MS
            )
        except Exception:
            logger.debug(f"{self.marketplace}: thumbnail {index} not rendered within settle window")

    async def after_upload(self, count: int):
        """Hook for marketplace-specific post-upload checks."""

    async def fill_form(self, payload: ListingPayload) -> FillReport:
        self._require_state(ProcessorState.IMAGES_UPLOADED)
        await self.check_blockers()

        report = FillReport()
        await self._fill_fields(payload, report)

        if report.skipped:
            await self.reporter.warning(
                f"Skipped {len(report.skipped)} field(s)", skipped=report.skipped
            )
        await self.reporter.info(f"Filled {len(report.filled)} field(s)", filled=report.filled)
        self._advance()
        return report

    @abstractmethod
    async def _fill_fields(self, payload: ListingPayload, report: FillReport):
        """Fill every marketplace field present in payload, recording outcomes."""

    async def before_submit(self):
        """Hook for multi-step forms that need extra clicks before submit."""

    async def submit(self) -> SubmitOutcome:
        self._require_state(ProcessorState.FORM_FILLED)
        await self.check_blockers()
        await self.before_submit()

        usable = SelectorChain(
            self.submit_buttons.name,
            [SelectorCandidate(s, is_visible_and_enabled) for s in self.submit_buttons.selectors],
        )
        match = await usable.resolve(self.page)
        if match is None:
            if await self.submit_buttons.resolve(self.page) is not None:
                raise SubmitBlockedError(
                    f"{self.marketplace} submit button is disabled or hidden; required fields may be missing"
                )
            raise ElementNotFoundError(self.submit_buttons.name, self.submit_buttons.selectors)

        await match.locator.click()
        self._advance()

        try:
            await self._race_navigation()
        except NavigationTimeout as e:
            await self.reporter.warning(str(e))

        url = self.page.url
        html = await self.page.content()
        outcome = detect_submit_success(url, html, self.success_rules)
        if not outcome.success:
            self.check_login_redirect()
            await self.check_verification_wall()
            errors = await self.collect_inline_errors()
            detail = f": {'; '.join(errors)}" if errors else ""
            raise SubmitError(f"{self.marketplace} submission not confirmed (url={url}){detail}")

        self.listing_id = outcome.listing_id
        self.listing_url = outcome.listing_url
        if self.success_rules.require_listing_url and not self.listing_url:
            raise SubmitError(f"{self.marketplace} listing URL could not be extracted")

        await self.reporter.success(
            "Listing submitted", listing_url=self.listing_url, signals=outcome.signals
        )
        self._advance()
        return outcome

    async def _race_navigation(self):
        """Wait for a success URL or the timeout, whichever comes first."""
        timeout_ms = self.config.SUBMIT_NAVIGATION_TIMEOUT_MS
        navigation = asyncio.ensure_future(
            self.page.wait_for_url(self.success_rules.url_pattern, timeout=timeout_ms)
        )
        timer = asyncio.ensure_future(asyncio.sleep(timeout_ms / 1000))

        done, pending = await asyncio.wait({navigation, timer}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        if navigation in done and not navigation.cancelled() and navigation.exception() is None:
            return
        if navigation in done and not navigation.cancelled():
            logger.debug(f"{self.marketplace}: wait_for_url ended with {navigation.exception()!r}")
        raise NavigationTimeout(
            f"No success navigation within {timeout_ms} ms; checking page for listing signals"
        )

    def get_listing_url(self) -> Optional[str]:
        return self.listing_url

    async def cleanup(self):
        if self._closed:
            return
        self._closed = True
        await self.session.close()

    # ------------------------------------------------------------------
    # Field helpers used by subclasses
    # ------------------------------------------------------------------

    async def _field(self, report: FillReport, name: str, action) -> bool:
        """Run one optional field action, recording but never propagating failures."""
        try:
            ok = bool(await action)
        except Exception as e:
            logger.warning(f"{self.marketplace}: field {name} failed: {e}")
            report.mark(name, False, str(e)[:200])
            return False
        report.mark(name, ok)
        return ok

    async def fill_field(self, report: FillReport, name: str, chain: SelectorChain, value: Any) -> bool:
        if value in (None, ""):
            return False
        return await self._field(report, name, fill_text(self.page, chain, value))

    async def select_field(
        self, report: FillReport, name: str, chain: SelectorChain, value: str, partial_match: bool = False
    ) -> bool:
        if not value:
            return False
        return await self._field(
            report, name, select_dropdown_option(self.page, chain, value, partial_match=partial_match)
        )

    async def toggle_field(self, report: FillReport, name: str, chain: SelectorChain, desired: Optional[bool]) -> bool:
        if desired is None:
            return False

        async def apply():
            match = await chain.resolve(self.page)
            if match is None:
                return False
            await set_toggle(match.locator, desired)
            return True

        return await self._field(report, name, apply())

    # ------------------------------------------------------------------
    # Whole pipeline
    # ------------------------------------------------------------------

    async def _stage(self, name: str, coro, timeout: float):
        try:
            return await asyncio.wait_for(coro, timeout=timeout)
        except asyncio.TimeoutError as e:
            raise JobTimeoutError(f"{self.marketplace} {name} timed out after {timeout:g}s") from e

    async def run(self, payload: ListingPayload) -> ListingResult:
        """Upload, fill and submit one listing. Always cleans up."""
        try:
            payload.validate()

            await self.reporter.report(10, "Uploading photos")
            await self._stage(
                "upload_images", self.upload_images(payload.photo_refs), self.config.UPLOAD_STAGE_TIMEOUT_SECONDS
            )

            await self.reporter.report(40, "Filling listing form")
            fill = await self._stage("fill_form", self.fill_form(payload), self.config.FILL_STAGE_TIMEOUT_SECONDS)

            await self.reporter.report(70, "Submitting listing")
            await self._stage("submit", self.submit(), self.config.SUBMIT_STAGE_TIMEOUT_SECONDS)

            self._advance()
            await self.reporter.report(95, "Listing created")
            return ListingResult(
                marketplace=self.marketplace,
                listing_id=self.listing_id,
                listing_url=self.get_listing_url(),
                photos_uploaded=self.photos_uploaded,
                fill=fill,
            )
        except Exception as e:
            failed_in = self.state.value
            self.state = ProcessorState.FAILED
            await self.reporter.error(
                f"{self.marketplace} listing failed: {e}",
                stage=failed_in,
                error_type=type(e).__name__,
            )
            raise
        except BaseException:
            self.state = ProcessorState.FAILED
            raise
        finally:
            await self.cleanup()
