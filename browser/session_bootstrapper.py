"""
Session bootstrapper: launches Chromium and turns a captured marketplace
session into an authenticated, isolated browser context.

Features:
- Stealth launch args and init script (navigator.webdriver etc.)
- Optional proxy from PLAYWRIGHT_PROXY* settings
- Cookie normalization + post-injection readback for the target host
- Conservative default timeouts on every context
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from playwright.async_api import Browser, BrowserContext, Page, async_playwright

from browser.cookies import CookieReadback, extra_headers_for, normalize_cookies
from core.errors import SessionValidationError
from core.models import SessionPayload
from worker.config import AppConfig, get_config
from worker.logging_config import log_browser_event

logger = logging.getLogger(__name__)


STEALTH_SCRIPT = """
    // Hide webdriver flag
    Object.defineProperty(navigator, 'webdriver', {
        get: () => undefined
    });

    // Stable languages
    Object.defineProperty(navigator, 'languages', {
        get: () => ['en-US', 'en']
    });

    // Non-empty plugin list
    Object.defineProperty(navigator, 'plugins', {
        get: () => {
            const plugins = [
                { name: 'Chrome PDF Plugin', filename: 'internal-pdf-viewer' },
                { name: 'Chrome PDF Viewer', filename: 'mhjfbmdgcfjbbpaeojofohoefgiehjai' },
                { name: 'Native Client', filename: 'internal-nacl-plugin' }
            ];
            plugins.length = 3;
            return plugins;
        }
    });

    window.chrome = window.chrome || { runtime: {} };
"""


@dataclass
class BrowserSession:
    """A per-job browser context and its single page."""
    session_id: str
    context: BrowserContext
    page: Page
    marketplace: str
    readback: CookieReadback
    created_at: datetime = field(default_factory=datetime.now)

    async def close(self):
        """Release page and context. Safe to call more than once."""
        for name, target in (("page", self.page), ("context", self.context)):
            if target is None:
                continue
            try:
                await target.close()
            except Exception as e:
                logger.debug(f"Ignoring {name} close error for {self.session_id}: {e}")
        self.page = None
        self.context = None
        log_browser_event(self.session_id, "closed")


class BrowserLauncher:
    """Owns the Playwright driver and the shared Chromium instance."""

    def __init__(self, config: Optional[AppConfig] = None):
        self.config = config or get_config()
        self.playwright = None
        self.browser: Optional[Browser] = None
        self._lock = asyncio.Lock()

    async def start(self) -> Browser:
        async with self._lock:
            if self.browser is not None and self.browser.is_connected():
                return self.browser

            if self.playwright is None:
                self.playwright = await async_playwright().start()

            launch_kwargs: Dict[str, Any] = {
                "headless": self.config.HEADLESS,
                "args": list(self.config.LAUNCH_ARGS),
            }
            proxy = self.config.proxy
            if proxy:
                launch_kwargs["proxy"] = proxy
                logger.info(f"Browser proxy enabled: {proxy['server']}")

            self.browser = await self.playwright.chromium.launch(**launch_kwargs)
            logger.info(f"Chromium launched (headless={self.config.HEADLESS})")
            return self.browser

    async def stop(self):
        async with self._lock:
            if self.browser is not None:
                try:
                    await self.browser.close()
                except Exception as e:
                    logger.warning(f"Browser close failed: {e}")
                self.browser = None
            if self.playwright is not None:
                await self.playwright.stop()
                self.playwright = None


class SessionBootstrapper:
    """Creates authenticated contexts from captured session payloads."""

    def __init__(self, browser: Browser, config: Optional[AppConfig] = None):
        self.browser = browser
        self.config = config or get_config()

    def _context_options(self, session: SessionPayload, marketplace: str) -> Dict[str, Any]:
        options: Dict[str, Any] = {
            "viewport": self.config.viewport,
            "user_agent": session.user_agent or self.config.DEFAULT_USER_AGENT,
            "locale": self.config.LOCALE,
        }
        headers = extra_headers_for(marketplace, session.session)
        if headers:
            options["extra_http_headers"] = headers
            logger.info(f"Replaying {len(headers)} captured {marketplace} headers")
        return options

    async def create_context(
        self,
        session: SessionPayload,
        target_url: str,
        marketplace: str = "",
    ) -> BrowserSession:
        """
        Build an isolated context seeded with the session's cookies.

        Raises SessionValidationError, with the context already closed, when no
        cookie survives normalization or the readback finds none for the
        target URL. No page is opened in that case.
        """
        cookies = normalize_cookies(session.cookies)
        if not cookies:
            raise SessionValidationError(
                f"No usable cookies in captured {marketplace or 'marketplace'} session"
            )

        session_id = f"ctx_{uuid.uuid4().hex[:10]}"
        context = await self.browser.new_context(**self._context_options(session, marketplace))
        try:
            await context.add_init_script(STEALTH_SCRIPT)
            await context.add_cookies(cookies)

            readback = CookieReadback.from_cookies(target_url, await context.cookies(target_url))
            logger.info(
                f"Cookie readback for {target_url}: {readback.count} cookies "
                f"(injected={len(cookies)}, __Host-={readback.has_host_prefix}, "
                f"sample={readback.sample_names})"
            )
            if readback.count == 0:
                raise SessionValidationError(
                    f"Session has no cookies for {target_url} after injection; re-connect the account"
                )

            context.set_default_timeout(self.config.DEFAULT_TIMEOUT_MS)
            context.set_default_navigation_timeout(self.config.DEFAULT_TIMEOUT_MS)
            page = await context.new_page()
        except BaseException:
            try:
                await context.close()
            except Exception as e:
                logger.debug(f"Context close after bootstrap failure raised: {e}")
            raise

        log_browser_event(session_id, "context ready", f"{marketplace} {target_url}")
        return BrowserSession(
            session_id=session_id,
            context=context,
            page=page,
            marketplace=marketplace,
            readback=readback,
        )
