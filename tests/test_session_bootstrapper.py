"""
Tests for SessionBootstrapper.create_context against a fake browser.
"""

import pytest

from browser.session_bootstrapper import STEALTH_SCRIPT, SessionBootstrapper
from core.errors import SessionValidationError, ValidationError
from core.models import SessionPayload
from tests.utils.factories import mercari_cookies
from tests.utils.fake_browser import FakeBrowser

MERCARI = "https://www.mercari.com/"


class TestCreateContext:

    @pytest.mark.asyncio
    async def test_context_seeded_and_page_opened(self, test_config):
        browser = FakeBrowser()
        bootstrapper = SessionBootstrapper(browser, test_config)
        session = SessionPayload(cookies=mercari_cookies(), user_agent="UA/1.0")

        result = await bootstrapper.create_context(session, MERCARI, "mercari")

        context = browser.contexts[0]
        assert context.options["viewport"] == {"width": 1280, "height": 720}
        assert context.options["user_agent"] == "UA/1.0"
        assert context.options["locale"] == "en-US"
        assert STEALTH_SCRIPT in context.init_scripts
        assert context.default_timeout == test_config.DEFAULT_TIMEOUT_MS
        assert context.default_navigation_timeout == test_config.DEFAULT_TIMEOUT_MS
        assert result.page is context.pages[0]
        assert result.readback.count == 2
        assert result.readback.has_host_prefix is True

    @pytest.mark.asyncio
    async def test_default_user_agent_when_missing(self, test_config):
        browser = FakeBrowser()
        await SessionBootstrapper(browser, test_config).create_context(
            SessionPayload(cookies=mercari_cookies()), MERCARI, "mercari"
        )
        assert browser.contexts[0].options["user_agent"] == test_config.DEFAULT_USER_AGENT

    @pytest.mark.asyncio
    async def test_no_usable_cookies_fails_before_context(self, test_config):
        browser = FakeBrowser()
        session = SessionPayload(cookies=[{"name": "orphan", "value": "1"}])

        with pytest.raises(SessionValidationError):
            await SessionBootstrapper(browser, test_config).create_context(session, MERCARI, "mercari")

        assert browser.contexts == []

    @pytest.mark.asyncio
    async def test_readback_zero_closes_context_without_page(self, test_config):
        browser = FakeBrowser()
        session = SessionPayload(cookies=[{"name": "fb", "value": "1", "domain": ".facebook.com", "path": "/"}])

        with pytest.raises(ValidationError, match="no cookies"):
            await SessionBootstrapper(browser, test_config).create_context(session, MERCARI, "mercari")

        context = browser.contexts[0]
        assert context.closed is True
        assert context.pages == []
        assert context.page.goto_calls == []

    @pytest.mark.asyncio
    async def test_mercari_api_headers_replayed(self, test_config):
        browser = FakeBrowser()
        session = SessionPayload(
            cookies=mercari_cookies(),
            session={"type": "mercari_api_headers", "headers": {"authorization": "Bearer abc"}},
        )

        await SessionBootstrapper(browser, test_config).create_context(session, MERCARI, "mercari")

        assert browser.contexts[0].options["extra_http_headers"] == {"authorization": "Bearer abc"}

    @pytest.mark.asyncio
    async def test_session_close_is_idempotent(self, test_config):
        browser = FakeBrowser()
        result = await SessionBootstrapper(browser, test_config).create_context(
            SessionPayload(cookies=mercari_cookies()), MERCARI, "mercari"
        )
        context = browser.contexts[0]
        page = context.page

        await result.close()
        await result.close()

        assert page.closed and context.closed
