"""Tests for session initialization and its retry budget."""

import pytest

from src.constants import SELECTORS
from src.session_manager.errors import MaxRetriesExceeded
from src.session_manager.manager import SessionManager

from fakes import FakeBrowser, FakePage


class TestSessionInitializer:

    @pytest.mark.asyncio
    async def test_initialize_registers_ready_session(self, manager, fake_browser):
        session = await manager.initializer.initialize("chat_abc123def")

        assert session.ready
        assert manager.registry.get("chat_abc123def") is session
        assert len(fake_browser.pages) == 1
        assert session.page is fake_browser.pages[0]

    @pytest.mark.asyncio
    async def test_initialize_reuses_ready_session(self, manager, fake_browser):
        first = await manager.initializer.initialize("chat_abc123def")
        second = await manager.initializer.initialize("chat_abc123def")

        assert second is first
        assert len(fake_browser.pages) == 1

    @pytest.mark.asyncio
    async def test_each_tab_gets_its_own_profile(self, manager, fake_browser):
        await manager.initializer.initialize("chat_aaaaaaaaa")
        await manager.initializer.initialize("chat_bbbbbbbbb")

        assert len(fake_browser.profiles) == 2
        assert fake_browser.profiles[0] is not fake_browser.profiles[1]

    @pytest.mark.asyncio
    async def test_dismisses_sign_in_prompt(self, settings):
        page = FakePage()
        page.show(SELECTORS["stay_logged_out"])

        mgr = SessionManager(settings, browser=FakeBrowser(lambda: page))
        await mgr.initializer.initialize("chat_abc123def")

        assert SELECTORS["stay_logged_out"] in page.clicked

    @pytest.mark.asyncio
    async def test_navigation_failure_retries_with_new_tab(self, settings):
        attempts = []

        def factory():
            page = FakePage()
            if len(attempts) < 2:
                page.goto_error = TimeoutError("navigation timed out")
            attempts.append(page)
            return page

        browser = FakeBrowser(factory)
        mgr = SessionManager(settings, browser=browser)

        session = await mgr.initializer.initialize("chat_abc123def")

        assert len(attempts) == 3
        assert attempts[0].closed and attempts[1].closed
        assert session.page is attempts[2]
        assert mgr.governor.error_count == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("interstitial", ["onboarding", "returning_user"])
    async def test_interstitial_counts_as_failed_navigation(self, settings, interstitial):
        pages = []

        def factory():
            page = FakePage()
            if not pages:
                page.show(SELECTORS[interstitial])
            pages.append(page)
            return page

        mgr = SessionManager(settings, browser=FakeBrowser(factory))

        session = await mgr.initializer.initialize("chat_abc123def")

        assert len(pages) == 2
        assert pages[0].closed
        assert session.page is pages[1]

    @pytest.mark.asyncio
    async def test_gives_up_after_retry_budget(self, settings):
        def factory():
            page = FakePage()
            page.goto_error = RuntimeError("net::ERR_CONNECTION_RESET")
            return page

        browser = FakeBrowser(factory)
        mgr = SessionManager(settings, browser=browser)

        with pytest.raises(MaxRetriesExceeded) as excinfo:
            await mgr.initializer.initialize("chat_abc123def")

        assert excinfo.value.attempts == settings.max_init_retries
        assert len(browser.pages) == settings.max_init_retries
        assert all(p.closed for p in browser.pages)
        assert mgr.registry.get("chat_abc123def") is None
        assert mgr.governor.error_count == settings.max_init_retries + 1
