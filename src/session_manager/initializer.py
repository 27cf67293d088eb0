"""Opening a chat tab and bringing it to a usable state."""

from __future__ import annotations

import logging
import sys
from typing import Callable, Optional

from playwright.async_api import Page

from ..config import ProxySettings
from ..constants import CHATGPT_URL, SELECTORS
from . import debug
from .browser import BrowserHandle
from .errors import MaxRetriesExceeded
from .fingerprint import BrowserProfile, generate_profile
from .governor import ErrorGovernor
from .store import ChatSession, SessionRegistry

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


class InterstitialDetected(Exception):
    """The page showed a splash screen instead of the chat surface."""


async def dismiss_sign_in_prompt(page: Page, timeout_ms: int) -> bool:
    """Click "Stay logged out" if the soft sign-in modal shows up.

    Returns True if the modal was dismissed. Absence is not an error.
    """
    try:
        await page.wait_for_selector(SELECTORS["stay_logged_out"], state="visible", timeout=timeout_ms)
        await page.click(SELECTORS["stay_logged_out"], timeout=timeout_ms)
    except Exception:
        return False
    logger.info('Clicked "Stay logged out"')
    return True


async def detect_interstitial(page: Page) -> Optional[str]:
    """Return the name of the splash screen covering the chat, if any."""
    for name in ("onboarding", "returning_user"):
        if await page.query_selector(SELECTORS[name]):
            return name
    return None


class SessionInitializer:
    """Creates ready chat sessions, retrying failed navigations."""

    def __init__(
        self,
        settings: ProxySettings,
        browser: BrowserHandle,
        registry: SessionRegistry,
        governor: ErrorGovernor,
        profile_factory: Callable[[], BrowserProfile] = generate_profile,
    ):
        self._settings = settings
        self._browser = browser
        self._registry = registry
        self._governor = governor
        self._profile_factory = profile_factory

    async def _open(self, chat_id: str) -> Page:
        page = await self._browser.new_tab(self._profile_factory())
        try:
            await page.goto(CHATGPT_URL, wait_until="domcontentloaded", timeout=self._settings.wait_timeout_ms)
            await dismiss_sign_in_prompt(page, self._settings.sign_in_probe_timeout_ms)
            interstitial = await detect_interstitial(page)
            if interstitial:
                raise InterstitialDetected(interstitial)
        except Exception:
            await self._browser.close_tab(page)
            raise
        await debug.capture(page, self._settings, f"init-{chat_id}")
        return page

    async def initialize(self, chat_id: str) -> ChatSession:
        """Return a ready session for ``chat_id``, creating its tab if needed.

        Navigation failures and interstitials share one retry budget; once it
        is spent, MaxRetriesExceeded is raised and nothing is registered.
        """
        existing = self._registry.get(chat_id)
        if existing is not None and existing.ready:
            logger.info(f"Reusing existing page for chat {chat_id}")
            return existing

        max_attempts = self._settings.max_init_retries
        for attempt in range(1, max_attempts + 1):
            logger.info(f"Creating new page for chat {chat_id} (attempt {attempt}/{max_attempts})")
            try:
                page = await self._open(chat_id)
            except InterstitialDetected as e:
                logger.warning(f"Interstitial '{e}' shown for chat {chat_id}, retrying")
                await self._governor.report()
                continue
            except Exception as e:
                logger.warning(f"Navigation failed for chat {chat_id}: {e}")
                await self._governor.report()
                continue

            session = self._registry.create_if_absent(chat_id, page)
            if session.page is not page:
                await self._browser.close_tab(page)
            logger.info(f"Page is ready for chat {chat_id}")
            return session

        await self._governor.report()
        logger.error(f"Giving up on chat {chat_id} after {max_attempts} attempts")
        raise MaxRetriesExceeded(chat_id, max_attempts)
