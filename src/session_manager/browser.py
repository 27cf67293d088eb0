"""Camoufox browser automation: shared browser launch, restart and tab isolation."""

from __future__ import annotations

import asyncio
import logging
import random
import sys
from typing import Callable, Optional

from camoufox.async_api import AsyncCamoufox
from playwright.async_api import Browser, Page

from ..config import ProxySettings
from .errors import BrowserLaunchError
from .fingerprint import BrowserProfile

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


class BrowserHandle:
    """Owns the single Camoufox process shared by every chat session."""

    def __init__(
        self,
        settings: ProxySettings,
        on_launch_error: Optional[Callable[[], None]] = None,
    ):
        self._settings = settings
        self._on_launch_error = on_launch_error
        self._camoufox = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._browser is not None

    async def _launch(self) -> tuple[AsyncCamoufox, Browser]:
        camoufox = AsyncCamoufox(
            headless=self._settings.headless,
            humanize=True,
            i_know_what_im_doing=True,
            config={"forceScopeAccess": True},
            disable_coop=True,
        )
        browser = await camoufox.__aenter__()
        return camoufox, browser

    def _backoff_delay(self, attempt: int) -> float:
        base = min(
            self._settings.launch_backoff_max,
            self._settings.launch_backoff_base * (2 ** attempt),
        )
        return base + random.uniform(0, base * 0.2)

    async def ensure_launched(self) -> Browser:
        """Launch the shared browser if it is not already running.

        Failed launches are retried with exponential backoff and jitter. With
        ``launch_max_attempts`` set to 0 the loop never gives up, since the
        server cannot do anything useful without a browser.
        """
        async with self._lock:
            if self._browser is not None:
                return self._browser

            attempt = 0
            while True:
                try:
                    logger.info(f"Launching Camoufox (headless={self._settings.headless})...")
                    self._camoufox, self._browser = await self._launch()
                    logger.info("Browser launched.")
                    return self._browser
                except Exception as e:
                    attempt += 1
                    if self._on_launch_error:
                        self._on_launch_error()
                    max_attempts = self._settings.launch_max_attempts
                    if max_attempts and attempt >= max_attempts:
                        logger.error(f"Giving up on browser launch after {attempt} attempts: {e}")
                        raise BrowserLaunchError(str(e)) from e
                    delay = self._backoff_delay(attempt - 1)
                    logger.warning(
                        f"Failed to launch browser (attempt {attempt}), retrying in {delay:.1f}s: {e}"
                    )
                    await asyncio.sleep(delay)

    async def new_tab(self, profile: BrowserProfile) -> Page:
        """Open a page in a fresh browser context carrying ``profile``."""
        browser = await self.ensure_launched()
        context = await browser.new_context(**profile.context_options())
        try:
            await context.clear_cookies()
            await context.add_init_script(profile.init_script())
            page = await context.new_page()
            page.set_default_timeout(self._settings.wait_timeout_ms)
        except Exception:
            await context.close()
            raise
        return page

    async def close_tab(self, page: Page):
        """Close a tab together with its context. Errors are logged, not raised."""
        try:
            await page.context.close()
        except Exception as e:
            logger.warning(f"Error closing tab: {e}")

    async def _shutdown(self):
        try:
            if self._camoufox:
                await self._camoufox.__aexit__(None, None, None)
        except Exception as e:
            logger.warning(f"Error closing camoufox: {e}")
        finally:
            self._camoufox = None
            self._browser = None

    async def restart(self) -> Browser:
        """Close the browser (best effort) and launch a new one.

        Every open tab dies with the old process, so callers must drop all
        sessions alongside.
        """
        logger.info("Restarting browser...")
        async with self._lock:
            await self._shutdown()
        return await self.ensure_launched()

    async def close(self):
        logger.info("Stopping browser...")
        async with self._lock:
            await self._shutdown()
        logger.info("Browser stopped.")
