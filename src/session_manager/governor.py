"""Process-wide failure counter that restarts the browser past a threshold."""

from __future__ import annotations

import logging
import sys

from ..config import ProxySettings
from .browser import BrowserHandle
from .store import SessionRegistry

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


class ErrorGovernor:
    """Circuit breaker over automation failures from every session.

    When ``restart_browser`` is on and the count exceeds ``error_threshold``,
    all sessions are dropped and the browser is relaunched. This sacrifices
    in-flight chats to recover from failures that affect the whole process.
    """

    def __init__(self, settings: ProxySettings, browser: BrowserHandle, registry: SessionRegistry):
        self._settings = settings
        self._browser = browser
        self._registry = registry
        self._restarting = False
        self.error_count = 0

    def record(self):
        """Count a failure without evaluating the restart policy."""
        self.error_count += 1

    async def report(self):
        self.record()
        if not self._settings.restart_browser:
            return
        logger.info(f"Error counter: {self.error_count}")
        if self.error_count <= self._settings.error_threshold or self._restarting:
            return

        self._restarting = True
        try:
            self._registry.clear()
            await self._browser.restart()
            self.error_count = 0
            logger.info("Browser restarted after repeated failures.")
        finally:
            self._restarting = False
