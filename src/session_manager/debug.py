"""Screenshot capture for debugging page state."""

from __future__ import annotations

import logging
import sys

from playwright.async_api import Page

from ..config import ProxySettings

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


async def capture(page: Page, settings: ProxySettings, name: str):
    """Save a screenshot to the screenshot directory when debug is enabled."""
    if not settings.debug:
        return
    path = settings.screenshot_dir / f"{name}.png"
    try:
        await page.screenshot(path=str(path))
        logger.info(f"[DEBUG] Screenshot saved to {path}")
    except Exception as e:
        logger.warning(f"[DEBUG] Could not save screenshot {path}: {e}")
