"""Per-tab browser profile generation."""

from __future__ import annotations

import json
import random
from typing import Optional

from pydantic import BaseModel

from ..constants import (
    DEVICE_MEMORY,
    HARDWARE_CONCURRENCY,
    LOCALES,
    TIMEZONES,
    USER_AGENTS,
    VIEWPORTS,
)


class BrowserProfile(BaseModel):
    """Client-identifying surface applied to a single tab."""

    user_agent: str
    viewport_width: int
    viewport_height: int
    locale: str
    timezone_id: str
    hardware_concurrency: int
    device_memory: int

    def context_options(self) -> dict:
        """Keyword arguments for ``Browser.new_context``."""
        return {
            "user_agent": self.user_agent,
            "viewport": {"width": self.viewport_width, "height": self.viewport_height},
            "locale": self.locale,
            "timezone_id": self.timezone_id,
        }

    def init_script(self) -> str:
        """JavaScript run before any page script to pin navigator fields."""
        overrides = json.dumps(
            {
                "hardwareConcurrency": self.hardware_concurrency,
                "deviceMemory": self.device_memory,
                "language": self.locale,
                "languages": [self.locale, self.locale.split("-")[0]],
            }
        )
        return (
            f"(() => {{ const o = {overrides};"
            " for (const [k, v] of Object.entries(o)) {"
            " Object.defineProperty(Navigator.prototype, k, { get: () => v, configurable: true });"
            " } })();"
        )


def generate_profile(rng: Optional[random.Random] = None) -> BrowserProfile:
    """Build a profile with each field picked independently."""
    rng = rng or random.Random()
    width, height = rng.choice(VIEWPORTS)
    return BrowserProfile(
        user_agent=rng.choice(USER_AGENTS),
        viewport_width=width,
        viewport_height=height,
        locale=rng.choice(LOCALES),
        timezone_id=rng.choice(TIMEZONES),
        hardware_concurrency=rng.choice(HARDWARE_CONCURRENCY),
        device_memory=rng.choice(DEVICE_MEMORY),
    )
