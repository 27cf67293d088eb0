"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


# Server
PROXY_HOST = os.getenv("PROXY_HOST", "0.0.0.0")
PROXY_PORT = int(os.getenv("PROXY_PORT", "8080"))

# Browser
HEADLESS = _env_bool("HEADLESS", "true")
DEBUG = _env_bool("DEBUG", "false")
SCREENSHOT_DIR = Path(os.getenv("SCREENSHOT_DIR", "screenshots"))
LAUNCH_MAX_ATTEMPTS = int(os.getenv("LAUNCH_MAX_ATTEMPTS", "0"))  # 0 = retry forever
LAUNCH_BACKOFF_BASE = 1.0
LAUNCH_BACKOFF_MAX = 30.0

# Sessions
INACTIVITY_TIMEOUT_MINUTE = float(os.getenv("INACTIVITY_TIMEOUT_MINUTE", "3"))
MAX_INIT_RETRIES = int(os.getenv("MAX_INIT_RETRIES", "10"))

# Page waits (milliseconds)
WAIT_TIMEOUT = int(os.getenv("WAIT_TIMEOUT", "60000"))
GENERATION_TIMEOUT = int(os.getenv("GENERATION_TIMEOUT", "300000"))
SIGN_IN_PROBE_TIMEOUT = 5000
INDICATOR_PROBE_TIMEOUT = 10000
EXTRACT_MAX_ATTEMPTS = 50
EXTRACT_INTERVAL_MS = 200

# Error governor
RESTART_BROWSER = _env_bool("RESTART_BROWSER", "false")
ERROR_THRESHOLD = int(os.getenv("ERROR_THRESHOLD", "1"))


class ProxySettings(BaseModel):
    """Runtime settings shared by the session manager components.

    Defaults come from the environment; the CLI and tests override
    individual fields with ``model_copy(update=...)``.
    """

    host: str = PROXY_HOST
    port: int = PROXY_PORT
    headless: bool = HEADLESS
    debug: bool = DEBUG
    screenshot_dir: Path = SCREENSHOT_DIR

    launch_max_attempts: int = LAUNCH_MAX_ATTEMPTS
    launch_backoff_base: float = LAUNCH_BACKOFF_BASE
    launch_backoff_max: float = LAUNCH_BACKOFF_MAX

    idle_timeout_seconds: float = INACTIVITY_TIMEOUT_MINUTE * 60
    max_init_retries: int = MAX_INIT_RETRIES

    wait_timeout_ms: int = WAIT_TIMEOUT
    generation_timeout_ms: int = GENERATION_TIMEOUT
    sign_in_probe_timeout_ms: int = SIGN_IN_PROBE_TIMEOUT
    indicator_probe_timeout_ms: int = INDICATOR_PROBE_TIMEOUT
    extract_max_attempts: int = EXTRACT_MAX_ATTEMPTS
    extract_interval_ms: int = EXTRACT_INTERVAL_MS

    restart_browser: bool = RESTART_BROWSER
    error_threshold: int = ERROR_THRESHOLD

    @classmethod
    def from_env(cls) -> "ProxySettings":
        return cls()


def ensure_dirs(settings: ProxySettings):
    """Create the screenshot directory when debug capture is on."""
    if settings.debug:
        settings.screenshot_dir.mkdir(parents=True, exist_ok=True)
