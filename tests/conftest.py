"""Shared fixtures for the chat proxy tests."""

from __future__ import annotations

import pytest

from fakes import FakeBrowser
from src.config import ProxySettings
from src.session_manager.manager import SessionManager


@pytest.fixture
def settings() -> ProxySettings:
    return ProxySettings(
        debug=False,
        idle_timeout_seconds=60,
        wait_timeout_ms=100,
        generation_timeout_ms=100,
        sign_in_probe_timeout_ms=10,
        indicator_probe_timeout_ms=10,
        extract_max_attempts=5,
        extract_interval_ms=1,
        launch_backoff_base=0.001,
        launch_backoff_max=0.002,
        restart_browser=False,
        error_threshold=1,
        max_init_retries=10,
    )


@pytest.fixture
def fake_browser() -> FakeBrowser:
    return FakeBrowser()


@pytest.fixture
def manager(settings, fake_browser) -> SessionManager:
    return SessionManager(settings, browser=fake_browser)
