"""Tests for the session registry and idle timers."""

import asyncio

import pytest

from src.session_manager.errors import SessionNotFoundError
from src.session_manager.serializer import RequestSerializer
from src.session_manager.store import SessionRegistry

from fakes import FakeBrowser, FakePage


def _registry(idle_timeout=60.0):
    browser = FakeBrowser()
    serializer = RequestSerializer()
    return SessionRegistry(browser, serializer, idle_timeout), serializer


class TestSessionRegistry:

    @pytest.mark.asyncio
    async def test_create_if_absent_registers_fresh_session(self):
        registry, _ = _registry()
        page = FakePage()

        session = registry.create_if_absent("chat_a", page)

        assert registry.get("chat_a") is session
        assert session.page is page
        assert session.turn_counter == 1
        assert session.prompt_count == 0
        assert session.ready
        assert session.idle_timer is not None

    @pytest.mark.asyncio
    async def test_create_if_absent_keeps_existing_session(self):
        registry, _ = _registry()
        first = registry.create_if_absent("chat_a", FakePage())

        second = registry.create_if_absent("chat_a", FakePage())

        assert second is first
        assert len(registry) == 1

    @pytest.mark.asyncio
    async def test_remove_closes_tab_and_drops_queue(self):
        registry, serializer = _registry()
        page = FakePage()
        registry.create_if_absent("chat_a", page)
        blocker = asyncio.Event()

        async def running():
            await blocker.wait()

        async def waiting():
            return "never"

        serializer.enqueue("chat_a", running)
        pending = serializer.enqueue("chat_a", waiting)
        await asyncio.sleep(0)

        assert await registry.remove("chat_a") is True

        assert registry.get("chat_a") is None
        assert page.closed
        assert "chat_a" not in serializer
        with pytest.raises(SessionNotFoundError):
            await pending
        blocker.set()

    @pytest.mark.asyncio
    async def test_remove_unknown_chat_is_noop(self):
        registry, _ = _registry()
        assert await registry.remove("chat_missing") is False

    @pytest.mark.asyncio
    async def test_recreate_after_remove_yields_fresh_session(self):
        registry, _ = _registry()
        old = registry.create_if_absent("chat_a", FakePage())
        old.prompt_count = 7
        await registry.remove("chat_a")

        new = registry.create_if_absent("chat_a", FakePage())

        assert new is not old
        assert new.prompt_count == 0
        assert old.prompt_count == 7

    @pytest.mark.asyncio
    async def test_idle_session_is_torn_down(self):
        registry, _ = _registry(idle_timeout=0.05)
        page = FakePage()
        registry.create_if_absent("chat_a", page)

        await asyncio.sleep(0.15)

        assert registry.get("chat_a") is None
        assert page.closed

    @pytest.mark.asyncio
    async def test_touch_rearms_idle_timer(self):
        registry, _ = _registry(idle_timeout=0.1)
        page = FakePage()
        session = registry.create_if_absent("chat_a", page)

        await asyncio.sleep(0.07)
        registry.touch(session)
        await asyncio.sleep(0.07)

        assert registry.get("chat_a") is session
        assert not page.closed

        await asyncio.sleep(0.1)
        assert registry.get("chat_a") is None

    @pytest.mark.asyncio
    async def test_busy_session_outlives_idle_timer(self):
        registry, _ = _registry(idle_timeout=0.03)
        page = FakePage()
        session = registry.create_if_absent("chat_a", page)
        session.busy = True

        await asyncio.sleep(0.1)
        assert registry.get("chat_a") is session

        session.busy = False
        await asyncio.sleep(0.1)
        assert registry.get("chat_a") is None

    @pytest.mark.asyncio
    async def test_clear_drops_everything_without_closing_tabs(self):
        registry, serializer = _registry()
        pages = [FakePage(), FakePage()]
        registry.create_if_absent("chat_a", pages[0])
        registry.create_if_absent("chat_b", pages[1])

        dropped = registry.clear()

        assert len(dropped) == 2
        assert len(registry) == 0
        assert all(s.idle_timer is None for s in dropped)
        assert not any(p.closed for p in pages)

    @pytest.mark.asyncio
    async def test_close_all_closes_tabs(self):
        registry, _ = _registry()
        pages = [FakePage(), FakePage()]
        registry.create_if_absent("chat_a", pages[0])
        registry.create_if_absent("chat_b", pages[1])

        await registry.close_all()

        assert len(registry) == 0
        assert all(p.closed for p in pages)

    @pytest.mark.asyncio
    async def test_snapshot_reports_counters(self):
        registry, _ = _registry()
        session = registry.create_if_absent("chat_a", FakePage())
        session.turn_counter = 5
        session.prompt_count = 2

        snap = session.snapshot()

        assert snap.chat_id == "chat_a"
        assert snap.turn_counter == 5
        assert snap.prompt_count == 2
        assert snap.ready
