"""Tests for the per-chat request serializer."""

import asyncio

import pytest

from src.session_manager.errors import SessionNotFoundError
from src.session_manager.serializer import RequestSerializer


def _recording_op(log, name, delay=0.0, active=None):
    async def op():
        if active is not None:
            active["now"] += 1
            active["max"] = max(active["max"], active["now"])
        log.append(f"start:{name}")
        await asyncio.sleep(delay)
        log.append(f"end:{name}")
        if active is not None:
            active["now"] -= 1
        return name
    return op


class TestRequestSerializer:

    @pytest.mark.asyncio
    async def test_same_key_runs_in_arrival_order_without_overlap(self):
        serializer = RequestSerializer()
        log = []
        active = {"now": 0, "max": 0}
        delays = [0.03, 0.0, 0.02, 0.01]

        futures = [
            serializer.enqueue("chat_a", _recording_op(log, i, delay, active))
            for i, delay in enumerate(delays)
        ]
        results = await asyncio.gather(*futures)

        assert results == [0, 1, 2, 3]
        assert active["max"] == 1
        assert log == [
            "start:0", "end:0",
            "start:1", "end:1",
            "start:2", "end:2",
            "start:3", "end:3",
        ]

    @pytest.mark.asyncio
    async def test_different_keys_run_independently(self):
        serializer = RequestSerializer()
        release_a = asyncio.Event()
        log = []

        async def blocked():
            await release_a.wait()
            log.append("a")
            return "a"

        async def quick():
            log.append("b")
            return "b"

        fut_a = serializer.enqueue("chat_a", blocked)
        fut_b = serializer.enqueue("chat_b", quick)

        # chat_b completes while chat_a is still parked.
        assert await asyncio.wait_for(fut_b, timeout=1) == "b"
        assert not fut_a.done()

        release_a.set()
        assert await fut_a == "a"
        assert set(log) == {"a", "b"}

    @pytest.mark.asyncio
    async def test_failure_propagates_and_queue_continues(self):
        serializer = RequestSerializer()

        async def boom():
            raise ValueError("boom")

        async def ok():
            return "ok"

        fut_fail = serializer.enqueue("chat_a", boom)
        fut_ok = serializer.enqueue("chat_a", ok)

        with pytest.raises(ValueError):
            await fut_fail
        assert await fut_ok == "ok"

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_stop_operation(self):
        serializer = RequestSerializer()
        ran = asyncio.Event()

        async def slow():
            await asyncio.sleep(0.01)
            ran.set()
            return "done"

        future = serializer.enqueue("chat_a", slow)
        future.cancel()

        await asyncio.wait_for(ran.wait(), timeout=1)
        assert ran.is_set()

    @pytest.mark.asyncio
    async def test_discard_fails_pending_operations(self):
        serializer = RequestSerializer()
        release = asyncio.Event()
        started = []

        async def running():
            await release.wait()
            return "first"

        async def pending():
            started.append("pending")
            return "second"

        first = serializer.enqueue("chat_a", running)
        second = serializer.enqueue("chat_a", pending)
        await asyncio.sleep(0)

        serializer.discard("chat_a")
        release.set()

        assert await first == "first"
        with pytest.raises(SessionNotFoundError):
            await second
        assert started == []
        assert "chat_a" not in serializer

    @pytest.mark.asyncio
    async def test_queue_is_dropped_once_drained(self):
        serializer = RequestSerializer()

        async def op():
            return 1

        await serializer.enqueue("chat_a", op)
        await asyncio.sleep(0)

        assert "chat_a" not in serializer
        assert serializer.pending("chat_a") == 0

    @pytest.mark.asyncio
    async def test_new_arrivals_after_discard_wait_for_running_operation(self):
        serializer = RequestSerializer()
        release = asyncio.Event()
        log = []

        async def running():
            log.append("start:first")
            await release.wait()
            log.append("end:first")

        async def later():
            log.append("start:later")

        first = serializer.enqueue("chat_a", running)
        await asyncio.sleep(0)
        serializer.discard("chat_a")
        after = serializer.enqueue("chat_a", later)
        await asyncio.sleep(0)

        assert log == ["start:first"]
        release.set()
        await first
        await after
        assert log == ["start:first", "end:first", "start:later"]
