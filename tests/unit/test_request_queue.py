"""Unit tests for the rate-limited request queue."""

from __future__ import annotations

import asyncio
import random

import pytest

from paper_scout.request_queue import Admission, RequestQueue


def _recorder(order: list[str], name: str, result: object = None):  # type: ignore[no-untyped-def]
    async def run() -> object:
        order.append(name)
        return result if result is not None else name

    return run


class TestSpacing:
    @pytest.mark.asyncio()
    async def test_dispatches_are_spaced_by_min_delay(self) -> None:
        queue = RequestQueue(min_delay=0.05, max_jitter=0.0)
        order: list[str] = []

        await asyncio.gather(*(queue.add(_recorder(order, str(i))) for i in range(3)))

        times = list(queue.dispatch_times)
        assert len(times) == 3
        assert all(later - earlier >= 0.05 for earlier, later in zip(times, times[1:]))

    @pytest.mark.asyncio()
    async def test_jitter_is_applied_after_each_task(self) -> None:
        queue = RequestQueue(min_delay=0.0, max_jitter=0.02, rng=random.Random(1))
        order: list[str] = []
        await queue.add(_recorder(order, "a"))
        assert queue.processing is True
        await asyncio.sleep(0.05)
        assert queue.processing is False

    @pytest.mark.asyncio()
    async def test_sequential_callers_still_respect_spacing(self) -> None:
        queue = RequestQueue(min_delay=0.05, max_jitter=0.0)
        order: list[str] = []
        await queue.add(_recorder(order, "a"))
        await queue.add(_recorder(order, "b"))
        first, second = list(queue.dispatch_times)
        assert second - first >= 0.05


class TestOrdering:
    @pytest.mark.asyncio()
    async def test_normal_tasks_run_fifo(self) -> None:
        queue = RequestQueue(min_delay=0.0, max_jitter=0.0)
        order: list[str] = []

        await asyncio.gather(*(queue.add(_recorder(order, name)) for name in "abc"))

        assert order == ["a", "b", "c"]

    @pytest.mark.asyncio()
    async def test_priority_tasks_jump_the_queue_in_reverse_arrival_order(self) -> None:
        queue = RequestQueue(min_delay=0.0, max_jitter=0.0)
        order: list[str] = []

        await asyncio.gather(
            queue.add(_recorder(order, "normal-1")),
            queue.add(_recorder(order, "normal-2")),
            queue.add(_recorder(order, "priority-1"), admission=Admission.PRIORITY),
            queue.add(_recorder(order, "priority-2"), admission=Admission.PRIORITY),
        )

        assert order == ["priority-2", "priority-1", "normal-1", "normal-2"]


class TestFailures:
    @pytest.mark.asyncio()
    async def test_failure_only_affects_its_own_caller(self) -> None:
        queue = RequestQueue(min_delay=0.0, max_jitter=0.0)
        order: list[str] = []

        async def boom() -> None:
            raise ValueError("provider down")

        results = await asyncio.gather(
            queue.add(_recorder(order, "a")),
            queue.add(boom),
            queue.add(_recorder(order, "c")),
            return_exceptions=True,
        )

        assert results[0] == "a"
        assert isinstance(results[1], ValueError)
        assert results[2] == "c"

    @pytest.mark.asyncio()
    async def test_synchronous_error_from_factory_is_returned_to_caller(self) -> None:
        queue = RequestQueue(min_delay=0.0, max_jitter=0.0)

        def broken():  # type: ignore[no-untyped-def]
            raise RuntimeError("bad factory")

        with pytest.raises(RuntimeError, match="bad factory"):
            await queue.add(broken)

    @pytest.mark.asyncio()
    async def test_task_exceeding_deadline_raises_timeout(self) -> None:
        queue = RequestQueue(min_delay=0.0, max_jitter=0.0)

        async def hang() -> None:
            await asyncio.sleep(10)

        with pytest.raises(TimeoutError):
            await queue.add(hang, timeout=0.05)

        order: list[str] = []
        assert await queue.add(_recorder(order, "next")) == "next"

    @pytest.mark.asyncio()
    async def test_default_timeout_applies(self) -> None:
        queue = RequestQueue(min_delay=0.0, max_jitter=0.0, default_timeout=0.05)

        async def hang() -> None:
            await asyncio.sleep(10)

        with pytest.raises(TimeoutError):
            await queue.add(hang)


class TestCancellation:
    @pytest.mark.asyncio()
    async def test_cancelled_caller_skips_queued_task(self) -> None:
        queue = RequestQueue(min_delay=0.0, max_jitter=0.0)
        order: list[str] = []
        release = asyncio.Event()

        async def blocker() -> str:
            await release.wait()
            return "blocker"

        first = asyncio.create_task(queue.add(blocker))
        second = asyncio.create_task(queue.add(_recorder(order, "skipped")))
        await asyncio.sleep(0.01)

        second.cancel()
        release.set()
        assert await first == "blocker"
        with pytest.raises(asyncio.CancelledError):
            await second
        await asyncio.sleep(0.01)
        assert order == []

    @pytest.mark.asyncio()
    async def test_cancelled_caller_cancels_running_task(self) -> None:
        queue = RequestQueue(min_delay=0.0, max_jitter=0.0)
        started = asyncio.Event()
        cancelled: list[bool] = []

        async def slow() -> None:
            started.set()
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise

        caller = asyncio.create_task(queue.add(slow))
        await started.wait()
        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller
        await asyncio.sleep(0.01)

        assert cancelled == [True]

    @pytest.mark.asyncio()
    async def test_aclose_cancels_pending_tasks(self) -> None:
        queue = RequestQueue(min_delay=10.0, max_jitter=0.0)
        order: list[str] = []
        await queue.add(_recorder(order, "first"))
        pending = asyncio.create_task(queue.add(_recorder(order, "never")))
        await asyncio.sleep(0.01)

        await queue.aclose()

        with pytest.raises(asyncio.CancelledError):
            await pending
        assert order == ["first"]
        assert queue.processing is False

    @pytest.mark.asyncio()
    async def test_aclose_cancels_running_task_and_its_caller(self) -> None:
        queue = RequestQueue(min_delay=0.0, max_jitter=0.0)
        started = asyncio.Event()

        async def slow() -> None:
            started.set()
            await asyncio.sleep(10)

        running = asyncio.create_task(queue.add(slow))
        waiting = asyncio.create_task(queue.add(slow))
        await started.wait()
        assert queue.pending == 1

        await queue.aclose()
        done, _ = await asyncio.wait({running, waiting}, timeout=0.5)

        assert done == {running, waiting}
        assert running.cancelled()
        assert waiting.cancelled()
        assert queue.pending == 0
        assert queue.processing is False
