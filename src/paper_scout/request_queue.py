"""Process-wide rate-limited request queue.

Every outbound provider and AI call is dispatched through a single
:class:`RequestQueue`, which guarantees a minimum wall-clock spacing
between any two dispatched calls and adds a random jitter after each
call. Tasks admitted with :attr:`Admission.PRIORITY` are inserted at the
front of the queue, so several priority tasks queued before the drain loop
reaches them run in reverse arrival order; normal tasks run FIFO.
"""

from __future__ import annotations

import asyncio
import random
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, TypeVar

import structlog

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

T = TypeVar("T")

_DEFAULT_MIN_DELAY = 3.0
_DEFAULT_MAX_JITTER = 1.0


class Admission(StrEnum):
    """Insertion point of a queued task."""

    PRIORITY = "priority"
    NORMAL = "normal"


@dataclass(slots=True)
class QueueTask:
    """A zero-argument coroutine factory waiting for dispatch."""

    run: Callable[[], Awaitable[Any]]
    admission: Admission
    source: str
    future: asyncio.Future[Any]
    timeout: float | None = None
    enqueued_at: float = field(default_factory=time.monotonic)


class RequestQueue:
    """Single-drain dispatcher enforcing spacing between outbound calls.

    The queue state (task deque, ``last_request_time``) is only mutated
    from the event loop thread, so no lock is required.

    Attributes:
        min_delay: Minimum seconds between two consecutive dispatches.
        max_jitter: Upper bound of the random delay after each task.
        default_timeout: Deadline applied to tasks added without one.
    """

    def __init__(
        self,
        min_delay: float = _DEFAULT_MIN_DELAY,
        max_jitter: float = _DEFAULT_MAX_JITTER,
        default_timeout: float | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.min_delay = min_delay
        self.max_jitter = max_jitter
        self.default_timeout = default_timeout
        self._rng = rng or random.Random()
        self._tasks: deque[QueueTask] = deque()
        self._processing = False
        self._drain_task: asyncio.Task[None] | None = None
        self.last_request_time = float("-inf")
        self.dispatch_times: deque[float] = deque(maxlen=100)

    @property
    def pending(self) -> int:
        """Number of tasks waiting for dispatch."""
        return len(self._tasks)

    @property
    def processing(self) -> bool:
        """Whether a drain loop is currently running."""
        return self._processing

    async def add(
        self,
        run: Callable[[], Awaitable[T]],
        admission: Admission = Admission.NORMAL,
        source: str = "default",
        timeout: float | None = None,
    ) -> T:
        """Queue ``run`` and wait for its result.

        Cancelling the awaiting caller cancels the task, whether it is still
        queued or already running.

        Args:
            run: Zero-argument callable returning an awaitable.
            admission: ``PRIORITY`` inserts at the front, ``NORMAL`` at the back.
            source: Tag used only in log events.
            timeout: Deadline in seconds for the task once dispatched.

        Returns:
            Whatever ``run`` returns.

        Raises:
            TimeoutError: If the task exceeds its deadline.
            Exception: Any exception raised by ``run``.
        """
        loop = asyncio.get_running_loop()
        task = QueueTask(
            run=run,
            admission=admission,
            source=source,
            future=loop.create_future(),
            timeout=timeout if timeout is not None else self.default_timeout,
        )

        if admission is Admission.PRIORITY:
            self._tasks.appendleft(task)
        else:
            self._tasks.append(task)

        logger.debug(
            "queue_task_added",
            source=source,
            admission=admission.value,
            pending=len(self._tasks),
        )
        self._process()
        return await task.future  # type: ignore[no-any-return]

    def _process(self) -> None:
        if self._processing:
            return
        self._processing = True
        self._drain_task = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        try:
            while self._tasks:
                await self._wait_for_spacing()

                task = self._tasks.popleft()
                if task.future.done():
                    # Caller cancelled before dispatch
                    logger.debug("queue_task_skipped", source=task.source)
                    continue

                await self._dispatch(task)
                self.last_request_time = time.monotonic()

                jitter = self._rng.uniform(0.0, self.max_jitter) if self.max_jitter else 0.0
                if jitter:
                    await asyncio.sleep(jitter)
        finally:
            self._processing = False
            self._drain_task = None

    async def _wait_for_spacing(self) -> None:
        elapsed = time.monotonic() - self.last_request_time
        while elapsed < self.min_delay:
            await asyncio.sleep(self.min_delay - elapsed)
            elapsed = time.monotonic() - self.last_request_time

    async def _dispatch(self, task: QueueTask) -> None:
        dispatched_at = time.monotonic()
        self.dispatch_times.append(dispatched_at)
        logger.debug(
            "queue_task_dispatched",
            source=task.source,
            waited=round(dispatched_at - task.enqueued_at, 3),
        )

        try:
            awaitable = task.run()
        except Exception as exc:
            task.future.set_exception(exc)
            return
        runner: asyncio.Future[Any] = asyncio.ensure_future(awaitable)

        def _cancel_runner(future: asyncio.Future[Any]) -> None:
            if future.cancelled():
                runner.cancel()

        task.future.add_done_callback(_cancel_runner)

        try:
            done, _ = await asyncio.wait({runner}, timeout=task.timeout)
        except asyncio.CancelledError:
            runner.cancel()
            if not task.future.done():
                task.future.cancel()
            raise
        if not done:
            runner.cancel()
            await asyncio.wait({runner})
            if not task.future.done():
                task.future.set_exception(
                    TimeoutError(f"Queued {task.source} task exceeded {task.timeout}s")
                )
            logger.warning("queue_task_timeout", source=task.source, timeout=task.timeout)
            return

        if task.future.done():
            return
        if runner.cancelled():
            task.future.cancel()
        elif runner.exception() is not None:
            exc = runner.exception()
            logger.debug("queue_task_failed", source=task.source, error=str(exc))
            task.future.set_exception(exc)
        else:
            task.future.set_result(runner.result())

    async def aclose(self) -> None:
        """Cancel queued tasks and stop the drain loop."""
        while self._tasks:
            task = self._tasks.popleft()
            if not task.future.done():
                task.future.cancel()
        if self._drain_task is not None:
            self._drain_task.cancel()
            await asyncio.gather(self._drain_task, return_exceptions=True)
