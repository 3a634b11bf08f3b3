"""Retry/backoff wrapper for outbound provider calls.

Each attempt waits a fixed pre-call delay, then invokes the request.
HTTP 404 is treated as an empty result, HTTP 429 is retried with jittered
exponential backoff (``base * 2**retry * (0.5 + random * 0.5)``) and, once
retries are exhausted, surfaces as :class:`RateLimitExceededError`. Every
other error propagates unchanged.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
)

from paper_scout.exceptions import RateLimitExceededError

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

T = TypeVar("T")

_DEFAULT_PRE_DELAY = 3.0
_DEFAULT_BASE_DELAY = 3.0
_DEFAULT_MAX_RETRIES = 5


def status_code_of(exc: BaseException) -> int | None:
    """Return the HTTP status carried by an exception, if any."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    status = getattr(exc, "status_code", None)
    return status if isinstance(status, int) else None


def is_rate_limited(exc: BaseException) -> bool:
    return status_code_of(exc) == 429


def backoff_delay(retry_count: int, base_delay: float, rng: random.Random) -> float:
    """Jittered exponential delay before retry number ``retry_count + 1``.

    The result lies in ``[base * 2**retry_count / 2, base * 2**retry_count]``.
    """
    return base_delay * (2**retry_count) * (0.5 + rng.random() * 0.5)


class ResilientCaller:
    """Wraps outbound requests with pre-delay, 404 handling and 429 backoff.

    Attributes:
        pre_delay: Seconds slept before every attempt.
        base_delay: Base of the exponential backoff in seconds.
        max_retries: Retries allowed after the first 429.
    """

    def __init__(
        self,
        pre_delay: float = _DEFAULT_PRE_DELAY,
        base_delay: float = _DEFAULT_BASE_DELAY,
        max_retries: int = _DEFAULT_MAX_RETRIES,
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.pre_delay = pre_delay
        self.base_delay = base_delay
        self.max_retries = max_retries
        self._rng = rng or random.Random()
        self._sleep = sleep

    def _wait(self, retry_state: RetryCallState) -> float:
        return backoff_delay(retry_state.attempt_number - 1, self.base_delay, self._rng)

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.info(
            "rate_limited_retrying",
            attempt=retry_state.attempt_number,
            delay=round(delay, 2),
        )

    async def call(
        self,
        request: Callable[[], Awaitable[T]],
        default: Callable[[], T],
        source: str = "unknown",
    ) -> T:
        """Run ``request`` under the retry policy.

        Args:
            request: Zero-argument callable performing one attempt.
            default: Factory for the value returned on HTTP 404.
            source: Provider name used in logs and errors.

        Returns:
            The request result, or ``default()`` if the resource is absent.

        Raises:
            RateLimitExceededError: If every attempt was rate limited.
        """
        retrying = AsyncRetrying(
            retry=retry_if_exception(is_rate_limited),
            stop=stop_after_attempt(self.max_retries + 1),
            wait=self._wait,
            sleep=self._sleep,
            before_sleep=self._log_retry,
            reraise=False,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    return await self._attempt(request, default, source)
        except RetryError as exc:
            logger.warning(
                "rate_limit_retries_exhausted",
                source=source,
                attempts=exc.last_attempt.attempt_number,
            )
            raise RateLimitExceededError(
                source=source, attempts=exc.last_attempt.attempt_number
            ) from exc.last_attempt.exception()

        raise AssertionError("unreachable")  # pragma: no cover

    async def _attempt(
        self,
        request: Callable[[], Awaitable[T]],
        default: Callable[[], T],
        source: str,
    ) -> T:
        if self.pre_delay:
            await self._sleep(self.pre_delay)
        try:
            return await request()
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                logger.warning("resource_not_found", source=source, url=str(exc.request.url))
                return default()
            raise


def empty_dict() -> dict[str, Any]:
    return {}


def empty_list() -> list[Any]:
    return []
