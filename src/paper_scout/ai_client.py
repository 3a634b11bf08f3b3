"""AI completion client for paper enrichment.

All completions go through the shared :class:`RequestQueue` under the
``analysis`` source tag, so AI traffic obeys the same spacing as provider
traffic. Calls are made with litellm against an OpenAI-compatible gateway.
"""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import SecretStr
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt

from paper_scout.exceptions import (
    ConfigMissingError,
    MalformedPayloadError,
    RateLimitExceededError,
)
from paper_scout.request_queue import RequestQueue
from paper_scout.resilience import is_rate_limited

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

ANALYSIS_SOURCE = "analysis"

_NON_RETRYABLE = (ConfigMissingError, RateLimitExceededError, MalformedPayloadError)

_DEFAULT_MODEL = "openrouter/deepseek/deepseek-r1-distill-llama-70b:free"
_DEFAULT_SYSTEM_PROMPT = (
    "You are a research paper analysis assistant. Provide concise, structured responses."
)


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _first_choice(response: Any) -> Any:
    choices = _field(response, "choices")
    if isinstance(choices, (list, tuple)) and choices:
        return choices[0]
    return None


def extract_content(response: Any) -> str:
    """Pull the completion text out of a provider response.

    Accepted shapes, in order: ``choices[0].message.content``,
    ``response``, a bare string, ``content``, ``choices[0].text`` and
    ``choices[0].delta.content``. Works for both dicts and attribute
    objects such as litellm's ``ModelResponse``.

    Raises:
        MalformedPayloadError: If none of the shapes yields text.
    """
    if response is None:
        raise MalformedPayloadError("Empty response from AI provider")

    choice = _first_choice(response)
    candidates: list[Any] = [
        _field(_field(choice, "message"), "content") if choice is not None else None,
        _field(response, "response"),
        response if isinstance(response, str) else None,
        _field(response, "content"),
        _field(choice, "text") if choice is not None else None,
        _field(_field(choice, "delta"), "content") if choice is not None else None,
    ]
    for candidate in candidates:
        if isinstance(candidate, str) and candidate.strip():
            return candidate

    raise MalformedPayloadError("No content found in AI provider response")


class AICompletionClient:
    """Queued chat completions with a fixed system prompt.

    Attributes:
        model: litellm model identifier.
        attempts: Tries per completion for non rate-limit failures.
    """

    def __init__(
        self,
        queue: RequestQueue,
        api_key: SecretStr | str | None,
        model: str = _DEFAULT_MODEL,
        api_base: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        timeout: float = 60.0,
        attempts: int = 1,
        system_prompt: str = _DEFAULT_SYSTEM_PROMPT,
    ) -> None:
        if isinstance(api_key, SecretStr):
            api_key = api_key.get_secret_value()
        self._queue = queue
        self._api_key = api_key or None
        self.model = model
        self._api_base = api_base
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._timeout = timeout
        self.attempts = attempts
        self._system_prompt = system_prompt

    async def complete(self, prompt: str) -> str:
        """Return the completion text for ``prompt``.

        Raises:
            ConfigMissingError: If no API key is configured. Raised before
                anything is queued.
            RateLimitExceededError: If the provider answers 429.
            MalformedPayloadError: If the response carries no text.
        """
        if not self._api_key:
            raise ConfigMissingError("AI provider API key is not configured")

        retrying = AsyncRetrying(
            retry=retry_if_exception(lambda exc: not isinstance(exc, _NON_RETRYABLE)),
            stop=stop_after_attempt(self.attempts),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                response = await self._queue.add(
                    lambda: self._request(prompt),
                    source=ANALYSIS_SOURCE,
                )
        content = extract_content(response)
        logger.debug("ai_completion_ok", model=self.model, chars=len(content))
        return content

    async def _request(self, prompt: str) -> Any:
        import litellm

        try:
            return await litellm.acompletion(
                model=self.model,
                messages=[
                    {"role": "system", "content": self._system_prompt},
                    {"role": "user", "content": prompt},
                ],
                api_key=self._api_key,
                api_base=self._api_base,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
                timeout=self._timeout,
            )
        except Exception as exc:
            if is_rate_limited(exc):
                logger.warning("ai_rate_limited", model=self.model)
                raise RateLimitExceededError(source=ANALYSIS_SOURCE, attempts=1) from exc
            raise

