"""Centralized exception hierarchy for the paper-scout package.

All domain-specific exceptions inherit from ``PaperScoutError`` so
callers can catch the entire family with a single ``except`` clause.
"""

from __future__ import annotations


class PaperScoutError(Exception):
    """Base exception for all paper-scout errors."""


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------


class ConfigMissingError(PaperScoutError):
    """Raised when a required setting (e.g. an API key) is absent."""


# ---------------------------------------------------------------------------
# Upstream errors
# ---------------------------------------------------------------------------


class RateLimitExceededError(PaperScoutError):
    """Raised when a provider keeps answering 429 after all retries."""

    def __init__(self, source: str = "unknown", attempts: int = 0) -> None:
        self.source = source
        self.attempts = attempts
        super().__init__(
            f"Rate limit exceeded for {source} after {attempts} attempts. "
            "Please try again in a few minutes."
        )


class MalformedPayloadError(PaperScoutError):
    """Raised when an upstream payload cannot be interpreted."""


class AllSourcesExhaustedError(PaperScoutError):
    """Raised when every provider is rate limited and nothing was found."""

    def __init__(self, sources: list[str]) -> None:
        self.sources = sorted(sources)
        super().__init__(
            "All external APIs are rate limited "
            f"({', '.join(self.sources)}). Please try again later."
        )


# ---------------------------------------------------------------------------
# Lookup errors
# ---------------------------------------------------------------------------


class PaperNotFoundError(PaperScoutError):
    """Raised when no cache, provider or local store yields a paper."""

    def __init__(self, original_id: str, id_type: str, resolved_id: str) -> None:
        self.original_id = original_id
        self.id_type = id_type
        self.resolved_id = resolved_id
        super().__init__(
            f"Paper not found. Type: {id_type}, ID: {resolved_id}, "
            f"Original ID: {original_id}"
        )
