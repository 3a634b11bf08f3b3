"""Configuration with 4-layer resolution: defaults -> YAML -> env -> overrides.

Uses pydantic-settings with YamlConfigSettingsSource for layered configuration.
Supports ``.env`` file loading, ``PAPER_SCOUT_`` prefixed env vars, and
nested delimiter ``__`` for overriding sub-model fields
(e.g. ``PAPER_SCOUT_AI__API_KEY``).
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, ClassVar, Literal

import structlog
from pydantic import BaseModel, Field, SecretStr, ValidationError
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

try:
    from pydantic_settings import YamlConfigSettingsSource
except ImportError:  # pragma: no cover
    YamlConfigSettingsSource = None  # type: ignore[assignment, misc]

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Sub-models
# ---------------------------------------------------------------------------


class SemanticScholarSettings(BaseModel):
    """Academic graph index (provider A) configuration."""

    base_url: str = "https://api.semanticscholar.org/graph/v1"
    api_key: SecretStr | None = None
    timeout: float = Field(default=10.0, gt=0.0, description="Request timeout in seconds.")
    fields: str = "title,abstract,url,year,venue,citationCount,authors"


class PapersWithCodeSettings(BaseModel):
    """Code-linked paper index (provider B) configuration."""

    base_url: str = "https://paperswithcode.com/api/v1"
    timeout: float = Field(default=20.0, gt=0.0, description="Request timeout in seconds.")


class AISettings(BaseModel):
    """AI completion provider configuration."""

    base_url: str = "https://openrouter.ai/api/v1"
    model: str = "openrouter/deepseek/deepseek-r1-distill-llama-70b:free"
    api_key: SecretStr | None = None
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=1000, gt=0)
    timeout: float = Field(default=60.0, gt=0.0, description="Request timeout in seconds.")
    retries: int = Field(default=1, ge=1, le=5, description="Attempts per completion call.")
    system_prompt: str = (
        "You are a research paper analysis assistant. "
        "Provide concise, structured responses."
    )


class QueueSettings(BaseModel):
    """Process-wide request queue spacing."""

    min_delay: float = Field(
        default=3.0, ge=0.0, description="Minimum seconds between dispatched calls."
    )
    max_jitter: float = Field(
        default=1.0, ge=0.0, description="Upper bound of the random post-call delay."
    )
    priority_source: str = "papers_with_code"
    task_timeout: float | None = Field(
        default=60.0, gt=0.0, description="Deadline for a single dispatched task."
    )


class ResilienceSettings(BaseModel):
    """Retry/backoff policy for outbound provider calls."""

    pre_delay: float = Field(default=3.0, ge=0.0)
    base_retry_delay: float = Field(default=3.0, ge=0.0)
    max_retries: int = Field(default=5, ge=0, le=10)


class CacheSettings(BaseModel):
    """In-memory and persistent cache configuration."""

    detail_ttl_seconds: float = Field(default=3600.0, gt=0.0)
    search_ttl_seconds: float = Field(default=3600.0, gt=0.0)
    analysis_ttl_seconds: float = Field(default=3600.0, gt=0.0)
    persistent_ttl_seconds: float = Field(default=86400.0, gt=0.0)
    persistent_directory: Path = Path("./data/search_cache")
    key_prefix: str = "pwc_search_"


class SearchSettings(BaseModel):
    """Aggregated search configuration."""

    batch_size: int = Field(default=5, gt=0, le=100)
    concurrency_slots: int = Field(default=1, ge=1, le=10)


class EnrichmentSettings(BaseModel):
    """Background enrichment pipeline configuration."""

    enabled: bool = True
    inter_task_delay: float = Field(default=2.0, ge=0.0)
    persist_attempts: int = Field(default=3, ge=1, le=10)


class StoreSettings(BaseModel):
    """Local durable store configuration."""

    path: Path = Path("./data/research_results.json")


class LoggingSettings(BaseModel):
    """Logging / observability configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json"] = "console"
    file: Path | None = None


# ---------------------------------------------------------------------------
# Main Settings (4-layer resolution)
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """Top-level application settings.

    Resolution order (last wins):
        1. Field defaults (defined above)
        2. YAML config file (``paper_scout.yaml`` or explicit path)
        3. Environment variables (prefixed ``PAPER_SCOUT_``)
        4. Programmatic overrides (applied after loading)
    """

    model_config = SettingsConfigDict(
        env_prefix="PAPER_SCOUT_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        yaml_file="paper_scout.yaml",
        yaml_file_encoding="utf-8",
        extra="ignore",
    )

    _config_path_override: ClassVar[Path | None] = None

    semantic_scholar: SemanticScholarSettings = Field(
        default_factory=SemanticScholarSettings
    )
    papers_with_code: PapersWithCodeSettings = Field(
        default_factory=PapersWithCodeSettings
    )
    ai: AISettings = Field(default_factory=AISettings)
    queue: QueueSettings = Field(default_factory=QueueSettings)
    resilience: ResilienceSettings = Field(default_factory=ResilienceSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    enrichment: EnrichmentSettings = Field(default_factory=EnrichmentSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customise settings source priority.

        Resolution order (first = highest priority):
            init_settings > env_settings > dotenv (.env) > yaml > defaults
        """
        sources: list[PydanticBaseSettingsSource] = [
            init_settings,
            env_settings,
            dotenv_settings,
        ]

        if YamlConfigSettingsSource is not None:
            yaml_file = cls._config_path_override or settings_cls.model_config.get(
                "yaml_file", "paper_scout.yaml"
            )
            sources.append(YamlConfigSettingsSource(settings_cls, yaml_file=yaml_file))

        return tuple(sources)

    @classmethod
    def load(cls, config_path: Path | None = None, **overrides: Any) -> Settings:
        """Load settings with optional config path and overrides.

        Args:
            config_path: Optional path to a YAML config file.
            **overrides: Key-value overrides applied at highest priority.

        Returns:
            Fully-resolved Settings instance.

        Raises:
            ValidationError: If any setting value fails validation.
        """
        cls._config_path_override = config_path
        try:
            return cls(**overrides)
        finally:
            cls._config_path_override = None


def format_validation_error(exc: ValidationError) -> str:
    """Format a Pydantic ValidationError into a user-friendly message.

    Args:
        exc: The validation error to format.

    Returns:
        A multi-line string with each error on its own line.
    """
    lines: list[str] = []
    for error in exc.errors():
        loc = " -> ".join(str(part) for part in error["loc"])
        msg = error["msg"]
        raw_input = error.get("input")
        if raw_input is not None:
            lines.append(f"  {loc}: {msg} (got {raw_input!r})")
        else:
            lines.append(f"  {loc}: {msg}")
    return "Configuration error:\n" + "\n".join(lines)
