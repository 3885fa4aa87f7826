# =============================================================================
# Application Configuration — Pydantic Settings
# =============================================================================
#
# All tunables of the orchestration engine live here: LLM provider selection,
# per-task and per-turn deadlines, the tool-call iteration cap, retry backoff,
# catalog file locations and the rate-limit categories.
#
# Pydantic Settings loads values in this priority order (highest first):
#   1. Environment variables (e.g., `TASK_TIMEOUT_SECONDS=20`)
#   2. Values from the .env file
#   3. Default values defined below
#
# USAGE:
#   from bizplan.config import get_settings
#   settings = get_settings()
# =============================================================================

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DATA_DIR = Path(__file__).resolve().parent / "catalog" / "data"


class RateLimitRule(BaseModel):
    """Sliding-window limit for one orchestration category."""

    max_requests: int = Field(gt=0)
    window_seconds: float = Field(gt=0)


def _default_rate_limits() -> dict[str, RateLimitRule]:
    return {
        "default": RateLimitRule(max_requests=10, window_seconds=60),
        "chat": RateLimitRule(max_requests=20, window_seconds=60),
        "business_plan": RateLimitRule(max_requests=5, window_seconds=3600),
        "market_analysis": RateLimitRule(max_requests=10, window_seconds=600),
    }


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Defaults are suitable for local development against a hosted LLM API.
    """

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------
    app_name: str = "Business Planning Orchestrator"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # LLM Configuration — Multi-Provider
    # -------------------------------------------------------------------------
    #   - "anthropic": Claude via native Anthropic SDK (tool_use blocks)
    #   - "openai_compatible": any OpenAI-compatible API with function calling
    #     (Groq, DeepSeek, Qwen, a local Ollama server, OpenAI itself)
    #
    # Example configs:
    #   Groq:    provider=openai_compatible, base_url=https://api.groq.com/openai/v1,
    #            model=llama-3.3-70b-versatile
    #   Ollama:  provider=openai_compatible, base_url=http://localhost:11434/v1, model=llama3
    #   Claude:  provider=anthropic, model=claude-sonnet-4-6
    # -------------------------------------------------------------------------
    llm_provider: str = "anthropic"  # "anthropic" or "openai_compatible"
    llm_base_url: str | None = None
    llm_api_key: str | None = None   # Overrides provider-specific key if set
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    llm_model: str = "claude-sonnet-4-6"
    llm_temperature: float = 0.3
    llm_max_tokens: int = 4096

    # -------------------------------------------------------------------------
    # Orchestration
    # -------------------------------------------------------------------------
    # task_timeout_seconds: hard ceiling for one agent task in parallel mode.
    # turn_timeout_seconds: ceiling for the whole execution phase of a turn;
    #   synthesis then runs over whatever results have settled.
    # max_concurrency: upper bound on simultaneously running agent tasks.
    # max_tool_iterations: LLM round-trips allowed per task before the task
    #   is cut off with ToolCallLimitExceeded.
    # agent_retry_attempts: extra attempts after a failed LLM call.
    # -------------------------------------------------------------------------
    task_timeout_seconds: float = 30.0
    turn_timeout_seconds: float = 90.0
    max_concurrency: int = 6
    max_tool_iterations: int = 5
    agent_retry_attempts: int = 1
    retry_backoff_seconds: float = 0.5
    previous_output_char_limit: int = 1000
    intent_use_llm: bool = False
    synthesis_use_llm: bool = True
    synthesis_max_tokens: int = 300

    # -------------------------------------------------------------------------
    # Static catalogs (YAML, loaded once at startup)
    # -------------------------------------------------------------------------
    phases_catalog_path: Path = _DATA_DIR / "phases.yaml"
    agents_catalog_path: Path = _DATA_DIR / "agents.yaml"
    selection_catalog_path: Path = _DATA_DIR / "selection.yaml"

    # -------------------------------------------------------------------------
    # Rate limiting
    # -------------------------------------------------------------------------
    # In-process sliding window by default. Set RATE_LIMIT_REDIS_URL to share
    # counters across worker processes (Redis sorted sets).
    # -------------------------------------------------------------------------
    rate_limits: dict[str, RateLimitRule] = Field(default_factory=_default_rate_limits)
    rate_limit_redis_url: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """
    Create and cache a Settings instance.

    In tests, construct `Settings(...)` directly and pass it to the
    component under test, or override via FastAPI's dependency_overrides.
    """
    return Settings()
