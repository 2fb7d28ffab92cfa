"""
Application settings.

Loads configuration from environment variables and .env, applies defaults and
lower bounds, and exposes a frozen Settings object used by the pipeline,
ingestion adapters, AI engine, database layer, and API server.
"""

from __future__ import annotations

from dataclasses import dataclass

from backend_riskscope.config.env import (
    env_float,
    env_int,
    env_str,
    load_riskscope_env,
)

DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_BSC_EXPLORER_URL = "https://api.bscscan.com/api"
DEFAULT_TWITTER_API_URL = "https://api.twitter.com/2"
DEFAULT_DATABASE_URL = "sqlite:///riskscope.db"


@dataclass(frozen=True)
class Settings:
    """Typed runtime settings. Build with get_settings(); override fields in tests via replace()."""

    openai_api_key: str = ""
    openai_model: str = DEFAULT_OPENAI_MODEL
    openai_max_tokens: int = 800
    openai_temperature: float = 0.7
    twitter_bearer_token: str = ""
    twitter_api_url: str = DEFAULT_TWITTER_API_URL
    bsc_explorer_url: str = DEFAULT_BSC_EXPLORER_URL
    bsc_api_key: str = ""
    fetch_timeout_sec: float = 10.0
    narrative_timeout_sec: float = 30.0
    retry_attempts: int = 3
    retry_backoff_sec: float = 0.5
    cache_ttl_sec: float = 10.0
    report_timeout_sec: float = 60.0
    database_url: str = DEFAULT_DATABASE_URL
    history_limit: int = 10
    max_stored_reports: int = 50
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    @property
    def has_openai(self) -> bool:
        return bool(self.openai_api_key)

    @property
    def has_twitter(self) -> bool:
        return bool(self.twitter_bearer_token)


def _load_settings() -> Settings:
    load_riskscope_env()
    return Settings(
        openai_api_key=env_str("OPENAI_API_KEY"),
        openai_model=env_str("OPENAI_MODEL", DEFAULT_OPENAI_MODEL),
        openai_max_tokens=env_int("OPENAI_MAX_TOKENS", 800, minimum=64),
        openai_temperature=env_float("OPENAI_TEMPERATURE", 0.7, minimum=0.0),
        twitter_bearer_token=env_str("TWITTER_BEARER_TOKEN"),
        twitter_api_url=env_str("TWITTER_API_URL", DEFAULT_TWITTER_API_URL),
        bsc_explorer_url=env_str("BSC_EXPLORER_URL", DEFAULT_BSC_EXPLORER_URL),
        bsc_api_key=env_str("BSC_API_KEY"),
        fetch_timeout_sec=env_float("FETCH_TIMEOUT_SEC", 10.0, minimum=0.1),
        narrative_timeout_sec=env_float("NARRATIVE_TIMEOUT_SEC", 30.0, minimum=0.1),
        retry_attempts=env_int("RETRY_ATTEMPTS", 3, minimum=1),
        retry_backoff_sec=env_float("RETRY_BACKOFF_SEC", 0.5, minimum=0.0),
        cache_ttl_sec=env_float("CACHE_TTL_SEC", 10.0, minimum=0.0),
        report_timeout_sec=env_float("REPORT_TIMEOUT_SEC", 60.0, minimum=1.0),
        database_url=env_str("DATABASE_URL", DEFAULT_DATABASE_URL),
        history_limit=env_int("HISTORY_LIMIT", 10, minimum=1),
        max_stored_reports=env_int("MAX_STORED_REPORTS", 50, minimum=1),
        api_host=env_str("API_HOST", "0.0.0.0"),
        api_port=env_int("API_PORT", 8000, minimum=1),
    )


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the process-wide Settings, loading from env on first use."""
    global _settings
    if _settings is None:
        _settings = _load_settings()
    return _settings


def reset_settings() -> None:
    """Drop cached settings so the next get_settings() re-reads the environment (tests)."""
    global _settings
    _settings = None
