from __future__ import annotations

from dataclasses import dataclass, field
import os

from dotenv import find_dotenv, load_dotenv


def _load_env() -> None:
    env_path = find_dotenv(usecwd=True)
    if env_path:
        load_dotenv(env_path, override=False)


_load_env()


def _get_env(key: str, default: str | None = None) -> str | None:
    value = os.getenv(key)
    if value is None or value == "":
        return default
    return value


def _get_bool(key: str, default: bool = False) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on"}


def _get_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _get_list(key: str, default: str) -> list[str]:
    raw = _get_env(key, default) or ""
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class Settings:
    database_url: str = field(default_factory=lambda: _get_env("DATABASE_URL", "sqlite:///./livesite.db"))

    generation_url: str = field(
        default_factory=lambda: _get_env("GENERATION_URL", "http://localhost:8000/api/generate")
    )
    generation_idle_timeout_seconds: float = field(
        default_factory=lambda: _get_float("GENERATION_IDLE_TIMEOUT_SECONDS", 45.0)
    )
    generation_connect_timeout_seconds: float = field(
        default_factory=lambda: _get_float("GENERATION_CONNECT_TIMEOUT_SECONDS", 15.0)
    )

    deploy_url: str | None = field(default_factory=lambda: _get_env("DEPLOY_URL"))
    deploy_timeout_seconds: float = field(default_factory=lambda: _get_float("DEPLOY_TIMEOUT_SECONDS", 60.0))

    self_heal_max_attempts: int = field(default_factory=lambda: _get_int("SELF_HEAL_MAX_ATTEMPTS", 3))
    self_heal_delay_seconds: float = field(default_factory=lambda: _get_float("SELF_HEAL_DELAY_SECONDS", 0.0))

    default_entry_file: str = field(default_factory=lambda: _get_env("DEFAULT_ENTRY_FILE", "landing") or "landing")
    page_extensions: list[str] = field(default_factory=lambda: _get_list("PAGE_EXTENSIONS", ".html,.htm"))
    allow_create_pages_on_navigation: bool = field(
        default_factory=lambda: _get_bool("ALLOW_CREATE_PAGES_ON_NAVIGATION", False)
    )
    max_pending_directive_chars: int = field(
        default_factory=lambda: _get_int("MAX_PENDING_DIRECTIVE_CHARS", 512)
    )

    openai_api_key: str | None = field(
        default_factory=lambda: _get_env("OPENAI_API_KEY") or _get_env("DEFAULT_KEY")
    )
    openai_base_url: str = field(
        default_factory=lambda: _get_env("OPENAI_BASE_URL")
        or _get_env("DEFAULT_BASE_URL", "https://api.openai.com/v1")
    )
    openai_timeout_seconds: float = field(default_factory=lambda: _get_float("OPENAI_TIMEOUT_SECONDS", 60.0))
    openai_max_retries: int = field(default_factory=lambda: _get_int("OPENAI_MAX_RETRIES", 3))
    openai_base_delay: float = field(default_factory=lambda: _get_float("OPENAI_BASE_DELAY", 1.0))
    model: str = field(default_factory=lambda: _get_env("MODEL") or _get_env("DEFAULT_MODEL", "gpt-4o-mini"))
    temperature: float = field(default_factory=lambda: _get_float("TEMPERATURE", 0.7))
    max_tokens: int = field(default_factory=lambda: _get_int("MAX_TOKENS", 8000))

    workspace_idle_seconds: float = field(default_factory=lambda: _get_float("WORKSPACE_IDLE_SECONDS", 3600.0))
    max_workspaces: int = field(default_factory=lambda: _get_int("MAX_WORKSPACES", 100))

    cors_allow_origins: list[str] = field(default_factory=lambda: _get_list("CORS_ALLOW_ORIGINS", "*"))
    log_dir: str | None = field(default_factory=lambda: _get_env("LOG_DIR"))
    log_level: str = field(default_factory=lambda: _get_env("LOG_LEVEL", "INFO") or "INFO")


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def refresh_settings() -> Settings:
    """Rebuild settings from environment variables."""
    global _settings
    _settings = Settings()
    return _settings


__all__ = [
    "Settings",
    "get_settings",
    "refresh_settings",
]
