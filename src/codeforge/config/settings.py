"""
config/settings.py — codeforge runtime settings

config/config.yaml supplies structure and defaults; API keys come from the
environment or .env. Range checks are declared on the fields, so a bad value
fails at load time. validate_all() then checks what a single field cannot:
whether the keys the configured providers and the sandbox need are present.

The config file is the --config argument, else $CODEFORGE_CONFIG, else
config/config.yaml.
"""

from __future__ import annotations

import os
import threading as _threading
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigError(Exception):
    """Startup configuration is unusable; the message lists every problem."""


_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# provider name -> environment variable holding its key
PROVIDER_KEY_ENV = {
    "gemini": "GEMINI_API_KEY",
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}


def _check_provider(name: str, field: str) -> str:
    if name not in PROVIDER_KEY_ENV:
        raise ValueError(
            f"{field} '{name}' is not supported. Supported: {sorted(PROVIDER_KEY_ENV)}"
        )
    return name


# ─────────────────────────────────────────────────────────────────────────────
# Sections
# ─────────────────────────────────────────────────────────────────────────────


class AgentConfig(BaseModel):
    name: str = "code-agent"
    max_iterations: int = Field(default=10, ge=1)
    history_limit: int = Field(default=5, ge=0)
    termination_marker: str = "<task_summary>"

    @field_validator("termination_marker")
    @classmethod
    def _marker_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("agent.termination_marker must not be empty")
        return v


class LLMRetryConfig(BaseModel):
    """Backoff for rate-limit and connection errors, per provider in the chain."""
    max_attempts: int = Field(default=3, ge=1)
    base_delay: float = Field(default=1.0, ge=0)
    max_delay: float = Field(default=30.0, ge=0)


class LLMConfig(BaseModel):
    default_provider: str = "gemini"
    default_model: str = "gemini-2.5-flash"
    temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    max_tokens: int = Field(default=8192, ge=1)
    retry: LLMRetryConfig = Field(default_factory=LLMRetryConfig)
    fallback_providers: List[str] = Field(default_factory=list)

    @field_validator("default_provider")
    @classmethod
    def _known_provider(cls, v: str) -> str:
        return _check_provider(v, "llm.default_provider")

    @field_validator("fallback_providers")
    @classmethod
    def _known_fallbacks(cls, v: list[str]) -> list[str]:
        return [_check_provider(p, "llm.fallback_providers entry") for p in v]


class SandboxConfig(BaseModel):
    template: str = "v0-nextjs-build-new"
    preview_port: int = Field(default=3000, ge=1, le=65535)
    tool_timeout_seconds: float = Field(default=300.0, gt=0)
    # how long E2B keeps an idle sandbox alive before reclaiming it
    lifetime_seconds: int = Field(default=3600, gt=0)
    max_result_chars: int = Field(default=20000, ge=1)


class StorageConfig(BaseModel):
    sqlite_path: str = "./data/sqlite/codeforge.db"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    log_dir: str = "./data/logs"
    max_file_size_mb: int = Field(default=100, ge=1)
    backup_count: int = Field(default=5, ge=0)
    console_output: bool = False
    json_format: bool = True

    @field_validator("level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        if v.upper() not in _LOG_LEVELS:
            raise ValueError(f"logging.level '{v}' is not one of {list(_LOG_LEVELS)}")
        return v.upper()


# ─────────────────────────────────────────────────────────────────────────────
# Root Settings
# ─────────────────────────────────────────────────────────────────────────────


class Settings(BaseSettings):
    """
    Priority, highest first: environment variables, .env, config.yaml,
    field defaults.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    gemini_api_key: Optional[str] = Field(default=None, alias="GEMINI_API_KEY")
    openai_api_key: Optional[str] = Field(default=None, alias="OPENAI_API_KEY")
    anthropic_api_key: Optional[str] = Field(default=None, alias="ANTHROPIC_API_KEY")
    e2b_api_key: Optional[str] = Field(default=None, alias="E2B_API_KEY")

    agent: AgentConfig = Field(default_factory=AgentConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    sandbox: SandboxConfig = Field(default_factory=SandboxConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def default_llm_provider(self) -> str:
        return self.llm.default_provider

    @property
    def default_llm_model(self) -> str:
        return self.llm.default_model

    @property
    def log_level(self) -> str:
        return self.logging.level

    @property
    def log_dir(self) -> Path:
        return Path(self.logging.log_dir)

    def api_key_for(self, provider: str) -> Optional[str]:
        return getattr(self, f"{provider}_api_key", None) if provider in PROVIDER_KEY_ENV else None

    def validate_all(self) -> None:
        """
        Called once by main.bootstrap() before anything is built. Raises
        ConfigError with a numbered list of every problem found.
        """
        problems: list[str] = []

        primary = self.llm.default_provider
        if not self.api_key_for(primary):
            problems.append(
                f"LLM provider '{primary}' requires {PROVIDER_KEY_ENV[primary]} to be set "
                f"in your .env file."
            )
        for fallback in self.llm.fallback_providers:
            if fallback != primary and not self.api_key_for(fallback):
                problems.append(
                    f"Fallback provider '{fallback}' requires {PROVIDER_KEY_ENV[fallback]}. "
                    f"Remove it from llm.fallback_providers or add the key to .env."
                )

        if not self.e2b_api_key:
            problems.append("The E2B sandbox requires E2B_API_KEY to be set in your .env file.")
        if not self.sandbox.template.strip():
            problems.append("sandbox.template must not be empty.")

        if problems:
            numbered = "\n".join(f"  {i}. {p}" for i, p in enumerate(problems, start=1))
            raise ConfigError(
                f"\n\ncodeforge startup failed: {len(problems)} configuration "
                f"problem(s) found:\n\n{numbered}\n\n"
                f"Fix the issues above in config/config.yaml or your .env file "
                f"and restart.\n"
            )


# ─────────────────────────────────────────────────────────────────────────────
# Loader + singleton
# ─────────────────────────────────────────────────────────────────────────────

_singleton: Optional[Settings] = None
_singleton_lock = _threading.RLock()

_SECTIONS = ("agent", "llm", "sandbox", "storage", "logging")


def _resolve_config_path(config_path: str | Path | None) -> Path:
    if config_path is not None:
        return Path(config_path)
    return Path(os.environ.get("CODEFORGE_CONFIG") or "config/config.yaml")


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Build Settings from the resolved config file and install it as the singleton."""
    global _singleton
    path = _resolve_config_path(config_path)
    raw: dict = {}
    if path.exists():
        with path.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

    instance = Settings(**{k: v for k, v in raw.items() if k in _SECTIONS})
    with _singleton_lock:
        _singleton = instance
    return instance


def get_settings() -> Settings:
    if _singleton is not None:
        return _singleton
    with _singleton_lock:
        if _singleton is None:
            load_settings()
    return _singleton  # type: ignore[return-value]
