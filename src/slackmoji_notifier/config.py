from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from datetime import timedelta
from pathlib import Path
from typing import List

SUPPORTED_PROVIDERS = ("openai", "ollama", "anthropic", "googleai")


class ConfigError(Exception):
    """Raised when required settings are missing or invalid."""

    def __init__(self, problems: List[str]):
        self.problems = problems
        super().__init__("; ".join(problems))


class Settings(BaseSettings):
    SLACK_BOT_TOKEN: str = Field("", description="Slack Bot User OAuth Token (xoxb-...)")
    SLACK_APP_TOKEN: str = Field("", description="Slack App-Level Token for Socket Mode (xapp-...)")
    SLACK_CHANNEL: str = Field("", description="Channel that receives new emoji announcements")
    SLACK_LOG_ONLY: bool = Field(False, description="Observe-only mode: log instead of generating and posting")

    LLM_PROVIDER: str = Field("openai", description="One of openai, ollama, anthropic, googleai")
    LLM_SYSTEM_PROMPT: str = Field("", description="System prompt override")
    LLM_SYSTEM_PROMPT_FILE: str = Field("", description="YAML or Markdown file holding the system prompt")

    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-5-nano"
    OPENAI_MAX_TOKENS: int = Field(1024, ge=0)

    OLLAMA_MODEL: str = "llama3.2:1b"
    OLLAMA_BASE_URL: str = "http://localhost:11434"

    ANTHROPIC_API_KEY: str = ""
    ANTHROPIC_MODEL: str = "claude-3-5-haiku-latest"
    ANTHROPIC_MAX_TOKENS: int = Field(1024, ge=1)

    GOOGLEAI_API_KEY: str = ""
    GOOGLEAI_MODEL: str = "gemini-2.5-flash-lite"
    GOOGLEAI_MAX_TOKENS: int = Field(1024, ge=0)

    EVENT_THRESHOLD_SECONDS: float = Field(60.0, gt=0, description="Events older than this are ignored")
    SHUTDOWN_GRACE_SECONDS: float = Field(5.0, ge=0, description="Grace period for in-flight notifications")
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @field_validator("LLM_PROVIDER")
    @classmethod
    def _normalize_provider(cls, value: str) -> str:
        return value.strip().lower()

    @property
    def freshness_threshold(self) -> timedelta:
        return timedelta(seconds=self.EVENT_THRESHOLD_SECONDS)


def validate_settings(settings: Settings) -> Settings:
    """
    Check everything the listener needs before it connects.
    Collects every problem so the operator can fix them in one go.
    """
    problems = []
    for name in ("SLACK_BOT_TOKEN", "SLACK_APP_TOKEN", "SLACK_CHANNEL"):
        if not getattr(settings, name):
            problems.append(f"{name} is not set")

    provider = settings.LLM_PROVIDER
    if provider == "openai":
        if not settings.OPENAI_API_KEY:
            problems.append("OPENAI_API_KEY is not set")
    elif provider == "ollama":
        if not settings.OLLAMA_MODEL:
            problems.append("OLLAMA_MODEL is not set")
        if not settings.OLLAMA_BASE_URL:
            problems.append("OLLAMA_BASE_URL is not set")
    elif provider == "anthropic":
        if not settings.ANTHROPIC_API_KEY:
            problems.append("ANTHROPIC_API_KEY is not set")
    elif provider == "googleai":
        if not settings.GOOGLEAI_API_KEY:
            problems.append("GOOGLEAI_API_KEY is not set")
    else:
        problems.append(
            f"unsupported LLM_PROVIDER: {provider!r} (expected one of {', '.join(SUPPORTED_PROVIDERS)})"
        )

    prompt_file = settings.LLM_SYSTEM_PROMPT_FILE
    if prompt_file and not Path(prompt_file).is_file():
        problems.append(f"LLM_SYSTEM_PROMPT_FILE not found: {prompt_file}")

    if problems:
        raise ConfigError(problems)
    return settings


@lru_cache()
def get_settings() -> Settings:
    return Settings()
