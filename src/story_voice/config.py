"""Application configuration using environment variables."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, AnyHttpUrl, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root once so that `.env` is discovered regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

DEFAULT_MAX_TEXT_LENGTH = 5000

# Value shipped in `.env.example`; treated exactly like a missing key
PLACEHOLDER_API_KEYS = frozenset({"your_key_here"})


class ConfigurationError(RuntimeError):
    """Raised when the server is missing configuration it cannot run without."""


class Settings(BaseSettings):
    """Load configuration from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    elevenlabs_api_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("ELEVENLABS_API_KEY", "elevenlabs_api_key"),
    )
    elevenlabs_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("https://api.elevenlabs.io/v1"),
        validation_alias=AliasChoices("ELEVENLABS_BASE_URL", "elevenlabs_base_url"),
    )
    request_timeout: float = Field(
        default=60.0,
        validation_alias=AliasChoices("ELEVENLABS_TIMEOUT", "request_timeout"),
        ge=1,
    )
    max_text_length: int = Field(
        default=DEFAULT_MAX_TEXT_LENGTH,
        ge=1,
        validation_alias=AliasChoices("MAX_TEXT_LENGTH", "max_text_length"),
    )


@dataclass(frozen=True)
class ProviderCredential:
    """The provider API key, validated once when the app is built.

    A credential that failed validation keeps the reason instead of the key so
    every request can surface the same configuration error.
    """

    api_key: Optional[SecretStr] = None
    problem: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProviderCredential":
        raw = (
            settings.elevenlabs_api_key.get_secret_value().strip()
            if settings.elevenlabs_api_key
            else ""
        )
        if not raw:
            return cls(problem="ELEVENLABS_API_KEY not configured")
        if raw in PLACEHOLDER_API_KEYS:
            return cls(problem="ELEVENLABS_API_KEY still set to the placeholder value")
        return cls(api_key=SecretStr(raw))

    @property
    def configured(self) -> bool:
        return self.api_key is not None

    def require(self) -> str:
        """Return the raw key or raise `ConfigurationError`."""

        if self.api_key is None:
            raise ConfigurationError(self.problem or "ELEVENLABS_API_KEY not configured")
        return self.api_key.get_secret_value()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()  # pyright: ignore[reportCallIssue]


__all__ = [
    "ConfigurationError",
    "DEFAULT_MAX_TEXT_LENGTH",
    "PLACEHOLDER_API_KEYS",
    "ProviderCredential",
    "Settings",
    "get_settings",
]
