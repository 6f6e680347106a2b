"""Configuration management using Pydantic Settings."""

from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Inbound model name -> upstream model name
MODEL_MAPPING: dict[str, str] = {
    "claude-3-5-haiku-20241022": "anthropic/claude-3.5-haiku",
    "claude-sonnet-4-20250514": "anthropic/claude-sonnet-4",
    "claude-opus-4-20250514": "anthropic/claude-opus-4",
}
DEFAULT_UPSTREAM_MODEL = "anthropic/claude-4-sonnet"

DEFAULT_MAX_TOKENS = 4096
DEFAULT_TEMPERATURE = 0.7


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Server settings
    host: str = Field(default="0.0.0.0", description="Server bind host")
    port: int = Field(default=8080, description="Server port")
    log_level: str = Field(default="info", description="Logging level")

    # Upstream settings
    upstream_api_url: str = Field(
        default="https://ai-gateway.vercel.sh/v1/chat/completions",
        validation_alias=AliasChoices("upstream_api_url", "vercel_api_url"),
        description="Upstream OpenAI-compatible chat completions URL",
    )
    upstream_api_keys: str = Field(
        default="",
        validation_alias=AliasChoices("upstream_api_keys", "vercel_api_keys"),
        description="Comma separated upstream API keys",
    )
    request_timeout: float = Field(default=120, description="Request timeout in seconds")

    # Inbound auth
    custom_auth_key: str | None = Field(
        default=None,
        description="Bearer token required from callers (disabled when unset)",
    )

    # Retry and key rotation
    max_retries: int = Field(default=3, ge=1, description="Max upstream attempts per request")
    retry_backoff_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Delay multiplier between attempts",
    )
    key_recovery_seconds: float = Field(
        default=60,
        description="Seconds before a failed key is eligible again",
    )

    @property
    def api_keys(self) -> list[str]:
        """Parsed upstream key list, blanks dropped."""
        return [key.strip() for key in self.upstream_api_keys.split(",") if key.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
