"""Application configuration management using Pydantic Settings."""

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SYSTEM_PROMPT = (
    "You are HyperX, a helpful and knowledgeable AI assistant. "
    "You answer questions concisely and professionally. "
    "If the answer requires up-to-date knowledge, cite the sources you used."
)

DEFAULT_GREETING = (
    "Hello! I'm the HyperX AI assistant. I can help you find information, answer "
    "technology questions, or show you around the platform. Ask me anything!"
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_file_priority="env_file",  # .env file takes precedence over shell env vars
    )

    # Application
    app_name: str = Field(default="hyperx-assistant", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins",
    )

    # Upstream answer generation (OpenAI-compatible chat completions)
    openai_api_key: str = Field(default="", description="API key for the answer-generation endpoint")
    openai_base_url: str | None = Field(
        default="https://generativelanguage.googleapis.com/v1beta/openai/",
        description="Base URL of the OpenAI-compatible endpoint (None for api.openai.com)",
    )
    openai_model: str = Field(default="gemini-2.5-flash", description="Model to use")
    mock_openai: bool | None = Field(default=None, description="Mock upstream responses for local testing (saves tokens). Auto-enabled in development, disabled in production.")
    system_prompt: str = Field(default=DEFAULT_SYSTEM_PROMPT, description="System instruction sent with every request")
    upstream_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Optional timeout for one upstream call. None waits until the user cancels.",
    )
    upstream_max_attempts: int = Field(
        default=1,
        ge=1,
        description="Attempts for transient upstream errors (1 disables retries)",
    )
    upstream_assistant_role: str = Field(
        default="assistant",
        description="Role name the upstream expects for assistant turns in history",
    )

    # Conversation
    greeting_message: str = Field(default=DEFAULT_GREETING, description="Assistant greeting seeded into a new conversation")
    history_max_turns: int = Field(default=5, ge=0, description="Prior user/assistant pairs sent as context")
    reveal_interval_ms: int = Field(default=15, ge=0, description="Delay between two revealed characters")

    @model_validator(mode="after")
    def set_mock_openai_default(self) -> "Settings":
        """Set mock_openai based on environment if not explicitly set via MOCK_OPENAI env var.

        - Production (APP_ENV=production): False
        - Any other environment: True
        """
        if self.mock_openai is None:
            self.mock_openai = self.app_env != "production"

        return self

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings: Application settings instance.

    Note:
        Settings are cached using lru_cache for performance.
        Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
