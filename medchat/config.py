"""Application configuration using pydantic-settings."""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Model provider (OpenAI-compatible chat completions gateway)
    provider_api_base: str = "https://ai.gateway.lovable.dev/v1"
    provider_api_key: str
    model_name: str = "google/gemini-2.5-flash"

    # Identity + role store (Supabase-style auth and REST endpoints)
    auth_url: str
    auth_api_key: str = ""
    required_role: str = "admin"

    # Outbound timeouts in seconds
    # Identity/role timeouts surface as AuthorizationUnavailable,
    # provider timeouts as ProviderError.
    auth_timeout_seconds: float = 10.0
    provider_timeout_seconds: float = 60.0

    # Upper bound for the decoded size of an inline image attachment
    max_image_bytes: int = 10 * 1024 * 1024

    # Application Settings
    log_level: str = "INFO"
    environment: str = "development"

    @field_validator("provider_api_key")
    @classmethod
    def validate_provider_api_key(cls, v: str) -> str:
        """Reject empty provider keys instead of failing on the first request."""
        v = v.strip()
        if not v:
            raise ValueError(
                "PROVIDER_API_KEY cannot be empty. "
                "Set it to the model gateway API key."
            )
        return v

    @field_validator("provider_api_base", "auth_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require http(s) URLs and drop trailing slashes for path joining."""
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Expected an http(s) URL, got: '{v}'")
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v = v.upper()
        if v not in valid_levels:
            raise ValueError(
                f"Invalid log_level: '{v}'. "
                f"Must be one of: {', '.join(valid_levels)}"
            )
        return v

    @property
    def completions_url(self) -> str:
        """Chat completions endpoint of the configured provider."""
        return f"{self.provider_api_base}/chat/completions"


# Global settings instance
settings = Settings()
