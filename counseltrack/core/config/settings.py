# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""CounselTrack configuration.

Every section reads its own environment prefix (DB_, LLM_, SMTP_,
ESCALATION_, NOTIFICATION_, RATE_LIMIT_, CORS_, API_). Settings nests
them, and get_settings() caches one instance per process.

Example:
    >>> from counseltrack.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> print(settings.escalation.critical_threshold_hours)
    2.0
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database configuration.

    Any SQLAlchemy async URL is accepted. SQLite (aiosqlite) is the
    default so a single process can run without external services.

    Attributes:
        url: Async database URL.
        echo: Log every SQL statement.
        pool_size: Connection pool size (ignored for SQLite).
        max_overflow: Maximum overflow connections (ignored for SQLite).
        create_tables: Create missing tables at startup.
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        extra="ignore",
    )

    url: str = "sqlite+aiosqlite:///./counseltrack.db"
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 20
    create_tables: bool = True

    @property
    def is_sqlite(self) -> bool:
        """Check whether the configured backend is SQLite."""
        return self.url.startswith("sqlite")


class LLMSettings(BaseSettings):
    """LLM provider configuration using LiteLLM.

    The narrative generator works without an LLM; when disabled or when
    the selected provider has no credentials, the rule-based fallback
    is used. Provider keys and model names are read from their usual
    unprefixed variables (OPENAI_API_KEY, OLLAMA_BASE_URL, ...).
    """

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        extra="ignore",
    )

    enabled: bool = False
    default_provider: Literal["ollama", "openai", "anthropic", "google"] = "ollama"

    ollama_base_url: str = Field(
        default="http://localhost:11434",
        validation_alias="OLLAMA_BASE_URL",
    )
    ollama_default_model: str = Field(
        default="qwen2.5:7b",
        validation_alias="OLLAMA_DEFAULT_MODEL",
    )

    openai_api_key: SecretStr | None = Field(
        default=None,
        validation_alias="OPENAI_API_KEY",
    )
    openai_default_model: str = Field(
        default="gpt-4o",
        validation_alias="OPENAI_DEFAULT_MODEL",
    )

    anthropic_api_key: SecretStr | None = Field(
        default=None,
        validation_alias="ANTHROPIC_API_KEY",
    )
    anthropic_default_model: str = Field(
        default="claude-3-5-sonnet-20241022",
        validation_alias="ANTHROPIC_DEFAULT_MODEL",
    )

    google_api_key: SecretStr | None = Field(
        default=None,
        validation_alias="GOOGLE_API_KEY",
    )
    google_default_model: str = Field(
        default="gemini-2.0-flash-exp",
        validation_alias="GOOGLE_DEFAULT_MODEL",
    )

    request_timeout: float = 60.0
    max_retries: int = 3

    def get_default_model(self) -> str:
        """LiteLLM model string for the selected provider."""
        models = {
            "ollama": f"ollama/{self.ollama_default_model}",
            "openai": self.openai_default_model,
            "anthropic": self.anthropic_default_model,
            "google": f"gemini/{self.google_default_model}",
        }
        return models[self.default_provider]

    def get_api_key(self) -> str | None:
        """Get the API key for the configured provider, if any."""
        keys = {
            "ollama": None,
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
            "google": self.google_api_key,
        }
        key = keys[self.default_provider]
        return key.get_secret_value() if key else None

    @property
    def has_credentials(self) -> bool:
        """Whether the configured provider can be called.

        Ollama needs no key; hosted providers need one.
        """
        if self.default_provider == "ollama":
            return True
        return bool(self.get_api_key())


class SMTPSettings(BaseSettings):
    """SMTP configuration for the email channel.

    Attributes:
        host: SMTP server hostname. Email is skipped when unset.
        port: SMTP server port.
        username: SMTP authentication username.
        password: SMTP authentication password.
        use_tls: Use STARTTLS.
        from_email: Sender email address.
        from_name: Sender display name.
    """

    model_config = SettingsConfigDict(
        env_prefix="SMTP_",
        extra="ignore",
    )

    host: str | None = None
    port: int = 587
    username: str | None = None
    password: SecretStr | None = None
    use_tls: bool = True
    from_email: str | None = None
    from_name: str = "CounselTrack"

    @property
    def is_configured(self) -> bool:
        """Check whether enough settings exist to send email."""
        return all([self.host, self.username, self.password, self.from_email])


class EscalationSettings(BaseSettings):
    """Escalation ladder configuration.

    Attributes:
        counselor_contact: Contact for the Counselor rung.
        assistant_principal_contact: Contact for the Assistant Principal rung.
        principal_contact: Contact for the Principal rung.
        critical_threshold_hours: Unanswered time before a CRITICAL
            escalation is promoted.
        standard_threshold_hours: Unanswered time before any other
            escalation is promoted.
        sweep_enabled: Register the periodic sweep on startup.
        sweep_interval_minutes: Minutes between sweeps.
        metrics_window_days: Trailing window for escalation statistics.
    """

    model_config = SettingsConfigDict(
        env_prefix="ESCALATION_",
        extra="ignore",
    )

    counselor_contact: str = "counselor@school.edu"
    assistant_principal_contact: str = "assistant-principal@school.edu"
    principal_contact: str = "principal@school.edu"
    critical_threshold_hours: float = 2.0
    standard_threshold_hours: float = 24.0
    sweep_enabled: bool = True
    sweep_interval_minutes: int = 5
    metrics_window_days: int = 30


class NotificationSettings(BaseSettings):
    """Notification dispatcher configuration.

    Attributes:
        delivery_confirm_delay_seconds: Delay before a SENT record is
            marked DELIVERED.
        retry_window_hours: Age limit for FAILED records picked up by retry.
        retry_enabled: Register the periodic retry job on startup.
        retry_interval_minutes: Minutes between retry runs.
        school_name: Signature used in parent-facing templates.
        timezone: IANA zone that quiet hours are read in.
    """

    model_config = SettingsConfigDict(
        env_prefix="NOTIFICATION_",
        extra="ignore",
    )

    delivery_confirm_delay_seconds: float = 0.1
    retry_window_hours: int = 24
    retry_enabled: bool = True
    retry_interval_minutes: int = 60
    school_name: str = "CounselTrack"
    timezone: str = "UTC"


class RateLimitSettings(BaseSettings):
    """Rate limiting configuration.

    Attributes:
        requests_per_minute: Maximum requests per minute per client.
        storage_uri: slowapi storage backend.
    """

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        extra="ignore",
    )

    requests_per_minute: int = 60
    storage_uri: str = "memory://"


class CORSSettings(BaseSettings):
    """CORS configuration for API.

    Attributes:
        origins: Comma-separated list of allowed origins.
        allow_credentials: Whether to allow credentials.
        allow_methods: Allowed HTTP methods.
        allow_headers: Allowed HTTP headers.
    """

    model_config = SettingsConfigDict(
        env_prefix="CORS_",
        extra="ignore",
    )

    origins: str = "http://localhost:3000,http://localhost:5173"
    allow_credentials: bool = True
    allow_methods: list[str] = ["*"]
    allow_headers: list[str] = ["*"]

    @property
    def origins_list(self) -> list[str]:
        """Parse origins string into a list."""
        return [origin.strip() for origin in self.origins.split(",") if origin.strip()]


class APISettings(BaseSettings):
    """API server configuration.

    Attributes:
        host: Host to bind to.
        port: Port to listen on.
        workers: Number of worker processes.
        reload: Whether to enable auto-reload.
    """

    model_config = SettingsConfigDict(
        env_prefix="API_",
        extra="ignore",
    )

    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 1
    reload: bool = False


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        database: Database settings.
        llm: LLM provider settings.
        smtp: SMTP settings.
        escalation: Escalation ladder settings.
        notification: Notification dispatcher settings.
        rate_limit: Rate limiting settings.
        cors: CORS settings.
        api: API server settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    smtp: SMTPSettings = Field(default_factory=SMTPSettings)
    escalation: EscalationSettings = Field(default_factory=EscalationSettings)
    notification: NotificationSettings = Field(default_factory=NotificationSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)
    api: APISettings = Field(default_factory=APISettings)

    @model_validator(mode="after")
    def validate_escalation_thresholds(self) -> Self:
        """Validate that escalation thresholds are usable.

        Raises:
            ValueError: If a threshold is not positive.
        """
        if self.escalation.critical_threshold_hours <= 0:
            raise ValueError("ESCALATION_CRITICAL_THRESHOLD_HOURS must be positive")
        if self.escalation.standard_threshold_hours <= 0:
            raise ValueError("ESCALATION_STANDARD_THRESHOLD_HOURS must be positive")
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call clear_settings_cache() if you need to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Call this if you need to reload settings from environment.
    Useful for testing or dynamic configuration updates.
    """
    get_settings.cache_clear()
