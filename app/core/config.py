"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the provider clients and
the token services share a consistent configuration surface.
"""

from functools import lru_cache
from typing import Annotated, Optional

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _split_csv(value: str | tuple[str, ...] | list[str]) -> tuple[str, ...]:
    if isinstance(value, tuple):
        return value
    if isinstance(value, list):
        return tuple(value)
    return tuple(item.strip() for item in value.split(",") if item.strip())


class _EnvSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )


class HubSpotSettings(_EnvSettings):
    """Configuration required for the HubSpot OAuth app."""

    client_id: str = Field(..., validation_alias="HUBSPOT_CLIENT_ID")
    client_secret: str = Field(..., validation_alias="HUBSPOT_CLIENT_SECRET")
    redirect_uri: AnyHttpUrl = Field(..., validation_alias="HUBSPOT_REDIRECT_URI")
    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        (
            "oauth",
            "crm.objects.contacts.read",
            "crm.objects.contacts.write",
            "crm.objects.companies.read",
            "crm.objects.companies.write",
            "crm.objects.deals.read",
            "crm.objects.deals.write",
            "crm.objects.invoices.read",
            "crm.objects.invoices.write",
            "crm.objects.line_items.read",
            "crm.objects.line_items.write",
            "crm.dealsplits.read_write",
        ),
        validation_alias="HUBSPOT_SCOPES",
    )
    refresh_threshold_seconds: int = Field(
        60,
        validation_alias="HUBSPOT_REFRESH_THRESHOLD_SECONDS",
        description="Refresh access tokens this many seconds before they expire.",
    )

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing scopes as a comma-separated string."""
        return _split_csv(value)


class SlackSettings(_EnvSettings):
    """Configuration required for the Slack OAuth app."""

    client_id: str = Field(..., validation_alias="SLACK_CLIENT_ID")
    client_secret: str = Field(..., validation_alias="SLACK_CLIENT_SECRET")
    redirect_uri: AnyHttpUrl = Field(..., validation_alias="SLACK_REDIRECT_URI")
    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        ("chat:write",), validation_alias="SLACK_SCOPES"
    )
    test_channel: str = Field(
        "#general",
        validation_alias="SLACK_TEST_CHANNEL",
        description="Channel used by the test notification endpoint.",
    )

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        return _split_csv(value)


class SessionSettings(_EnvSettings):
    """Signed session cookie configuration."""

    jwt_secret: str = Field(..., validation_alias="JWT_SECRET")
    cookie_name: str = Field("session_token", validation_alias="SESSION_COOKIE_NAME")
    ttl_days: int = Field(30, validation_alias="SESSION_TTL_DAYS")


class SecuritySettings(_EnvSettings):
    """Security-related configuration."""

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )
    previous_token_encryption_secrets: Annotated[tuple[str, ...], NoDecode] = Field(
        (),
        validation_alias="TOKEN_ENCRYPTION_PREVIOUS_SECRETS",
        description="Retired secrets still accepted for decryption during rotation.",
    )

    @field_validator("previous_token_encryption_secrets", mode="before")
    @classmethod
    def _split_secrets(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        return _split_csv(value)


class StoreSettings(_EnvSettings):
    """Credential store backend selection."""

    backend: str = Field("sqlite", validation_alias="STORE_BACKEND")
    sqlite_db_path: str = Field("data/credentials.db", validation_alias="SQLITE_DB_PATH")
    region_name: str = Field("us-east-1", validation_alias="AWS_REGION")
    dynamodb_table_name: Optional[str] = Field(
        None, validation_alias="DYNAMODB_TABLE_NAME"
    )

    @field_validator("backend")
    @classmethod
    def _check_backend(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in {"sqlite", "dynamodb"}:
            raise ValueError("STORE_BACKEND must be 'sqlite' or 'dynamodb'.")
        return normalized


class AppSettings(_EnvSettings):
    """Root settings object for the FastAPI application."""

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    cors_origins: Annotated[tuple[str, ...], NoDecode] = Field(
        (), validation_alias="CORS_ORIGINS"
    )
    http_timeout_seconds: float = Field(10.0, validation_alias="HTTP_TIMEOUT_SECONDS")
    session: SessionSettings = Field(default_factory=SessionSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    hubspot: HubSpotSettings = Field(default_factory=HubSpotSettings)
    slack: SlackSettings = Field(default_factory=SlackSettings)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        return _split_csv(value)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "HubSpotSettings",
    "SecuritySettings",
    "SessionSettings",
    "SlackSettings",
    "StoreSettings",
    "get_settings",
]
