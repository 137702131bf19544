"""Configuration models using Pydantic."""

import logging
from pathlib import Path

from pydantic import BaseModel, Field, SecretStr, field_validator

from herald.config.paths import get_database_path

logger = logging.getLogger(__name__)

SLACK_API_BASE_URL = "https://slack.com/api/"
SLACK_AUTHORIZE_URL = "https://slack.com/oauth/v2/authorize"


class SlackConfig(BaseModel):
    """Slack app credentials and delivery settings.

    Only the webhook URL is needed for the webhook flow; the OAuth fields
    are needed for the user flow.
    """

    client_id: str | None = None
    client_secret: SecretStr | None = None
    redirect_uri: str | None = None
    webhook_url: SecretStr | None = None
    api_base_url: str = SLACK_API_BASE_URL
    authorize_url: str = SLACK_AUTHORIZE_URL
    scopes: list[str] = ["channels:read", "groups:read", "chat:write", "users:read"]
    user_scopes: list[str] = ["identity.basic"]
    timeout_seconds: float = 10.0

    @field_validator("timeout_seconds")
    @classmethod
    def _timeout_is_finite(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeout_seconds must be positive")
        return value

    @property
    def oauth_configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.redirect_uri)

    def get_webhook_url(self) -> str | None:
        if self.webhook_url is None:
            return None
        return self.webhook_url.get_secret_value() or None


class SchedulerConfig(BaseModel):
    """Dispatcher timing and retention."""

    enabled: bool = True
    poll_interval_seconds: float = 60.0
    batch_size: int = 5
    retention_days: int = 30
    retention_interval_seconds: float = 86400.0
    max_schedule_days: int = 365

    @field_validator("batch_size")
    @classmethod
    def _batch_size_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("batch_size must be at least 1")
        return value

    @field_validator("poll_interval_seconds", "retention_interval_seconds")
    @classmethod
    def _interval_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("intervals must be positive")
        return value

    @field_validator("retention_days", "max_schedule_days")
    @classmethod
    def _days_not_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("day counts cannot be negative")
        return value


class ServerConfig(BaseModel):
    """Configuration for HTTP server."""

    host: str = "127.0.0.1"
    port: int = 3001
    frontend_url: str | None = None


class DatabaseConfig(BaseModel):
    """Database location. `url` takes precedence over `path`."""

    url: str | None = None
    path: Path = Field(default_factory=get_database_path)


class ConfigError(Exception):
    """Configuration error."""

    pass


class HeraldConfig(BaseModel):
    """Root configuration model."""

    slack: SlackConfig = Field(default_factory=SlackConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
