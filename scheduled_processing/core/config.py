"""Job configuration using Pydantic Settings."""

from enum import Enum
from functools import lru_cache

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigMissingError


class RemoteFailurePolicy(str, Enum):
    """What the item loop does when a GitHub call fails for one record."""

    ABORT = "abort"
    SKIP = "skip"


class Settings(BaseSettings):
    """Job settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Required on cold start
    region: str = Field(alias="REGION")
    github_credentials_secret_arn: str = Field(alias="GITHUB_CREDENTIALS_SECRET_ARN")
    configuration_secret_arn: str = Field(alias="CONFIGURATION_SECRET_ARN")

    # Required when an invocation runs
    scheduled_moves_table_name: str | None = Field(
        default=None, alias="SCHEDULED_MOVES_TABLE_NAME"
    )
    scheduled_moves_date_index_name: str | None = Field(
        default=None, alias="SCHEDULED_MOVES_DATE_INDEX_NAME"
    )

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # GitHub
    github_api_url: str = Field(default="https://api.github.com", alias="GITHUB_API_URL")
    github_request_timeout_seconds: float = Field(
        default=30.0, gt=0, alias="GITHUB_REQUEST_TIMEOUT_SECONDS"
    )

    # Processing
    remote_failure_policy: RemoteFailurePolicy = Field(
        default=RemoteFailurePolicy.ABORT, alias="REMOTE_FAILURE_POLICY"
    )
    claim_lease_seconds: int = Field(default=0, ge=0, alias="CLAIM_LEASE_SECONDS")
    delete_retry_attempts: int = Field(default=3, ge=0, le=10, alias="DELETE_RETRY_ATTEMPTS")

    # Alerting
    slack_alerts_webhook_url: str | None = Field(default=None, alias="SLACK_ALERTS_WEBHOOK_URL")
    alert_webhook_url: str | None = Field(default=None, alias="ALERT_WEBHOOK_URL")

    def require(self, field_name: str) -> str:
        """Return an invocation setting, or raise naming its environment variable."""
        value = getattr(self, field_name)
        if not value:
            raise ConfigMissingError(env_variable_name(field_name))
        return value


def env_variable_name(field_name: str) -> str:
    """Environment variable backing a settings field."""
    field = Settings.model_fields[field_name]
    return field.alias or field_name.upper()


def load_settings(**overrides) -> Settings:
    """
    Build settings from the environment.

    A missing startup variable is reported as ConfigMissingError naming
    the first variable that was absent.
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        for error in e.errors():
            if error["type"] == "missing" and error["loc"]:
                name = str(error["loc"][0])
                if name in Settings.model_fields:
                    name = env_variable_name(name)
                raise ConfigMissingError(name) from e
        raise


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return load_settings()
