"""Runtime settings loaded from environment variables."""

from functools import lru_cache
from typing import Annotated

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

NonEmptyStr = Annotated[str, Field(min_length=1)]
NonNegativeFloat = Annotated[float, Field(ge=0.0)]
PositiveInt = Annotated[int, Field(gt=0)]


class Settings(BaseSettings):
    """Environment-driven application settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: NonEmptyStr = Field(validation_alias="DATABASE_URL")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    report_timezone: NonEmptyStr = Field(
        default="Africa/Harare",
        validation_alias="REPORT_TIMEZONE",
    )
    smtp_host: NonEmptyStr = Field(default="smtp.gmail.com", validation_alias="SMTP_HOST")
    smtp_port: PositiveInt = Field(default=587, validation_alias="SMTP_PORT")
    smtp_username: str | None = Field(default=None, validation_alias="SMTP_USERNAME")
    smtp_password: str | None = Field(default=None, validation_alias="SMTP_PASSWORD")
    smtp_sender: str | None = Field(default=None, validation_alias="SMTP_SENDER")
    smtp_use_tls: bool = Field(default=True, validation_alias="SMTP_USE_TLS")
    smtp_timeout_seconds: NonNegativeFloat = Field(
        default=30.0,
        validation_alias="SMTP_TIMEOUT_SECONDS",
    )
    africastalking_username: NonEmptyStr = Field(
        default="sandbox",
        validation_alias="AFRICASTALKING_USERNAME",
    )
    africastalking_api_key: str | None = Field(
        default=None,
        validation_alias="AFRICASTALKING_API_KEY",
    )
    africastalking_sender_id: str | None = Field(
        default=None,
        validation_alias="AFRICASTALKING_SENDER_ID",
    )
    africastalking_timeout_seconds: NonNegativeFloat = Field(
        default=20.0,
        validation_alias="AFRICASTALKING_TIMEOUT_SECONDS",
    )
    milestone_notify_emails: list[str] = Field(
        default_factory=list,
        validation_alias="MILESTONE_NOTIFY_EMAILS",
    )
    milestone_notify_phones: list[str] = Field(
        default_factory=list,
        validation_alias="MILESTONE_NOTIFY_PHONES",
    )
    export_tmp_dir: NonEmptyStr | None = Field(default=None, validation_alias="EXPORT_TMP_DIR")
    scheduler_poll_interval_seconds: NonNegativeFloat = Field(
        default=60.0,
        validation_alias="SCHEDULER_POLL_INTERVAL_SECONDS",
    )


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Load and cache application settings."""

    return Settings()  # type: ignore[call-arg]
