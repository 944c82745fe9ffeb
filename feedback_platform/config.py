from functools import lru_cache

from pydantic import AnyHttpUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    app_name: str = Field(default="Feedback Platform")
    use_mock_data: bool = Field(
        default=True
    )
    directory_base_url: AnyHttpUrl | None = Field(
        default=None
    )
    directory_timeout: float = Field(
        default=10.0
    )
    redis_url: str | None = Field(
        default=None
    )
    dependency_timeout: float = Field(
        default=15.0, gt=0
    )
    ledger_max_attempts: int = Field(
        default=5, ge=1
    )
    ledger_backoff_seconds: float = Field(
        default=0.05, ge=0
    )
    ledger_call_timeout: float = Field(
        default=10.0, gt=0
    )
    ledger_key_template: str = Field(
        default="feedback-{company_id}.csv"
    )
    follow_up_queue_name: str = Field(
        default="feedback-followup"
    )
    follow_up_worker_enabled: bool = Field(
        default=True
    )
    follow_up_poll_interval: float = Field(
        default=1.0, gt=0
    )
    fail_submission_on_publish_error: bool = Field(
        default=False
    )

    model_config = SettingsConfigDict(env_prefix="FEEDBACK_", case_sensitive=False)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings()
