# lambdas/common/settings.py
"""
Environment-driven settings shared by the Lambdas, the local runner and the CDK app.
"""
from functools import lru_cache
from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_FILTER_PATTERN = '{ $.level = "ERROR" || $.level = "WARN" }'


class AppSettings(BaseSettings):
    """
    Manages env vars using Pydantic BaseSettings.
    A local .env file is read automatically when present.
    """
    model_config = SettingsConfigDict(
        env_file='.env', env_file_encoding='utf-8', extra='ignore', populate_by_name=True
    )

    aws_region: str = Field("us-east-1", alias='AWS_REGION')
    notification_topic_arn: str | None = Field(None, alias='NOTIFICATION_TOPIC_ARN')
    log_group_name: str = Field("example-function-log", alias='LOG_GROUP_NAME')
    # Kept as a raw string; pydantic-settings would otherwise expect JSON for a list.
    notification_emails: str = Field("", alias='NOTIFICATION_EMAILS')
    filter_pattern: str = Field(DEFAULT_FILTER_PATTERN, alias='FILTER_PATTERN')
    workflow_timeout_seconds: float = Field(300.0, alias='WORKFLOW_TIMEOUT_SECONDS', gt=0)
    entry_error_policy: Literal["abort", "skip"] = Field("abort", alias='ENTRY_ERROR_POLICY')
    route_success_events: bool = Field(False, alias='ROUTE_SUCCESS_EVENTS')

    @property
    def notification_email_list(self) -> List[str]:
        """Safely parse the comma-separated recipient list."""
        raw = self.notification_emails.strip()
        return [email.strip() for email in raw.split(",") if email.strip()] if raw else []


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Returns the shared settings instance, built on first use."""
    return AppSettings()
