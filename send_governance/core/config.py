"""
Configuration for the send governance service.

Settings are read once from the environment (or a .env file) through
pydantic-settings and cached by get_settings(). They cover:
- Pool sizing and the storage timeout and retry budget
- Daily quota defaults and bounds for campaigns and workspaces
- The fixed service timezone that defines "today" for every quota counter
- Named flag for the suppression lookup failure policy

Environment Variables:
- DATABASE_URL: PostgreSQL connection string (Required)
- SERVICE_TIMEZONE: IANA timezone defining the service day (default: UTC)
- SUPPRESSION_FAIL_OPEN: Treat suppression lookup errors as "not suppressed"
- SLACK_WEBHOOK_URL: Slack webhook for experiment sweep notifications (Optional)

Usage:
    from send_governance.core.config import get_settings

    settings = get_settings()
    timezone = settings.service_timezone
    default_limit = settings.campaign_daily_limit_default
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Environment-backed settings. Variable names are case-insensitive and
    unknown variables are ignored.

    Attributes:
        database_url: PostgreSQL connection string. Required.
        service_timezone: Timezone whose calendar date is the service day.
        campaign_daily_limit_default: Daily limit for campaigns without a counter row.
        campaign_daily_limit_min: Lowest accepted campaign daily limit.
        campaign_daily_limit_max: Highest accepted campaign daily limit.
        workspace_daily_limit_default: Daily limit for workspaces without a counter row.
        workspace_daily_limit_min: Lowest accepted workspace daily limit.
        workspace_daily_limit_max: Highest accepted workspace daily limit.
        suppression_fail_open: Whether suppression lookup errors allow the send.
        storage_timeout_seconds: Per-statement timeout for the asyncpg pool.
        storage_retry_attempts: Retries after the first attempt on transient errors.
        storage_retry_wait_seconds: Base wait between retries.
        experiment_min_sample_size_default: Default minimum sample size.
        experiment_confidence_level_default: Default target confidence level.
        slack_webhook_url: Slack incoming webhook for experiment sweep summaries.
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore',
        case_sensitive=False,
    )

    # =========================================================================
    # Required Environment Variables
    # =========================================================================

    # asyncpg DSN, e.g. postgresql://governance:secret@db:5432/governance
    database_url: str

    # =========================================================================
    # Database Pool
    # =========================================================================

    db_pool_min_size: int = 2
    db_pool_max_size: int = 10

    storage_timeout_seconds: float = 0.3
    storage_retry_attempts: int = 1
    storage_retry_wait_seconds: float = 0.05

    # =========================================================================
    # Service Day
    # =========================================================================

    # Every counter compares last_reset_date against the calendar date in this
    # timezone. Workers must never use their own wall clock.
    service_timezone: str = 'UTC'

    # =========================================================================
    # Daily Send Quotas
    # =========================================================================

    campaign_daily_limit_default: int = 50
    campaign_daily_limit_min: int = 1
    campaign_daily_limit_max: int = 500

    workspace_daily_limit_default: int = 200
    workspace_daily_limit_min: int = 1
    workspace_daily_limit_max: int = 2000

    # =========================================================================
    # Failure Policy
    # =========================================================================

    # True keeps sending when the suppression registry cannot be read.
    # Quota lookups always fail closed regardless of this flag.
    suppression_fail_open: bool = True

    # =========================================================================
    # Experiments
    # =========================================================================

    experiment_min_sample_size_default: int = 100
    experiment_confidence_level_default: int = 95

    # =========================================================================
    # Slack (experiment sweep summaries)
    # =========================================================================

    slack_webhook_url: Optional[str] = None

    # =========================================================================
    # Application
    # =========================================================================

    log_level: str = 'INFO'

    # Run the idempotent DDL in send_governance.sql.schema_queries at startup
    apply_schema_on_startup: bool = False


@lru_cache()
def get_settings() -> Settings:
    """
    Cached Settings instance.

    Raises pydantic.ValidationError when DATABASE_URL is missing. Tests that
    change the environment call get_settings.cache_clear() first.
    """
    return Settings()
