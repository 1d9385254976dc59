"""Configuration for the trigger coordinator.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

Trigger rules themselves live in a JSON rule file (see `rule_loader`); this
module only carries the knobs the coordinator and its collaborators need.
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CoordinatorSettings(BaseSettings):
    """Settings for the trigger coordinator.

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `CoordinatorSettings(_env_file=path_to_env)`.
    """

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    rules_path: Path | None = Field(
        default=None,
        validation_alias="TRIGGER_RULES_PATH",
        description="JSON rule file. Built-in default rules are used when unset.",
    )
    profile: str = Field(
        default="default",
        validation_alias="TRIGGER_PROFILE",
        description=(
            "Rule profile to select from the rule file (e.g. development, test, production). "
            "Falls back to the file's top-level rules when the profile is not defined."
        ),
    )

    max_triggers_per_minute: int = Field(
        default=10,
        validation_alias="TRIGGER_MAX_PER_MINUTE",
        description="Maximum notifications per target service per rate-limit bucket.",
        ge=1,
    )
    rate_bucket_seconds: float = Field(
        default=60.0,
        validation_alias="TRIGGER_RATE_BUCKET_SECONDS",
        gt=0,
    )
    rate_history_buckets: int = Field(
        default=5,
        validation_alias="TRIGGER_RATE_HISTORY_BUCKETS",
        description="Trailing rate-limit buckets kept in memory.",
        ge=1,
    )
    analysis_timeout_seconds: float = Field(
        default=300.0,
        validation_alias="TRIGGER_ANALYSIS_TIMEOUT_SECONDS",
        description="Seconds after which an outstanding analysis is released automatically.",
        gt=0,
    )
    history_idle_seconds: float = Field(
        default=3600.0,
        validation_alias="TRIGGER_HISTORY_IDLE_SECONDS",
        description="Idle period after which per-source trigger history is discarded.",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @property
    def analysis_timeout(self) -> timedelta:
        return timedelta(seconds=self.analysis_timeout_seconds)

    @property
    def history_idle_ttl(self) -> timedelta:
        return timedelta(seconds=self.history_idle_seconds)
