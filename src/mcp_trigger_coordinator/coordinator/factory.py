from __future__ import annotations

from .config import CoordinatorSettings
from .rule_loader import rules_from_settings
from .triggers.coordinator import TriggerCoordinator
from .triggers.rules import TriggerRule
from .triggers.scheduler import Scheduler


def build_coordinator(
    settings: CoordinatorSettings,
    *,
    rules: list[TriggerRule] | None = None,
    scheduler: Scheduler | None = None,
) -> TriggerCoordinator:
    """Create a coordinator from settings, loading rules unless given explicitly."""

    if rules is None:
        rules = rules_from_settings(settings.rules_path, settings.profile)
    return TriggerCoordinator(
        rules,
        max_triggers_per_minute=settings.max_triggers_per_minute,
        rate_bucket_seconds=settings.rate_bucket_seconds,
        rate_history_buckets=settings.rate_history_buckets,
        analysis_timeout=settings.analysis_timeout,
        history_idle_ttl=settings.history_idle_ttl,
        scheduler=scheduler,
    )
