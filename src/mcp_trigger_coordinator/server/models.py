"""Pydantic models for the REST server."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from mcp_trigger_coordinator.coordinator.rule_loader import RuleSpec
from mcp_trigger_coordinator.coordinator.triggers.history import TriggerHistoryEntry
from mcp_trigger_coordinator.coordinator.triggers.rules import Notification, Priority


class ApiNotification(BaseModel):
    target_service: str
    source_id: str
    triggering_rule: str
    analysis_descriptor: dict[str, object]
    priority: Priority
    emitted_at: datetime

    @staticmethod
    def from_notification(notification: Notification) -> ApiNotification:
        return ApiNotification(
            target_service=notification.target_service,
            source_id=notification.source_id,
            triggering_rule=notification.triggering_rule,
            analysis_descriptor=dict(notification.analysis_descriptor),
            priority=notification.priority,
            emitted_at=notification.emitted_at,
        )


class RuleSetRequest(BaseModel):
    rules: list[RuleSpec] = Field(default_factory=list)


class RateLimitStatus(BaseModel):
    target_service: str
    rate_limited: bool


class ApiHistoryEntry(BaseModel):
    rule_name: str
    source_id: str
    last_fired_at: datetime | None = None
    active_analysis_in_progress: bool = False
    analysis_deadline: datetime | None = None
    recent_event_timestamps: list[datetime] = Field(default_factory=list)
    last_event_at: datetime | None = None
    step_matched_at: list[datetime | None] = Field(default_factory=list)

    @staticmethod
    def from_entry(rule_name: str, source_id: str, entry: TriggerHistoryEntry) -> ApiHistoryEntry:
        return ApiHistoryEntry(
            rule_name=rule_name,
            source_id=source_id,
            last_fired_at=entry.last_fired_at,
            active_analysis_in_progress=entry.active_analysis_in_progress,
            analysis_deadline=entry.analysis_deadline,
            recent_event_timestamps=list(entry.recent_event_timestamps),
            last_event_at=entry.last_event_at,
            step_matched_at=list(entry.step_matched_at),
        )
