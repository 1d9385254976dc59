"""Trigger coordination domain.

This package holds first-class types for:
- Events reported by upstream monitors
- Trigger rules and their conditions (single, threshold, cascade)
- Per-(rule, source) trigger history
- The coordinator that turns events into notifications for downstream services
"""

from .coordinator import TriggerCoordinator
from .events import Event, EventKind
from .history import HistoryKey, TriggerHistoryEntry
from .rules import (
    Cascade,
    CascadeStep,
    ConfigurationError,
    Notification,
    Priority,
    SingleEvent,
    Threshold,
    TriggerRule,
)

__all__ = [
    "Cascade",
    "CascadeStep",
    "ConfigurationError",
    "Event",
    "EventKind",
    "HistoryKey",
    "Notification",
    "Priority",
    "SingleEvent",
    "Threshold",
    "TriggerCoordinator",
    "TriggerHistoryEntry",
    "TriggerRule",
]
