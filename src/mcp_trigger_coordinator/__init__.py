"""MCP Trigger Coordinator.

Event-driven coordination for MCP tool orchestration:
- events from independent monitors (errors, crashes, framework detection, ...)
- configurable trigger rules with debounce, deduplication and rate limiting
- notifications for downstream analysis, documentation and testing services
"""

__version__ = "0.1.0"

from mcp_trigger_coordinator.coordinator.config import CoordinatorSettings
from mcp_trigger_coordinator.coordinator.triggers import (
    ConfigurationError,
    Event,
    EventKind,
    Notification,
    TriggerCoordinator,
    TriggerRule,
)

__all__ = [
    "__version__",
    "ConfigurationError",
    "CoordinatorSettings",
    "Event",
    "EventKind",
    "Notification",
    "TriggerCoordinator",
    "TriggerRule",
]
