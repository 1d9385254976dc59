"""Shared helpers for building timestamps and events in tests."""

from datetime import UTC, datetime, timedelta

from mcp_trigger_coordinator.coordinator.triggers.events import Event, EventKind

T0 = datetime(2025, 1, 1, 12, 0, 0, tzinfo=UTC)


def at(seconds: float) -> datetime:
    """Absolute test time `seconds` after T0."""
    return T0 + timedelta(seconds=seconds)


def event(kind: object, seconds: float, source_id: str = "pane:0", **payload: object) -> Event:
    return Event.create(kind, source_id, payload=dict(payload), timestamp=at(seconds))


def error_event(seconds: float, source_id: str = "pane:0") -> Event:
    return event(
        EventKind.ERROR_DETECTED,
        seconds,
        source_id,
        message="TypeError: x is undefined",
        language="javascript",
    )
