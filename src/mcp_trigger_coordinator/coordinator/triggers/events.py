from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum


class EventKind(str, Enum):
    ERROR_DETECTED = "error_detected"
    MULTIPLE_ERRORS = "multiple_errors"
    PROCESS_CRASHED = "process_crashed"
    FRAMEWORK_DETECTED = "framework_detected"
    PORT_CHANGED = "port_changed"
    BUILD_COMPLETE = "build_complete"
    UI_CHANGE = "ui_change"
    DEPENDENCY_FAILURE = "dependency_failure"
    CUSTOM = "custom"

    @classmethod
    def normalize(cls, value: object) -> EventKind:
        """Map any value onto a known kind; unrecognized values become CUSTOM."""

        if isinstance(value, EventKind):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                return cls.CUSTOM
        return cls.CUSTOM


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


@dataclass(frozen=True, slots=True)
class Event:
    """A fact reported by an upstream monitor (error monitor, framework detector, ...).

    Events are consumed synchronously by the coordinator and never persisted.
    """

    kind: EventKind
    source_id: str
    timestamp: datetime
    payload: dict[str, object] = field(default_factory=dict)

    @staticmethod
    def create(
        kind: object,
        source_id: str,
        payload: dict[str, object] | None = None,
        timestamp: datetime | None = None,
    ) -> Event:
        return Event(
            kind=EventKind.normalize(kind),
            source_id=source_id,
            timestamp=ensure_utc(timestamp) if timestamp is not None else datetime.now(tz=UTC),
            payload=dict(payload or {}),
        )

    def to_json(self) -> dict[str, object]:
        return {
            "kind": self.kind.value,
            "source_id": self.source_id,
            "timestamp": self.timestamp.isoformat(),
            "payload": dict(self.payload),
        }
