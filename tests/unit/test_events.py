from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from mcp_trigger_coordinator.coordinator.records import EventRecord
from mcp_trigger_coordinator.coordinator.triggers.events import Event, EventKind


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("error_detected", EventKind.ERROR_DETECTED),
        ("  PROCESS_CRASHED ", EventKind.PROCESS_CRASHED),
        (EventKind.UI_CHANGE, EventKind.UI_CHANGE),
        ("lint_warning", EventKind.CUSTOM),
        (42, EventKind.CUSTOM),
    ],
)
def test_normalize_kind(raw: object, expected: EventKind) -> None:
    assert EventKind.normalize(raw) is expected


def test_create_treats_naive_timestamps_as_utc() -> None:
    event = Event.create("build_complete", "pane:1", timestamp=datetime(2025, 1, 1, 8, 0))

    assert event.timestamp == datetime(2025, 1, 1, 8, 0, tzinfo=UTC)


def test_create_converts_offsets_to_utc() -> None:
    plus_two = timezone(timedelta(hours=2))
    local = datetime(2025, 1, 1, 10, 0, tzinfo=plus_two)
    event = Event.create("build_complete", "pane:1", timestamp=local)

    assert event.timestamp.tzinfo is UTC
    assert event.timestamp.hour == 8


def test_create_defaults_timestamp_to_now() -> None:
    before = datetime.now(tz=UTC)
    event = Event.create(EventKind.PORT_CHANGED, "proc:7", payload={"port": 3000})
    after = datetime.now(tz=UTC)

    assert before <= event.timestamp <= after
    assert event.to_json()["payload"] == {"port": 3000}


def test_event_record_to_event() -> None:
    record = EventRecord.model_validate(
        {
            "kind": "framework_detected",
            "source_id": "pane:2",
            "timestamp": "2025-01-01T12:00:00Z",
            "payload": {"framework": "next"},
        }
    )

    event = record.to_event()

    assert event.kind is EventKind.FRAMEWORK_DETECTED
    assert event.timestamp == datetime(2025, 1, 1, 12, 0, tzinfo=UTC)
    assert event.payload == {"framework": "next"}
