#!/usr/bin/env python3
"""Programmatic coordinator example.

This demonstrates using the coordinator components directly:

* load settings (and rules) from `.env` / `TRIGGER_RULES_PATH`
* route notifications to per-service sinks
* report repeated errors from one pane and complete the resulting analysis

The error count is passed as an argument.
"""

from __future__ import annotations

import argparse
from datetime import UTC, datetime, timedelta
from typing import Sequence

from mcp_trigger_coordinator.coordinator.config import CoordinatorSettings
from mcp_trigger_coordinator.coordinator.dispatch import (
    LoggingSink,
    NotificationDispatcher,
    RecordingSink,
)
from mcp_trigger_coordinator.coordinator.factory import build_coordinator
from mcp_trigger_coordinator.coordinator.logging import configure_logging
from mcp_trigger_coordinator.coordinator.triggers.events import Event, EventKind


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Feed sample events through the coordinator.")
    parser.add_argument("--source", default="pane:0", help='Event source, e.g. "pane:0"')
    parser.add_argument("--errors", type=int, default=4, help="Number of errors to report")
    parser.add_argument(
        "--spacing",
        type=float,
        default=10.0,
        help="Seconds between consecutive errors",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = CoordinatorSettings()
    configure_logging(settings.log_level)

    sequential = RecordingSink()
    start = datetime.now(tz=UTC)

    with build_coordinator(settings) as coordinator:
        dispatcher = NotificationDispatcher(
            coordinator,
            sinks={"sequential": sequential},
            default_sink=LoggingSink(),
        )

        for i in range(args.errors):
            event = Event.create(
                EventKind.ERROR_DETECTED,
                args.source,
                payload={"message": f"TypeError #{i}"},
                timestamp=start + timedelta(seconds=i * args.spacing),
            )
            result = dispatcher.submit(event)
            for notification in result.delivered:
                print(f"{notification.triggering_rule} -> {notification.target_service}")

        for notification in sequential.delivered:
            dispatcher.complete(notification.triggering_rule, notification.source_id)

    print(f"Sequential analyses requested: {len(sequential.delivered)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
