"""CLI entrypoint for the trigger coordinator.

Commands:
- validate-rules: load a rule file (or the built-in defaults) and list the rules
- replay: feed recorded events through a coordinator and print notifications
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Iterator
from pathlib import Path

from pydantic import ValidationError

from mcp_trigger_coordinator import __version__
from mcp_trigger_coordinator.coordinator.config import CoordinatorSettings
from mcp_trigger_coordinator.coordinator.dispatch import NotificationDispatcher, RecordingSink
from mcp_trigger_coordinator.coordinator.factory import build_coordinator
from mcp_trigger_coordinator.coordinator.logging import configure_logging
from mcp_trigger_coordinator.coordinator.records import CompletionRecord, EventRecord
from mcp_trigger_coordinator.coordinator.rule_loader import rules_from_settings
from mcp_trigger_coordinator.coordinator.triggers.rules import ConfigurationError
from mcp_trigger_coordinator.coordinator.triggers.scheduler import ManualScheduler

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trigger-coordinator",
        description="Event-driven trigger coordination for MCP tool orchestration",
    )
    parser.add_argument(
        "--version", action="version", version=f"mcp-trigger-coordinator {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    validate = subparsers.add_parser(
        "validate-rules", help="Load and validate trigger rules, then list them"
    )
    _add_rule_arguments(validate)

    replay = subparsers.add_parser(
        "replay",
        help="Replay recorded events (JSON lines) and print the resulting notifications",
    )
    replay.add_argument(
        "--events",
        required=True,
        help=(
            "JSON-lines file. Each line is an event "
            '({"kind", "source_id", "timestamp", "payload"}) or a completion '
            '({"complete": {"rule_name", "source_id"}})'
        ),
    )
    _add_rule_arguments(replay)

    return parser


def _add_rule_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--rules",
        default=None,
        help="JSON rule file (defaults to TRIGGER_RULES_PATH, then the built-in rules)",
    )
    parser.add_argument(
        "--profile",
        default=None,
        help="Rule profile to select (defaults to TRIGGER_PROFILE)",
    )


def _iter_lines(path: Path) -> Iterator[tuple[int, dict[str, object]]]:
    with path.open(encoding="utf-8") as fh:
        for lineno, line in enumerate(fh, start=1):
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            obj = json.loads(stripped)
            if not isinstance(obj, dict):
                raise ValueError(f"line {lineno}: expected a JSON object")
            yield lineno, obj


def _replay(settings: CoordinatorSettings, events_path: Path) -> int:
    sink = RecordingSink()
    # Releases happen lazily from event timestamps so replays are deterministic.
    coordinator = build_coordinator(settings, scheduler=ManualScheduler())
    dispatcher = NotificationDispatcher(coordinator, default_sink=sink)

    with coordinator:
        for lineno, obj in _iter_lines(events_path):
            if "complete" in obj:
                done = CompletionRecord.model_validate(obj["complete"])
                dispatcher.complete(done.rule_name, done.source_id)
                continue
            record = EventRecord.model_validate(obj)
            result = dispatcher.submit(record.to_event())
            for notification in result.delivered:
                print(json.dumps(notification.to_json(), ensure_ascii=False))
            logger.debug(
                "Replayed event",
                extra={"line": lineno, "notifications": len(result.delivered)},
            )

    logger.info("Replay finished", extra={"notifications": len(sink.delivered)})
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = CoordinatorSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    if args.rules is not None:
        settings.rules_path = Path(args.rules)
    if args.profile is not None:
        settings.profile = args.profile

    configure_logging(settings.log_level)

    try:
        if args.command == "validate-rules":
            rules = rules_from_settings(settings.rules_path, settings.profile)
            for rule in rules:
                state = "enabled" if rule.enabled else "disabled"
                print(f"{rule.name}\t{rule.target_service}\t{state}")
            print(f"{len(rules)} rule(s) OK")
            return 0

        if args.command == "replay":
            return _replay(settings, Path(args.events))

    except ConfigurationError as e:
        print(f"Invalid trigger configuration: {e}", file=sys.stderr)
        return 2
    except (OSError, ValueError, ValidationError) as e:
        print(f"Replay failed: {e}", file=sys.stderr)
        return 1

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
