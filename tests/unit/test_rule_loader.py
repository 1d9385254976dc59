"""Unit tests for rule file loading."""

from __future__ import annotations

import json
from datetime import timedelta
from pathlib import Path

import pytest

from mcp_trigger_coordinator.coordinator.rule_loader import (
    RuleSpec,
    default_rules,
    load_rules,
    parse_rules,
    rules_from_settings,
)
from mcp_trigger_coordinator.coordinator.triggers.events import EventKind
from mcp_trigger_coordinator.coordinator.triggers.rules import (
    Cascade,
    ConfigurationError,
    Priority,
    SingleEvent,
    Threshold,
)


def _write_json(path: Path, data: object) -> Path:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


_SEQ_ERRORS = {
    "name": "seq_errors",
    "target_service": "sequential",
    "event_kinds": ["error_detected"],
    "condition": {"type": "threshold", "count": 3, "window_seconds": 300},
    "debounce_seconds": 30,
    "priority": "high",
}


def test_load_rules_from_file(tmp_path: Path) -> None:
    path = _write_json(tmp_path / "rules.json", {"rules": [_SEQ_ERRORS]})

    [rule] = load_rules(path)

    assert rule.name == "seq_errors"
    assert rule.event_kinds == frozenset({EventKind.ERROR_DETECTED})
    assert rule.condition == Threshold(count=3, window=timedelta(seconds=300))
    assert rule.debounce == timedelta(seconds=30)
    assert rule.priority == Priority.HIGH
    assert rule.enabled is True


def test_profile_selection_falls_back_to_top_level_rules(tmp_path: Path) -> None:
    quiet = {**_SEQ_ERRORS, "enabled": False}
    path = _write_json(
        tmp_path / "rules.json",
        {"rules": [_SEQ_ERRORS], "profiles": {"test": [quiet]}},
    )

    assert load_rules(path, profile="test")[0].enabled is False
    assert load_rules(path, profile="production")[0].enabled is True


def test_bare_list_document_is_accepted() -> None:
    rules = parse_rules([{"name": "ui", "target_service": "testing", "event_kinds": ["ui_change"]}])

    assert rules[0].condition == SingleEvent()
    assert rules[0].priority == Priority.MEDIUM


def test_cascade_rule_is_parsed() -> None:
    [rule] = parse_rules(
        [
            {
                "name": "dep_then_build",
                "target_service": "sequential",
                "condition": {
                    "type": "cascade",
                    "steps": [
                        {"name": "dep", "event_kinds": ["dependency_failure"]},
                        {
                            "name": "errors",
                            "event_kinds": ["error_detected"],
                            "condition": {"type": "threshold", "count": 2, "window_seconds": 60},
                        },
                    ],
                },
            }
        ]
    )

    assert isinstance(rule.condition, Cascade)
    first, second = rule.condition.steps
    assert first.window == timedelta(minutes=5)
    assert second.condition == Threshold(count=2, window=timedelta(seconds=60))
    assert rule.listens_to == frozenset({EventKind.DEPENDENCY_FAILURE, EventKind.ERROR_DETECTED})


def test_unknown_event_kind_maps_to_custom() -> None:
    [rule] = parse_rules(
        [{"name": "lint", "target_service": "linting", "event_kinds": ["lint_warning"]}]
    )
    assert rule.event_kinds == frozenset({EventKind.CUSTOM})


@pytest.mark.parametrize(
    "document",
    [
        [_SEQ_ERRORS, _SEQ_ERRORS],
        [{**_SEQ_ERRORS, "condition": {"type": "threshold", "count": 0, "window_seconds": 60}}],
        [{**_SEQ_ERRORS, "debounce_seconds": -5}],
        [{**_SEQ_ERRORS, "unexpected": True}],
        [{**_SEQ_ERRORS, "condition": {"type": "sometimes"}}],
        [{"name": "no_kinds", "target_service": "sequential"}],
        [{**_SEQ_ERRORS, "condition": {"type": "threshold", "count": 2, "window_seconds": 1e15}}],
        [
            {
                **_SEQ_ERRORS,
                "condition": {"type": "threshold", "count": 2, "window_seconds": float("inf")},
            }
        ],
        [{**_SEQ_ERRORS, "debounce_seconds": 1e15}],
        [{**_SEQ_ERRORS, "debounce_seconds": float("nan")}],
        [
            {
                "name": "long_cascade",
                "target_service": "sequential",
                "condition": {
                    "type": "cascade",
                    "steps": [
                        {
                            "name": "dep",
                            "event_kinds": ["dependency_failure"],
                            "window_seconds": float("inf"),
                        }
                    ],
                },
            }
        ],
    ],
)
def test_invalid_documents_raise_configuration_error(document: object) -> None:
    with pytest.raises(ConfigurationError):
        parse_rules(document)


def test_invalid_json_raises_configuration_error(tmp_path: Path) -> None:
    path = tmp_path / "rules.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="not valid JSON"):
        load_rules(path)


def test_missing_file_raises_configuration_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="Cannot read"):
        load_rules(tmp_path / "absent.json")


def test_default_rules_are_valid_and_used_without_a_path() -> None:
    rules = rules_from_settings(None, "default")

    assert [r.name for r in rules] == [r.name for r in default_rules()]
    parse_rules([RuleSpec.from_rule(r).model_dump(mode="json") for r in rules])


def test_rule_spec_from_rule_keeps_condition() -> None:
    seq = default_rules()[0]

    spec = RuleSpec.from_rule(seq)

    assert spec.condition.type == "threshold"
    assert spec.to_rule() == seq
