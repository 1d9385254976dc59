from __future__ import annotations

import json
from pathlib import Path

import pytest
from helpers import at

from mcp_trigger_coordinator.coordinator.main import main


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("TRIGGER_RULES_PATH", "TRIGGER_PROFILE", "TRIGGER_MAX_PER_MINUTE", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def _error_line(seconds: float, source_id: str = "pane:0") -> str:
    return json.dumps(
        {
            "kind": "error_detected",
            "source_id": source_id,
            "timestamp": at(seconds).isoformat(),
            "payload": {"message": "ReferenceError: foo is not defined"},
        }
    )


def test_validate_rules_lists_default_rules(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["validate-rules"]) == 0

    out = capsys.readouterr().out.splitlines()
    assert out[0] == "seq_errors\tsequential\tenabled"
    assert out[-1] == "5 rule(s) OK"


def test_validate_rules_uses_requested_profile(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    rules = tmp_path / "rules.json"
    rules.write_text(
        json.dumps(
            {
                "rules": [
                    {"name": "ui", "target_service": "testing", "event_kinds": ["ui_change"]}
                ],
                "profiles": {
                    "test": [
                        {
                            "name": "ui",
                            "target_service": "testing",
                            "event_kinds": ["ui_change"],
                            "enabled": False,
                        }
                    ]
                },
            }
        ),
        encoding="utf-8",
    )

    assert main(["validate-rules", "--rules", str(rules), "--profile", "test"]) == 0
    assert capsys.readouterr().out.splitlines() == ["ui\ttesting\tdisabled", "1 rule(s) OK"]


def test_validate_rules_reports_invalid_configuration(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    rules = tmp_path / "rules.json"
    rules.write_text('[{"name": "x", "target_service": "s"}]', encoding="utf-8")

    assert main(["validate-rules", "--rules", str(rules)]) == 2
    assert "Invalid trigger configuration" in capsys.readouterr().err


def test_validate_rules_rejects_out_of_range_durations(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    rules = tmp_path / "rules.json"
    rules.write_text(
        json.dumps(
            [
                {
                    "name": "slow",
                    "target_service": "sequential",
                    "event_kinds": ["error_detected"],
                    "debounce_seconds": 1e15,
                }
            ]
        ),
        encoding="utf-8",
    )

    assert main(["validate-rules", "--rules", str(rules)]) == 2
    assert "Invalid trigger configuration" in capsys.readouterr().err


def test_replay_prints_notifications(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    events = tmp_path / "events.jsonl"
    events.write_text(
        "\n".join(
            [
                "# repeated errors in one pane",
                _error_line(0),
                _error_line(10),
                _error_line(20),
                _error_line(25),
                json.dumps({"complete": {"rule_name": "seq_errors", "source_id": "pane:0"}}),
                _error_line(60),
                "",
            ]
        ),
        encoding="utf-8",
    )

    assert main(["replay", "--events", str(events)]) == 0

    lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert [n["triggering_rule"] for n in lines] == ["seq_errors", "seq_errors"]
    assert [n["emitted_at"] for n in lines] == [at(20).isoformat(), at(60).isoformat()]
    assert lines[0]["priority"] == "high"


def test_replay_rejects_malformed_lines(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    events = tmp_path / "events.jsonl"
    events.write_text("[1, 2, 3]\n", encoding="utf-8")

    assert main(["replay", "--events", str(events)]) == 1
    assert "expected a JSON object" in capsys.readouterr().err


def test_version_flag(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc:
        main(["--version"])

    assert exc.value.code == 0
    assert "mcp-trigger-coordinator" in capsys.readouterr().out
