"""Load trigger rules from JSON rule files.

The coordinator is agnostic to where rules come from; this module turns a rule
file (optionally with per-environment profiles) into `TriggerRule` values.
"""

from __future__ import annotations

import json
import logging
from datetime import timedelta
from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .triggers.events import EventKind
from .triggers.rules import (
    Cascade,
    CascadeStep,
    ConfigurationError,
    Priority,
    SingleEvent,
    Threshold,
    TriggerRule,
    validate_rules,
)

logger = logging.getLogger(__name__)

# Upper bound for configured durations; far larger values overflow timedelta.
MAX_DURATION_SECONDS = timedelta(days=3650).total_seconds()


class SingleConditionSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["single"] = "single"


class ThresholdConditionSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["threshold"]
    count: int = Field(..., ge=1)
    window_seconds: float = Field(..., gt=0, le=MAX_DURATION_SECONDS, allow_inf_nan=False)


StepConditionSpec = Annotated[
    SingleConditionSpec | ThresholdConditionSpec, Field(discriminator="type")
]


class CascadeStepSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    event_kinds: list[str] = Field(..., min_length=1)
    condition: StepConditionSpec = Field(default_factory=SingleConditionSpec)
    window_seconds: float = Field(
        default=300.0, gt=0, le=MAX_DURATION_SECONDS, allow_inf_nan=False
    )


class CascadeConditionSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["cascade"]
    steps: list[CascadeStepSpec] = Field(..., min_length=1)


ConditionSpec = Annotated[
    SingleConditionSpec | ThresholdConditionSpec | CascadeConditionSpec,
    Field(discriminator="type"),
]


class RuleSpec(BaseModel):
    """One rule as written in a rule file."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    target_service: str = Field(..., min_length=1)
    event_kinds: list[str] = Field(default_factory=list)
    condition: ConditionSpec = Field(default_factory=SingleConditionSpec)
    debounce_seconds: float = Field(
        default=0.0, ge=0, le=MAX_DURATION_SECONDS, allow_inf_nan=False
    )
    enabled: bool = True
    priority: Priority = Priority.MEDIUM
    analysis: str = ""
    source_scope: list[str] = Field(default_factory=list)

    def to_rule(self) -> TriggerRule:
        return TriggerRule(
            name=self.name,
            target_service=self.target_service,
            condition=_to_condition(self.condition),
            event_kinds=_kinds(self.event_kinds),
            debounce=timedelta(seconds=self.debounce_seconds),
            enabled=self.enabled,
            priority=self.priority,
            analysis=self.analysis,
            source_scope=tuple(self.source_scope),
        )

    @staticmethod
    def from_rule(rule: TriggerRule) -> RuleSpec:
        return RuleSpec(
            name=rule.name,
            target_service=rule.target_service,
            event_kinds=sorted(kind.value for kind in rule.event_kinds),
            condition=_from_condition(rule.condition),
            debounce_seconds=rule.debounce.total_seconds(),
            enabled=rule.enabled,
            priority=rule.priority,
            analysis=rule.analysis,
            source_scope=list(rule.source_scope),
        )


class RuleFile(BaseModel):
    model_config = ConfigDict(extra="forbid")

    rules: list[RuleSpec] = Field(default_factory=list)
    profiles: dict[str, list[RuleSpec]] = Field(default_factory=dict)

    def select(self, profile: str) -> list[RuleSpec]:
        if profile in self.profiles:
            return self.profiles[profile]
        return self.rules


def _kinds(values: list[str]) -> frozenset[EventKind]:
    return frozenset(EventKind.normalize(v) for v in values)


def _to_step_condition(
    spec: SingleConditionSpec | ThresholdConditionSpec,
) -> SingleEvent | Threshold:
    if isinstance(spec, ThresholdConditionSpec):
        return Threshold(count=spec.count, window=timedelta(seconds=spec.window_seconds))
    return SingleEvent()


def _to_condition(
    spec: SingleConditionSpec | ThresholdConditionSpec | CascadeConditionSpec,
) -> SingleEvent | Threshold | Cascade:
    if isinstance(spec, CascadeConditionSpec):
        return Cascade(
            steps=tuple(
                CascadeStep(
                    name=step.name,
                    event_kinds=_kinds(step.event_kinds),
                    condition=_to_step_condition(step.condition),
                    window=timedelta(seconds=step.window_seconds),
                )
                for step in spec.steps
            )
        )
    return _to_step_condition(spec)


def _from_step_condition(
    condition: SingleEvent | Threshold,
) -> SingleConditionSpec | ThresholdConditionSpec:
    if isinstance(condition, Threshold):
        return ThresholdConditionSpec(
            type="threshold",
            count=condition.count,
            window_seconds=condition.window.total_seconds(),
        )
    return SingleConditionSpec()


def _from_condition(
    condition: SingleEvent | Threshold | Cascade,
) -> SingleConditionSpec | ThresholdConditionSpec | CascadeConditionSpec:
    if isinstance(condition, Cascade):
        return CascadeConditionSpec(
            type="cascade",
            steps=[
                CascadeStepSpec(
                    name=step.name,
                    event_kinds=sorted(kind.value for kind in step.event_kinds),
                    condition=_from_step_condition(step.condition),
                    window_seconds=step.window.total_seconds(),
                )
                for step in condition.steps
            ],
        )
    return _from_step_condition(condition)


def parse_rules(data: object, *, profile: str = "default") -> list[TriggerRule]:
    """Validate a decoded rule document and build rules for `profile`.

    Accepts either a full document (`{"rules": [...], "profiles": {...}}`) or a
    bare list of rules.
    """

    try:
        if isinstance(data, list):
            specs = [RuleSpec.model_validate(item) for item in data]
        else:
            specs = RuleFile.model_validate(data).select(profile)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid rule configuration: {e}") from e

    rules = [spec.to_rule() for spec in specs]
    validate_rules(rules)
    return rules


def load_rules(path: Path, *, profile: str = "default") -> list[TriggerRule]:
    """Read a JSON rule file. Any read or validation problem is a ConfigurationError."""

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigurationError(f"Cannot read rule file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Rule file {path} is not valid JSON: {e}") from e

    rules = parse_rules(raw, profile=profile)
    logger.info(
        "Trigger rules loaded",
        extra={"path": str(path), "profile": profile, "rule_count": len(rules)},
    )
    return rules


def default_rules() -> list[TriggerRule]:
    """Built-in rules covering the usual monitor-to-service pairings."""

    return [
        TriggerRule(
            name="seq_errors",
            target_service="sequential",
            event_kinds=frozenset({EventKind.ERROR_DETECTED, EventKind.MULTIPLE_ERRORS}),
            condition=Threshold(count=3, window=timedelta(minutes=5)),
            debounce=timedelta(seconds=30),
            priority=Priority.HIGH,
            analysis="sequential_error_analysis",
        ),
        TriggerRule(
            name="crash_analysis",
            target_service="sequential",
            event_kinds=frozenset({EventKind.PROCESS_CRASHED}),
            debounce=timedelta(seconds=60),
            priority=Priority.HIGH,
            analysis="crash_root_cause",
        ),
        TriggerRule(
            name="framework_docs",
            target_service="documentation",
            event_kinds=frozenset({EventKind.FRAMEWORK_DETECTED}),
            debounce=timedelta(hours=1),
            priority=Priority.LOW,
            analysis="framework_documentation_lookup",
        ),
        TriggerRule(
            name="ui_regression",
            target_service="testing",
            event_kinds=frozenset({EventKind.UI_CHANGE}),
            debounce=timedelta(seconds=120),
            priority=Priority.MEDIUM,
            analysis="visual_regression_check",
        ),
        TriggerRule(
            name="dependency_build_cascade",
            target_service="sequential",
            condition=Cascade(
                steps=(
                    CascadeStep(
                        name="dependency_failure",
                        event_kinds=frozenset({EventKind.DEPENDENCY_FAILURE}),
                        window=timedelta(minutes=10),
                    ),
                    CascadeStep(
                        name="build_complete",
                        event_kinds=frozenset({EventKind.BUILD_COMPLETE}),
                        window=timedelta(minutes=10),
                    ),
                )
            ),
            debounce=timedelta(minutes=5),
            priority=Priority.MEDIUM,
            analysis="dependency_build_review",
        ),
    ]


def rules_from_settings(rules_path: Path | None, profile: str) -> list[TriggerRule]:
    if rules_path is None:
        return default_rules()
    return load_rules(rules_path, profile=profile)
