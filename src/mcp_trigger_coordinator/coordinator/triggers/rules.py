from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from .events import EventKind

DEFAULT_STEP_WINDOW = timedelta(minutes=5)


class ConfigurationError(ValueError):
    """Raised when a rule set is rejected. The previously active rules stay in effect."""


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True, slots=True)
class SingleEvent:
    """Matches on every event the rule listens to."""


@dataclass(frozen=True, slots=True)
class Threshold:
    """Matches once `count` events fall inside a sliding `window`."""

    count: int
    window: timedelta


@dataclass(frozen=True, slots=True)
class CascadeStep:
    name: str
    event_kinds: frozenset[EventKind]
    condition: SingleEvent | Threshold = field(default_factory=SingleEvent)
    window: timedelta = DEFAULT_STEP_WINDOW

    @property
    def effective_window(self) -> timedelta:
        if isinstance(self.condition, Threshold):
            return self.condition.window
        return self.window


@dataclass(frozen=True, slots=True)
class Cascade:
    """Ordered steps; fires only after every step matched in order."""

    steps: tuple[CascadeStep, ...]


Condition = SingleEvent | Threshold | Cascade


@dataclass(frozen=True, slots=True)
class TriggerRule:
    """A named policy mapping an event pattern to a downstream service."""

    name: str
    target_service: str
    condition: Condition = field(default_factory=SingleEvent)
    event_kinds: frozenset[EventKind] = frozenset()
    debounce: timedelta = timedelta(0)
    enabled: bool = True
    priority: Priority = Priority.MEDIUM
    analysis: str = ""
    source_scope: tuple[str, ...] = ()

    @property
    def listens_to(self) -> frozenset[EventKind]:
        if self.event_kinds:
            return self.event_kinds
        if isinstance(self.condition, Cascade):
            kinds: set[EventKind] = set()
            for step in self.condition.steps:
                kinds.update(step.event_kinds)
            return frozenset(kinds)
        return frozenset()

    @property
    def longest_window(self) -> timedelta:
        if isinstance(self.condition, Threshold):
            return self.condition.window
        if isinstance(self.condition, Cascade):
            return max(
                (step.effective_window for step in self.condition.steps),
                default=timedelta(0),
            )
        return timedelta(0)


@dataclass(frozen=True, slots=True)
class Notification:
    """Instruction for a downstream service. Emitted once, never retried here."""

    target_service: str
    source_id: str
    triggering_rule: str
    analysis_descriptor: dict[str, object]
    priority: Priority
    emitted_at: datetime

    def to_json(self) -> dict[str, object]:
        return {
            "target_service": self.target_service,
            "source_id": self.source_id,
            "triggering_rule": self.triggering_rule,
            "analysis_descriptor": dict(self.analysis_descriptor),
            "priority": self.priority.value,
            "emitted_at": self.emitted_at.isoformat(),
        }


def _validate_threshold(owner: str, threshold: Threshold) -> None:
    if threshold.count <= 0:
        raise ConfigurationError(f"{owner}: threshold count must be positive")
    if threshold.window <= timedelta(0):
        raise ConfigurationError(f"{owner}: threshold window must be positive")


def validate_rules(rules: list[TriggerRule]) -> None:
    """Check a complete rule set; raise ConfigurationError on the first problem."""

    seen: set[str] = set()
    for rule in rules:
        if not rule.name.strip():
            raise ConfigurationError("Rule name must not be empty")
        if rule.name in seen:
            raise ConfigurationError(f"Duplicate rule name: {rule.name}")
        seen.add(rule.name)

        if not rule.target_service.strip():
            raise ConfigurationError(f"{rule.name}: target service must not be empty")
        if rule.debounce < timedelta(0):
            raise ConfigurationError(f"{rule.name}: debounce must not be negative")

        condition = rule.condition
        if not isinstance(condition, Cascade) and not rule.event_kinds:
            raise ConfigurationError(f"{rule.name}: at least one event kind is required")
        if isinstance(condition, Threshold):
            _validate_threshold(rule.name, condition)
        elif isinstance(condition, Cascade):
            if not condition.steps:
                raise ConfigurationError(f"{rule.name}: cascade needs at least one step")
            for step in condition.steps:
                owner = f"{rule.name}/{step.name}"
                if not step.event_kinds:
                    raise ConfigurationError(f"{owner}: cascade step needs event kinds")
                if isinstance(step.condition, Threshold):
                    _validate_threshold(owner, step.condition)
                elif step.window <= timedelta(0):
                    raise ConfigurationError(f"{owner}: step window must be positive")
