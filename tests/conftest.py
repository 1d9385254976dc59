"""Test configuration and fixtures."""

import logging
from collections.abc import Callable, Iterator
from datetime import timedelta

import pytest
from helpers import T0

from mcp_trigger_coordinator.coordinator.logging import JsonFormatter
from mcp_trigger_coordinator.coordinator.triggers.coordinator import TriggerCoordinator
from mcp_trigger_coordinator.coordinator.triggers.events import EventKind
from mcp_trigger_coordinator.coordinator.triggers.rules import (
    Priority,
    Threshold,
    TriggerRule,
)
from mcp_trigger_coordinator.coordinator.triggers.scheduler import ManualScheduler


@pytest.fixture(autouse=True)
def _drop_json_log_handlers() -> Iterator[None]:
    """Remove handlers installed by `configure_logging` once a test is done."""
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler.formatter, JsonFormatter):
            root.removeHandler(handler)


@pytest.fixture
def scheduler() -> ManualScheduler:
    """Provide a scheduler that never fires on its own."""
    return ManualScheduler()


@pytest.fixture
def seq_errors_rule() -> TriggerRule:
    """Provide the canonical repeated-errors rule."""
    return TriggerRule(
        name="seq_errors",
        target_service="sequential",
        event_kinds=frozenset({EventKind.ERROR_DETECTED}),
        condition=Threshold(count=3, window=timedelta(seconds=300)),
        debounce=timedelta(seconds=30),
        priority=Priority.HIGH,
    )


@pytest.fixture
def make_coordinator(scheduler: ManualScheduler) -> Iterator[Callable[..., TriggerCoordinator]]:
    """Build coordinators wired to the manual scheduler and a fixed clock."""
    created: list[TriggerCoordinator] = []

    def _make(rules: list[TriggerRule], **kwargs: object) -> TriggerCoordinator:
        kwargs.setdefault("scheduler", scheduler)
        kwargs.setdefault("clock", lambda: T0)
        coordinator = TriggerCoordinator(rules, **kwargs)  # type: ignore[arg-type]
        created.append(coordinator)
        return coordinator

    yield _make

    for coordinator in created:
        coordinator.close()
