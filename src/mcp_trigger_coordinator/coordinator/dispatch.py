"""Deliver coordinator notifications to downstream services.

The coordinator never retries or delivers anything itself. The dispatcher runs
an event through it and hands each notification to the sink registered for its
target service. A failing sink is logged and reported; it never affects other
deliveries or the coordinator's state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

from .triggers.coordinator import TriggerCoordinator
from .triggers.events import Event
from .triggers.rules import Notification

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    """A downstream service endpoint.

    Sinks are expected to call `complete_analysis` (directly or via the
    dispatcher) once their work for a notification is done.
    """

    def deliver(self, notification: Notification) -> None: ...


class LoggingSink:
    """Write each notification as a structured log record."""

    def __init__(self, level: int = logging.INFO) -> None:
        self._level = level

    def deliver(self, notification: Notification) -> None:
        logger.log(self._level, "Notification", extra={"notification": notification.to_json()})


@dataclass
class RecordingSink:
    """Keep notifications in memory."""

    delivered: list[Notification] = field(default_factory=list)

    def deliver(self, notification: Notification) -> None:
        self.delivered.append(notification)


@dataclass(frozen=True, slots=True)
class DeliveryFailure:
    notification: Notification
    error: str


@dataclass
class DispatchResult:
    delivered: list[Notification] = field(default_factory=list)
    undeliverable: list[Notification] = field(default_factory=list)
    failures: list[DeliveryFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.undeliverable and not self.failures


class NotificationDispatcher:
    def __init__(
        self,
        coordinator: TriggerCoordinator,
        sinks: dict[str, NotificationSink] | None = None,
        default_sink: NotificationSink | None = None,
    ) -> None:
        self.coordinator = coordinator
        self._sinks: dict[str, NotificationSink] = dict(sinks or {})
        self._default_sink = default_sink

    def register(self, target_service: str, sink: NotificationSink) -> None:
        self._sinks[target_service] = sink

    def submit(self, event: Event) -> DispatchResult:
        result = DispatchResult()
        for notification in self.coordinator.submit_event(event):
            sink = self._sinks.get(notification.target_service, self._default_sink)
            if sink is None:
                logger.warning(
                    "No sink registered for target service",
                    extra={
                        "target_service": notification.target_service,
                        "rule_name": notification.triggering_rule,
                    },
                )
                result.undeliverable.append(notification)
                continue
            try:
                sink.deliver(notification)
            except Exception as e:
                logger.exception(
                    "Notification delivery failed",
                    extra={
                        "target_service": notification.target_service,
                        "rule_name": notification.triggering_rule,
                        "source_id": notification.source_id,
                    },
                )
                result.failures.append(DeliveryFailure(notification=notification, error=str(e)))
                continue
            result.delivered.append(notification)
        return result

    def complete(self, rule_name: str, source_id: str) -> None:
        self.coordinator.complete_analysis(rule_name, source_id)
