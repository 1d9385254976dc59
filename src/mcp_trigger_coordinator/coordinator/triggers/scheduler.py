from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol


class ScheduledCall(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Runs a callback once after a delay. Returned handles must be cancellable."""

    def schedule(self, delay_seconds: float, callback: Callable[[], None]) -> ScheduledCall: ...


class ThreadingScheduler:
    """Default scheduler backed by daemon `threading.Timer` threads."""

    def schedule(self, delay_seconds: float, callback: Callable[[], None]) -> ScheduledCall:
        timer = threading.Timer(max(delay_seconds, 0.0), callback)
        timer.daemon = True
        timer.name = "trigger-analysis-timeout"
        timer.start()
        return timer


@dataclass
class ManualCall:
    delay_seconds: float
    callback: Callable[[], None]
    cancelled: bool = False
    fired: bool = False

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        if self.cancelled or self.fired:
            return
        self.fired = True
        self.callback()


@dataclass
class ManualScheduler:
    """Scheduler that only runs callbacks when told to. Used by replay and tests."""

    calls: list[ManualCall] = field(default_factory=list)

    def schedule(self, delay_seconds: float, callback: Callable[[], None]) -> ManualCall:
        call = ManualCall(delay_seconds=delay_seconds, callback=callback)
        self.calls.append(call)
        return call

    @property
    def pending(self) -> list[ManualCall]:
        return [c for c in self.calls if not c.cancelled and not c.fired]

    def fire_all(self) -> int:
        due = self.pending
        for call in due:
            call.fire()
        return len(due)
