from __future__ import annotations

import bisect
import copy
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import NamedTuple


class HistoryKey(NamedTuple):
    rule_name: str
    source_id: str


@dataclass
class TriggerHistoryEntry:
    """Coordinator-owned bookkeeping for one (rule, source) pair.

    `recent_event_timestamps` is kept pruned to the rule's window. Cascade rules
    track per-step progress in `step_matched_at` / `step_event_timestamps`.
    """

    last_fired_at: datetime | None = None
    active_analysis_in_progress: bool = False
    analysis_deadline: datetime | None = None
    recent_event_timestamps: list[datetime] = field(default_factory=list)
    last_event_at: datetime | None = None
    step_matched_at: list[datetime | None] = field(default_factory=list)
    step_event_timestamps: list[list[datetime]] = field(default_factory=list)
    generation: int = 0
    fingerprint: object = None

    def record_event(self, at: datetime, window: timedelta) -> int:
        return record(self.recent_event_timestamps, at, window)

    def reset_condition_state(self, steps: int = 0) -> None:
        self.recent_event_timestamps.clear()
        self.step_matched_at = [None] * steps
        self.step_event_timestamps = [[] for _ in range(steps)]

    def release(self) -> None:
        self.active_analysis_in_progress = False
        self.analysis_deadline = None

    def snapshot(self) -> TriggerHistoryEntry:
        return copy.deepcopy(self)


def insert(timestamps: list[datetime], at: datetime) -> None:
    # Late events are slotted in order so pruning can work from the front.
    bisect.insort(timestamps, at)


def record(timestamps: list[datetime], at: datetime, window: timedelta) -> int:
    """Add `at` and return how many timestamps share a window with the newest one.

    A late event is measured against the newest timestamp, so events further
    ahead than `window` are never counted together with it.
    """

    insert(timestamps, at)
    prune(timestamps, timestamps[-1], window)
    return len(timestamps)


def prune(timestamps: list[datetime], now: datetime, window: timedelta) -> None:
    """Drop timestamps older than `window` relative to `now` (inclusive boundary)."""

    try:
        oldest = now - window
    except OverflowError:
        # The window reaches back past datetime.min; nothing can be older.
        return
    del timestamps[: bisect.bisect_left(timestamps, oldest)]
