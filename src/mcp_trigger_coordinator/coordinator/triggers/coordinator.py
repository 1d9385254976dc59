"""Event intake and trigger evaluation.

The coordinator owns the rule set and all per-(rule, source) history. Every
public operation runs under a single lock, so the gate check and the state
update that follows it are atomic with respect to other submissions.
"""

from __future__ import annotations

import fnmatch
import logging
import threading
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta

from .events import Event, EventKind, ensure_utc
from .history import HistoryKey, TriggerHistoryEntry, record
from .rate_limit import RateLimiter
from .rules import (
    Cascade,
    Notification,
    SingleEvent,
    Threshold,
    TriggerRule,
    validate_rules,
)
from .scheduler import ScheduledCall, Scheduler, ThreadingScheduler

logger = logging.getLogger(__name__)

DEFAULT_ANALYSIS_TIMEOUT = timedelta(minutes=5)
DEFAULT_HISTORY_IDLE_TTL = timedelta(hours=1)

_DEFAULT_ANALYSIS: dict[EventKind, str] = {
    EventKind.ERROR_DETECTED: "error_analysis",
    EventKind.MULTIPLE_ERRORS: "error_analysis",
    EventKind.PROCESS_CRASHED: "crash_analysis",
    EventKind.FRAMEWORK_DETECTED: "documentation_lookup",
    EventKind.PORT_CHANGED: "port_review",
    EventKind.BUILD_COMPLETE: "build_review",
    EventKind.UI_CHANGE: "ui_testing",
    EventKind.DEPENDENCY_FAILURE: "dependency_analysis",
    EventKind.CUSTOM: "custom_analysis",
}


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class TriggerCoordinator:
    """Decide which configured rules fire for incoming events.

    Notifications pass three gates in order: deduplication (an analysis for the
    same rule and source is still outstanding), debounce, and the per-service
    rate limit. Suppressed firings still update threshold and cascade history.
    """

    def __init__(
        self,
        rules: Iterable[TriggerRule] = (),
        *,
        max_triggers_per_minute: int = 10,
        rate_bucket_seconds: float = 60.0,
        rate_history_buckets: int = 5,
        analysis_timeout: timedelta = DEFAULT_ANALYSIS_TIMEOUT,
        history_idle_ttl: timedelta = DEFAULT_HISTORY_IDLE_TTL,
        scheduler: Scheduler | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        initial = list(rules)
        validate_rules(initial)

        self._lock = threading.Lock()
        self._rules: tuple[TriggerRule, ...] = tuple(initial)
        self._history: dict[HistoryKey, TriggerHistoryEntry] = {}
        self._timers: dict[HistoryKey, tuple[int, ScheduledCall]] = {}
        self._rate = RateLimiter(
            max_per_bucket=max_triggers_per_minute,
            bucket_seconds=rate_bucket_seconds,
            history_buckets=rate_history_buckets,
        )
        self._analysis_timeout = analysis_timeout
        self._history_idle_ttl = history_idle_ttl
        self._scheduler: Scheduler = scheduler or ThreadingScheduler()
        self._clock = clock
        self._closed = False

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def submit_event(self, event: Event) -> list[Notification]:
        """Evaluate every enabled rule against `event`.

        Returns notifications in rule configuration order; cascade notifications
        follow step order.
        """

        kind = EventKind.normalize(event.kind)
        now = ensure_utc(event.timestamp)
        emitted: list[Notification] = []

        with self._lock:
            for rule in self._rules:
                if not rule.enabled or kind not in rule.listens_to:
                    continue
                if not _in_scope(rule, event.source_id):
                    continue

                key = HistoryKey(rule.name, event.source_id)
                entry = self._entry_for(key, rule)
                if entry.last_event_at is None or now > entry.last_event_at:
                    entry.last_event_at = now
                self._expire_if_due(key, entry, now)

                descriptors = self._evaluate(rule, entry, kind, event, now)
                if descriptors:
                    emitted.extend(self._gate(rule, key, entry, now, descriptors))

            self._collect_idle(now)

        return emitted

    def complete_analysis(self, rule_name: str, source_id: str) -> None:
        """Release the deduplication gate early. No-op for unknown pairs."""

        key = HistoryKey(rule_name, source_id)
        with self._lock:
            entry = self._history.get(key)
            if entry is None:
                return
            entry.release()
            self._cancel_timer(key)
        logger.debug(
            "Analysis completed", extra={"rule_name": rule_name, "source_id": source_id}
        )

    def update_configuration(self, rules: Iterable[TriggerRule]) -> None:
        """Swap the rule set atomically, or raise ConfigurationError and keep the old one.

        History for rules that keep their name survives the swap. If such a rule's
        condition changed, its window/cascade progress starts over but the
        debounce and in-flight state is kept.
        """

        new_rules = list(rules)
        validate_rules(new_rules)
        by_name = {rule.name: rule for rule in new_rules}

        with self._lock:
            for key in list(self._history):
                rule = by_name.get(key.rule_name)
                if rule is None:
                    del self._history[key]
                    continue
                entry = self._history[key]
                if entry.fingerprint != rule.condition:
                    entry.reset_condition_state(_step_count(rule))
                    entry.fingerprint = rule.condition
            self._rules = tuple(new_rules)

        logger.info("Trigger configuration updated", extra={"rule_count": len(new_rules)})

    def is_rate_limited(self, target_service: str, at: datetime | None = None) -> bool:
        moment = ensure_utc(at) if at is not None else self._clock()
        with self._lock:
            return self._rate.is_limited(target_service, moment)

    def rules(self) -> list[TriggerRule]:
        with self._lock:
            return list(self._rules)

    def history_entry(self, rule_name: str, source_id: str) -> TriggerHistoryEntry | None:
        """Return a copy of the bookkeeping for a (rule, source) pair, if any."""

        with self._lock:
            entry = self._history.get(HistoryKey(rule_name, source_id))
            return entry.snapshot() if entry is not None else None

    def history_size(self) -> int:
        with self._lock:
            return len(self._history)

    def close(self) -> None:
        """Cancel every pending in-flight release timer."""

        with self._lock:
            self._closed = True
            for _, handle in self._timers.values():
                handle.cancel()
            self._timers.clear()

    def __enter__(self) -> TriggerCoordinator:
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def _entry_for(self, key: HistoryKey, rule: TriggerRule) -> TriggerHistoryEntry:
        entry = self._history.get(key)
        if entry is None:
            entry = TriggerHistoryEntry(fingerprint=rule.condition)
            entry.reset_condition_state(_step_count(rule))
            self._history[key] = entry
        return entry

    def _evaluate(
        self,
        rule: TriggerRule,
        entry: TriggerHistoryEntry,
        kind: EventKind,
        event: Event,
        now: datetime,
    ) -> list[dict[str, object]]:
        base: dict[str, object] = {
            "analysis": rule.analysis or _DEFAULT_ANALYSIS[kind],
            "event_kind": kind.value,
            "payload": dict(event.payload),
        }
        condition = rule.condition

        if isinstance(condition, SingleEvent):
            return [{**base, "condition": "single", "event_count": 1}]

        if isinstance(condition, Threshold):
            count = entry.record_event(now, condition.window)
            if count < condition.count:
                return []
            return [
                {
                    **base,
                    "condition": "threshold",
                    "event_count": count,
                    "window_seconds": condition.window.total_seconds(),
                }
            ]

        return self._advance_cascade(condition, entry, kind, now, base)

    def _advance_cascade(
        self,
        cascade: Cascade,
        entry: TriggerHistoryEntry,
        kind: EventKind,
        now: datetime,
        base: dict[str, object],
    ) -> list[dict[str, object]]:
        steps = cascade.steps
        if len(entry.step_matched_at) != len(steps):
            entry.reset_condition_state(len(steps))

        # Earlier steps only count while they are still inside their own window.
        for idx, matched_at in enumerate(entry.step_matched_at):
            if matched_at is None:
                break
            if now - matched_at > steps[idx].effective_window:
                for later in range(idx, len(steps)):
                    entry.step_matched_at[later] = None
                    entry.step_event_timestamps[later].clear()
                break

        current = next(i for i, at in enumerate(entry.step_matched_at) if at is None)
        step = steps[current]
        if kind not in step.event_kinds:
            return []

        timestamps = entry.step_event_timestamps[current]
        count = record(timestamps, now, step.effective_window)
        if isinstance(step.condition, Threshold) and count < step.condition.count:
            return []

        entry.step_matched_at[current] = now
        timestamps.clear()
        if current < len(steps) - 1:
            return []

        matched = list(entry.step_matched_at)
        entry.reset_condition_state(len(steps))
        last = len(steps) - 1
        return [
            {
                **base,
                "condition": "cascade",
                "step": s.name,
                "step_index": i,
                "terminal": i == last,
                "matched_at": matched[i].isoformat() if matched[i] is not None else None,
            }
            for i, s in enumerate(steps)
        ]

    # ------------------------------------------------------------------
    # Gates
    # ------------------------------------------------------------------

    def _gate(
        self,
        rule: TriggerRule,
        key: HistoryKey,
        entry: TriggerHistoryEntry,
        now: datetime,
        descriptors: list[dict[str, object]],
    ) -> list[Notification]:
        log_extra = {
            "rule_name": rule.name,
            "source_id": key.source_id,
            "target_service": rule.target_service,
        }

        if entry.active_analysis_in_progress:
            logger.debug("Trigger suppressed", extra={**log_extra, "reason": "deduplicated"})
            return []

        if entry.last_fired_at is not None and now - entry.last_fired_at < rule.debounce:
            logger.debug("Trigger suppressed", extra={**log_extra, "reason": "debounced"})
            return []

        if self._rate.remaining(rule.target_service, now) < len(descriptors):
            logger.debug("Trigger suppressed", extra={**log_extra, "reason": "rate_limited"})
            return []

        notifications = [
            Notification(
                target_service=rule.target_service,
                source_id=key.source_id,
                triggering_rule=rule.name,
                analysis_descriptor=descriptor,
                priority=rule.priority,
                emitted_at=now,
            )
            for descriptor in descriptors
        ]
        self._rate.record(rule.target_service, now, len(notifications))

        entry.last_fired_at = now
        entry.active_analysis_in_progress = True
        entry.analysis_deadline = now + self._analysis_timeout
        entry.generation += 1
        self._schedule_release(key, entry.generation)

        logger.info("Trigger fired", extra={**log_extra, "notifications": len(notifications)})
        return notifications

    def _expire_if_due(self, key: HistoryKey, entry: TriggerHistoryEntry, now: datetime) -> None:
        deadline = entry.analysis_deadline
        if entry.active_analysis_in_progress and deadline is not None and now >= deadline:
            entry.release()
            self._cancel_timer(key)

    def _schedule_release(self, key: HistoryKey, generation: int) -> None:
        self._cancel_timer(key)
        if self._closed:
            return

        def _release() -> None:
            with self._lock:
                current = self._timers.get(key)
                if current is None or current[0] != generation:
                    return
                del self._timers[key]
                entry = self._history.get(key)
                if entry is not None and entry.generation == generation:
                    entry.release()
            logger.debug(
                "Analysis timed out",
                extra={"rule_name": key.rule_name, "source_id": key.source_id},
            )

        handle = self._scheduler.schedule(self._analysis_timeout.total_seconds(), _release)
        self._timers[key] = (generation, handle)

    def _cancel_timer(self, key: HistoryKey) -> None:
        pending = self._timers.pop(key, None)
        if pending is not None:
            pending[1].cancel()

    def _collect_idle(self, now: datetime) -> None:
        by_name = {rule.name: rule for rule in self._rules}
        for key, entry in list(self._history.items()):
            if entry.active_analysis_in_progress or entry.last_event_at is None:
                continue
            ttl = self._history_idle_ttl
            rule = by_name.get(key.rule_name)
            if rule is not None:
                ttl = max(ttl, rule.debounce, rule.longest_window)
            if now - entry.last_event_at > ttl:
                del self._history[key]


def _in_scope(rule: TriggerRule, source_id: str) -> bool:
    if not rule.source_scope:
        return True
    return any(fnmatch.fnmatchcase(source_id, pattern) for pattern in rule.source_scope)


def _step_count(rule: TriggerRule) -> int:
    if isinstance(rule.condition, Cascade):
        return len(rule.condition.steps)
    return 0
