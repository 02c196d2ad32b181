"""Outcome statistics store: per-mood shown/ordered/feedback counters and analytics."""

from __future__ import annotations

import copy
import logging
import threading
from typing import Iterable

from moodengine.errors import ValidationError
from moodengine.feedback_config import FeedbackConfigStore
from moodengine.models import (
    FeedbackConfig,
    ItemCounters,
    Mood,
    MoodAnalytics,
    MoodCounters,
    Outcome,
)

logger = logging.getLogger(__name__)


class OutcomeStatisticsStore:
    """Thread-safe counters keyed by mood, with per-item counters inside each mood.

    Every mood has its own lock, so increments for one mood never wait on
    another. Each ``record_*`` call is a single critical section on that lock:
    concurrent callers never lose an increment. Readers copy the counters
    under the same lock and so always see a consistent row.

    Derived analytics are computed on read from the raw counters and the
    current :class:`~moodengine.models.FeedbackConfig`; nothing derived is
    ever stored.

    Args:
        config_store: Source of the weights and baseline threshold used by
            :meth:`get_analytics`.
    """

    def __init__(self, config_store: FeedbackConfigStore) -> None:
        self._config_store = config_store
        self._registry_lock = threading.Lock()
        self._locks: dict[Mood, threading.Lock] = {}
        self._counters: dict[Mood, MoodCounters] = {}

    # ------------------------------------------------------------------
    # Event ingestion
    # ------------------------------------------------------------------

    def record_shown(self, mood: Mood | str, item_ids: Iterable[str]) -> None:
        """Count one exposure of *mood*'s recommendations.

        ``total_shown`` goes up by exactly one per call; each distinct item in
        *item_ids* gets its own shown counter incremented.
        """
        key = Mood.parse(mood)
        distinct = _distinct(item_ids)
        with self._lock_for(key):
            counters = self._counters.setdefault(key, MoodCounters())
            counters.total_shown += 1
            for item_id in distinct:
                counters.items.setdefault(item_id, ItemCounters()).shown += 1
        logger.debug("Shown: mood=%s items=%s", key.value, distinct)

    def record_ordered(self, mood: Mood | str, item_ids: Iterable[str]) -> None:
        """Count one order placed under *mood*.

        An item may be ordered without ever having been shown (e.g. found by
        browsing), so ordered counts are allowed to exceed shown counts.
        """
        key = Mood.parse(mood)
        distinct = _distinct(item_ids)
        with self._lock_for(key):
            counters = self._counters.setdefault(key, MoodCounters())
            counters.total_ordered += 1
            for item_id in distinct:
                counters.items.setdefault(item_id, ItemCounters()).ordered += 1
        logger.debug("Ordered: mood=%s items=%s", key.value, distinct)

    def record_feedback(self, mood: Mood | str, outcome: Outcome | str) -> None:
        """Count one reflection for *mood* under its *outcome*.

        Raises:
            ValidationError: If *mood* or *outcome* is unknown.
        """
        key = Mood.parse(mood)
        result = Outcome.parse(outcome)
        with self._lock_for(key):
            counters = self._counters.setdefault(key, MoodCounters())
            counters.feedback_count += 1
            if result is Outcome.IMPROVED:
                counters.improved_count += 1
            elif result is Outcome.SAME:
                counters.same_count += 1
            else:
                counters.worse_count += 1

    def reset(self, mood: Mood | str | None = None) -> None:
        """Zero the counters for *mood*, or for every mood when ``None``.

        This is an irreversible administrative wipe.
        """
        moods = list(Mood) if mood is None else [Mood.parse(mood)]
        for key in moods:
            with self._lock_for(key):
                self._counters.pop(key, None)
        logger.info(
            "Reset statistics for %s.",
            "all moods" if mood is None else repr(moods[0].value),
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def counters(self, mood: Mood | str) -> MoodCounters:
        """Return a private copy of *mood*'s counters (zeros if never touched)."""
        key = Mood.parse(mood)
        with self._lock_for(key):
            current = self._counters.get(key)
            return copy.deepcopy(current) if current is not None else MoodCounters()

    def item_counters(self, mood: Mood | str) -> dict[str, ItemCounters]:
        return self.counters(mood).items

    def get_analytics(
        self, mood: Mood | str, config: FeedbackConfig | None = None
    ) -> MoodAnalytics:
        """Return the derived analytics view for *mood*.

        Args:
            mood: The mood to report on.
            config: Configuration snapshot to use. Defaults to the current
                snapshot from the config store.
        """
        key = Mood.parse(mood)
        return derive_analytics(
            key, self.counters(key), config or self._config_store.snapshot()
        )

    def get_all_analytics(self) -> list[MoodAnalytics]:
        config = self._config_store.snapshot()
        return [self.get_analytics(mood, config) for mood in Mood]

    # ------------------------------------------------------------------
    # Snapshot support
    # ------------------------------------------------------------------

    def export_counters(self) -> dict[Mood, MoodCounters]:
        return {mood: self.counters(mood) for mood in Mood if self._has(mood)}

    def load_counters(self, data: dict[Mood, MoodCounters]) -> None:
        """Replace all counters with *data* (used when restoring a snapshot)."""
        for mood in Mood:
            with self._lock_for(mood):
                if mood in data:
                    self._counters[mood] = copy.deepcopy(data[mood])
                else:
                    self._counters.pop(mood, None)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _lock_for(self, mood: Mood) -> threading.Lock:
        lock = self._locks.get(mood)
        if lock is None:
            with self._registry_lock:
                lock = self._locks.setdefault(mood, threading.Lock())
        return lock

    def _has(self, mood: Mood) -> bool:
        with self._lock_for(mood):
            return mood in self._counters


# ---------------------------------------------------------------------------
# Derived-field formulas
# ---------------------------------------------------------------------------


def rate(numerator: int, denominator: int) -> float:
    """Return ``numerator / denominator`` as a percentage clamped to [0, 100].

    A zero (or negative) denominator yields 0.
    """
    if denominator <= 0:
        return 0.0
    return _clamp(100.0 * numerator / denominator, 0.0, 100.0)


def derive_analytics(
    mood: Mood, counters: MoodCounters, config: FeedbackConfig
) -> MoodAnalytics:
    """Compute every derived analytics field from raw *counters* and *config*."""
    order_rate = rate(counters.total_ordered, counters.total_shown)
    improvement_rate = rate(counters.improved_count, counters.feedback_count)
    historical_score = _clamp(
        config.order_rate_weight * order_rate
        + config.feedback_rate_weight * improvement_rate,
        0.0,
        100.0,
    )
    threshold = config.baseline_threshold
    return MoodAnalytics(
        mood=mood,
        total_shown=counters.total_shown,
        total_ordered=counters.total_ordered,
        order_rate=order_rate,
        feedback_count=counters.feedback_count,
        improved_count=counters.improved_count,
        same_count=counters.same_count,
        worse_count=counters.worse_count,
        improvement_rate=improvement_rate,
        historical_score=historical_score,
        baseline_reached=counters.total_shown >= threshold,
        baseline_progress=min(100.0, 100.0 * counters.total_shown / threshold),
    )


def item_order_ratio(counters: ItemCounters | None) -> float:
    """Return ordered/shown for one item in [0, 1]; 0 when never shown."""
    if counters is None or counters.shown <= 0:
        return 0.0
    return _clamp(counters.ordered / counters.shown, 0.0, 1.0)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _distinct(item_ids: Iterable[str]) -> list[str]:
    if isinstance(item_ids, (str, bytes)):
        raise ValidationError("item ids must be a list, not a single string")
    seen: dict[str, None] = {}
    for item_id in item_ids:
        if item_id:
            seen.setdefault(str(item_id), None)
    return list(seen)
