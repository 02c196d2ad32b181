"""Reflection recorder and the append-only feedback log behind it."""

from __future__ import annotations

import logging
import threading
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

from moodengine.errors import ValidationError
from moodengine.models import FeedbackRecord, Mood, Outcome
from moodengine.statistics import OutcomeStatisticsStore, rate

logger = logging.getLogger(__name__)

TOP_SUCCESS_ITEMS = 5


@dataclass(frozen=True)
class MoodEffectiveness:
    """How well past orders worked for a mood.

    Attributes:
        success_rate: Percentage of reflections with outcome ``improved``.
        top_items: Up to five item names most often ordered in improved
            reflections, most frequent first.
    """

    mood: Mood
    success_rate: float
    top_items: list[str]


class FeedbackLog:
    """Thread-safe append-only log of :class:`FeedbackRecord` objects.

    Records are never updated or removed; a customer cannot retract a
    reflection.
    """

    def __init__(self, records: Iterable[FeedbackRecord] = ()) -> None:
        self._lock = threading.Lock()
        self._records: list[FeedbackRecord] = list(records)

    def append(self, record: FeedbackRecord) -> None:
        with self._lock:
            self._records.append(record)

    def records(self, mood: Mood | None = None) -> list[FeedbackRecord]:
        """Return a snapshot of all records, or only those for *mood*."""
        with self._lock:
            snapshot = list(self._records)
        if mood is None:
            return snapshot
        return [r for r in snapshot if r.mood is mood]

    def replace_all(self, records: Iterable[FeedbackRecord]) -> None:
        """Swap in a restored log. Only used when loading a snapshot at startup."""
        loaded = list(records)
        with self._lock:
            self._records = loaded

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def top_improved_items(self, mood: Mood, limit: int = TOP_SUCCESS_ITEMS) -> list[str]:
        """Return the *limit* item names most often ordered when *mood* improved.

        Ties keep the order in which the items were first seen.
        """
        counts: Counter[str] = Counter()
        for record in self.records(mood):
            if record.outcome is Outcome.IMPROVED:
                counts.update(record.items_ordered)
        return [name for name, _ in counts.most_common(limit)]

    def effectiveness(self, mood: Mood, limit: int = TOP_SUCCESS_ITEMS) -> MoodEffectiveness:
        records = self.records(mood)
        improved = sum(1 for r in records if r.outcome is Outcome.IMPROVED)
        return MoodEffectiveness(
            mood=mood,
            success_rate=rate(improved, len(records)),
            top_items=self.top_improved_items(mood, limit),
        )


class ReflectionRecorder:
    """Validates and records post-order reflections.

    Each accepted reflection is appended to the :class:`FeedbackLog` and
    counted in the :class:`~moodengine.statistics.OutcomeStatisticsStore`.

    Args:
        log: The append-only feedback log.
        statistics: The statistics store to increment.
    """

    def __init__(self, log: FeedbackLog, statistics: OutcomeStatisticsStore) -> None:
        self._log = log
        self._statistics = statistics

    def record(
        self,
        order_id: str,
        mood: Mood | str,
        outcome: Outcome | str,
        items_ordered: Iterable[str] = (),
        timestamp: datetime | None = None,
    ) -> FeedbackRecord:
        """Record one reflection.

        Args:
            order_id: The order being reflected on. Must be non-empty.
            mood: The mood the customer selected before ordering.
            outcome: ``improved``, ``same`` or ``worse``.
            items_ordered: Names of the items in the order.
            timestamp: When the reflection was given. Defaults to now (UTC).

        Returns:
            The stored :class:`FeedbackRecord`.

        Raises:
            ValidationError: If *order_id* is empty, or *mood* or *outcome*
                is unknown. Nothing is recorded.
        """
        if not order_id or not str(order_id).strip():
            raise ValidationError("order_id must be non-empty")
        if isinstance(items_ordered, (str, bytes)):
            raise ValidationError("items_ordered must be a list of item names")
        record = FeedbackRecord(
            order_id=str(order_id),
            mood=Mood.parse(mood),
            outcome=Outcome.parse(outcome),
            items_ordered=tuple(str(name) for name in items_ordered if name),
            timestamp=timestamp or datetime.now(timezone.utc),
        )
        self._log.append(record)
        self._statistics.record_feedback(record.mood, record.outcome)
        logger.info(
            "Reflection recorded: order=%s mood=%s outcome=%s",
            record.order_id,
            record.mood.value,
            record.outcome.value,
        )
        return record
