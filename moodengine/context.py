"""Context resolver: turns the wall clock into coarse scoring signals."""

from __future__ import annotations

from datetime import datetime

from moodengine.models import ConditionBucket, Context, TimeBucket


def resolve_time_bucket(hour: int) -> TimeBucket:
    if 6 <= hour < 12:
        return TimeBucket.MORNING
    if 12 <= hour < 17:
        return TimeBucket.AFTERNOON
    if 17 <= hour < 21:
        return TimeBucket.EVENING
    return TimeBucket.NIGHT


def resolve_condition_bucket(hour: int) -> ConditionBucket:
    """Approximate the ambient condition from the hour of day.

    Midday (11:00 to 15:59) is treated as hot. There is no weather feed, so
    :attr:`ConditionBucket.COLD` is only produced by callers that build a
    :class:`Context` themselves.
    """
    if 11 <= hour <= 15:
        return ConditionBucket.HOT
    return ConditionBucket.NORMAL


def resolve_context(now: datetime | None = None) -> Context:
    """Return the :class:`Context` for *now* (local time if omitted).

    Args:
        now: The moment to resolve. Aware datetimes are used as-is, so pass
            one in the venue's timezone.

    Returns:
        A :class:`~moodengine.models.Context`.
    """
    if now is None:
        now = datetime.now()
    return Context(
        time_bucket=resolve_time_bucket(now.hour),
        condition_bucket=resolve_condition_bucket(now.hour),
    )
