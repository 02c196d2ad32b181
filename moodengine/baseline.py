"""Baseline state per mood and the feedback-prompting decision derived from it."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from moodengine.models import FeedbackConfig, Mood, MoodAnalytics


class BaselineState(str, Enum):
    """Whether a mood has collected enough samples to be trusted.

    There is no stored state: the value is always recomputed from the
    counters, so a statistics reset naturally returns a mood to
    :attr:`BELOW_BASELINE`.
    """

    BELOW_BASELINE = "below_baseline"
    BASELINE_REACHED = "baseline_reached"


@dataclass(frozen=True)
class FeedbackStatus:
    mood: Mood
    state: BaselineState
    baseline_progress: float
    feedback_enabled: bool
    show_reflection: bool
    reflection_delay_minutes: int

    @property
    def baseline_reached(self) -> bool:
        return self.state is BaselineState.BASELINE_REACHED


def baseline_state(analytics: MoodAnalytics) -> BaselineState:
    if analytics.baseline_reached:
        return BaselineState.BASELINE_REACHED
    return BaselineState.BELOW_BASELINE


def effective_feedback_enabled(config: FeedbackConfig, analytics: MoodAnalytics) -> bool:
    """Return whether feedback prompts should be surfaced for this mood.

    Operators can force prompting on globally with ``feedback_enabled``, or let
    it switch on per mood once the baseline is reached via
    ``auto_enable_feedback``.
    """
    return config.feedback_enabled or (
        config.auto_enable_feedback and analytics.baseline_reached
    )


def feedback_status(config: FeedbackConfig, analytics: MoodAnalytics) -> FeedbackStatus:
    """Bundle the baseline state and prompting decision for *analytics*' mood.

    ``show_reflection`` additionally requires the ``show_mood_reflection``
    switch, which controls the post-order reflection dialog itself.
    """
    enabled = effective_feedback_enabled(config, analytics)
    return FeedbackStatus(
        mood=analytics.mood,
        state=baseline_state(analytics),
        baseline_progress=analytics.baseline_progress,
        feedback_enabled=enabled,
        show_reflection=enabled and config.show_mood_reflection,
        reflection_delay_minutes=config.reflection_delay_minutes,
    )
