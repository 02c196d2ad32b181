"""Tests for moodengine.baseline."""

from __future__ import annotations

import pytest

from moodengine.baseline import (
    BaselineState,
    effective_feedback_enabled,
    feedback_status,
)
from moodengine.models import FeedbackConfig, Mood, MoodAnalytics
from moodengine.statistics import OutcomeStatisticsStore


def _shown(statistics: OutcomeStatisticsStore, mood: Mood, times: int) -> None:
    for _ in range(times):
        statistics.record_shown(mood, ["1"])


class TestBaselineTransition:
    def test_forty_nine_is_below(self, statistics: OutcomeStatisticsStore) -> None:
        _shown(statistics, Mood.SAD, 49)
        status = feedback_status(FeedbackConfig(), statistics.get_analytics(Mood.SAD))
        assert status.state is BaselineState.BELOW_BASELINE
        assert status.baseline_progress == pytest.approx(98.0)

    def test_fiftieth_exposure_reaches_baseline(self, statistics: OutcomeStatisticsStore) -> None:
        _shown(statistics, Mood.SAD, 50)
        status = feedback_status(FeedbackConfig(), statistics.get_analytics(Mood.SAD))
        assert status.state is BaselineState.BASELINE_REACHED
        assert status.baseline_reached is True
        assert status.feedback_enabled is True

    def test_reset_returns_to_below(self, statistics: OutcomeStatisticsStore) -> None:
        _shown(statistics, Mood.SAD, 50)
        statistics.reset(Mood.SAD)
        status = feedback_status(FeedbackConfig(), statistics.get_analytics(Mood.SAD))
        assert status.state is BaselineState.BELOW_BASELINE


class TestEffectiveFeedbackEnabled:
    @pytest.mark.parametrize("enabled,auto,reached,expected", [
        (False, False, False, False),
        (False, False, True, False),
        (False, True, False, False),
        (False, True, True, True),
        (True, False, False, True),
        (True, True, False, True),
    ])
    def test_truth_table(self, enabled: bool, auto: bool, reached: bool, expected: bool) -> None:
        config = FeedbackConfig(feedback_enabled=enabled, auto_enable_feedback=auto)
        analytics = MoodAnalytics(Mood.HAPPY, baseline_reached=reached)
        assert effective_feedback_enabled(config, analytics) is expected

    def test_reflection_dialog_can_be_hidden(self) -> None:
        config = FeedbackConfig(feedback_enabled=True, show_mood_reflection=False)
        status = feedback_status(config, MoodAnalytics(Mood.HAPPY))
        assert status.feedback_enabled is True
        assert status.show_reflection is False

    def test_reports_reflection_delay(self) -> None:
        config = FeedbackConfig(reflection_delay_minutes=30)
        assert feedback_status(config, MoodAnalytics(Mood.HAPPY)).reflection_delay_minutes == 30
