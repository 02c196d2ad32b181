"""Tests for moodengine.reflections."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from moodengine.errors import ValidationError
from moodengine.models import Mood, Outcome
from moodengine.reflections import FeedbackLog, ReflectionRecorder
from moodengine.statistics import OutcomeStatisticsStore


TS = datetime(2024, 6, 1, 16, 0, 0, tzinfo=timezone.utc)


class TestRecord:
    def test_stressed_seven_improved_three_worse(
        self,
        recorder: ReflectionRecorder,
        statistics: OutcomeStatisticsStore,
        feedback_log: FeedbackLog,
    ) -> None:
        for i in range(7):
            recorder.record(f"o{i}", "stressed", "improved", ["Strawberry Smoothie"])
        for i in range(7, 10):
            recorder.record(f"o{i}", "stressed", "worse", ["Hot Coffee"])

        analytics = statistics.get_analytics(Mood.STRESSED)
        assert analytics.feedback_count == 10
        assert analytics.improved_count == 7
        assert analytics.worse_count == 3
        assert analytics.improvement_rate == pytest.approx(70.0)
        assert len(feedback_log) == 10

    def test_stores_given_timestamp(self, recorder: ReflectionRecorder) -> None:
        record = recorder.record("o1", Mood.SAD, Outcome.SAME, ["Hot Chocolate"], timestamp=TS)
        assert record.timestamp == TS
        assert record.items_ordered == ("Hot Chocolate",)

    def test_defaults_timestamp_to_now(self, recorder: ReflectionRecorder) -> None:
        assert recorder.record("o1", Mood.SAD, Outcome.SAME).timestamp.tzinfo is not None

    @pytest.mark.parametrize("order_id", ["", "   "])
    def test_empty_order_id_rejected(
        self, recorder: ReflectionRecorder, feedback_log: FeedbackLog, order_id: str
    ) -> None:
        with pytest.raises(ValidationError):
            recorder.record(order_id, Mood.SAD, Outcome.IMPROVED)
        assert len(feedback_log) == 0

    def test_unknown_outcome_records_nothing(
        self,
        recorder: ReflectionRecorder,
        feedback_log: FeedbackLog,
        statistics: OutcomeStatisticsStore,
    ) -> None:
        with pytest.raises(ValidationError):
            recorder.record("o1", Mood.SAD, "meh")
        assert len(feedback_log) == 0
        assert statistics.counters(Mood.SAD).feedback_count == 0

    def test_single_string_items_rejected(
        self,
        recorder: ReflectionRecorder,
        feedback_log: FeedbackLog,
        statistics: OutcomeStatisticsStore,
    ) -> None:
        with pytest.raises(ValidationError):
            recorder.record("o1", Mood.SAD, Outcome.SAME, "Hot Coffee")
        assert len(feedback_log) == 0
        assert statistics.counters(Mood.SAD).feedback_count == 0


class TestEffectiveness:
    def test_top_items_most_frequent_first(self, recorder: ReflectionRecorder, feedback_log: FeedbackLog) -> None:
        recorder.record("o1", Mood.TIRED, "improved", ["Hot Coffee", "Beef Tapa"])
        recorder.record("o2", Mood.TIRED, "improved", ["Hot Coffee"])
        recorder.record("o3", Mood.TIRED, "improved", ["Spare Ribs", "Beef Tapa", "Hot Coffee"])
        recorder.record("o4", Mood.TIRED, "worse", ["Spare Ribs", "Spare Ribs"])

        assert feedback_log.top_improved_items(Mood.TIRED) == [
            "Hot Coffee", "Beef Tapa", "Spare Ribs",
        ]

    def test_top_items_limited_to_five(self, recorder: ReflectionRecorder, feedback_log: FeedbackLog) -> None:
        names = [f"Item {i}" for i in range(8)]
        recorder.record("o1", Mood.HAPPY, "improved", names)
        assert feedback_log.top_improved_items(Mood.HAPPY) == names[:5]

    def test_success_rate(self, recorder: ReflectionRecorder, feedback_log: FeedbackLog) -> None:
        recorder.record("o1", Mood.ANXIOUS, "improved", ["Hot Chocolate"])
        recorder.record("o2", Mood.ANXIOUS, "same", ["Hot Chocolate"])
        recorder.record("o3", Mood.ANXIOUS, "worse", [])
        recorder.record("o4", Mood.ANXIOUS, "improved", [])
        result = feedback_log.effectiveness(Mood.ANXIOUS)
        assert result.success_rate == pytest.approx(50.0)
        assert result.top_items == ["Hot Chocolate"]

    def test_no_reflections(self, feedback_log: FeedbackLog) -> None:
        result = feedback_log.effectiveness(Mood.EXCITED)
        assert result.success_rate == 0.0
        assert result.top_items == []

    def test_records_filter_by_mood(self, recorder: ReflectionRecorder, feedback_log: FeedbackLog) -> None:
        recorder.record("o1", Mood.SAD, "improved")
        recorder.record("o2", Mood.HAPPY, "improved")
        assert [r.order_id for r in feedback_log.records(Mood.SAD)] == ["o1"]
        assert len(feedback_log.records()) == 2
