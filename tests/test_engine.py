"""Tests for moodengine.engine.MoodRecommendationEngine."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from moodengine.baseline import BaselineState
from moodengine.catalogue import MenuCatalogue
from moodengine.engine import MoodRecommendationEngine
from moodengine.errors import CatalogueUnavailableError
from moodengine.models import Category, ConditionBucket, MenuItem, Mood, TimeBucket


# 16:00 is afternoon and outside the hot window: no context bonus.
AFTERNOON = datetime(2024, 6, 1, 16, 0)


def _make_engine(catalogue, definitions, statistics, config_store, feedback_log, executor):
    return MoodRecommendationEngine(
        catalogue=catalogue,
        definitions=definitions,
        statistics=statistics,
        config_store=config_store,
        feedback_log=feedback_log,
        shown_executor=executor,
    )


class TestGetRecommendations:
    def test_sad_snapshot_ranks_pizza_first(
        self, engine: MoodRecommendationEngine, pizza: MenuItem, iced_coffee: MenuItem
    ) -> None:
        result = engine.get_recommendations("sad", [iced_coffee, pizza], now=AFTERNOON)
        assert result.mood == "sad"
        assert result.item_ids == ["1", "2"]
        assert [s.score for s in result.items] == [10.0, 0.0]
        assert result.context.time_bucket is TimeBucket.AFTERNOON
        assert result.context.condition_bucket is ConditionBucket.NORMAL

    def test_records_one_shown_event(
        self, engine: MoodRecommendationEngine, statistics, inline_executor, pizza, iced_coffee
    ) -> None:
        engine.get_recommendations(Mood.SAD, [pizza, iced_coffee], now=AFTERNOON)
        counters = statistics.counters(Mood.SAD)
        assert inline_executor.submitted == 1
        assert counters.total_shown == 1
        assert counters.items["1"].shown == 1
        assert counters.items["2"].shown == 1

    def test_uses_cached_catalogue_without_snapshot(self, engine: MoodRecommendationEngine) -> None:
        result = engine.get_recommendations(Mood.STRESSED, now=AFTERNOON)
        assert len(result.items) == 8
        assert result.items[0].item.item_id == "32"
        assert result.items[0].explanation == "Vitamin C helps regulate stress hormones."

    def test_snapshot_explanations_are_indexed(
        self, engine: MoodRecommendationEngine, sample_menu: list[MenuItem]
    ) -> None:
        engine._catalogue.load_items([])
        result = engine.get_recommendations(Mood.STRESSED, sample_menu, now=AFTERNOON)
        assert result.items[0].item.item_id == "32"
        assert result.items[0].explanation is not None

    def test_snapshot_uses_category_copy(
        self, engine: MoodRecommendationEngine, sample_menu: list[MenuItem]
    ) -> None:
        engine._catalogue.load_items(
            sample_menu, {Category.SAVERS: {Mood.TIRED: "Iron-rich beef fights fatigue."}}
        )
        result = engine.get_recommendations(Mood.TIRED, sample_menu, now=AFTERNOON)
        steak = next(s for s in result.items if s.item.item_id == "40")
        assert steak.explanation == "Iron-rich beef fights fatigue."
        assert steak.breakdown["mood_benefits"] == 20.0

    def test_unknown_mood_returns_empty(
        self, engine: MoodRecommendationEngine, inline_executor, statistics
    ) -> None:
        result = engine.get_recommendations("hangry", now=AFTERNOON)
        assert result.mood == "hangry"
        assert result.items == []
        assert inline_executor.submitted == 0

    def test_inactive_mood_returns_empty(
        self, engine: MoodRecommendationEngine, definitions, statistics
    ) -> None:
        definitions.update(Mood.ANGRY, {"is_active": False})
        result = engine.get_recommendations(Mood.ANGRY, now=AFTERNOON)
        assert result.items == []
        assert statistics.counters(Mood.ANGRY).total_shown == 0

    def test_empty_ranking_records_nothing(
        self, engine: MoodRecommendationEngine, inline_executor
    ) -> None:
        result = engine.get_recommendations(Mood.SAD, [], now=AFTERNOON)
        assert result.items == []
        assert inline_executor.submitted == 0

    def test_unloaded_catalogue_raises(
        self, definitions, statistics, config_store, feedback_log, inline_executor
    ) -> None:
        engine = _make_engine(
            MenuCatalogue(stub=None), definitions, statistics, config_store, feedback_log,
            inline_executor,
        )
        with pytest.raises(CatalogueUnavailableError):
            engine.get_recommendations(Mood.SAD, now=AFTERNOON)

    def test_unloaded_catalogue_ok_with_snapshot(
        self, definitions, statistics, config_store, feedback_log, inline_executor, pizza
    ) -> None:
        engine = _make_engine(
            MenuCatalogue(stub=None), definitions, statistics, config_store, feedback_log,
            inline_executor,
        )
        assert engine.get_recommendations(Mood.SAD, [pizza], now=AFTERNOON).item_ids == ["1"]

    def test_improved_history_lifts_item(
        self, engine: MoodRecommendationEngine, recorder
    ) -> None:
        recorder.record("o1", Mood.HAPPY, "improved", ["Beef Tapa"])
        result = engine.get_recommendations(Mood.HAPPY, now=AFTERNOON)
        tapa = next(s for s in result.items if s.item.item_id == "33")
        assert tapa.breakdown["historical_success"] == 15.0


class TestFeedbackPrompt:
    def test_disabled_below_baseline(self, engine: MoodRecommendationEngine, pizza) -> None:
        assert engine.get_recommendations(Mood.SAD, [pizza], now=AFTERNOON).feedback_prompt_enabled is False

    def test_enabled_once_baseline_reached(
        self, engine: MoodRecommendationEngine, statistics, pizza
    ) -> None:
        for _ in range(50):
            statistics.record_shown(Mood.SAD, ["1"])
        assert engine.get_recommendations(Mood.SAD, [pizza], now=AFTERNOON).feedback_prompt_enabled is True

    def test_forced_on_by_config(
        self, engine: MoodRecommendationEngine, config_store, pizza
    ) -> None:
        config_store.update({"feedback_enabled": True})
        assert engine.get_recommendations(Mood.SAD, [pizza], now=AFTERNOON).feedback_prompt_enabled is True


class TestDegradation:
    def test_statistics_failure_still_ranks(
        self, catalogue, definitions, config_store, feedback_log, inline_executor, pizza, iced_coffee
    ) -> None:
        statistics = MagicMock()
        statistics.item_counters.side_effect = RuntimeError("store down")
        statistics.get_analytics.side_effect = RuntimeError("store down")
        engine = _make_engine(
            catalogue, definitions, statistics, config_store, feedback_log, inline_executor
        )
        result = engine.get_recommendations(Mood.SAD, [iced_coffee, pizza], now=AFTERNOON)
        assert result.item_ids == ["1", "2"]
        assert result.feedback_prompt_enabled is False

    def test_feedback_log_failure_still_ranks(
        self, catalogue, definitions, statistics, config_store, inline_executor, pizza
    ) -> None:
        feedback_log = MagicMock()
        feedback_log.top_improved_items.side_effect = RuntimeError("log down")
        engine = _make_engine(
            catalogue, definitions, statistics, config_store, feedback_log, inline_executor
        )
        assert engine.get_recommendations(Mood.SAD, [pizza], now=AFTERNOON).items[0].score == 10.0

    def test_shown_failure_is_logged_not_raised(
        self, catalogue, definitions, config_store, feedback_log, inline_executor, pizza, caplog
    ) -> None:
        statistics = MagicMock()
        statistics.item_counters.return_value = {}
        statistics.record_shown.side_effect = RuntimeError("write failed")
        engine = _make_engine(
            catalogue, definitions, statistics, config_store, feedback_log, inline_executor
        )
        with caplog.at_level(logging.ERROR, logger="moodengine.engine"):
            result = engine.get_recommendations(Mood.SAD, [pizza], now=AFTERNOON)
        assert result.item_ids == ["1"]
        assert "Failed to record shown event" in caplog.text


class TestShownExecutor:
    def test_background_executor_records_after_shutdown(
        self, catalogue, definitions, statistics, config_store, feedback_log
    ) -> None:
        engine = _make_engine(
            catalogue, definitions, statistics, config_store, feedback_log,
            ThreadPoolExecutor(max_workers=1),
        )
        engine.get_recommendations(Mood.SAD, now=AFTERNOON)
        engine.shutdown(wait=True)
        assert statistics.counters(Mood.SAD).total_shown == 1

    def test_records_inline_when_executor_stopped(
        self, catalogue, definitions, statistics, config_store, feedback_log
    ) -> None:
        executor = ThreadPoolExecutor(max_workers=1)
        engine = _make_engine(
            catalogue, definitions, statistics, config_store, feedback_log, executor
        )
        engine.shutdown()
        engine.get_recommendations(Mood.SAD, now=AFTERNOON)
        assert statistics.counters(Mood.SAD).total_shown == 1


class TestTrackingAndStatus:
    def test_track_shown_and_ordered(self, engine: MoodRecommendationEngine, statistics) -> None:
        engine.track_shown(Mood.HAPPY, ["1", "5"])
        engine.track_ordered(Mood.HAPPY, ["1"])
        analytics = statistics.get_analytics(Mood.HAPPY)
        assert analytics.total_shown == 1
        assert analytics.total_ordered == 1
        assert analytics.order_rate == 100.0

    def test_feedback_status(self, engine: MoodRecommendationEngine, config_store) -> None:
        config_store.update({"baseline_threshold": 2})
        engine.track_shown(Mood.SAD, ["1"])
        assert engine.feedback_status(Mood.SAD).state is BaselineState.BELOW_BASELINE
        engine.track_shown(Mood.SAD, ["1"])
        status = engine.feedback_status(Mood.SAD)
        assert status.state is BaselineState.BASELINE_REACHED
        assert status.show_reflection is True

    def test_effectiveness(self, engine: MoodRecommendationEngine, recorder) -> None:
        recorder.record("o1", "relaxed", "improved", ["Hot Chocolate"])
        recorder.record("o2", "relaxed", "same", ["Beef Tapa"])
        result = engine.effectiveness("relaxed")
        assert result.success_rate == 50.0
        assert result.top_items == ["Hot Chocolate"]
