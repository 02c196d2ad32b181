"""Tests for moodengine.models enumerations and dataclasses."""

from datetime import datetime, timezone

import pytest

from moodengine.errors import ValidationError
from moodengine.models import (
    Category,
    FeedbackConfig,
    FeedbackRecord,
    MenuItem,
    Mood,
    Outcome,
    RecommendationResult,
    ScoredItem,
)


class TestMood:
    def test_has_ten_moods(self) -> None:
        assert len(Mood) == 10

    def test_is_string(self) -> None:
        assert Mood.SAD == "sad"
        assert isinstance(Mood.SAD, str)

    @pytest.mark.parametrize("text", ["tired", "TIRED", "  Tired "])
    def test_parse_is_case_insensitive(self, text: str) -> None:
        assert Mood.parse(text) is Mood.TIRED

    def test_parse_unknown_raises(self) -> None:
        with pytest.raises(ValidationError):
            Mood.parse("hangry")


class TestCategory:
    @pytest.mark.parametrize("text", ["hot drinks", "HOT_DRINKS", "Hot Drinks", "hot_drinks"])
    def test_parse_accepts_value_and_member_name(self, text: str) -> None:
        assert Category.parse(text) is Category.HOT_DRINKS

    def test_parse_passes_members_through(self) -> None:
        assert Category.parse(Category.VALUE_MEAL) is Category.VALUE_MEAL

    def test_parse_unknown_raises(self) -> None:
        with pytest.raises(ValidationError):
            Category.parse("desserts")

    def test_validation_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            Category.parse("desserts")


class TestOutcome:
    def test_values(self) -> None:
        assert {o.value for o in Outcome} == {"improved", "same", "worse"}

    def test_better_maps_to_improved(self) -> None:
        assert Outcome.parse("better") is Outcome.IMPROVED

    def test_parse_unknown_raises(self) -> None:
        with pytest.raises(ValidationError):
            Outcome.parse("meh")


class TestFeedbackConfigDefaults:
    def test_default_weights(self) -> None:
        cfg = FeedbackConfig()
        assert cfg.mood_benefits_weight == 20.0
        assert cfg.preferred_category_weight == 10.0
        assert cfg.historical_data_weight == 15.0
        assert cfg.baseline_threshold == 50

    def test_ratio_weights_sum_to_one(self) -> None:
        cfg = FeedbackConfig()
        assert cfg.order_rate_weight + cfg.feedback_rate_weight == pytest.approx(1.0)

    def test_is_immutable(self) -> None:
        cfg = FeedbackConfig()
        with pytest.raises(AttributeError):
            cfg.baseline_threshold = 10  # type: ignore[misc]


class TestFeedbackRecord:
    def test_is_immutable(self) -> None:
        record = FeedbackRecord(
            "o1", Mood.SAD, Outcome.IMPROVED, ("Hot Chocolate",),
            datetime(2024, 6, 1, tzinfo=timezone.utc),
        )
        with pytest.raises(AttributeError):
            record.outcome = Outcome.WORSE  # type: ignore[misc]


class TestRecommendationResult:
    def test_item_ids_follow_rank_order(self) -> None:
        a = MenuItem("a", "A", Category.PIZZA)
        b = MenuItem("b", "B", Category.SMOOTHIE)
        result = RecommendationResult("sad", [ScoredItem(b, 10.0), ScoredItem(a, 5.0)])
        assert result.item_ids == ["b", "a"]
