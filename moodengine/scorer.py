"""Weighted multi-factor scorer that ranks menu items for a mood."""

from __future__ import annotations

import logging
from typing import Callable, Sequence

import numpy as np

from moodengine.explanations import MoodBenefitIndex
from moodengine.models import (
    Category,
    ConditionBucket,
    Context,
    FeedbackConfig,
    ItemCounters,
    MenuItem,
    MoodDefinition,
    ScoredItem,
    TimeBucket,
)
from moodengine.statistics import item_order_ratio

logger = logging.getLogger(__name__)

MAX_RECOMMENDATIONS = 8

# Fixed contributions, not configurable.
ORDER_RATE_MAX_POINTS = 10.0
CONTEXT_BONUS = 5.0

_TIME_AFFINITIES: dict[TimeBucket, frozenset[Category]] = {
    TimeBucket.MORNING: frozenset({Category.HOT_DRINKS, Category.APPETIZER}),
    TimeBucket.EVENING: frozenset({Category.PIZZA, Category.PLATTER, Category.VALUE_MEAL}),
    TimeBucket.NIGHT: frozenset({Category.PIZZA, Category.PLATTER, Category.VALUE_MEAL}),
}
_CONDITION_AFFINITIES: dict[ConditionBucket, frozenset[Category]] = {
    ConditionBucket.HOT: frozenset({Category.COLD_DRINKS, Category.SMOOTHIE}),
    ConditionBucket.COLD: frozenset({Category.HOT_DRINKS}),
}

# Column order of the feature matrix.
FACTORS = (
    "order_rate",
    "mood_benefits",
    "preferred_category",
    "historical_success",
    "featured",
    "price_range",
    "time_of_day",
    "condition",
)


class RecommendationScorer:
    """Ranks catalogue items for a mood with a linear, explainable score.

    Each candidate gets a feature row (one column per entry in
    :data:`FACTORS`), where indicator factors are 0 or 1 and the order-rate
    factor is the item's ordered/shown ratio. The score is that row dotted
    with the weight vector:

    ==================  ==========================================
    Factor              Points
    ==================  ==========================================
    order_rate          ratio × 10 (fixed)
    mood_benefits       ``mood_benefits_weight`` (default 20)
    preferred_category  ``preferred_category_weight`` (default 10)
    historical_success  ``historical_data_weight`` (default 15)
    featured            ``featured_item_weight`` (default 5)
    price_range         ``price_range_weight`` (default 5)
    time_of_day         5 (fixed)
    condition           5 (fixed)
    ==================  ==========================================

    Items are ranked by descending score. The sort is stable, so equal
    scores keep catalogue order.

    Args:
        limit: Maximum number of items returned.
    """

    def __init__(self, limit: int = MAX_RECOMMENDATIONS) -> None:
        self._limit = limit

    def score(
        self,
        definition: MoodDefinition,
        catalogue: Sequence[MenuItem],
        context: Context,
        config: FeedbackConfig,
        item_counters: dict[str, ItemCounters] | None = None,
        top_items: Sequence[str] = (),
        benefits: MoodBenefitIndex | None = None,
    ) -> list[ScoredItem]:
        """Return up to ``limit`` scored items for *definition*'s mood, best first.

        Args:
            definition: The mood's definition (preferred/excluded categories).
            catalogue: Candidate items in catalogue order.
            context: Time and condition buckets for the context bonus.
            config: A single configuration snapshot for all weights.
            item_counters: Per-item shown/ordered counters for this mood.
            top_items: Names of items that most often improved this mood.
            benefits: Curated explanation lookup.

        Returns:
            Ranked :class:`~moodengine.models.ScoredItem` list.
        """
        candidates = filter_candidates(definition, catalogue)
        if not candidates:
            return []

        counters = item_counters or {}
        top = frozenset(top_items)
        benefits = benefits or MoodBenefitIndex()

        explanations = [
            _safe(lambda item=item: benefits.explanation(definition.mood, item), None)
            for item in candidates
        ]
        features = np.array(
            [
                self._feature_row(item, explanation, definition, context, counters, top)
                for item, explanation in zip(candidates, explanations)
            ],
            dtype=np.float64,
        )
        weights = weight_vector(config)
        contributions = features * weights
        scores = contributions.sum(axis=1)

        order = np.argsort(-scores, kind="stable")[: self._limit]
        ranked = [
            ScoredItem(
                item=candidates[i],
                score=float(scores[i]),
                breakdown={
                    name: float(contributions[i, col])
                    for col, name in enumerate(FACTORS)
                    if contributions[i, col] != 0.0
                },
                explanation=explanations[i],
            )
            for i in order
        ]
        logger.debug(
            "Scored %d candidates for mood=%s; top=%s",
            len(candidates),
            definition.mood.value,
            [(s.item.item_id, s.score) for s in ranked],
        )
        return ranked

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _feature_row(
        item: MenuItem,
        explanation: str | None,
        definition: MoodDefinition,
        context: Context,
        counters: dict[str, ItemCounters],
        top: frozenset[str],
    ) -> list[float]:
        return [
            _safe(lambda: item_order_ratio(counters.get(item.item_id)), 0.0),
            1.0 if explanation else 0.0,
            1.0 if item.category in definition.preferred_categories else 0.0,
            1.0 if item.name in top else 0.0,
            1.0 if item.featured else 0.0,
            _safe(lambda: float(in_price_range(item, definition)), 0.0),
            1.0 if item.category in _TIME_AFFINITIES.get(context.time_bucket, ()) else 0.0,
            1.0 if item.category in _CONDITION_AFFINITIES.get(context.condition_bucket, ()) else 0.0,
        ]


def filter_candidates(
    definition: MoodDefinition, catalogue: Sequence[MenuItem]
) -> list[MenuItem]:
    """Drop unavailable items and items in the mood's excluded categories.

    An empty ``exclude_categories`` excludes nothing.
    """
    excluded = definition.exclude_categories
    return [
        item for item in catalogue
        if item.available and item.category not in excluded
    ]


def weight_vector(config: FeedbackConfig) -> np.ndarray:
    """Return the weights aligned with :data:`FACTORS` for one config snapshot."""
    return np.array(
        [
            ORDER_RATE_MAX_POINTS,
            config.mood_benefits_weight,
            config.preferred_category_weight,
            config.historical_data_weight,
            config.featured_item_weight,
            config.price_range_weight,
            CONTEXT_BONUS,
            CONTEXT_BONUS,
        ],
        dtype=np.float64,
    )


def in_price_range(item: MenuItem, definition: MoodDefinition) -> bool:
    if definition.price_range is None:
        return False
    low, high = definition.price_range
    return low <= item.price <= high


def _safe(fn: Callable[[], object], default):
    """Evaluate one factor, treating any failure as a zero contribution."""
    try:
        return fn()
    except Exception:
        logger.debug("Scoring factor failed; contributing %r.", default, exc_info=True)
        return default
