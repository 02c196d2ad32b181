"""Recommendation engine: ties definitions, statistics, config and scoring together."""

from __future__ import annotations

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from datetime import datetime
from typing import Iterable, Sequence

from moodengine.baseline import FeedbackStatus, effective_feedback_enabled, feedback_status
from moodengine.catalogue import MenuCatalogue
from moodengine.context import resolve_context
from moodengine.explanations import MoodBenefitIndex
from moodengine.feedback_config import FeedbackConfigStore
from moodengine.models import (
    FeedbackConfig,
    ItemCounters,
    MenuItem,
    Mood,
    MoodDefinition,
    RecommendationResult,
)
from moodengine.mood_definitions import MoodDefinitionStore
from moodengine.reflections import TOP_SUCCESS_ITEMS, FeedbackLog, MoodEffectiveness
from moodengine.scorer import RecommendationScorer
from moodengine.statistics import OutcomeStatisticsStore

logger = logging.getLogger(__name__)


class MoodRecommendationEngine:
    """Produces ranked recommendations for a mood and ingests tracking events.

    A recommendation request reads one config snapshot, the mood definition,
    the mood's per-item counters and the improved-reflection history, scores
    the catalogue, and returns. The resulting "shown" event is handed to a
    background executor, so ranking never waits on it and an abandoned
    request still gets counted.

    Per-factor inputs that cannot be read (statistics, feedback history)
    degrade to zero contribution. Only a missing catalogue fails the call.

    Args:
        catalogue: Cached menu, used when a request carries no snapshot.
        definitions: The :class:`~moodengine.mood_definitions.MoodDefinitionStore`.
        statistics: The :class:`~moodengine.statistics.OutcomeStatisticsStore`.
        config_store: The :class:`~moodengine.feedback_config.FeedbackConfigStore`.
        feedback_log: The append-only :class:`~moodengine.reflections.FeedbackLog`.
        scorer: The :class:`~moodengine.scorer.RecommendationScorer`.
        shown_executor: Executor for "shown" side effects. A small private
            thread pool is created when omitted.
        top_items_limit: How many improved-reflection items feed the
            historical-success factor and effectiveness reports.
    """

    def __init__(
        self,
        catalogue: MenuCatalogue,
        definitions: MoodDefinitionStore,
        statistics: OutcomeStatisticsStore,
        config_store: FeedbackConfigStore,
        feedback_log: FeedbackLog,
        scorer: RecommendationScorer | None = None,
        shown_executor: Executor | None = None,
        top_items_limit: int = TOP_SUCCESS_ITEMS,
    ) -> None:
        self._catalogue = catalogue
        self._definitions = definitions
        self._statistics = statistics
        self._config_store = config_store
        self._feedback_log = feedback_log
        self._scorer = scorer or RecommendationScorer()
        self._executor = shown_executor or ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="shown-events"
        )
        self._top_items_limit = top_items_limit

    # ------------------------------------------------------------------
    # Recommendations
    # ------------------------------------------------------------------

    def get_recommendations(
        self,
        mood: Mood | str,
        catalogue_snapshot: Sequence[MenuItem] | None = None,
        now: datetime | None = None,
    ) -> RecommendationResult:
        """Return up to 8 ranked items for *mood*.

        Args:
            mood: The customer's selected mood.
            catalogue_snapshot: Items to rank. Falls back to the cached
                catalogue when ``None``.
            now: Clock reading for the context bonus. Defaults to now.

        Returns:
            A :class:`~moodengine.models.RecommendationResult`; its item list
            is empty for unknown or inactive moods.

        Raises:
            CatalogueUnavailableError: If no snapshot was supplied and the
                cached catalogue has never loaded.
        """
        mood_text = mood.value if isinstance(mood, Mood) else str(mood)
        definition = self._definitions.find(mood)
        if definition is None or not definition.is_active:
            logger.info("No active definition for mood %r; recommending nothing.", mood_text)
            return RecommendationResult(mood=mood_text, items=[])

        if catalogue_snapshot is None:
            items = self._catalogue.get_all_items()
            benefits = self._catalogue.benefits
        else:
            items = list(catalogue_snapshot)
            benefits = MoodBenefitIndex(items, self._catalogue.category_benefits)

        config = self._config_store.snapshot()
        context = resolve_context(now)
        ranked = self._scorer.score(
            definition=definition,
            catalogue=items,
            context=context,
            config=config,
            item_counters=self._item_counters(definition),
            top_items=self._top_items(definition),
            benefits=benefits,
        )

        result = RecommendationResult(
            mood=definition.mood.value,
            items=ranked,
            context=context,
            feedback_prompt_enabled=self._prompt_enabled(definition, config),
        )
        if ranked:
            self._submit_shown(definition.mood, result.item_ids)
        return result

    # ------------------------------------------------------------------
    # Tracking and status
    # ------------------------------------------------------------------

    def track_shown(self, mood: Mood | str, item_ids: Iterable[str]) -> None:
        self._statistics.record_shown(mood, item_ids)

    def track_ordered(self, mood: Mood | str, item_ids: Iterable[str]) -> None:
        self._statistics.record_ordered(mood, item_ids)

    def feedback_status(self, mood: Mood | str) -> FeedbackStatus:
        """Return the baseline state and feedback-prompting decision for *mood*."""
        config = self._config_store.snapshot()
        return feedback_status(config, self._statistics.get_analytics(mood, config))

    def effectiveness(self, mood: Mood | str) -> MoodEffectiveness:
        return self._feedback_log.effectiveness(Mood.parse(mood), self._top_items_limit)

    def shutdown(self, wait: bool = True) -> None:
        """Stop the shown-event executor, draining queued events when *wait*."""
        self._executor.shutdown(wait=wait)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _item_counters(self, definition: MoodDefinition) -> dict[str, ItemCounters]:
        try:
            return self._statistics.item_counters(definition.mood)
        except Exception:
            logger.warning(
                "Statistics unavailable for mood %r; order-rate factor set to 0.",
                definition.mood.value,
                exc_info=True,
            )
            return {}

    def _top_items(self, definition: MoodDefinition) -> list[str]:
        try:
            return self._feedback_log.top_improved_items(definition.mood, self._top_items_limit)
        except Exception:
            logger.warning(
                "Feedback history unavailable for mood %r; success factor set to 0.",
                definition.mood.value,
                exc_info=True,
            )
            return []

    def _prompt_enabled(self, definition: MoodDefinition, config: FeedbackConfig) -> bool:
        try:
            analytics = self._statistics.get_analytics(definition.mood, config)
        except Exception:
            logger.warning("Analytics unavailable for mood %r.", definition.mood.value, exc_info=True)
            return config.feedback_enabled
        return effective_feedback_enabled(config, analytics)

    def _submit_shown(self, mood: Mood, item_ids: list[str]) -> Future | None:
        try:
            future = self._executor.submit(self._statistics.record_shown, mood, item_ids)
        except RuntimeError:
            # Executor already shut down; count inline instead of dropping it.
            self._statistics.record_shown(mood, item_ids)
            return None
        future.add_done_callback(_log_shown_failure)
        return future


def _log_shown_failure(future: Future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error("Failed to record shown event: %s", exc, exc_info=exc)
