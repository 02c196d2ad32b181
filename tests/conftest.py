"""Shared pytest fixtures for all mood engine tests."""

from __future__ import annotations

from concurrent.futures import Future

import pytest

from moodengine.catalogue import MenuCatalogue
from moodengine.engine import MoodRecommendationEngine
from moodengine.feedback_config import FeedbackConfigStore
from moodengine.models import (
    Category,
    ConditionBucket,
    Context,
    MenuItem,
    Mood,
    TimeBucket,
)
from moodengine.mood_definitions import MoodDefinitionStore
from moodengine.reflections import FeedbackLog, ReflectionRecorder
from moodengine.statistics import OutcomeStatisticsStore


class InlineExecutor:
    """Runs submitted work immediately so tests can assert on side effects."""

    def __init__(self) -> None:
        self.submitted = 0

    def submit(self, fn, *args, **kwargs) -> Future:
        self.submitted += 1
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future

    def shutdown(self, wait: bool = True) -> None:
        pass


# ---------------------------------------------------------------------------
# Menu fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def pizza() -> MenuItem:
    return MenuItem("1", "Bacon Pepperoni", Category.PIZZA, price=299.0)


@pytest.fixture
def iced_coffee() -> MenuItem:
    return MenuItem("2", "Iced Coffee", Category.COLD_DRINKS, price=89.0)


@pytest.fixture
def sample_menu() -> list[MenuItem]:
    """A small menu spanning every category."""
    return [
        MenuItem("1", "Bacon Pepperoni", Category.PIZZA, price=299.0),
        MenuItem("5", "Beef Burger", Category.APPETIZER, price=149.0),
        MenuItem("17", "Hot Coffee", Category.HOT_DRINKS, price=79.0),
        MenuItem("19", "Hot Chocolate", Category.HOT_DRINKS, price=99.0),
        MenuItem("27", "Iced Coffee", Category.COLD_DRINKS, price=89.0),
        MenuItem("31", "Blueberry Smoothie", Category.SMOOTHIE, price=149.0),
        MenuItem(
            "32",
            "Strawberry Smoothie",
            Category.SMOOTHIE,
            price=149.0,
            mood_benefits={Mood.STRESSED: "Vitamin C helps regulate stress hormones."},
        ),
        MenuItem("33", "Beef Tapa", Category.PLATTER, price=189.0),
        MenuItem("40", "Burger Steak", Category.SAVERS, price=119.0),
        MenuItem("52", "Spare Ribs", Category.VALUE_MEAL, price=189.0),
        MenuItem("99", "Seasonal Pie", Category.APPETIZER, price=59.0, available=False),
    ]


@pytest.fixture
def neutral_context() -> Context:
    """Afternoon, normal conditions: no context bonus for any category."""
    return Context(TimeBucket.AFTERNOON, ConditionBucket.NORMAL)


# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def config_store() -> FeedbackConfigStore:
    return FeedbackConfigStore()


@pytest.fixture
def definitions() -> MoodDefinitionStore:
    return MoodDefinitionStore()


@pytest.fixture
def statistics(config_store) -> OutcomeStatisticsStore:
    return OutcomeStatisticsStore(config_store)


@pytest.fixture
def feedback_log() -> FeedbackLog:
    return FeedbackLog()


@pytest.fixture
def recorder(feedback_log, statistics) -> ReflectionRecorder:
    return ReflectionRecorder(feedback_log, statistics)


@pytest.fixture
def catalogue(sample_menu) -> MenuCatalogue:
    cat = MenuCatalogue(stub=None)
    cat.load_items(sample_menu)
    return cat


@pytest.fixture
def inline_executor() -> InlineExecutor:
    return InlineExecutor()


@pytest.fixture
def engine(
    catalogue, definitions, statistics, config_store, feedback_log, inline_executor
) -> MoodRecommendationEngine:
    return MoodRecommendationEngine(
        catalogue=catalogue,
        definitions=definitions,
        statistics=statistics,
        config_store=config_store,
        feedback_log=feedback_log,
        shown_executor=inline_executor,
    )
