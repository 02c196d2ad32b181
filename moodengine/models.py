"""Core domain types shared across all mood engine modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from moodengine.errors import ValidationError


class Mood(str, Enum):
    """The fixed set of moods a customer can self-select."""

    HAPPY = "happy"
    RELAXED = "relaxed"
    ENERGETIC = "energetic"
    SAD = "sad"
    STRESSED = "stressed"
    ANGRY = "angry"
    TIRED = "tired"
    ANXIOUS = "anxious"
    DEPRESSED = "depressed"
    EXCITED = "excited"

    @classmethod
    def parse(cls, value: str | Mood) -> Mood:
        """Return the :class:`Mood` for *value*, raising ``ValidationError`` if unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(f"Unknown mood {value!r}") from None


class Category(str, Enum):
    """Canonical menu categories.

    Every comparison between a mood definition and a catalogue item goes
    through this type, so ``"hot drinks"`` and ``"HOT_DRINKS"`` can never
    disagree.
    """

    PIZZA = "pizza"
    APPETIZER = "appetizer"
    HOT_DRINKS = "hot drinks"
    COLD_DRINKS = "cold drinks"
    SMOOTHIE = "smoothie"
    PLATTER = "platter"
    SAVERS = "savers"
    VALUE_MEAL = "value meal"

    @classmethod
    def parse(cls, value: str | Category) -> Category:
        """Accept either the value (``"hot drinks"``) or member name (``"HOT_DRINKS"``)."""
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        try:
            return cls(text.lower())
        except ValueError:
            pass
        member = cls.__members__.get(text.upper().replace(" ", "_"))
        if member is None:
            raise ValidationError(f"Unknown category {value!r}")
        return member


class Outcome(str, Enum):
    """How the customer felt after their order, relative to their mood."""

    IMPROVED = "improved"
    SAME = "same"
    WORSE = "worse"

    @classmethod
    def parse(cls, value: str | Outcome) -> Outcome:
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        # Older clients submit "better".
        if text == "better":
            return cls.IMPROVED
        try:
            return cls(text)
        except ValueError:
            raise ValidationError(
                f"Outcome must be one of improved/same/worse, got {value!r}"
            ) from None


class TimeBucket(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"


class ConditionBucket(str, Enum):
    HOT = "hot"
    COLD = "cold"
    NORMAL = "normal"


@dataclass(frozen=True)
class Context:
    """Transient situational signals derived from the clock."""

    time_bucket: TimeBucket
    condition_bucket: ConditionBucket


@dataclass
class MenuItem:
    """A single catalogue entry, as supplied by the external menu service.

    Attributes:
        item_id: Unique identifier for the item.
        name: Display name; also the key used by the feedback log.
        category: Canonical category.
        price: Unit price.
        available: Unavailable items are never recommended.
        featured: Items promoted by the venue.
        mood_benefits: Admin-authored explanation text keyed by mood.
    """

    item_id: str
    name: str
    category: Category
    price: float = 0.0
    available: bool = True
    featured: bool = False
    mood_benefits: dict[Mood, str] = field(default_factory=dict)


@dataclass(frozen=True)
class MoodDefinition:
    """Static, admin-editable attributes of a single mood.

    ``exclude_categories`` is opt-in: an empty set excludes nothing.
    ``price_range`` is an inclusive ``(low, high)`` pair or ``None``.
    ``color`` is a ``#RRGGBB`` hex string for the mood picker.
    """

    mood: Mood
    preferred_categories: frozenset[Category] = frozenset()
    exclude_categories: frozenset[Category] = frozenset()
    is_active: bool = True
    emoji: str = ""
    label: str = ""
    color: str = ""
    description: str = ""
    support_message: str | None = None
    scientific_explanation: str | None = None
    beneficial_nutrients: tuple[str, ...] = ()
    price_range: tuple[float, float] | None = None
    updated_at: datetime | None = None


@dataclass
class ItemCounters:
    """Shown/ordered counters for one (mood, item) pair."""

    shown: int = 0
    ordered: int = 0


@dataclass
class MoodCounters:
    """Raw per-mood counters. Only mutated under the owning store's key lock."""

    total_shown: int = 0
    total_ordered: int = 0
    feedback_count: int = 0
    improved_count: int = 0
    same_count: int = 0
    worse_count: int = 0
    items: dict[str, ItemCounters] = field(default_factory=dict)


@dataclass(frozen=True)
class FeedbackConfig:
    """Process-wide scoring weights and feedback switches.

    Instances are immutable; an update always produces a new object with a
    higher ``version``, which the store swaps in with a single assignment.

    ``time_of_day_weight`` is kept for administration only. The context
    bonus applied by the scorer is a fixed amount per matching rule.
    """

    mood_benefits_weight: float = 20.0
    preferred_category_weight: float = 10.0
    historical_data_weight: float = 15.0
    featured_item_weight: float = 5.0
    price_range_weight: float = 5.0
    time_of_day_weight: float = 5.0
    order_rate_weight: float = 0.6
    feedback_rate_weight: float = 0.4
    baseline_threshold: int = 50
    feedback_enabled: bool = False
    auto_enable_feedback: bool = True
    show_mood_reflection: bool = True
    reflection_delay_minutes: int = 15
    version: int = 1
    updated_at: datetime | None = None


@dataclass(frozen=True)
class FeedbackRecord:
    """A single, immutable post-order reflection."""

    order_id: str
    mood: Mood
    outcome: Outcome
    items_ordered: tuple[str, ...]
    timestamp: datetime


@dataclass(frozen=True)
class MoodAnalytics:
    """Read-side view of a mood's counters with all derived fields.

    Rates are percentages in [0, 100].
    """

    mood: Mood
    total_shown: int = 0
    total_ordered: int = 0
    order_rate: float = 0.0
    feedback_count: int = 0
    improved_count: int = 0
    same_count: int = 0
    worse_count: int = 0
    improvement_rate: float = 0.0
    historical_score: float = 0.0
    baseline_reached: bool = False
    baseline_progress: float = 0.0


@dataclass(frozen=True)
class ScoredItem:
    """One ranked recommendation with the per-factor breakdown."""

    item: MenuItem
    score: float
    breakdown: dict[str, float] = field(default_factory=dict)
    explanation: str | None = None


@dataclass(frozen=True)
class RecommendationResult:
    """Ranked recommendations for one request. Never persisted.

    ``mood`` is the requested mood text, which may not name a known mood.
    """

    mood: str
    items: list[ScoredItem]
    context: Context | None = None
    feedback_prompt_enabled: bool = False

    @property
    def item_ids(self) -> list[str]:
        return [scored.item.item_id for scored in self.items]
