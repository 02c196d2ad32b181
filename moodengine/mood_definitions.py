"""Mood definition store: preferred/excluded categories and admin copy per mood."""

from __future__ import annotations

import dataclasses
import logging
import re
import threading
from datetime import datetime, timezone
from typing import Any, Iterable

from moodengine.errors import MoodNotFoundError, ValidationError
from moodengine.models import Category, Mood, MoodDefinition

logger = logging.getLogger(__name__)

C = Category

# Seed data: (emoji, label, description, support message, preferred, excluded, nutrients)
_DEFAULTS: dict[Mood, tuple[str, str, str, str | None, list[Category], list[Category], list[str]]] = {
    Mood.HAPPY: (
        "😊", "Happy", "Celebrate your joy!", None,
        [C.PIZZA, C.APPETIZER, C.SMOOTHIE], [],
        ["Omega-3 (DHA/EPA)", "Vitamin B Complex", "Tryptophan"],
    ),
    Mood.ENERGETIC: (
        "⚡", "Energetic", "Keep the energy going!", None,
        [C.COLD_DRINKS, C.HOT_DRINKS, C.APPETIZER], [],
        ["B-Vitamins", "Iron", "Complex Carbohydrates", "Moderate Caffeine"],
    ),
    Mood.RELAXED: (
        "😌", "Relaxed", "Enjoy the calm moment", None,
        [C.SMOOTHIE, C.HOT_DRINKS, C.PLATTER], [],
        ["Magnesium", "L-Theanine", "Calcium", "Vitamin B6"],
    ),
    Mood.EXCITED: (
        "🎉", "Excited", "Make it extra special!", None,
        [C.PIZZA, C.VALUE_MEAL, C.COLD_DRINKS], [],
        ["Tyrosine", "Vitamin D", "Omega-3 Fatty Acids"],
    ),
    Mood.TIRED: (
        "😴", "Tired", "Recharge yourself", "Take it easy, you deserve a break!",
        [C.HOT_DRINKS, C.SAVERS, C.SMOOTHIE], [],
        ["Iron", "Vitamin B12", "Magnesium", "CoQ10", "Moderate Caffeine"],
    ),
    Mood.STRESSED: (
        "😰", "Stressed", "Let us help you unwind",
        "Deep breaths! We're here to help you feel better.",
        [C.SMOOTHIE, C.PLATTER, C.SAVERS], [C.HOT_DRINKS],
        ["Omega-3 (EPA/DHA)", "Vitamin C", "Magnesium", "Complex Carbohydrates"],
    ),
    Mood.ANXIOUS: (
        "😟", "Anxious", "Find your comfort zone",
        "You're stronger than you think. One step at a time.",
        [C.HOT_DRINKS, C.SAVERS, C.APPETIZER], [C.COLD_DRINKS],
        ["Magnesium", "Omega-3 Fatty Acids", "L-Theanine", "Vitamin B Complex"],
    ),
    Mood.SAD: (
        "😢", "Sad", "Let us brighten your day",
        "It's okay to feel this way. We're here for you!",
        [C.SMOOTHIE, C.PIZZA, C.VALUE_MEAL], [],
        ["Tryptophan", "Omega-3 (EPA/DHA)", "Vitamin D", "Folate"],
    ),
    Mood.DEPRESSED: (
        "😔", "Feeling Down", "We care about you",
        "You matter. Take care of yourself, one meal at a time.",
        [C.SMOOTHIE, C.SAVERS, C.APPETIZER], [],
        ["Omega-3 (EPA/DHA)", "Folate", "Vitamin B12", "Tryptophan", "Vitamin D"],
    ),
    Mood.ANGRY: (
        "😠", "Angry", "Cool down with us",
        "Take a moment for yourself. You've got this!",
        [C.COLD_DRINKS, C.SMOOTHIE, C.APPETIZER], [],
        ["Omega-3 Fatty Acids", "Magnesium", "Vitamin C", "B-Vitamins"],
    ),
}

# Picker colour and the nutrition rationale shown on the mood detail card.
_PALETTE: dict[Mood, tuple[str, str]] = {
    Mood.HAPPY: (
        "#F9C900",
        "Maintain your positive mood with foods rich in omega-3 fatty acids and "
        "B-vitamins that support dopamine and serotonin production, the "
        "neurotransmitters responsible for happiness and well-being.",
    ),
    Mood.ENERGETIC: (
        "#FF6B35",
        "Sustain your energy with balanced meals containing complex carbohydrates "
        "and moderate caffeine. B-vitamins help convert food into cellular energy, "
        "while iron supports oxygen transport for sustained vitality.",
    ),
    Mood.RELAXED: (
        "#95E1D3",
        "Enhance relaxation with foods containing magnesium and L-theanine, which "
        "promote GABA production, a neurotransmitter that calms neural activity. "
        "Avoid excessive stimulants to maintain your peaceful state.",
    ),
    Mood.EXCITED: (
        "#F38181",
        "Celebrate with foods that support dopamine levels, the neurotransmitter of "
        "reward and pleasure. Balanced nutrition helps maintain your excitement "
        "without energy crashes.",
    ),
    Mood.TIRED: (
        "#AA96DA",
        "Combat fatigue with foods rich in iron, vitamin B12, and CoQ10 which support "
        "cellular energy production. Moderate caffeine from coffee can provide a "
        "temporary boost, while magnesium helps reduce muscle tiredness.",
    ),
    Mood.STRESSED: (
        "#FCBAD3",
        "Reduce stress with omega-3 fatty acids (EPA/DHA) which lower cortisol levels "
        "and reduce inflammation. Vitamin C helps regulate stress hormones, while "
        "complex carbohydrates stabilize blood sugar and mood. Avoid caffeine which "
        "can increase anxiety.",
    ),
    Mood.ANXIOUS: (
        "#FFFFD2",
        "Calm anxiety with magnesium-rich foods that regulate neurotransmitters and "
        "reduce nervous system excitability. Omega-3 fatty acids have been shown to "
        "reduce anxiety symptoms in clinical trials. L-theanine from tea promotes "
        "relaxation without sedation.",
    ),
    Mood.SAD: (
        "#A8DADC",
        "Boost mood with tryptophan-rich foods that help produce serotonin, the "
        "\"feel-good\" neurotransmitter. Dark chocolate contains compounds that "
        "release endorphins. Vitamin D and omega-3s have shown effectiveness in "
        "improving depressive symptoms in research studies.",
    ),
    Mood.DEPRESSED: (
        "#B4A7D6",
        "Clinical studies show EPA and DHA omega-3 fatty acids can significantly "
        "improve depressive symptoms. Folate and vitamin B12 support neurotransmitter "
        "synthesis. Regular meals with tryptophan help maintain serotonin levels. "
        "Consider seeking professional support alongside nutritional care.",
    ),
    Mood.ANGRY: (
        "#E63946",
        "Cool down with foods rich in omega-3 fatty acids which reduce inflammatory "
        "responses linked to irritability. Magnesium helps regulate stress hormones, "
        "while vitamin C from fresh ingredients supports adrenal function. Cold, "
        "refreshing foods can have a calming psychological effect.",
    ),
}

_TEXT_FIELDS = ("emoji", "label", "description")
_NULLABLE_TEXT_FIELDS = ("support_message", "scientific_explanation")
_COLOR_PATTERN = re.compile(r"^#[0-9A-Fa-f]{6}$")
_UPDATABLE_FIELDS = frozenset(
    _TEXT_FIELDS
    + _NULLABLE_TEXT_FIELDS
    + (
        "color",
        "preferred_categories",
        "exclude_categories",
        "is_active",
        "beneficial_nutrients",
        "price_range",
    )
)


def default_definition(mood: Mood) -> MoodDefinition:
    """Return the seeded :class:`MoodDefinition` for *mood*."""
    emoji, label, description, support, preferred, excluded, nutrients = _DEFAULTS[mood]
    color, explanation = _PALETTE[mood]
    return MoodDefinition(
        mood=mood,
        preferred_categories=frozenset(preferred),
        exclude_categories=frozenset(excluded),
        emoji=emoji,
        label=label,
        color=color,
        description=description,
        support_message=support,
        scientific_explanation=explanation,
        beneficial_nutrients=tuple(nutrients),
    )


class MoodDefinitionStore:
    """Thread-safe store holding one :class:`MoodDefinition` per mood.

    Definitions are immutable; :meth:`update` builds a replacement and swaps
    it in under the lock, so a reader holding a definition never sees it
    change. Definitions are never deleted, only deactivated.

    Args:
        definitions: Initial definitions. When omitted the store is seeded
            with the defaults for every :class:`Mood`.
    """

    def __init__(self, definitions: Iterable[MoodDefinition] | None = None) -> None:
        self._lock = threading.RLock()
        self._definitions: dict[Mood, MoodDefinition] = {}
        if definitions is None:
            self.initialize()
        else:
            for definition in definitions:
                self._definitions[definition.mood] = definition

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, mood: Mood | str) -> MoodDefinition:
        """Return the definition for *mood*.

        Raises:
            MoodNotFoundError: If *mood* is unknown or has no definition.
        """
        try:
            key = Mood.parse(mood)
        except ValidationError:
            raise MoodNotFoundError(str(mood)) from None
        with self._lock:
            definition = self._definitions.get(key)
        if definition is None:
            raise MoodNotFoundError(key.value)
        return definition

    def find(self, mood: Mood | str) -> MoodDefinition | None:
        """Like :meth:`get` but returns ``None`` instead of raising."""
        try:
            return self.get(mood)
        except MoodNotFoundError:
            return None

    def list_all(self) -> list[MoodDefinition]:
        with self._lock:
            return [self._definitions[m] for m in Mood if m in self._definitions]

    def list_active(self) -> list[MoodDefinition]:
        """Return active definitions in :class:`Mood` declaration order."""
        return [d for d in self.list_all() if d.is_active]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def initialize(self) -> int:
        """Seed a default definition for every mood that lacks one.

        Existing (possibly edited) definitions are left untouched.

        Returns:
            The number of definitions created.
        """
        created = 0
        with self._lock:
            for mood in Mood:
                if mood not in self._definitions:
                    self._definitions[mood] = default_definition(mood)
                    created += 1
        if created:
            logger.info("Seeded %d default mood definitions.", created)
        return created

    def update(self, mood: Mood | str, changes: dict[str, Any]) -> MoodDefinition:
        """Apply a partial update to *mood*'s definition.

        Args:
            mood: The mood to update.
            changes: Field name to new value. Category fields accept any
                spelling understood by :meth:`Category.parse`.

        Returns:
            The new :class:`MoodDefinition`.

        Raises:
            MoodNotFoundError: If *mood* has no definition.
            ValidationError: If a field is unknown or a value is invalid.
                The stored definition is unchanged.
        """
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown mood definition fields: {sorted(unknown)}")
        normalised = _normalise_changes(changes)

        with self._lock:
            current = self.get(mood)
            updated = dataclasses.replace(
                current, **normalised, updated_at=datetime.now(timezone.utc)
            )
            self._definitions[current.mood] = updated
        logger.info("Updated mood definition %r: %s", current.mood.value, sorted(changes))
        return updated

    def replace_all(self, definitions: Iterable[MoodDefinition]) -> None:
        """Swap in a complete set of definitions (used when restoring a snapshot)."""
        loaded = {d.mood: d for d in definitions}
        with self._lock:
            self._definitions = loaded


def _normalise_changes(changes: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for name, value in changes.items():
        if name in ("preferred_categories", "exclude_categories"):
            if isinstance(value, str) or not isinstance(value, Iterable):
                raise ValidationError(f"{name} must be a list of categories")
            out[name] = frozenset(Category.parse(v) for v in value)
        elif name == "is_active":
            if not isinstance(value, bool):
                raise ValidationError("is_active must be a boolean")
            out[name] = value
        elif name == "beneficial_nutrients":
            if isinstance(value, str) or not isinstance(value, Iterable):
                raise ValidationError("beneficial_nutrients must be a list of strings")
            out[name] = tuple(str(v).strip() for v in value if str(v).strip())
        elif name == "price_range":
            out[name] = _parse_price_range(value)
        elif name == "color":
            if not isinstance(value, str) or not _COLOR_PATTERN.match(value):
                raise ValidationError("color must be a #RRGGBB hex string")
            out[name] = value.upper()
        elif name in _NULLABLE_TEXT_FIELDS:
            out[name] = None if value is None else str(value)
        else:
            if value is None:
                raise ValidationError(f"{name} cannot be null")
            out[name] = str(value)
    return out


def _parse_price_range(value: Any) -> tuple[float, float] | None:
    if value is None:
        return None
    try:
        low, high = (float(v) for v in value)
    except (TypeError, ValueError):
        raise ValidationError("price_range must be a [low, high] pair of numbers") from None
    if low < 0 or high < low:
        raise ValidationError(f"Invalid price_range [{low}, {high}]")
    return (low, high)
