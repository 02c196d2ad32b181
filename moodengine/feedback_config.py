"""Feedback configuration: scoring weights and feedback switches with atomic replace."""

from __future__ import annotations

import dataclasses
import logging
import math
import threading
from datetime import datetime, timezone
from typing import Any

from moodengine.errors import ValidationError
from moodengine.models import FeedbackConfig

logger = logging.getLogger(__name__)

_WEIGHT_FIELDS = (
    "mood_benefits_weight",
    "preferred_category_weight",
    "historical_data_weight",
    "featured_item_weight",
    "price_range_weight",
    "time_of_day_weight",
)
_RATIO_FIELDS = ("order_rate_weight", "feedback_rate_weight")
_BOOL_FIELDS = ("feedback_enabled", "auto_enable_feedback", "show_mood_reflection")
_UPDATABLE_FIELDS = frozenset(
    _WEIGHT_FIELDS
    + _RATIO_FIELDS
    + _BOOL_FIELDS
    + ("baseline_threshold", "reflection_delay_minutes")
)

REFLECTION_DELAY_RANGE = (5, 60)
_RATIO_TOLERANCE = 1e-6


class FeedbackConfigStore:
    """Holds the single process-wide :class:`FeedbackConfig`.

    Readers call :meth:`snapshot` and get an immutable object; writers build a
    complete replacement and publish it with one reference assignment under
    ``_write_lock``. A reader therefore sees either the old or the new weight
    set, never a mix.

    Args:
        initial: Starting configuration. Defaults to :class:`FeedbackConfig`.
    """

    def __init__(self, initial: FeedbackConfig | None = None) -> None:
        self._write_lock = threading.Lock()
        self._current = initial or FeedbackConfig()

    def snapshot(self) -> FeedbackConfig:
        """Return the current configuration."""
        return self._current

    def update(self, changes: dict[str, Any]) -> FeedbackConfig:
        """Validate *changes* and atomically publish the resulting config.

        If only one of ``order_rate_weight`` / ``feedback_rate_weight`` is
        given, the other is set to its complement so the pair keeps summing
        to 1.0.

        Args:
            changes: Field name to new value. Unknown names are rejected.

        Returns:
            The newly published :class:`FeedbackConfig`.

        Raises:
            ValidationError: If any field is invalid; nothing is applied.
        """
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown feedback config fields: {sorted(unknown)}")
        normalised = _normalise(changes)

        with self._write_lock:
            current = self._current
            if "order_rate_weight" in normalised and "feedback_rate_weight" not in normalised:
                normalised["feedback_rate_weight"] = 1.0 - normalised["order_rate_weight"]
            elif "feedback_rate_weight" in normalised and "order_rate_weight" not in normalised:
                normalised["order_rate_weight"] = 1.0 - normalised["feedback_rate_weight"]

            candidate = dataclasses.replace(
                current,
                **normalised,
                version=current.version + 1,
                updated_at=datetime.now(timezone.utc),
            )
            validate(candidate)
            self._current = candidate

        logger.info(
            "Feedback config updated to version %d (%s).",
            candidate.version,
            ", ".join(sorted(changes)) or "no fields",
        )
        return candidate

    def replace(self, config: FeedbackConfig) -> None:
        """Publish *config* wholesale after validating it (snapshot restore)."""
        validate(config)
        with self._write_lock:
            self._current = config


def validate(config: FeedbackConfig) -> None:
    """Raise :class:`ValidationError` if *config* breaks any invariant."""
    errors = []
    for name in _WEIGHT_FIELDS:
        value = getattr(config, name)
        if not math.isfinite(value) or value < 0:
            errors.append(f"{name} must be a non-negative number")
    for name in _RATIO_FIELDS:
        value = getattr(config, name)
        if not math.isfinite(value) or not 0.0 <= value <= 1.0:
            errors.append(f"{name} must be between 0 and 1")
    if abs(config.order_rate_weight + config.feedback_rate_weight - 1.0) > _RATIO_TOLERANCE:
        errors.append("order_rate_weight and feedback_rate_weight must sum to 1.0")
    if config.baseline_threshold <= 0:
        errors.append("baseline_threshold must be a positive integer")
    low, high = REFLECTION_DELAY_RANGE
    if not low <= config.reflection_delay_minutes <= high:
        errors.append(f"reflection_delay_minutes must be between {low} and {high}")
    if errors:
        raise ValidationError("; ".join(errors))


def _normalise(changes: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for name, value in changes.items():
        if name in _BOOL_FIELDS:
            if not isinstance(value, bool):
                raise ValidationError(f"{name} must be a boolean")
            out[name] = value
        elif name in ("baseline_threshold", "reflection_delay_minutes"):
            out[name] = _as_int(name, value)
        else:
            if isinstance(value, bool):
                raise ValidationError(f"{name} must be a number")
            try:
                out[name] = float(value)
            except (TypeError, ValueError):
                raise ValidationError(f"{name} must be a number") from None
    return out


def _as_int(name: str, value: Any) -> int:
    # Struct payloads carry every number as a float.
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{name} must be an integer")
        return int(value)
    if isinstance(value, int):
        return value
    raise ValidationError(f"{name} must be an integer")
