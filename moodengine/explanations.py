"""Explicit lookup table for admin-authored mood explanations."""

from __future__ import annotations

from typing import Iterable

from moodengine.models import Category, MenuItem, Mood


class MoodBenefitIndex:
    """Maps (mood, item) to curated explanation text.

    Built once per catalogue load from each item's ``mood_benefits`` and an
    optional per-category table. Item-level copy wins over category copy.

    Args:
        items: The catalogue items to index.
        category_benefits: Optional explanation text per (category, mood).
    """

    def __init__(
        self,
        items: Iterable[MenuItem] = (),
        category_benefits: dict[Category, dict[Mood, str]] | None = None,
    ) -> None:
        self._by_item: dict[str, dict[Mood, str]] = {}
        for item in items:
            texts = {m: t for m, t in item.mood_benefits.items() if t and t.strip()}
            if texts:
                self._by_item[item.item_id] = texts
        self._by_category: dict[Category, dict[Mood, str]] = {
            category: {m: t for m, t in texts.items() if t and t.strip()}
            for category, texts in (category_benefits or {}).items()
        }

    def explanation(self, mood: Mood, item: MenuItem) -> str | None:
        """Return the explanation for *item* under *mood*, or ``None``."""
        text = self._by_item.get(item.item_id, {}).get(mood)
        if text is None:
            text = self._by_category.get(item.category, {}).get(mood)
        return text
