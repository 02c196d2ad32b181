"""Exception types raised by the mood engine."""

from __future__ import annotations


class ValidationError(ValueError):
    """A request or administrative update was malformed; state is unchanged."""


class MoodNotFoundError(LookupError):
    """No definition exists for the requested mood."""

    def __init__(self, mood: str) -> None:
        super().__init__(f"No mood definition for {mood!r}")
        self.mood = mood


class CatalogueUnavailableError(RuntimeError):
    """The menu catalogue could not be obtained at all."""
