"""State snapshots: save and restore all engine state as one JSON document."""

from __future__ import annotations

import dataclasses
import json
import logging
import os
import tempfile
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Any

from moodengine.feedback_config import FeedbackConfigStore
from moodengine.models import (
    Category,
    FeedbackConfig,
    FeedbackRecord,
    ItemCounters,
    Mood,
    MoodCounters,
    MoodDefinition,
    Outcome,
)
from moodengine.mood_definitions import MoodDefinitionStore
from moodengine.reflections import FeedbackLog
from moodengine.statistics import OutcomeStatisticsStore

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


class StateSnapshotter:
    """Persists mood definitions, counters, config and the feedback log.

    The whole state is written as a single JSON document via a temporary file
    and an atomic rename, so a crash mid-write never leaves a truncated
    snapshot. Each store is read under its own lock; the snapshot is not a
    cross-store transaction.

    Args:
        path: Snapshot file location.
        definitions: The mood definition store.
        statistics: The outcome statistics store.
        config_store: The feedback config store.
        feedback_log: The append-only feedback log.
    """

    def __init__(
        self,
        path: str | Path,
        definitions: MoodDefinitionStore,
        statistics: OutcomeStatisticsStore,
        config_store: FeedbackConfigStore,
        feedback_log: FeedbackLog,
    ) -> None:
        self._path = Path(path)
        self._definitions = definitions
        self._statistics = statistics
        self._config_store = config_store
        self._feedback_log = feedback_log
        self._save_lock = threading.Lock()
        self._persist_thread: threading.Thread | None = None

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def save(self) -> None:
        """Write the current state to disk. Failures are logged, not raised."""
        try:
            document = self.dump()
            with self._save_lock:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(
                    dir=self._path.parent, prefix=self._path.name, suffix=".tmp"
                )
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as fh:
                        json.dump(document, fh, ensure_ascii=False, indent=2)
                    os.replace(tmp_name, self._path)
                except BaseException:
                    Path(tmp_name).unlink(missing_ok=True)
                    raise
            logger.info(
                "Persisted state: %d feedback records to %s.",
                len(document["feedback_log"]),
                self._path,
            )
        except Exception:
            logger.exception("Failed to persist state to %s.", self._path)

    def load(self) -> bool:
        """Restore state from disk.

        A missing file leaves the stores as they are. An unreadable or
        malformed file is logged and also leaves the stores untouched.

        Returns:
            ``True`` if a snapshot was restored.
        """
        if not self._path.exists():
            logger.info("No state snapshot at %s; starting fresh.", self._path)
            return False
        try:
            with self._path.open("r", encoding="utf-8") as fh:
                document = json.load(fh)
            self.restore(document)
        except Exception:
            logger.exception("Failed to load state snapshot from %s.", self._path)
            return False
        logger.info("Restored state from %s.", self._path)
        return True

    def start_persist_loop(self, interval_seconds: int = 60) -> None:
        """Start a background daemon thread that periodically calls :meth:`save`.

        Safe to call multiple times; only one thread is started.
        """
        if self._persist_thread is not None and self._persist_thread.is_alive():
            return
        self._persist_thread = threading.Thread(
            target=self._persist_loop,
            args=(interval_seconds,),
            name="state-persist",
            daemon=True,
        )
        self._persist_thread.start()
        logger.debug("State persist loop started (interval=%ds).", interval_seconds)

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def dump(self) -> dict[str, Any]:
        return {
            "version": SNAPSHOT_VERSION,
            "mood_definitions": [
                _definition_to_dict(d) for d in self._definitions.list_all()
            ],
            "statistics": {
                mood.value: _counters_to_dict(counters)
                for mood, counters in self._statistics.export_counters().items()
            },
            "feedback_config": _config_to_dict(self._config_store.snapshot()),
            "feedback_log": [_record_to_dict(r) for r in self._feedback_log.records()],
        }

    def restore(self, document: dict[str, Any]) -> None:
        """Load *document* into the stores.

        Everything is decoded before any store is touched, so a malformed
        document changes nothing.
        """
        if document.get("version") != SNAPSHOT_VERSION:
            raise ValueError(f"Unsupported snapshot version {document.get('version')!r}")
        definitions = [_definition_from_dict(d) for d in document.get("mood_definitions", [])]
        counters = {
            Mood.parse(mood): _counters_from_dict(data)
            for mood, data in document.get("statistics", {}).items()
        }
        config = _config_from_dict(document.get("feedback_config", {}))
        records = [_record_from_dict(r) for r in document.get("feedback_log", [])]

        self._config_store.replace(config)
        if definitions:
            self._definitions.replace_all(definitions)
            self._definitions.initialize()
        self._statistics.load_counters(counters)
        self._feedback_log.replace_all(records)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _persist_loop(self, interval_seconds: int) -> None:
        """Periodically persist all state. Runs in a daemon thread."""
        while True:
            time.sleep(interval_seconds)
            self.save()


# ---------------------------------------------------------------------------
# Field converters
# ---------------------------------------------------------------------------


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt is not None else None


def _from_iso(text: str | None) -> datetime | None:
    return datetime.fromisoformat(text) if text else None


def _definition_to_dict(definition: MoodDefinition) -> dict[str, Any]:
    return {
        "mood": definition.mood.value,
        "preferred_categories": sorted(c.value for c in definition.preferred_categories),
        "exclude_categories": sorted(c.value for c in definition.exclude_categories),
        "is_active": definition.is_active,
        "emoji": definition.emoji,
        "label": definition.label,
        "color": definition.color,
        "description": definition.description,
        "support_message": definition.support_message,
        "scientific_explanation": definition.scientific_explanation,
        "beneficial_nutrients": list(definition.beneficial_nutrients),
        "price_range": list(definition.price_range) if definition.price_range else None,
        "updated_at": _iso(definition.updated_at),
    }


def _definition_from_dict(data: dict[str, Any]) -> MoodDefinition:
    price_range = data.get("price_range")
    return MoodDefinition(
        mood=Mood.parse(data["mood"]),
        preferred_categories=frozenset(Category.parse(c) for c in data.get("preferred_categories", [])),
        exclude_categories=frozenset(Category.parse(c) for c in data.get("exclude_categories", [])),
        is_active=bool(data.get("is_active", True)),
        emoji=data.get("emoji", ""),
        label=data.get("label", ""),
        color=data.get("color", ""),
        description=data.get("description", ""),
        support_message=data.get("support_message"),
        scientific_explanation=data.get("scientific_explanation"),
        beneficial_nutrients=tuple(data.get("beneficial_nutrients", [])),
        price_range=(float(price_range[0]), float(price_range[1])) if price_range else None,
        updated_at=_from_iso(data.get("updated_at")),
    )


def _counters_to_dict(counters: MoodCounters) -> dict[str, Any]:
    data = dataclasses.asdict(counters)
    data["items"] = {
        item_id: {"shown": c.shown, "ordered": c.ordered}
        for item_id, c in counters.items.items()
    }
    return data


def _counters_from_dict(data: dict[str, Any]) -> MoodCounters:
    fields = {
        name: max(0, int(data.get(name, 0)))
        for name in (
            "total_shown",
            "total_ordered",
            "feedback_count",
            "improved_count",
            "same_count",
            "worse_count",
        )
    }
    items = {
        item_id: ItemCounters(
            shown=max(0, int(c.get("shown", 0))),
            ordered=max(0, int(c.get("ordered", 0))),
        )
        for item_id, c in data.get("items", {}).items()
    }
    return MoodCounters(**fields, items=items)


def _config_to_dict(config: FeedbackConfig) -> dict[str, Any]:
    data = dataclasses.asdict(config)
    data["updated_at"] = _iso(config.updated_at)
    return data


def _config_from_dict(data: dict[str, Any]) -> FeedbackConfig:
    known = {f.name for f in dataclasses.fields(FeedbackConfig)}
    values = {k: v for k, v in data.items() if k in known}
    values["updated_at"] = _from_iso(values.get("updated_at"))
    return FeedbackConfig(**values)


def _record_to_dict(record: FeedbackRecord) -> dict[str, Any]:
    return {
        "order_id": record.order_id,
        "mood": record.mood.value,
        "outcome": record.outcome.value,
        "items_ordered": list(record.items_ordered),
        "timestamp": _iso(record.timestamp),
    }


def _record_from_dict(data: dict[str, Any]) -> FeedbackRecord:
    return FeedbackRecord(
        order_id=str(data["order_id"]),
        mood=Mood.parse(data["mood"]),
        outcome=Outcome.parse(data["outcome"]),
        items_ordered=tuple(data.get("items_ordered", [])),
        timestamp=datetime.fromisoformat(data["timestamp"]),
    )
