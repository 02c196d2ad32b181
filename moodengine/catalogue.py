"""Menu catalogue: fetches and caches menu items from the external catalogue service."""

from __future__ import annotations

import json
import logging
import threading
import time
from typing import Any, Iterable

import grpc
from google.protobuf import json_format
from google.protobuf.struct_pb2 import Struct

from moodengine.errors import CatalogueUnavailableError, ValidationError
from moodengine.explanations import MoodBenefitIndex
from moodengine.models import Category, MenuItem, Mood

logger = logging.getLogger(__name__)

GET_MENU_METHOD = "/menu.CatalogueService/GetMenu"


class CatalogueServiceStub:
    """Minimal client for the catalogue service's ``GetMenu`` call.

    Requests and responses are ``google.protobuf.Struct`` messages, so no
    generated code is needed.

    Args:
        channel: An open :class:`grpc.Channel` to the catalogue service.
        timeout_seconds: Deadline applied to every call.
    """

    def __init__(self, channel: grpc.Channel, timeout_seconds: float = 5.0) -> None:
        self._timeout = timeout_seconds
        self._get_menu = channel.unary_unary(
            GET_MENU_METHOD,
            request_serializer=Struct.SerializeToString,
            response_deserializer=Struct.FromString,
        )

    def GetMenu(self, request: Struct) -> Struct:
        return self._get_menu(request, timeout=self._timeout)


class MenuCatalogue:
    """Fetches and caches the menu from the catalogue service.

    The catalogue is loaded synchronously on first call to :meth:`refresh`,
    then kept fresh by a background daemon thread. The explanation index is
    rebuilt with every successful load. The core never mutates the menu.

    All public methods are thread-safe.

    Args:
        stub: Any object with a ``GetMenu(Struct) -> Struct`` callable, such
            as :class:`CatalogueServiceStub`.
        refresh_interval_seconds: How often the background thread refreshes
            the catalogue. Defaults to 300 (5 minutes).
    """

    def __init__(self, stub: Any, refresh_interval_seconds: int = 300) -> None:
        self._stub = stub
        self._refresh_interval = refresh_interval_seconds
        self._lock = threading.RLock()
        self._items: dict[str, MenuItem] = {}
        self._benefits = MoodBenefitIndex()
        self._category_benefits: dict[Category, dict[Mood, str]] = {}
        self._loaded = False
        self._refresh_thread: threading.Thread | None = None

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def refresh(self) -> bool:
        """Fetch the full menu and update the cache.

        On failure, logs an error and keeps the existing cache.

        Returns:
            ``True`` if the cache was replaced.
        """
        try:
            response = self._stub.GetMenu(Struct())
            payload = json_format.MessageToDict(response)
            items = items_from_payload(payload.get("items", []))
            category_benefits = category_benefits_from_payload(payload.get("categoryBenefits"))
        except Exception:
            logger.exception(
                "Failed to refresh menu catalogue; keeping existing %d items.",
                len(self._items),
            )
            return False
        self.load_items(items, category_benefits)
        logger.info("Menu catalogue refreshed: %d items loaded.", len(items))
        return True

    def load_items(
        self,
        items: Iterable[MenuItem],
        category_benefits: dict[Category, dict[Mood, str]] | None = None,
    ) -> None:
        """Replace the cached menu with *items* and rebuild the explanation index.

        Args:
            items: The full menu, in catalogue order.
            category_benefits: Explanation text per (category, mood), used for
                items without their own copy.
        """
        new_items = {item.item_id: item for item in items}
        categories = dict(category_benefits or {})
        index = MoodBenefitIndex(new_items.values(), categories)
        with self._lock:
            self._items = new_items
            self._category_benefits = categories
            self._benefits = index
            self._loaded = True

    def start_refresh_loop(self) -> None:
        """Start a background daemon thread that periodically calls :meth:`refresh`.

        Safe to call multiple times; only one refresh thread is started.
        """
        if self._refresh_thread is not None and self._refresh_thread.is_alive():
            return
        self._refresh_thread = threading.Thread(
            target=self._refresh_loop,
            name="catalogue-refresh",
            daemon=True,
        )
        self._refresh_thread.start()
        logger.debug("Catalogue refresh loop started (interval=%ds).", self._refresh_interval)

    @property
    def is_loaded(self) -> bool:
        with self._lock:
            return self._loaded

    def get_all_items(self) -> list[MenuItem]:
        """Return a snapshot of the cached menu in catalogue order.

        Raises:
            CatalogueUnavailableError: If no menu has ever been loaded.
        """
        with self._lock:
            if not self._loaded:
                raise CatalogueUnavailableError("Menu catalogue has not been loaded")
            return list(self._items.values())

    def get_item(self, item_id: str) -> MenuItem | None:
        with self._lock:
            return self._items.get(item_id)

    @property
    def benefits(self) -> MoodBenefitIndex:
        with self._lock:
            return self._benefits

    @property
    def category_benefits(self) -> dict[Category, dict[Mood, str]]:
        """Per-category explanation copy from the last successful load."""
        with self._lock:
            return dict(self._category_benefits)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _refresh_loop(self) -> None:
        """Periodically refresh the catalogue. Runs in a daemon thread."""
        while True:
            time.sleep(self._refresh_interval)
            self.refresh()


# ---------------------------------------------------------------------------
# Payload parsing
# ---------------------------------------------------------------------------


def item_from_dict(data: dict[str, Any]) -> MenuItem:
    """Build a :class:`MenuItem` from a JSON-shaped mapping.

    Accepts ``id`` or ``itemId``. ``moodBenefits`` may be a mapping or a JSON
    string of ``{mood: text}``; entries for unknown moods are ignored.

    Raises:
        ValidationError: If the id, name or category is missing or invalid.
    """
    item_id = data.get("itemId", data.get("id"))
    if item_id in (None, ""):
        raise ValidationError("Menu item is missing an id")
    # Struct numbers arrive as floats; ids like 1.0 should read as "1".
    if isinstance(item_id, float) and item_id.is_integer():
        item_id = int(item_id)
    name = data.get("name")
    if not name:
        raise ValidationError(f"Menu item {item_id!r} is missing a name")
    if "category" not in data:
        raise ValidationError(f"Menu item {item_id!r} is missing a category")
    try:
        price = float(data.get("price", 0.0) or 0.0)
    except (TypeError, ValueError):
        raise ValidationError(f"Menu item {item_id!r} has an invalid price") from None
    return MenuItem(
        item_id=str(item_id),
        name=str(name),
        category=Category.parse(data["category"]),
        price=price,
        available=bool(data.get("available", True)),
        featured=bool(data.get("featured", False)),
        mood_benefits=_parse_mood_benefits(data.get("moodBenefits")),
    )


def items_from_payload(entries: Iterable[dict[str, Any]]) -> list[MenuItem]:
    """Parse menu entries, skipping (and logging) any that are malformed."""
    items = []
    for entry in entries:
        try:
            items.append(item_from_dict(entry))
        except ValidationError as exc:
            logger.warning("Skipping menu entry: %s", exc)
    return items


def category_benefits_from_payload(raw: Any) -> dict[Category, dict[Mood, str]]:
    """Parse ``{category: {mood: text}}`` copy, skipping unknown categories and moods."""
    if not isinstance(raw, dict):
        return {}
    table: dict[Category, dict[Mood, str]] = {}
    for name, texts in raw.items():
        try:
            category = Category.parse(name)
        except ValidationError:
            logger.warning("Skipping explanation copy for unknown category %r.", name)
            continue
        benefits = _parse_mood_benefits(texts)
        if benefits:
            table[category] = benefits
    return table


def _parse_mood_benefits(raw: Any) -> dict[Mood, str]:
    if not raw:
        return {}
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring unparseable moodBenefits value.")
            return {}
    if not isinstance(raw, dict):
        return {}
    benefits: dict[Mood, str] = {}
    for key, text in raw.items():
        try:
            mood = Mood.parse(key)
        except ValidationError:
            continue
        if isinstance(text, str) and text.strip():
            benefits[mood] = text
    return benefits
