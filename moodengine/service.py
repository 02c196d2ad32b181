"""gRPC servicer: the entry point for all inbound calls from the ordering app and admin console."""

from __future__ import annotations

import logging
import re
import time
from datetime import datetime, timezone
from typing import Any, Callable

import grpc
from google.protobuf import json_format
from google.protobuf.struct_pb2 import Struct

from moodengine.baseline import FeedbackStatus
from moodengine.catalogue import item_from_dict
from moodengine.engine import MoodRecommendationEngine
from moodengine.errors import CatalogueUnavailableError, MoodNotFoundError, ValidationError
from moodengine.feedback_config import FeedbackConfigStore
from moodengine.models import (
    FeedbackConfig,
    FeedbackRecord,
    Mood,
    MoodAnalytics,
    MoodDefinition,
    RecommendationResult,
)
from moodengine.mood_definitions import MoodDefinitionStore
from moodengine.reflections import ReflectionRecorder
from moodengine.statistics import OutcomeStatisticsStore

logger = logging.getLogger(__name__)

SERVICE_NAME = "moodengine.MoodEngine"

_RECOMMENDATION_WARN_THRESHOLD_MS = 200

METHODS = (
    "GetRecommendations",
    "TrackShown",
    "TrackOrdered",
    "RecordFeedback",
    "GetAnalytics",
    "ResetStatistics",
    "GetFeedbackConfig",
    "UpdateFeedbackConfig",
    "GetMoodDefinitions",
    "UpdateMoodDefinition",
    "InitializeMoodDefinitions",
    "GetFeedbackStatus",
    "GetMoodEffectiveness",
)


class MoodEngineServicer:
    """Implements the ``moodengine.MoodEngine`` gRPC service.

    Every method takes and returns a ``google.protobuf.Struct`` whose keys
    are camelCase, so clients only need the well-known types. Register with
    :func:`add_servicer_to_server`.

    Error mapping:

    =============================  ==================
    Exception                      Status code
    =============================  ==================
    ``ValueError`` (validation)    INVALID_ARGUMENT
    ``MoodNotFoundError``          NOT_FOUND
    ``CatalogueUnavailableError``  UNAVAILABLE
    anything else                  INTERNAL
    =============================  ==================

    Args:
        engine: The :class:`~moodengine.engine.MoodRecommendationEngine`.
        definitions: The mood definition store.
        statistics: The outcome statistics store.
        config_store: The feedback config store.
        recorder: The reflection recorder.
    """

    def __init__(
        self,
        engine: MoodRecommendationEngine,
        definitions: MoodDefinitionStore,
        statistics: OutcomeStatisticsStore,
        config_store: FeedbackConfigStore,
        recorder: ReflectionRecorder,
    ) -> None:
        self._engine = engine
        self._definitions = definitions
        self._statistics = statistics
        self._config_store = config_store
        self._recorder = recorder

    # ------------------------------------------------------------------
    # Recommendation request
    # ------------------------------------------------------------------

    def GetRecommendations(self, request: Struct, context: Any) -> Struct:
        """Return ranked items for ``mood``.

        ``items`` (optional) is a catalogue snapshot to rank instead of the
        cached menu; ``now`` (optional, ISO-8601) overrides the clock.
        """
        body = _to_dict(request)
        mood = body.get("mood")
        if not mood:
            context.set_code(grpc.StatusCode.INVALID_ARGUMENT)
            context.set_details("mood must be non-empty")
            return Struct()

        def run() -> dict[str, Any]:
            snapshot = None
            if "items" in body:
                snapshot = [item_from_dict(entry) for entry in body["items"]]
            now = _parse_datetime(body.get("now"))
            return _result_to_dict(self._engine.get_recommendations(mood, snapshot, now))

        start_ms = time.monotonic() * 1000
        try:
            return self._call(context, "GetRecommendations", run)
        finally:
            elapsed_ms = time.monotonic() * 1000 - start_ms
            if elapsed_ms > _RECOMMENDATION_WARN_THRESHOLD_MS:
                logger.warning(
                    "GetRecommendations for mood=%r took %.1fms", mood, elapsed_ms
                )
            else:
                logger.debug("GetRecommendations for mood=%r took %.1fms", mood, elapsed_ms)

    # ------------------------------------------------------------------
    # Fire-and-forget event methods
    # ------------------------------------------------------------------

    def TrackShown(self, request: Struct, context: Any) -> Struct:
        body = _to_dict(request)
        return self._call(
            context,
            "TrackShown",
            lambda: self._engine.track_shown(body.get("mood", ""), _list_field(body, "itemIds")),
        )

    def TrackOrdered(self, request: Struct, context: Any) -> Struct:
        body = _to_dict(request)
        return self._call(
            context,
            "TrackOrdered",
            lambda: self._engine.track_ordered(body.get("mood", ""), _list_field(body, "itemIds")),
        )

    def RecordFeedback(self, request: Struct, context: Any) -> Struct:
        """Record a post-order reflection and return the stored record."""
        body = _to_dict(request)

        def run() -> dict[str, Any]:
            record = self._recorder.record(
                order_id=body.get("orderId", ""),
                mood=body.get("mood", ""),
                outcome=body.get("outcome", ""),
                items_ordered=_list_field(body, "itemsOrdered"),
                timestamp=_parse_datetime(body.get("timestamp")),
            )
            return _record_to_dict(record)

        return self._call(context, "RecordFeedback", run)

    # ------------------------------------------------------------------
    # Analytics and administration
    # ------------------------------------------------------------------

    def GetAnalytics(self, request: Struct, context: Any) -> Struct:
        """Return analytics for ``mood``, or for every mood when omitted.

        A mood that is not one of the known moods has no counters, so it
        gets a zeroed row echoing the requested name rather than an error.
        """
        body = _to_dict(request)

        def run() -> dict[str, Any]:
            mood = body.get("mood")
            if not mood:
                rows = [_analytics_to_dict(a) for a in self._statistics.get_all_analytics()]
                return {"analytics": rows}
            try:
                key = Mood.parse(mood)
            except ValidationError:
                return {"analytics": [_empty_analytics(str(mood))]}
            return {"analytics": [_analytics_to_dict(self._statistics.get_analytics(key))]}

        return self._call(context, "GetAnalytics", run)

    def ResetStatistics(self, request: Struct, context: Any) -> Struct:
        body = _to_dict(request)

        def run() -> dict[str, Any]:
            mood = body.get("mood") or None
            self._statistics.reset(mood)
            target = f"mood {mood!r}" if mood else "all moods"
            return {"message": f"Statistics reset for {target}"}

        return self._call(context, "ResetStatistics", run)

    def GetFeedbackConfig(self, request: Struct, context: Any) -> Struct:
        return self._call(
            context,
            "GetFeedbackConfig",
            lambda: _config_to_dict(self._config_store.snapshot()),
        )

    def UpdateFeedbackConfig(self, request: Struct, context: Any) -> Struct:
        body = _to_dict(request)
        changes = {_snake(key): value for key, value in body.items()}
        return self._call(
            context,
            "UpdateFeedbackConfig",
            lambda: _config_to_dict(self._config_store.update(changes)),
        )

    def GetMoodDefinitions(self, request: Struct, context: Any) -> Struct:
        body = _to_dict(request)

        def run() -> dict[str, Any]:
            if body.get("activeOnly"):
                rows = self._definitions.list_active()
            else:
                rows = self._definitions.list_all()
            return {"definitions": [_definition_to_dict(d) for d in rows]}

        return self._call(context, "GetMoodDefinitions", run)

    def UpdateMoodDefinition(self, request: Struct, context: Any) -> Struct:
        body = _to_dict(request)
        mood = body.pop("mood", "")
        changes = {_snake(key): value for key, value in body.items()}
        return self._call(
            context,
            "UpdateMoodDefinition",
            lambda: _definition_to_dict(self._definitions.update(mood, changes)),
        )

    def InitializeMoodDefinitions(self, request: Struct, context: Any) -> Struct:
        return self._call(
            context,
            "InitializeMoodDefinitions",
            lambda: {"created": self._definitions.initialize()},
        )

    def GetFeedbackStatus(self, request: Struct, context: Any) -> Struct:
        body = _to_dict(request)
        return self._call(
            context,
            "GetFeedbackStatus",
            lambda: _status_to_dict(self._engine.feedback_status(body.get("mood", ""))),
        )

    def GetMoodEffectiveness(self, request: Struct, context: Any) -> Struct:
        body = _to_dict(request)

        def run() -> dict[str, Any]:
            result = self._engine.effectiveness(body.get("mood", ""))
            return {
                "mood": result.mood.value,
                "successRate": result.success_rate,
                "topItems": result.top_items,
            }

        return self._call(context, "GetMoodEffectiveness", run)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _call(context: Any, method: str, fn: Callable[[], Any]) -> Struct:
        """Run *fn*, mapping exceptions to gRPC status codes."""
        try:
            payload = fn()
        except CatalogueUnavailableError as exc:
            logger.warning("%s: catalogue unavailable: %s", method, exc)
            context.set_code(grpc.StatusCode.UNAVAILABLE)
            context.set_details(str(exc))
            return Struct()
        except MoodNotFoundError as exc:
            context.set_code(grpc.StatusCode.NOT_FOUND)
            context.set_details(str(exc))
            return Struct()
        except ValueError as exc:
            context.set_code(grpc.StatusCode.INVALID_ARGUMENT)
            context.set_details(str(exc))
            return Struct()
        except Exception:
            logger.exception("Unexpected error in %s", method)
            context.set_code(grpc.StatusCode.INTERNAL)
            context.set_details(f"Internal error in {method}.")
            return Struct()
        return _to_struct(payload or {})


def add_servicer_to_server(servicer: MoodEngineServicer, server: grpc.Server) -> None:
    """Register every method of *servicer* on *server* under :data:`SERVICE_NAME`."""
    handlers = {
        name: grpc.unary_unary_rpc_method_handler(
            getattr(servicer, name),
            request_deserializer=Struct.FromString,
            response_serializer=Struct.SerializeToString,
        )
        for name in METHODS
    }
    server.add_generic_rpc_handlers(
        (grpc.method_handlers_generic_handler(SERVICE_NAME, handlers),)
    )


# ---------------------------------------------------------------------------
# Message helpers
# ---------------------------------------------------------------------------


def _to_dict(message: Struct) -> dict[str, Any]:
    return json_format.MessageToDict(message)


def _to_struct(payload: dict[str, Any]) -> Struct:
    message = Struct()
    message.update(payload)
    return message


def _snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _list_field(body: dict[str, Any], key: str) -> list[Any]:
    """Return ``body[key]`` (default empty), rejecting anything but a list."""
    value = body.get(key, [])
    if not isinstance(value, list):
        raise ValidationError(f"{key} must be a list, got {type(value).__name__}")
    return value


def _parse_datetime(value: Any) -> datetime | None:
    """Parse an optional ISO-8601 string; naive values are taken as UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"Invalid timestamp {value!r}") from None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt is not None else None


def _result_to_dict(result: RecommendationResult) -> dict[str, Any]:
    return {
        "mood": result.mood,
        "items": [
            {
                "itemId": scored.item.item_id,
                "name": scored.item.name,
                "category": scored.item.category.value,
                "price": scored.item.price,
                "score": scored.score,
                "breakdown": {_camel(k): v for k, v in scored.breakdown.items()},
                "explanation": scored.explanation,
            }
            for scored in result.items
        ],
        "context": (
            {
                "timeBucket": result.context.time_bucket.value,
                "conditionBucket": result.context.condition_bucket.value,
            }
            if result.context
            else None
        ),
        "feedbackPromptEnabled": result.feedback_prompt_enabled,
    }


def _record_to_dict(record: FeedbackRecord) -> dict[str, Any]:
    return {
        "orderId": record.order_id,
        "mood": record.mood.value,
        "outcome": record.outcome.value,
        "itemsOrdered": list(record.items_ordered),
        "timestamp": _iso(record.timestamp),
    }


def _analytics_to_dict(analytics: MoodAnalytics) -> dict[str, Any]:
    return {
        "mood": analytics.mood.value,
        "totalShown": analytics.total_shown,
        "totalOrdered": analytics.total_ordered,
        "orderRate": analytics.order_rate,
        "feedbackCount": analytics.feedback_count,
        "improvedCount": analytics.improved_count,
        "sameCount": analytics.same_count,
        "worseCount": analytics.worse_count,
        "improvementRate": analytics.improvement_rate,
        "historicalScore": analytics.historical_score,
        "baselineReached": analytics.baseline_reached,
        "baselineProgress": analytics.baseline_progress,
    }


def _empty_analytics(mood_text: str) -> dict[str, Any]:
    return {
        "mood": mood_text,
        "totalShown": 0,
        "totalOrdered": 0,
        "orderRate": 0.0,
        "feedbackCount": 0,
        "improvedCount": 0,
        "sameCount": 0,
        "worseCount": 0,
        "improvementRate": 0.0,
        "historicalScore": 0.0,
        "baselineReached": False,
        "baselineProgress": 0.0,
    }


def _config_to_dict(config: FeedbackConfig) -> dict[str, Any]:
    return {
        "moodBenefitsWeight": config.mood_benefits_weight,
        "preferredCategoryWeight": config.preferred_category_weight,
        "historicalDataWeight": config.historical_data_weight,
        "featuredItemWeight": config.featured_item_weight,
        "priceRangeWeight": config.price_range_weight,
        "timeOfDayWeight": config.time_of_day_weight,
        "orderRateWeight": config.order_rate_weight,
        "feedbackRateWeight": config.feedback_rate_weight,
        "baselineThreshold": config.baseline_threshold,
        "feedbackEnabled": config.feedback_enabled,
        "autoEnableFeedback": config.auto_enable_feedback,
        "showMoodReflection": config.show_mood_reflection,
        "reflectionDelayMinutes": config.reflection_delay_minutes,
        "version": config.version,
        "updatedAt": _iso(config.updated_at),
    }


def _definition_to_dict(definition: MoodDefinition) -> dict[str, Any]:
    return {
        "mood": definition.mood.value,
        "preferredCategories": sorted(c.value for c in definition.preferred_categories),
        "excludeCategories": sorted(c.value for c in definition.exclude_categories),
        "isActive": definition.is_active,
        "emoji": definition.emoji,
        "label": definition.label,
        "color": definition.color,
        "description": definition.description,
        "supportMessage": definition.support_message,
        "scientificExplanation": definition.scientific_explanation,
        "beneficialNutrients": list(definition.beneficial_nutrients),
        "priceRange": list(definition.price_range) if definition.price_range else None,
        "updatedAt": _iso(definition.updated_at),
    }


def _status_to_dict(status: FeedbackStatus) -> dict[str, Any]:
    return {
        "mood": status.mood.value,
        "state": status.state.value,
        "baselineReached": status.baseline_reached,
        "baselineProgress": status.baseline_progress,
        "feedbackEnabled": status.feedback_enabled,
        "showReflection": status.show_reflection,
        "reflectionDelayMinutes": status.reflection_delay_minutes,
    }
