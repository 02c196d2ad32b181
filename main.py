"""Entry point: wires all components and starts the gRPC server."""

from __future__ import annotations

import logging
import signal
import sys
from concurrent import futures

import grpc

import config
from moodengine.catalogue import CatalogueServiceStub, MenuCatalogue
from moodengine.engine import MoodRecommendationEngine
from moodengine.feedback_config import FeedbackConfigStore
from moodengine.mood_definitions import MoodDefinitionStore
from moodengine.persistence import StateSnapshotter
from moodengine.reflections import FeedbackLog, ReflectionRecorder
from moodengine.scorer import RecommendationScorer
from moodengine.service import MoodEngineServicer, add_servicer_to_server
from moodengine.statistics import OutcomeStatisticsStore

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def build_server(
    engine: MoodRecommendationEngine,
    definitions: MoodDefinitionStore,
    statistics: OutcomeStatisticsStore,
    config_store: FeedbackConfigStore,
    recorder: ReflectionRecorder,
) -> grpc.Server:
    """Construct and configure the gRPC server with all dependencies wired.

    Returns:
        A configured but not-yet-started :class:`grpc.Server`.
    """
    servicer = MoodEngineServicer(
        engine=engine,
        definitions=definitions,
        statistics=statistics,
        config_store=config_store,
        recorder=recorder,
    )
    server = grpc.server(
        futures.ThreadPoolExecutor(max_workers=config.GRPC_MAX_WORKERS)
    )
    add_servicer_to_server(servicer, server)
    server.add_insecure_port(
        f"{config.GRPC_SERVER_HOST}:{config.GRPC_SERVER_PORT}"
    )
    return server


def main() -> None:
    """Initialise all components and start the gRPC server.

    Startup sequence:
    1. Build the stores and restore the last state snapshot.
    2. Connect to the catalogue service and load the menu.
    3. Start background threads (catalogue refresh, state persistence).
    4. Register ``SIGTERM``/``SIGINT`` shutdown handlers.
    5. Build and start the gRPC server.
    """
    config_store = FeedbackConfigStore()
    definitions = MoodDefinitionStore()
    statistics = OutcomeStatisticsStore(config_store)
    feedback_log = FeedbackLog()
    recorder = ReflectionRecorder(feedback_log, statistics)

    snapshotter = StateSnapshotter(
        config.STATE_SNAPSHOT_PATH, definitions, statistics, config_store, feedback_log
    )
    snapshotter.load()

    logger.info("Connecting to catalogue service at %s", config.CATALOGUE_SERVER_ADDRESS)
    catalogue_channel = grpc.insecure_channel(config.CATALOGUE_SERVER_ADDRESS)
    catalogue = MenuCatalogue(
        stub=CatalogueServiceStub(catalogue_channel, config.CATALOGUE_TIMEOUT_SECONDS),
        refresh_interval_seconds=config.CATALOGUE_REFRESH_INTERVAL_SECONDS,
    )
    if not catalogue.refresh():
        # Requests carrying their own snapshot still work; the loop retries.
        logger.warning("Menu catalogue not loaded yet; continuing without a cache.")

    engine = MoodRecommendationEngine(
        catalogue=catalogue,
        definitions=definitions,
        statistics=statistics,
        config_store=config_store,
        feedback_log=feedback_log,
        scorer=RecommendationScorer(limit=config.NUM_RECOMMENDATIONS),
        shown_executor=futures.ThreadPoolExecutor(
            max_workers=config.SHOWN_EVENT_WORKERS, thread_name_prefix="shown-events"
        ),
        top_items_limit=config.TOP_SUCCESS_ITEMS,
    )

    catalogue.start_refresh_loop()
    snapshotter.start_persist_loop(config.STATE_PERSIST_INTERVAL_SECONDS)

    server = build_server(engine, definitions, statistics, config_store, recorder)

    def handle_shutdown(signum: int, frame: object) -> None:
        sig_name = signal.Signals(signum).name
        logger.info("Received %s, persisting state and shutting down.", sig_name)
        server.stop(grace=5).wait()
        engine.shutdown(wait=True)
        snapshotter.save()
        sys.exit(0)

    signal.signal(signal.SIGTERM, handle_shutdown)
    signal.signal(signal.SIGINT, handle_shutdown)

    server.start()
    logger.info(
        "Mood engine gRPC server listening on %s:%d",
        config.GRPC_SERVER_HOST,
        config.GRPC_SERVER_PORT,
    )
    server.wait_for_termination()


if __name__ == "__main__":
    main()
