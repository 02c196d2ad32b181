"""Application configuration driven by environment variables.

All settings have sensible defaults for local development.
"""

import os

# ---------------------------------------------------------------------------
# Python gRPC server (ordering app and admin console connect here)
# ---------------------------------------------------------------------------

GRPC_SERVER_HOST: str = os.getenv("GRPC_SERVER_HOST", "0.0.0.0")
GRPC_SERVER_PORT: int = int(os.getenv("GRPC_SERVER_PORT", "50061"))

# Thread pool size for the gRPC server.  Each concurrent RPC occupies one
# thread, so this caps concurrent request handling.
GRPC_MAX_WORKERS: int = int(os.getenv("GRPC_MAX_WORKERS", "10"))

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# ---------------------------------------------------------------------------
# Menu catalogue service (we connect to it as a gRPC client)
# ---------------------------------------------------------------------------

CATALOGUE_SERVER_ADDRESS: str = os.getenv("CATALOGUE_SERVER_ADDRESS", "localhost:50062")

# Deadline for a single GetMenu call.
CATALOGUE_TIMEOUT_SECONDS: float = float(os.getenv("CATALOGUE_TIMEOUT_SECONDS", "5"))

# How often (seconds) to refresh the menu from the catalogue service.
CATALOGUE_REFRESH_INTERVAL_SECONDS: int = int(
    os.getenv("CATALOGUE_REFRESH_INTERVAL_SECONDS", "300")
)

# ---------------------------------------------------------------------------
# Recommendation engine
# ---------------------------------------------------------------------------

NUM_RECOMMENDATIONS: int = 8       # items returned per request
TOP_SUCCESS_ITEMS: int = 5         # improved-reflection items per mood
SHOWN_EVENT_WORKERS: int = int(os.getenv("SHOWN_EVENT_WORKERS", "2"))

# ---------------------------------------------------------------------------
# State persistence
# ---------------------------------------------------------------------------

STATE_SNAPSHOT_PATH: str = os.getenv("STATE_SNAPSHOT_PATH", "data/mood_state.json")

# How often (seconds) to write the state snapshot.
STATE_PERSIST_INTERVAL_SECONDS: int = int(
    os.getenv("STATE_PERSIST_INTERVAL_SECONDS", "60")
)
