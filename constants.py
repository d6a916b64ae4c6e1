import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 5000))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

EXECUTION_API_URL = os.getenv("EXECUTION_API_URL", "https://emkc.org/api/v2/piston/execute")
EXECUTION_TIMEOUT_SECONDS = float(os.getenv("EXECUTION_TIMEOUT_SECONDS", 15))

# Empty rooms get a second look after this delay and are dropped if still empty
EMPTY_ROOM_CLEANUP_SECONDS = float(os.getenv("EMPTY_ROOM_CLEANUP_SECONDS", 5 * 60))

IDLE_ROOM_THRESHOLD_SECONDS = float(os.getenv("IDLE_ROOM_THRESHOLD_SECONDS", 24 * 60 * 60))
IDLE_SWEEP_INTERVAL_SECONDS = float(os.getenv("IDLE_SWEEP_INTERVAL_SECONDS", 60 * 60))
