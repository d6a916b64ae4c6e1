import uvicorn
import os
from constants import HOST, PORT, LOG_LEVEL, LOG_FILE
from logging_config import get_logger, setup_logging

# Setup logging before uvicorn imports the app
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)

if __name__ == "__main__":
    reload = os.getenv("RELOAD", "false").lower() == "true"
    logger.info(f"CodeSync server running on {HOST}:{PORT}")
    logger.info(f"Stats available at http://localhost:{PORT}/api/stats")
    uvicorn.run("app:app", host=HOST, port=PORT, reload=reload)
