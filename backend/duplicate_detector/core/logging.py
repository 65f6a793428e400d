import logging
import logging.handlers
import sys
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from duplicate_detector.core.config import settings

# --- Logging Configuration ---

LOG_DIR      = Path(settings.LOG_DIR)
LOG_FILE     = LOG_DIR / "app.log"
LOG_LEVEL    = settings.LOG_LEVEL.upper()
ENVIRONMENT  = settings.ENVIRONMENT

LOG_MAX_BYTES    = 10 * 1024 * 1024  # 10 MB
LOG_BACKUP_COUNT = 5


# Extras attached through `logger.info(..., extra={...})`. Both formatters
# render them; missing ones are skipped.
CONTEXT_FIELDS = ("user_id", "endpoint", "method", "status_code", "duration_ms")


def context_of(record: logging.LogRecord) -> dict[str, Any]:
    return {
        field: getattr(record, field)
        for field in CONTEXT_FIELDS
        if getattr(record, field, None) is not None
    }


class DevFormatter(logging.Formatter):
    """
    Colored one-line format for local development, request context
    appended as key=value pairs:

    2026-02-25 10:32:11 | INFO     | duplicate_detector.main | GET /api/v1/projects -> 200  [user_id=4821 duration_ms=12.4]
    """

    LEVEL_COLORS = {
        "DEBUG"    : "\033[94m",   # BLUE
        "INFO"     : "\033[92m",   # GREEN
        "WARNING"  : "\033[93m",   # YELLOW
        "ERROR"    : "\033[91m",   # RED
        "CRITICAL" : "\033[95m",   # MAGENTA
    }
    RESET = "\033[0m"
    DIM   = "\033[2m"

    def format(self, record: logging.LogRecord) -> str:

        color     = self.LEVEL_COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        level     = f"{color}{record.levelname:<8}{self.RESET}"
        name      = record.name[:40]

        message = record.getMessage()

        context = context_of(record)
        if context:
            pairs = " ".join(f"{key}={value}" for key, value in context.items())
            message += f"  {self.DIM}[{pairs}]{self.RESET}"

        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)

        return f"{timestamp} | {level} | {name:<40} | {message}"


class JSONFormatter(logging.Formatter):

    """
    Production formatter, one JSON object per line so log aggregators
    can query individual fields.

    Example line:
    {
        "timestamp": "2026-02-25T10:32:11.123Z",
        "level": "INFO",
        "logger": "duplicate_detector.main",
        "message": "GET /api/v1/projects -> 200",
        "environment": "production",
        "service": "duplicate-detector-backend",
        "user_id": "4821",
        "endpoint": "/api/v1/projects",
        "method": "GET",
        "status_code": 200,
        "duration_ms": 12.4
    }
    """

    def format(self, record: logging.LogRecord) -> str:

        log_entry: dict[str, Any] = {
            "timestamp"   : datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level"       : record.levelname,
            "logger"      : record.name,
            "message"     : record.getMessage(),
            "environment" : ENVIRONMENT,
            "service"     : "duplicate-detector-backend",
        }
        log_entry.update(context_of(record))

        if record.exc_info:

            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


# Main SetUp

def setup_logging() -> None:

    """
    Initialize the application's logging system.

    Must be called only ONCE, from the lifespan in main.py.

    Configures two handlers:

    - StreamHandler: stdout -> docker compose logs

    - RotatingFileHandler: LOG_DIR/app.log -> volume on the host machine
    """

    if ENVIRONMENT == "production":
        formatter = JSONFormatter()
    else:
        formatter = DevFormatter()

    numeric_level = getattr(logging, LOG_LEVEL, logging.INFO)

    # --- Handler 1: stdout ---
    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setLevel(numeric_level)
    stream_handler.setFormatter(formatter)

    # --- Handler 2: rotating file ---
    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename    = LOG_FILE,
            maxBytes    = LOG_MAX_BYTES,
            backupCount = LOG_BACKUP_COUNT,
            encoding    = "utf-8"
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        handlers = [stream_handler, file_handler]
    except PermissionError:
        # Volume not mounted correctly, keep going with stdout only
        handlers = [stream_handler]
        logging.warning(
            f"Could not create log file at {LOG_FILE}. "
            f"Check the volume in docker-compose.yml. "
            f"Continuing with stdout only."
        )

    logging.basicConfig(
        level    = numeric_level,
        handlers = handlers,
        force    = True   # uvicorn installs its own handlers first
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("multipart").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(
        f"Logging initialized. "
        f"env={ENVIRONMENT}  level={LOG_LEVEL}  "
        f"file={LOG_FILE}"
    )


def get_logger(name: str) -> logging.Logger:
    """
    Returns a logger named after the calling module.
    """
    return logging.getLogger(name)
