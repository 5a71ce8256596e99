import json, logging, sys
from datetime import datetime, timezone

from app.core.config import LOG_FILE, LOG_LEVEL

# Extra record attributes copied into the JSON payload when present
EXTRA_FIELDS = (
    "request_id", "route", "remote_addr",
    "principal", "action", "outcome", "resource", "details",
)


class JsonFormatter(logging.Formatter):
    def format(self, record):
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for k in EXTRA_FIELDS:
            if hasattr(record, k):
                payload[k] = getattr(record, k)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(log_level: str | None = None, log_file: str | None = None):
    """Install JSON handlers on the root logger.

    Args:
        log_level: Log level. Defaults to GATEWAY_LOG_LEVEL (INFO).
        log_file: Optional path to an append-mode log file. Defaults to
            GATEWAY_LOG_FILE; no file handler when unset.
    """
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(JsonFormatter())
    handlers: list[logging.Handler] = [console_handler]

    log_file = log_file or LOG_FILE
    if log_file:
        file_handler = logging.FileHandler(log_file, mode='a')
        file_handler.setFormatter(JsonFormatter())
        handlers.append(file_handler)

    root = logging.getLogger()
    level = (log_level or LOG_LEVEL).upper()
    root.setLevel(getattr(logging, level, logging.INFO))
    root.handlers = handlers
