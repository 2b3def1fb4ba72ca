import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Any, Optional

from app.core.context import get_caller, get_request_id
from app.core.settings import settings

AUDIT_LOGGER = "app.audit"
PLAIN_FORMAT = "%(asctime)s %(levelname)-7s [%(request_id)s %(caller)s] %(name)s: %(message)s"


class RequestContextFilter(logging.Filter):
    """Stamp every record with the request id and the verified caller."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()
        record.caller = get_caller()
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line; ``extra={"context": {...}}`` is carried through."""

    def __init__(self, stream: str = "app") -> None:
        super().__init__()
        self.stream = stream

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "stream": self.stream,
            "request_id": getattr(record, "request_id", "-"),
            "caller": getattr(record, "caller", "-"),
            "message": record.getMessage(),
        }
        context = getattr(record, "context", None)
        if isinstance(context, dict) and context:
            entry["context"] = context
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _stream_handler(formatter: str, level: str) -> dict[str, Any]:
    return {
        "class": "logging.StreamHandler",
        "level": level,
        "formatter": formatter,
        "filters": ["request_context"],
        "stream": "ext://sys.stdout",
    }


def configure_logging(level: Optional[str] = None, *, json_output: Optional[bool] = None) -> None:
    log_level = (level or settings.log_level).upper()
    if json_output is None:
        json_output = settings.environment != "development"
    app_formatter = "json" if json_output else "plain"

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {"request_context": {"()": RequestContextFilter}},
            "formatters": {
                "json": {"()": JsonFormatter, "stream": "app"},
                "audit": {"()": JsonFormatter, "stream": "audit"},
                "plain": {"format": PLAIN_FORMAT},
            },
            "handlers": {
                "app": _stream_handler(app_formatter, log_level),
                "audit": _stream_handler("audit", log_level),
            },
            "root": {"handlers": ["app"], "level": log_level},
            "loggers": {
                AUDIT_LOGGER: {"handlers": ["audit"], "level": "INFO", "propagate": False},
                "uvicorn.access": {"handlers": ["app"], "level": log_level, "propagate": False},
            },
        }
    )
    logging.getLogger(__name__).info(
        "Logging configured (environment=%s, json=%s)", settings.environment, json_output
    )


def get_audit_logger() -> logging.Logger:
    return logging.getLogger(AUDIT_LOGGER)
