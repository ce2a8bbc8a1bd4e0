import json
import logging
import logging.config
import threading
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

# Set by the request middleware; background job threads log without one.
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


class RequestContextFilter(logging.Filter):
    """Stamps every record with the current request id and worker thread."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        record.worker = threading.current_thread().name
        return True


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured engine logs."""

    RESERVED = {
        "name", "msg", "args", "levelname", "levelno", "pathname", "filename",
        "module", "exc_info", "exc_text", "stack_info", "lineno", "funcName",
        "created", "msecs", "relativeCreated", "thread", "threadName", "processName",
        "process", "message", "asctime", "taskName",
    }

    def __init__(self, service: str = "nimbus-reorder-engine"):
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in self.RESERVED and not key.startswith("_") and value is not None:
                payload[key] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def configure_logging(log_level: str = "INFO", log_format: str = "json", service: str = "nimbus-reorder-engine") -> None:
    formatter_name = "json" if log_format.lower() == "json" else "standard"

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "request_context": {
                    "()": "app.utils.logging.RequestContextFilter",
                },
            },
            "formatters": {
                "standard": {
                    "format": "%(asctime)s %(levelname)s [%(worker)s] %(name)s %(message)s",
                },
                "json": {
                    "()": "app.utils.logging.JsonFormatter",
                    "service": service,
                },
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": formatter_name,
                    "filters": ["request_context"],
                    "level": log_level.upper(),
                }
            },
            "loggers": {
                # request_completed already covers access logging
                "uvicorn.access": {"level": "WARNING"},
                "sqlalchemy.engine": {"level": "WARNING"},
            },
            "root": {
                "handlers": ["default"],
                "level": log_level.upper(),
            },
        }
    )
