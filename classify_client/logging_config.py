import contextvars
import json
import logging
import logging.config
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import yaml

from .config import LOG_FORMAT, LOG_LEVEL

# Context variable for the request ID set by the tracing middleware
request_id_var = contextvars.ContextVar('request_id', default=None)

_RESERVED_ATTRS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
    'module', 'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'taskName', 'exc_info',
    'exc_text', 'stack_info', 'message', 'method', 'path', 'status',
    'latency_ms', 'client_ip', 'component',
}


def get_request_id() -> Optional[str]:
    """Get the current request ID from context"""
    return request_id_var.get()


class JsonFormatter(logging.Formatter):
    """JSON formatter with structured request fields"""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "request_id": get_request_id(),
            "method": getattr(record, 'method', None),
            "path": getattr(record, 'path', None),
            "status": getattr(record, 'status', None),
            "latency_ms": getattr(record, 'latency_ms', None),
            "client_ip": getattr(record, 'client_ip', None),
            "component": getattr(record, 'component', 'api'),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        # Anything passed through `extra=` that is not a standard attribute
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


def _default_config(log_level: str, log_format: str) -> Dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": JsonFormatter},
            "text": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S"
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": log_format,
                "stream": "ext://sys.stdout"
            }
        },
        "loggers": {
            "app": {"level": log_level, "propagate": True},
            "uvicorn": {"level": log_level, "propagate": True},
            "uvicorn.error": {"level": log_level, "propagate": True},
            "uvicorn.access": {"level": log_level, "propagate": True},
        },
        "root": {"level": log_level, "handlers": ["console"]}
    }


def setup_logging(log_level: Optional[str] = None, log_format: Optional[str] = None,
                  config_path: str = "LOGGING.yaml") -> Dict[str, Any]:
    """Setup logging configuration from a YAML file or the built-in defaults"""
    log_level = (log_level or LOG_LEVEL).upper()
    log_format = (log_format or LOG_FORMAT).lower()
    if log_format not in ("json", "text"):
        log_format = "json"

    config = None
    if os.path.exists(config_path):
        try:
            with open(config_path, 'r') as f:
                config = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logging.getLogger("app").warning(f"Could not load {config_path}: {e}")

    if not config:
        config = _default_config(log_level, log_format)

    # Environment overrides win over the file
    for handler in config.get("handlers", {}).values():
        if "formatter" in handler:
            handler["formatter"] = log_format
    for logger in config.get("loggers", {}).values():
        logger["level"] = log_level

    logging.config.dictConfig(config)
    return config
