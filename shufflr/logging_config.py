import contextvars
import json
import logging
import logging.config
import os
from datetime import datetime, timezone
from typing import Optional

import yaml

# Context variable for trace ID
trace_id_var = contextvars.ContextVar('trace_id', default=None)

# Attributes every LogRecord carries; anything else came in through `extra`
_RESERVED = frozenset([
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
    'module', 'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'taskName', 'exc_info',
    'exc_text', 'stack_info', 'message', 'asctime',
])

_REQUEST_FIELDS = ('method', 'path', 'status', 'latency_ms', 'client_ip')


def get_trace_id() -> Optional[str]:
    """Get the current trace ID from context"""
    return trace_id_var.get()


class JsonFormatter(logging.Formatter):
    """One JSON object per record, request fields hoisted to the top level"""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "trace_id": get_trace_id(),
            "component": getattr(record, 'component', 'api'),
        }
        for field in _REQUEST_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _RESERVED or key in log_entry:
                continue
            log_entry[key] = value

        return json.dumps(log_entry, default=str)


def _default_config(log_level: str, log_format: str) -> dict:
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
            "shufflr": {"level": log_level, "handlers": [], "propagate": True},
            "uvicorn": {"level": log_level, "handlers": [], "propagate": True},
            "uvicorn.error": {"level": log_level, "handlers": [], "propagate": True},
            # access lines come from TracingMiddleware
            "uvicorn.access": {"level": "WARNING", "handlers": [], "propagate": True},
        },
        "root": {
            "level": log_level,
            "handlers": ["console"]
        }
    }


def setup_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> dict:
    """Setup logging configuration from LOGGING.yaml or environment"""
    from . import config as app_config

    log_level = (log_level or app_config.LOG_LEVEL).upper()
    log_format = log_format or app_config.LOG_FORMAT
    if log_format not in ("json", "text"):
        log_format = "json"

    config = None
    yaml_path = os.getenv("LOGGING_CONFIG", "LOGGING.yaml")
    if os.path.exists(yaml_path):
        try:
            with open(yaml_path, 'r') as f:
                config = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            print(f"Warning: Could not load {yaml_path}: {e}")

    if not config:
        config = _default_config(log_level, log_format)

    logging.config.dictConfig(config)
    return config
