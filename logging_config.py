"""
Logging configuration with evaluation ID tracking.

Every poll tick and every HTTP request to the helper service gets a short
evaluation ID so the provider calls, cache hits and ranking it triggers can
be correlated in the logs.

Provides:
- Evaluation ID propagation via context variables
- Structured JSON logging for production
- Human-readable logging for development
- Flask middleware for automatic request tracking
"""

import logging
import sys
import uuid
import json
from contextvars import ContextVar
from datetime import datetime, timezone

# Context variable for the evaluation ID (thread-safe and async-safe)
eval_id_var: ContextVar[str] = ContextVar('eval_id', default='system')


def get_eval_id() -> str:
    """Return the current evaluation ID, or 'system' outside an evaluation."""
    return eval_id_var.get()


def set_eval_id(eval_id: str = None) -> str:
    """
    Set the evaluation ID for the current context.

    Args:
        eval_id: ID to set. If None, generates a new one.

    Returns:
        The ID that was set
    """
    eid = eval_id or uuid.uuid4().hex[:8]
    eval_id_var.set(eid)
    return eid


class StructuredFormatter(logging.Formatter):
    """
    JSON structured log formatter for production.

    Output format:
    {"timestamp": "...", "level": "INFO", "eval_id": "abc123", "message": "..."}
    """

    EXTRA_FIELDS = (
        'duration_ms', 'cache_hit', 'movie', 'person_id', 'endpoint',
        'status_code', 'method', 'options',
    )

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "eval_id": get_eval_id(),
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key in self.EXTRA_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        return json.dumps(log_data, ensure_ascii=False)


class HumanFormatter(logging.Formatter):
    """
    Human-readable log formatter for development.

    Output format:
    INFO     [abc123] Message here
    """

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        eval_id = get_eval_id()
        prefix = f"[{eval_id}] " if eval_id != 'system' else ""

        level = record.levelname
        if self.use_colors:
            level = f"{self.COLORS.get(level, '')}{level:8}{self.RESET}"
        else:
            level = f"{level:8}"

        message = record.getMessage()
        if record.exc_info:
            message += f"\n{self.formatException(record.exc_info)}"

        return f"{level} {prefix}{message}"


def configure_logging(
    level: str = "INFO",
    structured: bool = False,
    use_colors: bool = True,
) -> None:
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        structured: Use JSON format for production
        use_colors: Use colored output (only for human format)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    if structured:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(HumanFormatter(use_colors=use_colors))
    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
    logging.getLogger("werkzeug").setLevel(logging.WARNING)


def setup_flask_eval_id(app) -> None:
    """
    Add evaluation ID middleware to a Flask app.

    Takes the ID from an X-Request-ID header when the caller sends one, logs
    request completion with its duration, and echoes the ID back.

    Args:
        app: Flask application instance
    """
    from flask import request, g

    @app.before_request
    def inject_eval_id():
        g.eval_id = set_eval_id(request.headers.get('X-Request-ID'))
        g.request_start = datetime.now(timezone.utc)

    @app.after_request
    def log_request(response):
        duration_ms = (
            datetime.now(timezone.utc) - g.request_start
        ).total_seconds() * 1000

        logging.getLogger('http').info(
            f"{request.method} {request.path} -> {response.status_code} ({duration_ms:.0f}ms)",
            extra={
                'method': request.method,
                'endpoint': request.path,
                'status_code': response.status_code,
                'duration_ms': round(duration_ms, 2),
            }
        )

        response.headers['X-Request-ID'] = g.eval_id
        return response
