"""Logging configuration.

Provides structured, rotating logs with optional JSON output. Binds lightweight contextvars
(request_id/recipient_id/ip) to every record so a single `/notify` call can be followed from
the access log through resolution, dispatch and pruning.
"""

import json
import logging
import logging.handlers
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

# Context variables used across middleware/handlers to enrich logs
request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
recipient_id_ctx: ContextVar[Optional[str]] = ContextVar("recipient_id", default=None)
ip_ctx: ContextVar[Optional[str]] = ContextVar("ip_address", default=None)

_CONTEXT_VARS = {
    "request_id": request_id_ctx,
    "recipient_id": recipient_id_ctx,
    "ip_address": ip_ctx,
}

# Record attributes copied verbatim into JSON output when present.
_EXTRA_FIELDS = (
    "request_id",
    "recipient_id",
    "ip_address",
    "endpoint",
    "method",
    "status_code",
    "error_code",
    "token_count",
    "success_count",
    "failure_count",
    "pruned_count",
    "state",
)

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class JSONFormatter(logging.Formatter):
    """Emit logs as JSON for aggregation (ELK/Splunk/etc.)."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for field in _EXTRA_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)
        if hasattr(record, "duration"):
            log_data["duration_ms"] = record.duration

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class ColoredFormatter(logging.Formatter):
    """Add ANSI colors to console output for local readability."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


class ContextEnricher(logging.Filter):
    """Inject contextvars (request_id, recipient_id, ip_address) into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        for name, var in _CONTEXT_VARS.items():
            value = var.get()
            if value and not hasattr(record, name):
                setattr(record, name, value)
        return True


def bind_request_context(
    *,
    request_id: Optional[str] = None,
    recipient_id: Optional[str] = None,
    ip_address: Optional[str] = None,
):
    """Bind request context into contextvars; returns tokens for reset."""
    values = {
        "request_id": request_id,
        "recipient_id": recipient_id,
        "ip_address": ip_address,
    }
    return [
        (key, _CONTEXT_VARS[key].set(value))
        for key, value in values.items()
        if value is not None
    ]


def reset_request_context(tokens):
    """Reset bound contextvars using tokens returned by bind_request_context."""
    for key, token in reversed(tokens):
        _CONTEXT_VARS[key].reset(token)


def _reset_handlers(logger: logging.Logger) -> None:
    """Close and remove any existing handlers to avoid descriptor leaks."""
    for handler in list(logger.handlers):
        try:
            handler.flush()
        finally:
            handler.close()
            logger.removeHandler(handler)


def _rotating_handler(
    path: Path, level: int, formatter: logging.Formatter, max_bytes: int, backup_count: int
) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
        delay=True,
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    log_level: str = "INFO",
    log_dir: Optional[str] = None,
    app_name: str = "push_delivery",
    max_bytes: int = 10 * 1024 * 1024,  # 10 MB
    backup_count: int = 5,
    use_json: bool = False,
    use_colors: bool = True,
) -> None:
    """Configure root logging.

    Args:
        log_level: Minimum logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_dir: Directory to store log files; if None, logs only to console.
        app_name: Application name used in log filenames.
        max_bytes: Max size per log file before rotation.
        backup_count: Number of rotated files to keep.
        use_json: If True, use JSON for file handlers (better for aggregation).
        use_colors: If True, add ANSI colors to console output.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    context_filter = ContextEnricher()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    _reset_handlers(root_logger)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.addFilter(context_filter)
    if use_colors:
        console_handler.setFormatter(ColoredFormatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    else:
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(console_handler)

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        plain = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

        general_handler = _rotating_handler(
            log_path / f"{app_name}.log",
            logging.DEBUG,
            JSONFormatter() if use_json else plain,
            max_bytes,
            backup_count,
        )
        general_handler.addFilter(context_filter)
        root_logger.addHandler(general_handler)

        # Error log file (ERROR and CRITICAL only)
        error_handler = _rotating_handler(
            log_path / f"{app_name}_error.log",
            logging.ERROR,
            JSONFormatter() if use_json else plain,
            max_bytes,
            backup_count,
        )
        error_handler.addFilter(context_filter)
        root_logger.addHandler(error_handler)

        access_handler = _rotating_handler(
            log_path / f"{app_name}_access.log",
            logging.INFO,
            JSONFormatter()
            if use_json
            else logging.Formatter(
                "%(asctime)s | %(method)s %(endpoint)s | Status: %(status_code)s | "
                "Duration: %(duration)sms | IP: %(ip_address)s",
                datefmt=DATE_FORMAT,
            ),
            max_bytes,
            backup_count,
        )

        access_logger = logging.getLogger("access")
        _reset_handlers(access_logger)
        access_logger.addHandler(access_handler)
        access_logger.setLevel(logging.INFO)
        access_logger.propagate = False
        access_logger.addFilter(context_filter)

    # Suppress noisy loggers
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("google.auth").setLevel(logging.WARNING)
    logging.getLogger("cachecontrol").setLevel(logging.WARNING)

    logging.info(
        "Logging configured. Level: %s, Directory: %s", log_level, log_dir or "console only"
    )


def log_request(
    method: str,
    endpoint: str,
    status_code: int,
    duration_ms: float,
    ip_address: str,
    request_id: Optional[str] = None,
) -> None:
    """
    Log an HTTP request with structured data.

    Args:
        method: HTTP method (GET, POST, etc.)
        endpoint: Request endpoint/path
        status_code: HTTP status code
        duration_ms: Request duration in milliseconds
        ip_address: Client IP address
        request_id: Unique request ID for tracking
    """
    logger = logging.getLogger("access")
    extra = {
        "method": method,
        "endpoint": endpoint,
        "status_code": status_code,
        "duration": f"{duration_ms:.2f}",
        "ip_address": ip_address,
    }
    if request_id:
        extra["request_id"] = request_id

    logger.info(
        "%s %s - %s - %.2fms", method, endpoint, status_code, duration_ms, extra=extra
    )
