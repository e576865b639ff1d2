"""
Logging setup for the CompAdvisor backend.

Production writes one JSON object per line; development gets a compact
colored line. Trace fields (request_id, ssid, action, revision) are lifted
to the top level of JSON records so decisions can be followed per employee
or per request in the log store. Anything else passed through ``extra`` is
nested under "extra".
"""

import json
import logging
import sys
import time
import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from compadvisor.core.config import settings


SERVICE_NAME = "compadvisor-backend"

TRACE_FIELDS = ("request_id", "ssid", "action", "revision")

# Health and scrape endpoints, not worth a log line per hit
UNLOGGED_PATHS = frozenset({"/health", "/metrics"})

NOISY_LOGGERS = ("uvicorn", "uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore")

REQUEST_ID_HEADER = b"x-request-id"

_HANDLER_NAME = "compadvisor-console"

# Set by RequestLoggingMiddleware for the duration of one request
_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

_STANDARD_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime"}


def record_extras(record: logging.LogRecord) -> Dict[str, Any]:
    """Attributes a caller attached to the record via ``extra``."""
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _STANDARD_RECORD_ATTRS and not key.startswith("_")
    }


class JSONFormatter(logging.Formatter):
    def __init__(self, service_name: str = SERVICE_NAME):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "environment": settings.ENVIRONMENT,
            "source": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        extra = record_extras(record)
        for key in TRACE_FIELDS:
            if key in extra:
                payload[key] = extra.pop(key)
        if extra:
            payload["extra"] = extra

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc, tb = record.exc_info
            payload["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc),
                "traceback": "".join(traceback.format_exception(exc_type, exc, tb)),
            }

        return json.dumps(payload, default=str)


class ColoredFormatter(logging.Formatter):
    """Single-line console output for local development."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, "")
        stamp = time.strftime("%H:%M:%S", time.localtime(record.created))
        line = f"{stamp} {color}{record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}"

        extras = record_extras(record)
        trace = [f"{key}={extras[key]}" for key in TRACE_FIELDS if key in extras]
        if trace:
            line += "  [" + " ".join(trace) + "]"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class ContextLogger(logging.LoggerAdapter):
    """
    LoggerAdapter that merges bound context into every record, plus the
    id of the request being served when there is one.

    Values passed explicitly through ``extra`` win over bound ones.

        logger = get_logger(__name__, ssid="E123")
        logger.bind(action="PROMOTE").info("Applying")
    """

    def __init__(self, logger: logging.Logger, **context):
        super().__init__(logger, dict(context))

    def bind(self, **kwargs) -> "ContextLogger":
        """New logger over the same target with additional context."""
        return ContextLogger(self.logger, **{**self.extra, **kwargs})

    def process(self, msg, kwargs):
        context = dict(self.extra)
        request_id = _request_id.get()
        if request_id is not None:
            context.setdefault("request_id", request_id)
        kwargs["extra"] = {**context, **(kwargs.get("extra") or {})}
        return msg, kwargs


def setup_logging(
    service_name: str = SERVICE_NAME,
    log_level: Optional[str] = None,
    json_logs: Optional[bool] = None,
) -> None:
    """
    Install the console handler on the root logger.

    Level falls back to settings.LOG_LEVEL, then DEBUG/INFO by settings.DEBUG.
    JSON output falls back to settings.LOG_JSON, then on in production.
    Calling this again replaces the handler it installed earlier and leaves
    handlers added by anything else alone.
    """
    level = (log_level or settings.LOG_LEVEL or ("DEBUG" if settings.DEBUG else "INFO")).upper()
    if json_logs is None:
        json_logs = settings.LOG_JSON
    if json_logs is None:
        json_logs = settings.ENVIRONMENT.lower() == "production"

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(JSONFormatter(service_name) if json_logs else ColoredFormatter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("compadvisor.logging").info(
        f"Logging configured: level={level}, format={'json' if json_logs else 'console'}, "
        f"environment={settings.ENVIRONMENT}"
    )


def get_logger(name: str, **context) -> ContextLogger:
    return ContextLogger(logging.getLogger(name), **context)


def generate_request_id() -> str:
    return uuid.uuid4().hex[:8]


def _incoming_request_id(scope) -> Optional[str]:
    for name, value in scope.get("headers") or []:
        if name.lower() == REQUEST_ID_HEADER:
            candidate = value.decode("latin-1").strip()
            if 0 < len(candidate) <= 64:
                return candidate
    return None


class RequestLoggingMiddleware:
    """
    Pure ASGI middleware. Reuses the caller's X-Request-ID or assigns one,
    stores it in ``scope["state"]``, echoes it on the response and logs one
    line per request (WARNING for 4xx/5xx).
    """

    def __init__(self, app):
        self.app = app
        self.logger = get_logger("compadvisor.http")

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = _incoming_request_id(scope) or generate_request_id()
        scope.setdefault("state", {})["request_id"] = request_id
        token = _request_id.set(request_id)
        started = time.perf_counter()
        status_code = 0

        async def send_with_request_id(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                headers = list(message.get("headers", []))
                headers.append((REQUEST_ID_HEADER, request_id.encode("latin-1")))
                message = {**message, "headers": headers}
            await send(message)

        try:
            await self.app(scope, receive, send_with_request_id)
        except Exception:
            status_code = 500
            raise
        finally:
            _request_id.reset(token)
            path = scope.get("path", "/")
            if path not in UNLOGGED_PATHS:
                method = scope.get("method", "UNKNOWN")
                elapsed_ms = (time.perf_counter() - started) * 1000
                self.logger.bind(request_id=request_id).log(
                    logging.WARNING if status_code >= 400 else logging.INFO,
                    f"{method} {path} {status_code} {elapsed_ms:.1f}ms",
                    extra={
                        "method": method,
                        "path": path,
                        "status": status_code,
                        "duration_ms": round(elapsed_ms, 1),
                    },
                )
