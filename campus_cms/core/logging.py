"""Logging configuration and management for the Campus CMS application.

Every record leaves the process as one JSON object rendered by
python-json-logger. ``get_logger`` returns a small wrapper whose keyword
arguments become top-level fields of that object, so call sites read::

    logger.info("Stored upload", entity="media", size=1024)

The request middleware stamps each record with the correlation id taken from
``X-Correlation-ID`` (or generated) and echoes it back on the response.
"""

import logging
import re
import time
import uuid
from contextvars import ContextVar
from functools import wraps
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from campus_cms.core.config import get_settings

settings = get_settings()

CORRELATION_HEADER = "X-Correlation-ID"
# Inbound ids are echoed into headers and logs, so only short opaque values pass
_CORRELATION_RE = re.compile(r"^[A-Za-z0-9._-]{1,128}$")
# Polled by load balancers; logged at debug level only
QUIET_PATHS = ("/health",)

correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")


class StructuredLogger:
    """Logger facade that forwards keyword context to the JSON formatter."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def _log(self, level: int, message: str, fields: Dict[str, Any], exc_info=None):
        if self.logger.isEnabledFor(level):
            self.logger.log(level, message, exc_info=exc_info, extra={"context": fields})

    def debug(self, message: str, **kwargs):
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs):
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs):
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, error: Optional[BaseException] = None, **kwargs):
        """Log an error; ``error`` adds its type and traceback to the record."""
        if error is not None:
            kwargs["error_type"] = error.__class__.__name__
            kwargs["error_message"] = str(error)
            self._log(logging.ERROR, message, kwargs, (type(error), error, error.__traceback__))
        else:
            self._log(logging.ERROR, message, kwargs)


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        context = log_record.pop("context", None) or {}
        log_record.update(context)
        log_record["timestamp"] = record.created
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["service"] = settings.APP_NAME
        log_record["environment"] = settings.ENVIRONMENT.value
        log_record["correlation_id"] = correlation_id.get()


def setup_logging():
    """Configure the root logger once; repeated calls are no-ops."""
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if settings.DEBUG else settings.LOG_LEVEL.upper())

    if any(isinstance(h.formatter, CustomJsonFormatter) for h in root.handlers):
        return

    json_handler = logging.StreamHandler()
    json_handler.setFormatter(CustomJsonFormatter())
    root.addHandler(json_handler)

    # Access lines duplicate what RequestLoggingMiddleware already records
    logging.getLogger("uvicorn.access").disabled = True


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(name)


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Bind a correlation id to the request context and echo it back."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        inbound = request.headers.get(CORRELATION_HEADER, "")
        value = inbound if _CORRELATION_RE.match(inbound) else uuid.uuid4().hex
        token = correlation_id.set(value)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_HEADER] = value
            return response
        finally:
            correlation_id.reset(token)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log one line per request with its outcome and duration."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        logger = get_logger(__name__)
        started = time.perf_counter()
        path = request.url.path

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                error=e,
                method=request.method,
                path=path,
                process_time_ms=_elapsed_ms(started)
            )
            raise

        fields = dict(
            method=request.method,
            path=path,
            status_code=response.status_code,
            process_time_ms=_elapsed_ms(started),
            client_host=request.client.host if request.client else None
        )
        if path in QUIET_PATHS:
            logger.debug("Request completed", **fields)
        elif response.status_code >= 500:
            logger.warning("Request completed with server error", **fields)
        else:
            logger.info("Request completed", **fields)
        return response


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


def monitor_performance(name: str = None):
    """Time an async route handler; handled API errors are not failures."""
    def decorator(func):
        label = name or func.__name__

        @wraps(func)
        async def wrapped(*args, **kwargs):
            logger = get_logger(func.__module__)
            started = time.perf_counter()

            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                logger.warning(
                    f"Handler {label} raised",
                    error_type=e.__class__.__name__,
                    status_code=getattr(e, "status_code", 500),
                    process_time_ms=_elapsed_ms(started)
                )
                raise

            logger.debug(f"Handler {label} completed", process_time_ms=_elapsed_ms(started))
            return result

        return wrapped
    return decorator
