import json
import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from chat_relay.config import Settings

LOG_FIELDS = (
    "request_id",
    "method",
    "path",
    "status_code",
    "latency_ms",
    "client_ip",
    "upstream_cause",
)
PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_access_logger = logging.getLogger("chat_relay.access")


class JsonLogFormatter(logging.Formatter):
    """One JSON object per line; ``extra=`` keys listed in ``fields`` are lifted to the top level."""

    def __init__(self, fields: tuple[str, ...] = LOG_FIELDS) -> None:
        super().__init__()
        self.fields = fields

    def format(self, record: logging.LogRecord) -> str:
        line = {
            "ts": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        line.update(
            (name, getattr(record, name))
            for name in self.fields
            if getattr(record, name, None) is not None
        )
        if record.exc_info:
            line["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(line, ensure_ascii=False)


def configure_logging(settings: Settings) -> logging.Logger:
    """Attach a single handler to the ``chat_relay`` logger tree."""
    package_logger = logging.getLogger("chat_relay")
    package_logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    if package_logger.handlers:
        return package_logger

    handler = logging.StreamHandler()
    handler.setFormatter(JsonLogFormatter() if settings.log_json else logging.Formatter(PLAIN_FORMAT))
    package_logger.addHandler(handler)
    return package_logger


def _access_fields(request: Request, request_id: str, status_code: int, started: float) -> dict:
    return {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
        "status_code": status_code,
        "latency_ms": round((time.perf_counter() - started) * 1000.0, 2),
        "client_ip": request.client.host if request.client else None,
    }


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access log line per request; 5xx responses are logged at WARNING."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            _access_logger.exception(
                "request_failed", extra=_access_fields(request, request_id, 500, started)
            )
            raise

        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        _access_logger.log(
            level,
            "request_complete",
            extra=_access_fields(request, request_id, response.status_code, started),
        )
        response.headers["x-request-id"] = request_id
        return response
