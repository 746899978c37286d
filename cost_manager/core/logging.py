"""JSON log lines tagged with the request they belong to.

Domain code attaches structured context through ``extra=``; the formatter
copies the keys listed in ``CONTEXT_FIELDS`` into the emitted object, e.g.::

    logger.info("rejected", extra={"error_code": "validation_error", "error_field": "sum"})
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Iterable

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

REQUEST_ID_HEADER = "X-Request-ID"

CONTEXT_FIELDS = (
    "error_code",
    "error_field",
    "rate_source",
    "method",
    "path",
    "status",
    "duration_ms",
)

# Client libraries that log every call at INFO
NOISY_LOGGERS = ("httpx", "httpcore")


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        record.request_id = request_id_ctx.get() or "-"
        return True


class JsonFormatter(logging.Formatter):
    def __init__(self, fields: Iterable[str] = CONTEXT_FIELDS):
        super().__init__()
        self.fields = tuple(fields)

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        base: Dict[str, Any] = {
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "time": time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created)),
            "request_id": getattr(record, "request_id", "-"),
        }
        for name in self.fields:
            value = getattr(record, name, None)
            if value is not None:
                base[name] = value
        if record.exc_info:
            base["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(base, ensure_ascii=False, default=str)


def init_logging(debug: bool = False) -> None:
    root = logging.getLogger()
    root.handlers.clear()
    level = logging.DEBUG if debug else logging.INFO
    root.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if debug else logging.WARNING)


async def request_context_middleware(request, call_next):  # type: ignore
    """Bind a request id (client supplied or fresh) and log one access line."""
    rid = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    token = request_id_ctx.set(rid)
    logger = logging.getLogger("cost_manager.request")
    started = time.perf_counter()
    status = 500
    try:
        response = await call_next(request)
        status = response.status_code
        response.headers[REQUEST_ID_HEADER] = rid
        return response
    finally:
        logger.log(
            logging.WARNING if status >= 500 else logging.DEBUG,
            "%s %s -> %d",
            request.method,
            request.url.path,
            status,
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": status,
                "duration_ms": round((time.perf_counter() - started) * 1000, 1),
            },
        )
        request_id_ctx.reset(token)
