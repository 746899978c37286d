"""Error taxonomy and the HTTP handlers that render it.

Services raise the domain errors below; the presentation layer (routers and
the handlers registered in ``create_app``) owns translating them into
responses. Nothing in the core swallows one of these.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette import status
import logging

logger = logging.getLogger("cost_manager.errors")


class CostManagerError(Exception):
    """Base class for all domain failures."""

    code = "error"
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.message = message
        # Offending field or currency code, when one can be named
        self.field = field


class ValidationError(CostManagerError):
    """Malformed record fields or rate table (user-correctable input)."""

    code = "validation_error"
    http_status = status.HTTP_400_BAD_REQUEST


class RateAcquisitionError(CostManagerError):
    """Rate fetch failed: transport error, bad status or malformed body."""

    code = "rate_acquisition_error"
    http_status = status.HTTP_502_BAD_GATEWAY


class ConversionError(CostManagerError):
    """A required currency is missing from the active rate table."""

    code = "conversion_error"
    http_status = status.HTTP_409_CONFLICT


class PersistenceError(CostManagerError):
    """Durable storage engine failure."""

    code = "persistence_error"
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE


def domain_error_handler(request: Request, exc: CostManagerError):  # type: ignore
    extra = {"error_code": exc.code, "error_field": exc.field}
    if isinstance(exc, PersistenceError):
        logger.error("storage failure: %s", exc.message, extra=extra)
    else:
        logger.info(
            "%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message,
            extra=extra,
        )
    content = {"error": exc.code, "detail": exc.message}
    if exc.field:
        content["field"] = exc.field
    return JSONResponse(status_code=exc.http_status, content=content)


def not_found_handler(request: Request, exc):  # type: ignore
    if exc.status_code != status.HTTP_404_NOT_FOUND:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": "http_error", "detail": exc.detail},
        )
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={
            "error": "not_found",
            "detail": f"No route for {request.method} {request.url.path}",
        },
    )


def validation_error_handler(request: Request, exc: RequestValidationError):  # type: ignore
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "validation_error",
            "detail": [
                {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
                for e in exc.errors()
            ],
        },
    )


def server_error_handler(request: Request, exc: Exception):  # type: ignore
    logger.exception("unhandled exception")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_error",
            "detail": "An unexpected error occurred.",
        },
    )
