from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from topicgateway.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class APIError(Exception):
    status_code: int
    code: str
    message: str
    details: dict[str, Any] | None = None


def bad_request(code: str, message: str, details: dict[str, Any] | None = None) -> APIError:
    return APIError(status_code=400, code=code, message=message, details=details)


def summarize_validation_errors(exc: ValidationError | RequestValidationError) -> list[dict[str, Any]]:
    # Keep only JSON-safe fields; pydantic may put exception objects in ctx.
    return [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]


def error_response(*, status_code: int, code: str, message: str, details: dict[str, Any] | None = None) -> JSONResponse:
    payload: dict[str, Any] = {"error": {"code": code, "message": message}}
    if details:
        payload["error"]["details"] = details
    return JSONResponse(status_code=int(status_code), content=payload)


async def api_error_handler(_req: Request, exc: APIError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Request failed", code=exc.code, error=exc.message)
    else:
        logger.info("Rejected request", code=exc.code, error=exc.message)
    return error_response(
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        details=exc.details,
    )


async def validation_error_handler(_req: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(
        status_code=400,
        code="invalid_argument",
        message="Request validation failed.",
        details={"errors": summarize_validation_errors(exc)},
    )


async def unhandled_error_handler(_req: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error", error_type=type(exc).__name__, exc_info=exc)
    return error_response(
        status_code=500,
        code="internal",
        message="Internal server error.",
        details={"type": type(exc).__name__},
    )
