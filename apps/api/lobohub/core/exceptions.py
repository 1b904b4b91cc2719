from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger("lobohub.api.errors")

_ERROR_CODES: dict[int, str] = {
    status.HTTP_400_BAD_REQUEST: "BAD_REQUEST",
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_409_CONFLICT: "CONFLICT",
    status.HTTP_422_UNPROCESSABLE_ENTITY: "VALIDATION_ERROR",
    status.HTTP_423_LOCKED: "ACCOUNT_LOCKED",
    status.HTTP_429_TOO_MANY_REQUESTS: "RATE_LIMIT",
}


class LoboHubError(Exception):
    """Base class for domain errors raised outside the HTTP layer."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def details(self) -> Any | None:
        return None


class InvalidInputError(LoboHubError):
    """A caller broke a function contract (negative points, unknown action)."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "INVALID_INPUT"

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"Invalid {field}: {message}")

    def details(self) -> Any | None:
        return {"field": self.field}


def error_body(code: str, message: str, details: Any | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        body["details"] = details
    return body


def _from_http_detail(detail: Any, default_code: str) -> dict[str, Any]:
    if isinstance(detail, str):
        return error_body(default_code, detail)
    if isinstance(detail, Mapping):
        code = detail.get("code")
        message = detail.get("message")
        return error_body(
            code if isinstance(code, str) and code else default_code,
            message if isinstance(message, str) and message else "Request failed",
            detail.get("details"),
        )
    return error_body(default_code, "Request failed", detail)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_from_http_detail(exc.detail, _ERROR_CODES.get(exc.status_code, "HTTP_ERROR")),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_body("VALIDATION_ERROR", "Validation failed", exc.errors()),
    )


async def domain_error_handler(request: Request, exc: LoboHubError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.code, str(exc), exc.details()))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "unhandled_exception",
        extra={"request_id": getattr(request.state, "request_id", None), "route": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("INTERNAL_ERROR", "Internal server error"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(LoboHubError, domain_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
