"""API error envelope, application exceptions and exception handler registration."""

from __future__ import annotations

from collections.abc import Mapping
import logging
from typing import Any

from fastapi import FastAPI
from fastapi import Request
from fastapi import status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from apikit.core.oauth import lookup_oauth_kind
from apikit.core.oauth import oauth_error_object
from apikit.schemas.error import ErrorEntry
from apikit.schemas.error import ErrorObject
from apikit.schemas.error import OAuthErrorObject

logger = logging.getLogger(__name__)


class APIServerError(Exception):
    """Raised for server-side authoring errors that must never reach a client as data."""

    def __init__(self, message: str, code: int = 5000) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class UnknownOAuthErrorKind(APIServerError):
    """A handler asked for an OAuth error kind outside the RFC 6749 catalog."""

    def __init__(self, kind: str) -> None:
        super().__init__(f"Invalid OAuth error type: {kind!r}", code=5100)
        self.kind = kind


class ConfigurationError(ValueError):
    """Raised when settings or component options are invalid."""


def build_error_envelope(
    oauth_error: OAuthErrorObject | None,
    errors: Mapping[str, str],
) -> dict[str, Any]:
    """Return ``{"error": {...}}`` for the given OAuth error and accumulated errors.

    Accumulated errors are listed sorted by code. Returns an empty dict when
    there is nothing to report.
    """
    if oauth_error is None and not errors:
        return {}

    payload = ErrorObject(**oauth_error.model_dump()) if oauth_error is not None else ErrorObject()
    if errors:
        payload.errors = [ErrorEntry(code=code, message=errors[code]) for code in sorted(errors)]
    return {"error": payload.model_dump(exclude_none=True)}


def _build_error_response(
    *,
    status_code: int,
    oauth_kind: str,
    errors: Mapping[str, str],
) -> JSONResponse:
    kind = lookup_oauth_kind(oauth_kind)
    oauth_error = oauth_error_object(kind) if kind is not None else None
    return JSONResponse(status_code=status_code, content=build_error_envelope(oauth_error, errors))


def _http_error_code(status_code: int) -> str:
    if status_code == status.HTTP_404_NOT_FOUND:
        return "not_found"
    if status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        return "method_not_allowed"
    if status_code == status.HTTP_401_UNAUTHORIZED:
        return "authentication_error"
    if status_code == status.HTTP_403_FORBIDDEN:
        return "forbidden"
    if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        return "internal_error"
    return "invalid_request_error"


def _http_oauth_kind(status_code: int) -> str:
    if status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN):
        return "access_denied"
    if status_code == status.HTTP_503_SERVICE_UNAVAILABLE:
        return "temporarily_unavailable"
    if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        return "server_error"
    return "invalid_request"


def _validation_errors(exc: RequestValidationError) -> dict[str, str]:
    errors: dict[str, str] = {}
    for issue in exc.errors():
        field = _format_location(issue.get("loc", ()))
        errors[f"invalid_{field}"] = str(issue.get("msg", "Invalid value"))
    return errors


def _format_location(location: tuple[Any, ...] | list[Any] | Any) -> str:
    if not isinstance(location, (tuple, list)):
        return str(location)

    prefixes = {"body", "query", "path", "header", "cookie"}
    filtered = [str(part) for part in location if part not in prefixes]
    if filtered:
        return ".".join(filtered)

    if not location:
        return "request"

    return str(location[0])


async def request_validation_exception_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    """Normalize FastAPI validation errors to the API error envelope."""

    return _build_error_response(
        status_code=status.HTTP_400_BAD_REQUEST,
        oauth_kind="invalid_request",
        errors=_validation_errors(exc),
    )


async def http_exception_handler(_: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Normalize HTTP exceptions to the API error envelope."""

    message = str(exc.detail) if isinstance(exc.detail, str) and exc.detail else "Request failed"
    return _build_error_response(
        status_code=exc.status_code,
        oauth_kind=_http_oauth_kind(exc.status_code),
        errors={_http_error_code(exc.status_code): message},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Avoid leaking internal exceptions while keeping response shape stable."""

    logger.error("Unhandled error on %s %s: %r", request.method, request.url.path, exc)
    return _build_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        oauth_kind="server_error",
        errors={"internal_error": "Internal server error"},
    )


def register_error_handlers(app: FastAPI) -> None:
    """Attach all API error handlers to a FastAPI app instance."""

    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
