"""Base API controller: authentication, error accumulation and response assembly.

A route constructs a controller and calls :meth:`APIController.handle` with
the name of an action method. Actions write into ``data`` and report problems
with :meth:`APIController.failure` and :meth:`APIController.set_oauth_error`;
the completion step merges everything into one JSON envelope::

    {
        "error": {
            "code": "invalid_credentials",
            "description": "...",
            "uri": "",
            "state": "",
            "errors": [{"code": "authentication_error", "message": "..."}]
        },
        ...handler data...
    }
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from dataclasses import field
import logging
from typing import Any

from fastapi import Request
from fastapi import Response
from fastapi import status

from apikit.api.access import AccessValidator
from apikit.api.access import CredentialStore
from apikit.api.access import Identity
from apikit.api.response import JSONResponder
from apikit.api.response import ResponseParams
from apikit.core.cache import TTLCache
from apikit.core.config import Settings
from apikit.core.errors import APIServerError
from apikit.core.errors import UnknownOAuthErrorKind
from apikit.core.errors import build_error_envelope
from apikit.core.oauth import OAuthErrorKind
from apikit.core.oauth import lookup_oauth_kind
from apikit.core.oauth import oauth_error_object
from apikit.core.oauth import oauth_http_status
from apikit.schemas.error import OAuthErrorObject

logger = logging.getLogger(__name__)

VERSION_HEADER = "Version"


class ErrorAccumulator:
    """Per-request ``code -> message`` errors (last write per code wins) and pending status."""

    def __init__(self) -> None:
        self._errors: dict[str, str] = {}
        self.http_status: int | None = None

    def add(self, code: str, message: str, http_status: int | None = None) -> None:
        self._errors[code] = message
        if http_status:
            self.http_status = http_status

    def as_dict(self) -> dict[str, str]:
        return dict(self._errors)

    def __contains__(self, code: object) -> bool:
        return code in self._errors

    def __getitem__(self, code: str) -> str:
        return self._errors[code]

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._errors))

    def __len__(self) -> int:
        return len(self._errors)


@dataclass(frozen=True)
class ControllerContext:
    """Collaborators a controller needs for one request."""

    settings: Settings
    credentials: CredentialStore
    auth_cache: TTLCache
    responder: JSONResponder = field(default_factory=JSONResponder)


class APIController:
    """Request-scoped base controller; subclasses add action methods."""

    def __init__(
        self,
        request: Request,
        context: ControllerContext,
        *,
        payload: dict[str, Any] | None = None,
    ) -> None:
        self.http_request = request
        self.context = context
        self.settings = context.settings
        self.payload: dict[str, Any] = payload or {}
        self.data: dict[str, Any] = {}
        self.errors = ErrorAccumulator()
        self.oauth_error: OAuthErrorObject | None = None
        self.headers: dict[str, str] = {}
        self.identity: Identity | None = None
        self._access = AccessValidator(
            self,
            context.credentials,
            settings=context.settings,
            cache=context.auth_cache,
        )

    @property
    def http_status(self) -> int:
        return self.errors.http_status or status.HTTP_200_OK

    def handle(self, action: str = "request") -> Response:
        """Authenticate, run ``action`` when authenticated, then emit the response."""
        handler = getattr(self, action, None)
        if action.startswith("_") or not callable(handler):
            raise APIServerError(f"{type(self).__name__} has no action {action!r}")

        if self.validate_access():
            handler()
        return self.assemble_response()

    def validate_access(self) -> bool:
        authenticated = self._access.validate_access(self.http_request)
        self.identity = self._access.identity
        return authenticated

    def failure(self, code: str, message: str, http_status: int | None = None) -> None:
        """Record an error for this request; ``http_status`` overrides the pending status."""
        self.errors.add(code, message, http_status)

    def set_oauth_error(self, kind: str | OAuthErrorKind) -> OAuthErrorObject:
        """Set the RFC 6749 error to return.

        The kind's default status is applied only when no explicit non-200
        status is pending.
        """
        resolved = lookup_oauth_kind(kind)
        if resolved is None:
            raise UnknownOAuthErrorKind(str(kind))

        self.oauth_error = oauth_error_object(resolved)
        pending = self.errors.http_status
        if not pending or pending == status.HTTP_200_OK:
            self.errors.http_status = oauth_http_status(resolved)
        return self.oauth_error

    def assemble_response(self) -> Response:
        """Merge the error envelope with handler data and emit it."""
        envelope = build_error_envelope(self.oauth_error, self.errors.as_dict())
        envelope.update(self.data)

        params = ResponseParams(
            headers={**self.headers, VERSION_HEADER: self.settings.api_version},
            http_status=self.http_status,
        )
        if self.http_status >= status.HTTP_400_BAD_REQUEST:
            logger.info(
                "Responding %s to %s %s with errors=%s",
                self.http_status,
                self.http_request.method,
                self.http_request.url.path,
                list(self.errors),
            )
        return self.context.responder.json(envelope, params)

    def unknown(self) -> None:
        """Catch-all action for unrouted API paths."""
        self.set_oauth_error(OAuthErrorKind.INVALID_REQUEST)
        self.failure("api_connection_error", "Unknown API Request", status.HTTP_400_BAD_REQUEST)
