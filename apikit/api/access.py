"""Caller authentication for API requests.

Credential forms are tried in a fixed order so a request resolves to exactly
one principal:

1. ``access_token`` query parameter or ``Authorization: Bearer`` header
2. ``client_id`` + ``client_secret`` query parameters (app login)
3. HTTP Basic as ``email:password``, then as ``client_id:client_secret``
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Protocol

from fastapi import Request
from fastapi import status
from fastapi.security.utils import get_authorization_scheme_param

from apikit.core.cache import MISSING
from apikit.core.cache import TTLCache
from apikit.core.config import Settings
from apikit.core.security import salted
from apikit.mappers.apps import AppsMapper
from apikit.mappers.base import split_list_field
from apikit.mappers.base import utc_now
from apikit.mappers.tokens import TokensMapper
from apikit.mappers.users import UsersMapper

logger = logging.getLogger(__name__)

_INACTIVE_USER_STATUSES = frozenset({"suspended", "closed"})


class CredentialStore(Protocol):
    def authenticate_login(self, email: str, password: str) -> UsersMapper | None: ...

    def authenticate_client(self, client_id: str, client_secret: str) -> AppsMapper | None: ...

    def find_token(self, token: str) -> TokensMapper | None: ...

    def find_user(self, user_uuid: str) -> UsersMapper | None: ...

    def find_app(self, client_id: str) -> AppsMapper | None: ...


class ErrorSink(Protocol):
    def failure(self, code: str, message: str, http_status: int | None = None) -> None: ...

    def set_oauth_error(self, kind: str): ...


@dataclass(frozen=True)
class Identity:
    """The authenticated principal of a request."""

    method: str
    user: UsersMapper | None = None
    app: AppsMapper | None = None
    scopes: tuple[str, ...] = ()
    groups: tuple[str, ...] = ()

    @property
    def is_app_login(self) -> bool:
        return self.user is None and self.app is not None


@dataclass(frozen=True)
class BasicCredentials:
    username: str
    password: str


def parse_basic_credentials(authorization: str | None) -> BasicCredentials | None:
    scheme, param = get_authorization_scheme_param(authorization)
    if scheme.lower() != "basic" or not param:
        return None
    try:
        decoded = base64.b64decode(param, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    username, separator, password = decoded.partition(":")
    if not separator or not username:
        return None
    return BasicCredentials(username=username, password=password)


def parse_bearer_token(authorization: str | None) -> str | None:
    scheme, param = get_authorization_scheme_param(authorization)
    if scheme.lower() != "bearer" or not param:
        return None
    return param


class AccessValidator:
    """Resolves the caller identity before a controller action runs.

    Failures are reported through ``errors`` (the controller) as an
    accumulated error plus an OAuth error.
    """

    def __init__(
        self,
        errors: ErrorSink,
        credentials: CredentialStore,
        *,
        settings: Settings,
        cache: TTLCache,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._errors = errors
        self._credentials = credentials
        self._settings = settings
        self._cache = cache
        self._clock = clock
        self.identity: Identity | None = None

    def validate_access(self, request: Request) -> bool:
        if self._settings.api_https and request.url.scheme == "http":
            self._errors.failure("api_connection_error", "Connection only allowed via HTTPS!", status.HTTP_400_BAD_REQUEST)
            self._errors.set_oauth_error("unauthorized_client")
            return False

        authorization = request.headers.get("authorization")
        token = request.query_params.get("access_token") or parse_bearer_token(authorization)
        if token:
            return self._authenticate_token(request, token)

        client_id = request.query_params.get("client_id")
        client_secret = request.query_params.get("client_secret")
        if client_id and client_secret:
            app = self._credentials.authenticate_client(client_id, client_secret)
            if app is not None:
                return self._accept(request, self._app_identity(app, "client_credentials"))

        basic = parse_basic_credentials(authorization)
        if basic is not None:
            user = self._basic_login(basic)
            if user is not None:
                return self._accept(request, self._user_identity(user, "basic_login"))
            app = self._credentials.authenticate_client(basic.username, basic.password)
            if app is not None:
                return self._accept(request, self._app_identity(app, "basic_client"))

        logger.info("Rejected unauthenticated request to %s", request.url.path)
        self._errors.failure("authentication_error", "Not possible to authenticate the request.", status.HTTP_400_BAD_REQUEST)
        self._errors.set_oauth_error("invalid_credentials")
        return False

    def _authenticate_token(self, request: Request, token: str) -> bool:
        record = self._credentials.find_token(token)
        if record is None:
            return self._reject_token(request, "The token is invalid.")
        if record.is_expired(self._clock()):
            return self._reject_token(request, "The token expired!")

        user = self._credentials.find_user(record["users_uuid"])
        if user is None or user["status"] in _INACTIVE_USER_STATUSES:
            return self._reject_token(request, "The token owner is not active.")

        app = self._credentials.find_app(record["client_id"]) if record["client_id"] else None
        token_scopes = split_list_field(record.get("scopes"))
        identity = Identity(
            method="token",
            user=user,
            app=app,
            scopes=tuple(token_scopes or user.scope_list()),
            groups=tuple(user.group_list()),
        )
        return self._accept(request, identity)

    def _reject_token(self, request: Request, message: str) -> bool:
        logger.warning("Rejected access token on %s: %s", request.url.path, message)
        self._errors.failure("authentication_error", message, status.HTTP_401_UNAUTHORIZED)
        self._errors.set_oauth_error("invalid_grant")
        return False

    def _basic_login(self, basic: BasicCredentials) -> UsersMapper | None:
        fingerprint = salted(
            f"{basic.username}:{basic.password}",
            pepper="basic-login",
            salt=self._settings.salt,
            algorithm=self._settings.hash_algorithm,
        )
        cached = self._cache.get(fingerprint)
        if cached is not MISSING:
            return self._credentials.find_user(cached) if cached else None

        user = self._credentials.authenticate_login(basic.username, basic.password)
        self._cache.set(fingerprint, user["uuid"] if user is not None else None)
        return user

    def _user_identity(self, user: UsersMapper, method: str) -> Identity:
        return Identity(
            method=method,
            user=user,
            scopes=tuple(user.scope_list()),
            groups=tuple(user.group_list()),
        )

    def _app_identity(self, app: AppsMapper, method: str) -> Identity:
        return Identity(method=method, app=app, scopes=tuple(app.scope_list()))

    def _accept(self, request: Request, identity: Identity) -> bool:
        self.identity = identity
        request.state.identity = identity
        logger.info("Authenticated request to %s via %s", request.url.path, identity.method)
        return True
