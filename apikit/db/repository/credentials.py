"""Credential lookups and registration primitives for users, apps and tokens."""

from __future__ import annotations

from datetime import timedelta

from sqlalchemy.orm import Session

from apikit.core.config import Settings
from apikit.core.security import hash_password
from apikit.core.security import matches_salted
from apikit.core.security import random_string
from apikit.core.security import salted
from apikit.core.security import verify_password
from apikit.mappers.apps import AppsMapper
from apikit.mappers.base import utc_now
from apikit.mappers.tokens import TokensMapper
from apikit.mappers.users import UsersMapper
from apikit.mappers.validation import Email
from apikit.mappers.validation import Length
from apikit.mappers.validation import Lowercase
from apikit.mappers.validation import Required
from apikit.mappers.validation import Trim
from apikit.mappers.validation import TypeOf
from apikit.mappers.validation import ValidationEngine

INACTIVE_USER_STATUSES = frozenset({"suspended", "closed"})
CLIENT_SECRET_LENGTH = 40
ACCESS_TOKEN_LENGTH = 48

_RAW_PASSWORD_RULES = (
    ("password", Required()),
    ("password", Length(min=8, max=72)),
)

_LOGIN_FILTERS = (
    ("email", Trim()),
    ("email", Lowercase()),
)

_LOGIN_RULES = (
    ("email", Required()),
    ("email", TypeOf("str")),
    ("email", Email()),
    ("password", Required()),
    ("password", TypeOf("str")),
)


class RegistrationError(ValueError):
    """Raised when a record cannot be validated or persisted."""

    def __init__(self, message: str, errors: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or {}


class SQLCredentialStore:
    """Credential checks against the users, apps and tokens tables."""

    def __init__(self, session: Session, *, settings: Settings) -> None:
        self._session = session
        self._settings = settings

    def _digest(self, value: str) -> str:
        return salted(value, salt=self._settings.salt, algorithm=self._settings.hash_algorithm)

    def authenticate_login(self, email: str, password: str) -> UsersMapper | None:
        """Return the active user for ``email`` when ``password`` matches its bcrypt hash."""
        login = ValidationEngine().run({"email": email, "password": password}, _LOGIN_RULES, _LOGIN_FILTERS)
        if login is None:
            return None
        user = UsersMapper(self._session)
        if not user.load(email=login["email"]):
            return None
        if user["status"] in INACTIVE_USER_STATUSES:
            return None
        if not verify_password(password, user["password"]):
            return None
        return user

    def authenticate_client(self, client_id: str, client_secret: str) -> AppsMapper | None:
        """Return the approved app whose stored secret digest matches ``client_secret``."""
        if not client_id or not client_secret:
            return None
        app = AppsMapper(self._session)
        if not app.load(client_id=client_id):
            return None
        if not app.is_active():
            return None
        if not matches_salted(
            client_secret,
            app["client_secret"],
            salt=self._settings.salt,
            algorithm=self._settings.hash_algorithm,
        ):
            return None
        return app

    def find_token(self, token: str) -> TokensMapper | None:
        if not token:
            return None
        record = TokensMapper(self._session)
        if not record.load(token=self._digest(token)):
            return None
        return record

    def find_user(self, user_uuid: str) -> UsersMapper | None:
        user = UsersMapper(self._session)
        return user if user.load(uuid=user_uuid) else None

    def find_app(self, client_id: str) -> AppsMapper | None:
        app = AppsMapper(self._session)
        return app if app.load(client_id=client_id) else None


def register_user(
    session: Session,
    *,
    email: str,
    password: str,
    firstname: str | None = None,
    lastname: str | None = None,
    scopes: str | None = None,
    groups: str | None = None,
) -> UsersMapper:
    """Create a user with a bcrypt-hashed password."""
    user = UsersMapper(session)
    password_check = user.validate(run=False, data={"password": password}, rules=_RAW_PASSWORD_RULES, filters=())
    if password_check is not True:
        raise RegistrationError("Invalid password", errors=password_check)

    user.copy_from(
        {
            "email": email,
            "password": hash_password(password),
            "firstname": firstname,
            "lastname": lastname,
            "scopes": scopes,
            "groups": groups,
        }
    )
    if not user.validate_save():
        raise RegistrationError("Unable to register user", errors=user.validation_errors)
    return user


def register_app(
    session: Session,
    settings: Settings,
    *,
    name: str,
    owner_uuid: str | None = None,
    scopes: str | None = None,
) -> tuple[AppsMapper, str]:
    """Create an app; returns the mapper and the raw client secret, which is not stored."""
    client_secret = random_string(CLIENT_SECRET_LENGTH)
    app = AppsMapper(session)
    app.copy_from(
        {
            "users_uuid": owner_uuid,
            "client_secret": salted(client_secret, salt=settings.salt, algorithm=settings.hash_algorithm),
            "name": name,
            "scopes": scopes,
        }
    )
    app.set_uuid("client_id")
    if not app.validate_save():
        raise RegistrationError("Unable to register app", errors=app.validation_errors)
    return app, client_secret


def issue_token(
    session: Session,
    settings: Settings,
    *,
    user_uuid: str,
    client_id: str | None = None,
    scopes: str | None = None,
    ttl_seconds: int | None = None,
) -> tuple[TokensMapper, str]:
    """Create an access token for a user; returns the mapper and the raw bearer value."""
    raw_token = random_string(ACCESS_TOKEN_LENGTH)
    lifetime = settings.token_ttl_seconds if ttl_seconds is None else ttl_seconds
    record = TokensMapper(session)
    record.copy_from(
        {
            "users_uuid": user_uuid,
            "client_id": client_id,
            "token": salted(raw_token, salt=settings.salt, algorithm=settings.hash_algorithm),
            "scopes": scopes,
            "expires": utc_now() + timedelta(seconds=lifetime),
        }
    )
    if not record.validate_save():
        raise RegistrationError("Unable to issue token", errors=record.validation_errors)
    return record, raw_token