"""Error envelope schemas shared across API handlers."""

from __future__ import annotations

from pydantic import BaseModel


class ErrorEntry(BaseModel):
    """Single accumulated request error."""

    code: str
    message: str


class OAuthErrorObject(BaseModel):
    """RFC 6749 shaped error object."""

    code: str
    description: str
    uri: str = ""
    state: str = ""


class ErrorObject(BaseModel):
    """Canonical error payload: an optional OAuth error plus accumulated errors."""

    code: str | None = None
    description: str | None = None
    uri: str | None = None
    state: str | None = None
    errors: list[ErrorEntry] | None = None

