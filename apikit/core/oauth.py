"""RFC 6749 error catalog used for authentication and authorization failures.

See https://tools.ietf.org/html/rfc6749#section-5.2
"""

from __future__ import annotations

from enum import Enum

from fastapi import status

from apikit.schemas.error import OAuthErrorObject


class OAuthErrorKind(str, Enum):
    INVALID_REQUEST = "invalid_request"
    INVALID_CREDENTIALS = "invalid_credentials"
    INVALID_CLIENT = "invalid_client"
    INVALID_GRANT = "invalid_grant"
    UNSUPPORTED_GRANT_TYPE = "unsupported_grant_type"
    UNAUTHORIZED_CLIENT = "unauthorized_client"
    ACCESS_DENIED = "access_denied"
    UNSUPPORTED_RESPONSE_TYPE = "unsupported_response_type"
    INVALID_SCOPE = "invalid_scope"
    SERVER_ERROR = "server_error"
    TEMPORARILY_UNAVAILABLE = "temporarily_unavailable"


OAUTH_ERROR_DESCRIPTIONS: dict[OAuthErrorKind, str] = {
    OAuthErrorKind.INVALID_REQUEST: (
        "The request is missing a required parameter, includes an invalid parameter value, "
        "includes a parameter more than once, or is otherwise malformed."
    ),
    OAuthErrorKind.INVALID_CREDENTIALS: "Credentials for authentication were invalid.",
    OAuthErrorKind.INVALID_CLIENT: (
        "Client authentication failed (e.g., unknown client, no client authentication included, "
        "or unsupported authentication method)."
    ),
    OAuthErrorKind.INVALID_GRANT: (
        "The provided authorization grant (e.g., authorization code, resource owner credentials) "
        "or refresh token is invalid, expired, revoked, does not match the redirection URI used "
        "in the authorization request, or was issued to another client."
    ),
    OAuthErrorKind.UNSUPPORTED_GRANT_TYPE: (
        "The authorization grant type is not supported by the authorization server."
    ),
    OAuthErrorKind.UNAUTHORIZED_CLIENT: (
        "The client is not authorized to request an authorization code using this method."
    ),
    OAuthErrorKind.ACCESS_DENIED: "The resource owner or authorization server denied the request.",
    OAuthErrorKind.UNSUPPORTED_RESPONSE_TYPE: (
        "The authorization server does not support obtaining an authorization code using this method."
    ),
    OAuthErrorKind.INVALID_SCOPE: "The requested scope is invalid, unknown, or malformed.",
    OAuthErrorKind.SERVER_ERROR: (
        "The authorization server encountered an unexpected condition that prevented it from "
        "fulfilling the request."
    ),
    OAuthErrorKind.TEMPORARILY_UNAVAILABLE: (
        "The authorization server is currently unable to handle the request due to a temporary "
        "overloading or maintenance of the server."
    ),
}

_STATUS_BY_KIND: dict[OAuthErrorKind, int] = {
    OAuthErrorKind.INVALID_CLIENT: status.HTTP_401_UNAUTHORIZED,
    OAuthErrorKind.INVALID_GRANT: status.HTTP_401_UNAUTHORIZED,
    OAuthErrorKind.UNAUTHORIZED_CLIENT: status.HTTP_401_UNAUTHORIZED,
    OAuthErrorKind.SERVER_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    OAuthErrorKind.INVALID_CREDENTIALS: status.HTTP_403_FORBIDDEN,
}


def lookup_oauth_kind(value: str | OAuthErrorKind) -> OAuthErrorKind | None:
    """Return the catalog entry for ``value`` or None when it is not a known kind."""
    if isinstance(value, OAuthErrorKind):
        return value
    try:
        return OAuthErrorKind(value)
    except ValueError:
        return None


def oauth_error_object(kind: OAuthErrorKind) -> OAuthErrorObject:
    """Build the serializable error object for a catalog kind."""
    return OAuthErrorObject(code=kind.value, description=OAUTH_ERROR_DESCRIPTIONS[kind])


def oauth_http_status(kind: OAuthErrorKind) -> int:
    """Default HTTP status for an OAuth error kind."""
    return _STATUS_BY_KIND.get(kind, status.HTTP_400_BAD_REQUEST)
