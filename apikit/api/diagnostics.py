"""Diagnostic route returning a snapshot of the request environment."""

from __future__ import annotations

from collections.abc import Mapping
import os
import re

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Request
from fastapi import Response
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from apikit.api.controller import APIController
from apikit.api.controller import ControllerContext
from apikit.api.dependencies import get_controller_context
from apikit.core.config import redact_secret

router = APIRouter(tags=["diagnostics"])

_SENSITIVE_KEY = re.compile(r"secret|password|passwd|token|salt|key|authorization|cookie|credential|dsn", re.IGNORECASE)
_URL_USERINFO = re.compile(r"://[^/\s]*@")


def mask_url_password(value: str) -> str:
    """Hide the password of a connection URL embedded in ``value``."""
    if not _URL_USERINFO.search(value):
        return value
    try:
        url = make_url(value)
    except (ArgumentError, ValueError):
        return redact_secret(value)
    if url.password is None:
        return value
    return url.render_as_string(hide_password=True)


def redact_mapping(values: Mapping[str, str]) -> dict[str, str]:
    """Copy of ``values`` with secret-looking keys redacted and URL passwords masked."""
    return {
        key: redact_secret(value) if _SENSITIVE_KEY.search(key) else mask_url_password(value)
        for key, value in sorted(values.items())
    }


class DiagnosticsController(APIController):
    def request(self) -> None:
        self.headers["Allow"] = "GET,HEAD"
        client = self.http_request.client
        self.data.update(
            {
                "name": "globals",
                "description": "Global Variables",
                "globals": {
                    "SERVER": {
                        "method": self.http_request.method,
                        "scheme": self.http_request.url.scheme,
                        "host": self.http_request.url.hostname,
                        "port": self.http_request.url.port,
                        "path": self.http_request.url.path,
                        "client": client.host if client else None,
                        "app_version": self.settings.app_version,
                        "api_version": self.settings.api_version,
                    },
                    "ENV": redact_mapping(os.environ),
                    "HEADERS": redact_mapping(dict(self.http_request.headers)),
                    "COOKIE": redact_mapping(dict(self.http_request.cookies)),
                    "GET": redact_mapping(dict(self.http_request.query_params)),
                },
            }
        )


@router.api_route("/api", methods=["GET", "HEAD"])
def api_globals(
    request: Request,
    context: ControllerContext = Depends(get_controller_context),
) -> Response:
    """Global variables of the current request."""
    return DiagnosticsController(request, context).handle("request")
