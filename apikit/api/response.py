"""Response transport: turns an assembled envelope into an HTTP response."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from dataclasses import field
from typing import Any

from fastapi import Response
from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


@dataclass
class ResponseParams:
    """Headers and status accumulated while a request is handled."""

    headers: dict[str, str] = field(default_factory=dict)
    http_status: int | None = None


class JSONResponder:
    """Writes envelopes as JSON with the given headers and status."""

    def json(self, data: Mapping[str, Any], params: ResponseParams) -> Response:
        return JSONResponse(
            content=jsonable_encoder(dict(data)),
            status_code=params.http_status or status.HTTP_200_OK,
            headers=dict(params.headers),
        )
