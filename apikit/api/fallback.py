"""Catch-all route for API paths no other router handles; include it last."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Request
from fastapi import Response

from apikit.api.controller import APIController
from apikit.api.controller import ControllerContext
from apikit.api.dependencies import get_controller_context

router = APIRouter(tags=["fallback"])


@router.api_route(
    "/api/{path:path}",
    methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
def unknown_api_request(
    path: str,
    request: Request,
    context: ControllerContext = Depends(get_controller_context),
) -> Response:
    return APIController(request, context).handle("unknown")
