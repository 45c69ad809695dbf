"""Profile routes for the authenticated user."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi import Body
from fastapi import Depends
from fastapi import Request
from fastapi import Response
from fastapi import status

from apikit.api.controller import APIController
from apikit.api.controller import ControllerContext
from apikit.api.dependencies import get_controller_context
from apikit.mappers.users import UsersMapper
from apikit.mappers.validation import describe_violation

router = APIRouter(prefix="/api", tags=["users"])


class UsersController(APIController):
    def _current_user(self) -> UsersMapper | None:
        user = self.identity.user if self.identity is not None else None
        if user is None:
            self.failure("authorization_error", "This request requires an authenticated user.", status.HTTP_403_FORBIDDEN)
            self.set_oauth_error("access_denied")
        return user

    def me(self) -> None:
        user = self._current_user()
        if user is None:
            return
        self.data.update(user.export_array(self.http_request.query_params.get("fields")))

    def update_me(self) -> None:
        user = self._current_user()
        if user is None:
            return

        rejected = user.policy.rejected_fields(self.payload)
        if rejected:
            self.failure(
                "invalid_request_error",
                f"Fields not editable: {', '.join(rejected)}",
                status.HTTP_400_BAD_REQUEST,
            )
            self.set_oauth_error("invalid_request")
            return

        user.copy_from(user.policy.editable_subset(self.payload))
        violations = user.validate(run=False)
        if violations is not True:
            for name, kind in sorted(violations.items()):
                self.failure(f"validation_error.{name}", describe_violation(name, kind), status.HTTP_400_BAD_REQUEST)
            self.set_oauth_error("invalid_request")
            return

        if not user.validate_save():
            self.failure("conflict_error", "The user record could not be saved.", status.HTTP_409_CONFLICT)
            return

        self.data.update(user.export_array())


@router.get("/users/me")
def get_me(
    request: Request,
    context: ControllerContext = Depends(get_controller_context),
) -> Response:
    """Export the authenticated user."""
    return UsersController(request, context).handle("me")


@router.patch("/users/me")
def update_me(
    request: Request,
    payload: dict[str, Any] = Body(...),
    context: ControllerContext = Depends(get_controller_context),
) -> Response:
    """Update the editable fields of the authenticated user."""
    return UsersController(request, context, payload=payload).handle("update_me")
