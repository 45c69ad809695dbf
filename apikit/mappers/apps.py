"""Mapper for registered client applications."""

from __future__ import annotations

from apikit.db.models.app import App
from apikit.mappers.base import RecordMapper
from apikit.mappers.base import split_list_field
from apikit.mappers.policy import FieldPolicy
from apikit.mappers.validation import Length
from apikit.mappers.validation import OneOf
from apikit.mappers.validation import Required
from apikit.mappers.validation import Trim
from apikit.mappers.validation import TypeOf
from apikit.mappers.validation import UUIDFormat


class AppsMapper(RecordMapper):
    model = App
    entity = "app"

    policy = FieldPolicy(
        visible={
            "uuid": "id",
            "users_uuid": "user_id",
            "client_id": True,
            "name": True,
            "scopes": True,
            "status": True,
            "created": True,
            "updated": True,
        },
        editable={"name": True},
    )

    filter_rules = (
        ("name", Trim()),
        ("scopes", Trim()),
    )

    validation_rules = (
        ("uuid", Required()),
        ("uuid", UUIDFormat()),
        ("client_id", Required()),
        ("client_id", UUIDFormat()),
        ("client_secret", Required()),
        ("name", Required()),
        ("name", TypeOf("str")),
        ("name", Length(min=1, max=255)),
        ("scopes", TypeOf("str")),
        ("status", TypeOf("str")),
        ("status", OneOf(("approved", "suspended"))),
    )

    def is_active(self) -> bool:
        return self.get("status") == "approved"

    def scope_list(self) -> list[str]:
        return split_list_field(self.get("scopes"))
