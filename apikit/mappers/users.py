"""Mapper for the users table."""

from __future__ import annotations

from apikit.db.models.user import User
from apikit.mappers.base import RecordMapper
from apikit.mappers.base import split_list_field
from apikit.mappers.policy import FieldPolicy
from apikit.mappers.validation import Email
from apikit.mappers.validation import Length
from apikit.mappers.validation import Lowercase
from apikit.mappers.validation import NullIfEmpty
from apikit.mappers.validation import OneOf
from apikit.mappers.validation import Required
from apikit.mappers.validation import Trim
from apikit.mappers.validation import TypeOf
from apikit.mappers.validation import UUIDFormat

USER_STATUSES = ("registered", "confirmed", "suspended", "closed")


class UsersMapper(RecordMapper):
    model = User
    entity = "user"

    policy = FieldPolicy(
        visible={
            "id": False,
            "uuid": "id",
            "email": True,
            "password": False,
            "firstname": True,
            "lastname": True,
            "scopes": True,
            "groups": False,
            "status": True,
            "created": True,
            "updated": True,
        },
        editable={
            "email": True,
            "firstname": True,
            "lastname": True,
        },
    )

    filter_rules = (
        ("email", Trim()),
        ("email", Lowercase()),
        ("firstname", Trim()),
        ("firstname", NullIfEmpty()),
        ("lastname", Trim()),
        ("lastname", NullIfEmpty()),
        ("scopes", Trim()),
        ("status", Trim()),
        ("status", Lowercase()),
    )

    validation_rules = (
        ("uuid", Required()),
        ("uuid", UUIDFormat()),
        ("email", Required()),
        ("email", TypeOf("str")),
        ("email", Email()),
        ("email", Length(max=255)),
        ("password", Required()),
        ("password", TypeOf("str")),
        ("password", Length(min=8, max=255)),
        ("firstname", TypeOf("str")),
        ("firstname", Length(max=128)),
        ("lastname", TypeOf("str")),
        ("lastname", Length(max=128)),
        ("scopes", TypeOf("str")),
        ("groups", TypeOf("str")),
        ("status", TypeOf("str")),
        ("status", OneOf(USER_STATUSES)),
    )

    def scope_list(self) -> list[str]:
        return split_list_field(self.get("scopes"))

    def group_list(self) -> list[str]:
        return split_list_field(self.get("groups"))
