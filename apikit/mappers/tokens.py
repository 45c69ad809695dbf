"""Mapper for issued access tokens."""

from __future__ import annotations

from datetime import datetime

from apikit.db.models.token import Token
from apikit.mappers.base import RecordMapper
from apikit.mappers.policy import FieldPolicy
from apikit.mappers.validation import Required
from apikit.mappers.validation import UUIDFormat


class TokensMapper(RecordMapper):
    model = Token
    entity = "token"

    policy = FieldPolicy(
        visible={
            "uuid": "id",
            "users_uuid": "user_id",
            "client_id": True,
            "scopes": True,
            "expires": True,
            "created": True,
        },
    )

    validation_rules = (
        ("uuid", Required()),
        ("uuid", UUIDFormat()),
        ("users_uuid", Required()),
        ("users_uuid", UUIDFormat()),
        ("token", Required()),
        ("expires", Required()),
    )

    def is_expired(self, now: datetime) -> bool:
        expires = self.get("expires")
        return expires is None or now >= expires
