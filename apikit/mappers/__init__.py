"""Record mappers for persisted entities."""

from apikit.mappers.apps import AppsMapper
from apikit.mappers.base import RecordMapper
from apikit.mappers.tokens import TokensMapper
from apikit.mappers.users import UsersMapper

__all__ = [
    "AppsMapper",
    "RecordMapper",
    "TokensMapper",
    "UsersMapper",
]
