"""FastAPI dependencies wiring controllers to their collaborators."""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from apikit.api.controller import ControllerContext
from apikit.core.cache import TTLCache
from apikit.core.config import Settings
from apikit.core.config import get_settings
from apikit.db.base import get_db_session
from apikit.db.repository.credentials import SQLCredentialStore


@lru_cache(maxsize=1)
def get_auth_cache() -> TTLCache:
    """Process-wide cache of basic-auth outcomes."""
    return TTLCache(ttl_seconds=get_settings().auth_cache_ttl_seconds)


def get_controller_context(
    session: Session = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
    auth_cache: TTLCache = Depends(get_auth_cache),
) -> ControllerContext:
    return ControllerContext(
        settings=settings,
        credentials=SQLCredentialStore(session, settings=settings),
        auth_cache=auth_cache,
    )
