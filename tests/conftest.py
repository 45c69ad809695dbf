"""Shared pytest fixtures for apikit test suites."""

from collections.abc import Generator
import os
from pathlib import Path
import sys

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("APIKIT_DATABASE_URL", "sqlite+pysqlite:///:memory:")

from apikit.core.cache import TTLCache  # noqa: E402
from apikit.core.config import Settings  # noqa: E402
from apikit.db.models import Base  # noqa: E402
from apikit.db.repository.credentials import register_app  # noqa: E402
from apikit.db.repository.credentials import register_user  # noqa: E402
from apikit.mappers.apps import AppsMapper  # noqa: E402
from apikit.mappers.users import UsersMapper  # noqa: E402

USER_EMAIL = "ada@example.com"
USER_PASSWORD = "correct-horse-battery"


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """In-memory SQLite engine shared across threads for the test client."""
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine: Engine) -> Generator[Session, None, None]:
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    with factory() as db_session:
        yield db_session


@pytest.fixture
def settings() -> Settings:
    return Settings(salt="test-salt", api_version="2")


@pytest.fixture
def auth_cache() -> TTLCache:
    return TTLCache(ttl_seconds=30)


@pytest.fixture
def user(session: Session) -> UsersMapper:
    return register_user(
        session,
        email=USER_EMAIL,
        password=USER_PASSWORD,
        firstname="Ada",
        lastname="Lovelace",
        scopes="user profile",
        groups="staff",
    )


@pytest.fixture
def app_credentials(session: Session, settings: Settings, user: UsersMapper) -> tuple[AppsMapper, str]:
    """A registered app and its raw client secret."""
    return register_app(session, settings, name="Analytical Engine", owner_uuid=user["uuid"], scopes="read")


@pytest.fixture
def client(session: Session, settings: Settings, auth_cache: TTLCache) -> Generator[TestClient, None, None]:
    """Provide an API test client bound to the in-memory database."""
    from apikit.api.dependencies import get_auth_cache
    from apikit.core.config import get_settings
    from apikit.db.base import get_db_session
    from apikit.main import app

    app.dependency_overrides[get_db_session] = lambda: session
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_auth_cache] = lambda: auth_cache
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
