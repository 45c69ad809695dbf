"""Schema gate: the migration must build the tables the ORM models describe."""

from __future__ import annotations

import importlib.util
from pathlib import Path
from types import ModuleType

from alembic.migration import MigrationContext
from alembic.operations import Operations
import pytest
from sqlalchemy import create_engine
from sqlalchemy import inspect
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from apikit.db.models import Base

ROOT = Path(__file__).resolve().parents[2]
MIGRATION_PATH = ROOT / "migrations" / "versions" / "001_users_apps_tokens.py"


def _load_migration() -> ModuleType:
    spec = importlib.util.spec_from_file_location("migration_001_users_apps_tokens", MIGRATION_PATH)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _run(engine: Engine, step: str) -> None:
    migration = _load_migration()
    with engine.begin() as conn:
        context = MigrationContext.configure(conn)
        with Operations.context(context):
            getattr(migration, step)()


@pytest.fixture
def migrated_engine():
    engine = create_engine("sqlite+pysqlite:///:memory:")
    _run(engine, "upgrade")
    yield engine
    engine.dispose()


def test_migration_creates_model_tables_and_columns(migrated_engine: Engine) -> None:
    inspector = inspect(migrated_engine)

    assert set(inspector.get_table_names()) >= set(Base.metadata.tables)
    for name, table in Base.metadata.tables.items():
        migrated = {column["name"]: column for column in inspector.get_columns(name)}
        assert set(migrated) == {column.name for column in table.columns}, name
        for column in table.columns:
            assert migrated[column.name]["nullable"] == column.nullable, f"{name}.{column.name}"


def test_migration_declares_unique_identities(migrated_engine: Engine) -> None:
    inspector = inspect(migrated_engine)

    for name in ("users", "apps", "tokens"):
        unique_columns = {tuple(item["column_names"]) for item in inspector.get_unique_constraints(name)}
        assert ("uuid",) in unique_columns, name
    assert ("email",) in {tuple(item["column_names"]) for item in inspector.get_unique_constraints("users")}
    assert ("client_id",) in {tuple(item["column_names"]) for item in inspector.get_unique_constraints("apps")}


def test_duplicate_uuid_is_rejected(migrated_engine: Engine) -> None:
    insert_user = text(
        "INSERT INTO users (uuid, email, password, created) "
        "VALUES (:uuid, :email, 'hash', '2026-01-01 00:00:00')"
    )
    with migrated_engine.begin() as conn:
        conn.execute(insert_user, {"uuid": "6f1c2b8e-1d2a-4c3b-9a8b-0123456789ab", "email": "a@example.com"})

    with pytest.raises(IntegrityError):
        with migrated_engine.begin() as conn:
            conn.execute(insert_user, {"uuid": "6f1c2b8e-1d2a-4c3b-9a8b-0123456789ab", "email": "b@example.com"})


def test_server_defaults_fill_status_and_scopes(migrated_engine: Engine) -> None:
    with migrated_engine.begin() as conn:
        conn.execute(
            text(
                "INSERT INTO users (uuid, email, password, created) "
                "VALUES ('6f1c2b8e-1d2a-4c3b-9a8b-0123456789ab', 'a@example.com', 'hash', '2026-01-01 00:00:00')"
            )
        )
        row = conn.execute(text("SELECT scopes, status FROM users")).one()

    assert row.scopes == "user"
    assert row.status == "registered"


def test_downgrade_drops_all_tables(migrated_engine: Engine) -> None:
    _run(migrated_engine, "downgrade")

    assert inspect(migrated_engine).get_table_names() == []
