"""SQLAlchemy model for registered API applications."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime
from sqlalchemy import Integer
from sqlalchemy import PrimaryKeyConstraint
from sqlalchemy import String
from sqlalchemy import Text
from sqlalchemy import UniqueConstraint
from sqlalchemy import text
from sqlalchemy.orm import Mapped
from sqlalchemy.orm import mapped_column

from apikit.db.models.user import Base


class App(Base):
    """Client application authenticating with ``client_id`` / ``client_secret``."""

    __tablename__ = "apps"
    __table_args__ = (
        PrimaryKeyConstraint("id", name="pk_apps"),
        UniqueConstraint("uuid", name="uq_apps_uuid"),
        UniqueConstraint("client_id", name="uq_apps_client_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uuid: Mapped[str] = mapped_column(String(36), nullable=False)
    users_uuid: Mapped[str | None] = mapped_column(String(36), nullable=True)
    client_id: Mapped[str] = mapped_column(String(36), nullable=False)
    client_secret: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    scopes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, server_default=text("'approved'"))
    created: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
