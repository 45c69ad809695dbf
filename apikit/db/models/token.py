"""SQLAlchemy model for issued bearer access tokens."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime
from sqlalchemy import Index
from sqlalchemy import Integer
from sqlalchemy import PrimaryKeyConstraint
from sqlalchemy import String
from sqlalchemy import Text
from sqlalchemy import UniqueConstraint
from sqlalchemy.orm import Mapped
from sqlalchemy.orm import mapped_column

from apikit.db.models.user import Base


class Token(Base):
    """Access token; only the salted digest of the bearer value is stored."""

    __tablename__ = "tokens"
    __table_args__ = (
        PrimaryKeyConstraint("id", name="pk_tokens"),
        UniqueConstraint("uuid", name="uq_tokens_uuid"),
        UniqueConstraint("token", name="uq_tokens_token"),
        Index("ix_tokens_users_uuid", "users_uuid"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uuid: Mapped[str] = mapped_column(String(36), nullable=False)
    users_uuid: Mapped[str] = mapped_column(String(36), nullable=False)
    client_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    token: Mapped[str] = mapped_column(String(255), nullable=False)
    scopes: Mapped[str | None] = mapped_column(Text, nullable=True)
    expires: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created: Mapped[datetime] = mapped_column(DateTime, nullable=False)
