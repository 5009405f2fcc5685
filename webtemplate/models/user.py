"""User ORM — example account entity backing the private user endpoints.

Invariants:
    - username and email are unique
    - password_hash is never serialised into API responses
    - status: 1 = active, 0 = disabled
    - Soft delete: deleted_at set instead of removing the row; live rows have deleted_at NULL
"""

from datetime import datetime, timezone

from sqlalchemy import String, Integer, SmallInteger, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from webtemplate.db.base import Base

STATUS_ACTIVE = 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    nickname: Mapped[str | None] = mapped_column(String(50), nullable=True)
    avatar: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[int] = mapped_column(
        SmallInteger, nullable=False, default=STATUS_ACTIVE,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True,
    )
