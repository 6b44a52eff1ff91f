"""SQLAlchemy ORM models for the link shortening service.

Data Model Layout
=================
::
    users table
    ├─ id (SERIAL PRIMARY KEY)
    ├─ username (VARCHAR(30) UNIQUE, INDEXED)
    ├─ password_hash (VARCHAR(128) NOT NULL)
    └─ created_at (TIMESTAMPTZ)

    links table
    ├─ id (SERIAL PRIMARY KEY)
    ├─ short_code (VARCHAR(20) UNIQUE, INDEXED)
    ├─ original_url (TEXT NOT NULL)
    ├─ owner_id (INTEGER NOT NULL, FK users.id, INDEXED)
    ├─ visit_count (INTEGER DEFAULT 0)
    └─ created_at (TIMESTAMPTZ)

How to Use
===========
**Create a link**::
    link = Link(short_code="abc123", original_url="https://example.com", owner_id=user.id)
    db.add(link)
    await db.commit()

**Query links**::
    result = await db.execute(select(Link).where(Link.short_code == "abc123"))
    link = result.scalar_one_or_none()

Key Behaviours
===============
- The UNIQUE index on short_code is the only authority on code uniqueness.
- visit_count is only ever changed by ``UPDATE ... SET visit_count = visit_count + 1``.
- short_code, original_url, owner_id and created_at never change after insert.
- created_at is stamped in Python with microsecond precision so recency
  ordering is stable on every backend.

Classes:
    User:  An account that owns links.
    Link:  A short code bound to its original URL, owner and visit counter.
"""

import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from shortlinks.database import Base

__all__ = ["Link", "User"]


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(30), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}')>"


class Link(Base):
    __tablename__ = "links"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    short_code: Mapped[str] = mapped_column(String(20), unique=True, index=True, nullable=False)
    original_url: Mapped[str] = mapped_column(Text, nullable=False)
    owner_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    visit_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Link(id={self.id}, short_code='{self.short_code}', visit_count={self.visit_count})>"
