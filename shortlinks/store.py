"""Link store: the single point where links are persisted and mutated.

All mutation funnels through three single-statement operations, so each one
either applies completely or not at all:

::
    insert()          INSERT INTO links ...            (UNIQUE short_code)
    increment_visit() UPDATE links SET visit_count = visit_count + 1
                      WHERE short_code = :code RETURNING *
    delete_by_owner() DELETE FROM links
                      WHERE short_code = :code AND owner_id = :owner

Key Behaviours
===============
- The unique index on ``short_code`` is authoritative; ``is_available`` is an
  early-rejection hint only.
- Driver failures roll the session back and surface as ``StoreUnavailable``.
- Reads never mutate.
"""

import logging
from collections.abc import Sequence
from typing import NoReturn

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shortlinks.exceptions import DuplicateCode, NotFound, StoreUnavailable
from shortlinks.models import Link

__all__ = ["LinkStore"]

logger = logging.getLogger("shortlinks.store")


class LinkStore:
    def __init__(self, session: AsyncSession):
        self._session = session

    async def insert(self, link: Link) -> Link:
        """Persist ``link``; raises DuplicateCode when its short code is already stored."""
        self._session.add(link)
        try:
            await self._session.commit()
            await self._session.refresh(link)
        except IntegrityError as exc:
            await self._session.rollback()
            raise DuplicateCode(f"Short code '{link.short_code}' already exists") from exc
        except SQLAlchemyError as exc:
            await self._rollback_after(exc, "insert")
        return link

    async def find_by_code(self, code: str) -> Link | None:
        try:
            result = await self._session.execute(select(Link).where(Link.short_code == code))
        except SQLAlchemyError as exc:
            await self._rollback_after(exc, "find_by_code")
        return result.scalar_one_or_none()

    async def is_available(self, code: str) -> bool:
        try:
            result = await self._session.execute(select(Link.id).where(Link.short_code == code))
        except SQLAlchemyError as exc:
            await self._rollback_after(exc, "is_available")
        return result.scalar_one_or_none() is None

    async def find_by_owner(self, owner_id: int, limit: int | None = None) -> Sequence[Link]:
        statement = (
            select(Link)
            .where(Link.owner_id == owner_id)
            .order_by(Link.created_at.desc(), Link.id.desc())
        )
        if limit is not None:
            statement = statement.limit(limit)
        try:
            result = await self._session.execute(statement)
        except SQLAlchemyError as exc:
            await self._rollback_after(exc, "find_by_owner")
        return result.scalars().all()

    async def top_by_owner(self, owner_id: int, limit: int) -> Sequence[Link]:
        statement = (
            select(Link)
            .where(Link.owner_id == owner_id)
            .order_by(Link.visit_count.desc(), Link.created_at.desc(), Link.id.desc())
            .limit(limit)
        )
        try:
            result = await self._session.execute(statement)
        except SQLAlchemyError as exc:
            await self._rollback_after(exc, "top_by_owner")
        return result.scalars().all()

    async def totals_by_owner(self, owner_id: int) -> tuple[int, int]:
        """Return ``(link_count, visit_sum)`` for one owner in a single query."""
        statement = select(
            func.count(Link.id),
            func.coalesce(func.sum(Link.visit_count), 0),
        ).where(Link.owner_id == owner_id)
        try:
            result = await self._session.execute(statement)
        except SQLAlchemyError as exc:
            await self._rollback_after(exc, "totals_by_owner")
        total_links, total_visits = result.one()
        return int(total_links), int(total_visits)

    async def increment_visit(self, code: str) -> Link:
        statement = (
            update(Link)
            .where(Link.short_code == code)
            .values(visit_count=Link.visit_count + 1)
            .returning(Link)
            .execution_options(populate_existing=True)
        )
        try:
            result = await self._session.execute(statement)
            link = result.scalar_one_or_none()
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._rollback_after(exc, "increment_visit")
        if link is None:
            raise NotFound(f"Short code '{code}' not found")
        return link

    async def delete_by_owner(self, code: str, owner_id: int) -> None:
        statement = (
            delete(Link)
            .where(Link.short_code == code, Link.owner_id == owner_id)
            .returning(Link.id)
        )
        try:
            result = await self._session.execute(statement)
            deleted_id = result.scalar_one_or_none()
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._rollback_after(exc, "delete_by_owner")
        if deleted_id is None:
            raise NotFound(f"Short code '{code}' not found")

    async def _rollback_after(self, exc: SQLAlchemyError, operation: str) -> NoReturn:
        logger.error(f"Link store {operation} failed: {exc}")
        await self._session.rollback()
        raise StoreUnavailable() from exc
