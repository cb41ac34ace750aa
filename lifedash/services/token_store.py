"""Per-user persistence for Google OAuth tokens."""
from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import Any, TypeVar

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lifedash.core.oauth_google import PersistenceFailedError
from lifedash.models import GoogleToken

T = TypeVar("T")

UPSERTABLE_FIELDS = frozenset({"access_token", "refresh_token", "expiry_date", "updated_at"})
_DIALECT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


class TokenStore:
    """Read and upsert the single ``GoogleToken`` row owned by each user.

    Operations are bounded by ``timeout_seconds``; a timeout or database error
    is raised as :class:`PersistenceFailedError`. Nothing is retried.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        timeout_seconds: float = 5.0,
    ) -> None:
        self._session_factory = session_factory
        self._timeout = timeout_seconds

    async def get(self, user_id: str) -> GoogleToken | None:
        """Return the stored token for ``user_id`` or ``None``."""
        return await self._bounded(self._get(user_id), "read")

    async def upsert(self, user_id: str, /, **fields: Any) -> GoogleToken:
        """Insert or update the user's token with only the supplied fields."""
        unknown = set(fields) - UPSERTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unsupported token fields: {', '.join(sorted(unknown))}")
        return await self._bounded(self._upsert(user_id, fields), "write")

    async def delete(self, user_id: str) -> bool:
        """Remove the user's token; used only by an explicit disconnect."""
        return await self._bounded(self._delete(user_id), "delete")

    async def _bounded(self, operation: Awaitable[T], action: str) -> T:
        try:
            return await asyncio.wait_for(operation, timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise PersistenceFailedError(
                f"Token store {action} timed out", detail=f"timeout after {self._timeout}s"
            ) from exc
        except SQLAlchemyError as exc:
            raise PersistenceFailedError(f"Token store {action} failed", detail=str(exc)) from exc

    async def _get(self, user_id: str) -> GoogleToken | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(GoogleToken).where(GoogleToken.user_id == user_id)
            )
            return result.scalars().first()

    async def _upsert(self, user_id: str, fields: dict[str, Any]) -> GoogleToken:
        async with self._session_factory() as session:
            dialect = session.get_bind().dialect.name
            insert = _DIALECT_INSERTS.get(dialect)
            if insert is None:
                await self._merge(session, user_id, fields)
            else:
                stmt = insert(GoogleToken).values(user_id=user_id, **fields)
                if fields:
                    stmt = stmt.on_conflict_do_update(
                        index_elements=[GoogleToken.user_id], set_=fields
                    )
                else:
                    stmt = stmt.on_conflict_do_nothing(index_elements=[GoogleToken.user_id])
                await session.execute(stmt)
            await session.commit()

            result = await session.execute(
                select(GoogleToken)
                .where(GoogleToken.user_id == user_id)
                .execution_options(populate_existing=True)
            )
            return result.scalars().one()

    @staticmethod
    async def _merge(session: AsyncSession, user_id: str, fields: dict[str, Any]) -> None:
        result = await session.execute(
            select(GoogleToken).where(GoogleToken.user_id == user_id).with_for_update()
        )
        token = result.scalars().first()
        if token is None:
            session.add(GoogleToken(user_id=user_id, **fields))
            return
        for name, value in fields.items():
            setattr(token, name, value)

    async def _delete(self, user_id: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                delete(GoogleToken).where(GoogleToken.user_id == user_id)
            )
            await session.commit()
            return bool(result.rowcount)
