"""사용자 디렉터리 — 토큰 회전 시 사용자 존재/활성 확인.

User directory — Looks up users for the token lifecycle outside of a
request's database session.
"""

import asyncio
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from airvik_auth.models.user import User
from airvik_auth.repositories.user_repository import user_repository
from airvik_auth.utils.exceptions import StoreUnavailable


class UserDirectory:
    """사용자 조회 서비스.

    Args:
        session_factory: 비동기 세션 팩토리 (Async session factory)
        timeout_seconds: 조회 제한 시간 (Lookup timeout)
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], timeout_seconds: float = 10.0) -> None:
        self._factory = session_factory
        self._timeout = timeout_seconds

    async def find_by_id(self, user_id: UUID) -> User | None:
        """ID로 사용자 조회 — Find a user by id; None when absent.

        Raises:
            StoreUnavailable: DB 장애 또는 시간 초과 (Database failure or timeout)
        """

        async def _lookup() -> User | None:
            async with self._factory() as db:
                return await user_repository.get_by_id(db, user_id)

        try:
            return await asyncio.wait_for(_lookup(), timeout=self._timeout)
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as exc:
            raise StoreUnavailable("User directory unavailable") from exc
