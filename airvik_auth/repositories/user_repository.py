"""사용자 레포지토리 — 사용자 디렉터리 조회.

User Repository — User directory lookups by id, e-mail and Google account.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from airvik_auth.models.user import User
from airvik_auth.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """사용자 관련 데이터베이스 쿼리를 담당하는 레포지토리.

    Repository handling user directory queries.
    """

    def __init__(self) -> None:
        super().__init__(User)

    async def get_by_email(
        self,
        db: AsyncSession,
        email: str,
    ) -> User | None:
        """이메일로 사용자를 조회합니다 (대소문자 무시).

        Retrieve a user by e-mail address, case-insensitively.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            email: 조회할 이메일 (E-mail to look up)

        Returns:
            User | None: 조회된 사용자 또는 None (Found user or None)
        """
        query: Select = select(User).where(User.email == email.strip().lower())
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def get_by_google_id(
        self,
        db: AsyncSession,
        google_id: str,
    ) -> User | None:
        """Google 계정 ID로 사용자를 조회합니다 — Retrieve a user by Google subject."""
        query: Select = select(User).where(User.google_id == google_id)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def mark_logged_in(
        self,
        db: AsyncSession,
        user_id: UUID,
        logged_in_at: datetime,
    ) -> None:
        """마지막 로그인 시각을 갱신합니다 — Record the last successful login."""
        await db.execute(
            update(User).where(User.id == user_id).values(last_login_at=logged_in_at)
        )
        await db.flush()


# 싱글턴 인스턴스 — Singleton instance
user_repository: UserRepository = UserRepository()
