"""세션 레포지토리 — 세션 원장 SQL 연산.

Session Repository — SQL operations behind the session ledger.
Every method takes the caller's AsyncSession and the current time; the
transaction boundary, timeouts and error mapping live in SessionLedger.
"""

from collections.abc import Sequence
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import DateTime, Select, case, delete, func, literal, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from airvik_auth.models.session import UserSession
from airvik_auth.repositories.base import BaseRepository


class SessionRepository(BaseRepository[UserSession]):
    """세션 원장 쿼리를 담당하는 레포지토리.

    Repository handling session ledger queries. "Live" always means
    ``is_active`` and ``expires_at`` in the future.
    """

    def __init__(self) -> None:
        super().__init__(UserSession)

    @staticmethod
    def _live(now: datetime) -> list[Any]:
        return [UserSession.is_active.is_(True), UserSession.expires_at > now]

    async def get_live_by_refresh_token(
        self,
        db: AsyncSession,
        refresh_token: str,
        now: datetime,
    ) -> UserSession | None:
        """리프레시 토큰으로 활성 세션을 조회합니다 — Live session holding the token."""
        query: Select = select(UserSession).where(
            UserSession.refresh_token == refresh_token, *self._live(now)
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def holds_refresh_token(self, db: AsyncSession, refresh_token: str) -> bool:
        """활성 여부와 무관하게 토큰을 가진 세션 존재 여부 — Any session row, live or not, holding the token."""
        query: Select = select(UserSession.id).where(UserSession.refresh_token == refresh_token).limit(1)
        result = await db.execute(query)
        return result.scalar_one_or_none() is not None

    async def get_live_by_id(
        self,
        db: AsyncSession,
        session_id: UUID,
        user_id: UUID,
        now: datetime,
    ) -> UserSession | None:
        """사용자 소유 활성 세션을 ID로 조회합니다 — Live session by id, scoped to its owner."""
        query: Select = select(UserSession).where(
            UserSession.id == session_id,
            UserSession.user_id == user_id,
            *self._live(now),
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def replace_refresh_token(
        self,
        db: AsyncSession,
        old_token: str,
        new_token: str,
        now: datetime,
        remember_me_expires_at: datetime,
        default_expires_at: datetime,
    ) -> int:
        """리프레시 토큰을 원자적으로 교체합니다.

        Atomically swap the refresh token of the live session holding
        ``old_token``. A single conditional UPDATE: of two concurrent
        callers presenting the same token, exactly one matches a row.
        The new expiry follows the session's own remember-me flag.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            old_token: 제시된 리프레시 토큰 (Presented refresh token)
            new_token: 새 리프레시 토큰 (Freshly minted refresh token)
            now: 현재 시각 (Current time)
            remember_me_expires_at: 로그인 유지 세션의 새 만료 (New expiry for remember-me rows)
            default_expires_at: 일반 세션의 새 만료 (New expiry for other rows)

        Returns:
            int: 갱신된 행 수, 0 또는 1 (Affected rows, 0 or 1)
        """
        new_expiry = case(
            (
                UserSession.remember_me.is_(True),
                literal(remember_me_expires_at, type_=DateTime(timezone=True)),
            ),
            else_=literal(default_expires_at, type_=DateTime(timezone=True)),
        )
        stmt = (
            update(UserSession)
            .where(UserSession.refresh_token == old_token, *self._live(now))
            .values(refresh_token=new_token, expires_at=new_expiry, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount or 0

    async def deactivate_by_refresh_token(
        self,
        db: AsyncSession,
        refresh_token: str,
        now: datetime,
    ) -> int:
        """리프레시 토큰의 세션을 비활성화합니다 — Deactivate the session holding the token."""
        stmt = (
            update(UserSession)
            .where(UserSession.refresh_token == refresh_token, UserSession.is_active.is_(True))
            .values(is_active=False, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount or 0

    async def deactivate_by_id(
        self,
        db: AsyncSession,
        session_id: UUID,
        now: datetime,
    ) -> int:
        """세션 ID로 비활성화합니다 — Deactivate a session by id."""
        stmt = (
            update(UserSession)
            .where(UserSession.id == session_id, UserSession.is_active.is_(True))
            .values(is_active=False, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount or 0

    async def deactivate_for_user(
        self,
        db: AsyncSession,
        user_id: UUID,
        now: datetime,
        keep_refresh_token: str | None = None,
    ) -> int:
        """사용자의 활성 세션을 모두 비활성화합니다.

        Deactivate every active session of a user, optionally keeping the
        one holding ``keep_refresh_token``.

        Returns:
            int: 비활성화된 세션 수 (Number of sessions deactivated)
        """
        stmt = update(UserSession).where(
            UserSession.user_id == user_id, UserSession.is_active.is_(True)
        )
        if keep_refresh_token is not None:
            stmt = stmt.where(UserSession.refresh_token != keep_refresh_token)
        stmt = stmt.values(is_active=False, updated_at=now).execution_options(
            synchronize_session=False
        )
        result = await db.execute(stmt)
        return result.rowcount or 0

    async def list_live_for_user(
        self,
        db: AsyncSession,
        user_id: UUID,
        now: datetime,
    ) -> Sequence[UserSession]:
        """사용자의 활성 세션 목록 (최근 활동 순) — Live sessions, most recent activity first."""
        query: Select = (
            select(UserSession)
            .where(UserSession.user_id == user_id, *self._live(now))
            .order_by(UserSession.updated_at.desc(), UserSession.created_at.desc())
        )
        result = await db.execute(query)
        return result.scalars().all()

    async def live_refresh_tokens(
        self,
        db: AsyncSession,
        user_id: UUID,
        now: datetime,
        exclude_token: str | None = None,
    ) -> list[str]:
        """사용자의 활성 리프레시 토큰 목록 — Refresh tokens of the user's live sessions."""
        query: Select = select(UserSession.refresh_token).where(
            UserSession.user_id == user_id, *self._live(now)
        )
        if exclude_token is not None:
            query = query.where(UserSession.refresh_token != exclude_token)
        result = await db.execute(query)
        return list(result.scalars().all())

    async def count_live_for_user(
        self,
        db: AsyncSession,
        user_id: UUID,
        now: datetime,
    ) -> int:
        """사용자의 활성 세션 수 — Number of live sessions for a user."""
        query: Select = (
            select(func.count())
            .select_from(UserSession)
            .where(UserSession.user_id == user_id, *self._live(now))
        )
        return (await db.execute(query)).scalar() or 0

    async def has_live_device(
        self,
        db: AsyncSession,
        user_id: UUID,
        device_id: str,
        now: datetime,
    ) -> bool:
        """해당 기기의 활성 세션 존재 여부 — Whether a live session exists for the device."""
        query: Select = (
            select(func.count())
            .select_from(UserSession)
            .where(
                UserSession.user_id == user_id,
                UserSession.device_info["device_id"].as_string() == device_id,
                *self._live(now),
            )
        )
        count: int = (await db.execute(query)).scalar() or 0
        return count > 0

    async def touch(
        self,
        db: AsyncSession,
        refresh_token: str,
        now: datetime,
        ip_address: str | None = None,
    ) -> int:
        """세션 마지막 활동 시각을 갱신합니다 — Record activity on a live session."""
        values: dict[str, Any] = {"updated_at": now}
        if ip_address:
            values["ip_address"] = ip_address
        stmt = (
            update(UserSession)
            .where(UserSession.refresh_token == refresh_token, *self._live(now))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount or 0

    async def oldest_live_beyond(
        self,
        db: AsyncSession,
        user_id: UUID,
        now: datetime,
        keep: int,
    ) -> Sequence[UserSession]:
        """최근 ``keep``개를 제외한 오래된 활성 세션 — Live sessions older than the newest ``keep``."""
        query: Select = (
            select(UserSession)
            .where(UserSession.user_id == user_id, *self._live(now))
            .order_by(UserSession.created_at.desc(), UserSession.id)
            .offset(keep)
        )
        result = await db.execute(query)
        return result.scalars().all()

    async def delete_dead(
        self,
        db: AsyncSession,
        now: datetime,
    ) -> int:
        """만료되었거나 비활성인 세션을 삭제합니다 — Delete expired or inactive rows."""
        stmt = (
            delete(UserSession)
            .where(or_(UserSession.expires_at <= now, UserSession.is_active.is_(False)))
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount or 0


# 싱글턴 인스턴스 — Singleton instance
session_repository: SessionRepository = SessionRepository()
