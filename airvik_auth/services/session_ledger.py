"""세션 원장 서비스 — 세션 영속화, 원자적 토큰 교체, 정리.

Session Ledger — Durable session records with atomic refresh-token
replacement. Each operation runs in its own short transaction, bounded by
SESSION_LEDGER_TIMEOUT_SECONDS. Driver errors and timeouts surface as
StoreUnavailable; the lifecycle service decides whether that fails open
(login) or closed (rotation).
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timedelta
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from airvik_auth.config import Settings, settings
from airvik_auth.models.session import UserSession
from airvik_auth.repositories.session_repository import session_repository
from airvik_auth.utils.clock import utcnow
from airvik_auth.utils.exceptions import SessionNotFound, StoreUnavailable
from airvik_auth.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class SessionLedger:
    """세션 원장.

    Session ledger backed by the ``sessions`` table.

    Args:
        session_factory: 비동기 세션 팩토리 (Async session factory)
        config: 애플리케이션 설정 (Application settings)
        clock: 현재 UTC 시각 공급자 (Current-time provider)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: Settings = settings,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._factory = session_factory
        self._settings = config
        self._clock: Callable[[], datetime] = clock or utcnow

    @property
    def timeout(self) -> float:
        return self._settings.SESSION_LEDGER_TIMEOUT_SECONDS

    def session_lifetime(self, remember_me: bool) -> timedelta:
        """세션 수명 — 30 days with remember-me, otherwise 7 days."""
        if remember_me:
            return timedelta(days=self._settings.SESSION_REMEMBER_ME_EXPIRE_DAYS)
        return timedelta(days=self._settings.SESSION_EXPIRE_DAYS)

    async def _run(self, operation: str, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        """단일 트랜잭션에서 작업 실행 — Run ``work`` in one transaction with a timeout."""

        async def _transaction() -> T:
            async with self._factory() as db:
                async with db.begin():
                    return await work(db)

        try:
            return await asyncio.wait_for(_transaction(), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            logger.warning("session_ledger_timeout", operation=operation, timeout=self.timeout)
            raise StoreUnavailable("Session store timed out") from exc
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("session_ledger_error", operation=operation, error=str(exc))
            raise StoreUnavailable() from exc

    async def create_session(
        self,
        user_id: UUID,
        refresh_token: str,
        device_info: dict[str, Any] | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        remember_me: bool = False,
    ) -> UUID:
        """새 세션을 기록합니다.

        Record a new active session for a freshly issued refresh token.

        Args:
            user_id: 사용자 UUID (Owner user UUID)
            refresh_token: 발급된 리프레시 토큰 (Issued refresh token)
            device_info: 기기 정보 (Device info blob)
            ip_address: 클라이언트 IP (Client IP)
            user_agent: 클라이언트 User-Agent (Client user agent)
            remember_me: 로그인 유지 여부 (30 days when True, 7 days otherwise)

        Returns:
            UUID: 생성된 세션 ID (Created session id)

        Raises:
            StoreUnavailable: 저장소 장애 (Store failure or timeout)
        """
        now: datetime = self._clock()

        async def work(db: AsyncSession) -> UUID:
            row: UserSession = await session_repository.create(db, {
                "user_id": user_id,
                "refresh_token": refresh_token,
                "device_info": device_info or {},
                "ip_address": ip_address,
                "user_agent": user_agent,
                "remember_me": remember_me,
                "expires_at": now + self.session_lifetime(remember_me),
                "is_active": True,
                "created_at": now,
                "updated_at": now,
            })
            return row.id

        session_id: UUID = await self._run("create_session", work)
        logger.info("session_created", user_id=str(user_id), session_id=str(session_id), remember_me=remember_me)
        return session_id

    async def is_refresh_token_live(self, refresh_token: str) -> bool:
        """리프레시 토큰에 대한 활성 세션 존재 여부 — Whether a live session holds the token."""
        now: datetime = self._clock()

        async def work(db: AsyncSession) -> bool:
            row = await session_repository.get_live_by_refresh_token(db, refresh_token, now)
            return row is not None

        return await self._run("is_refresh_token_live", work)

    async def is_refresh_token_known(self, refresh_token: str) -> bool:
        """토큰이 세션의 현재 토큰인지 (비활성 포함) — Whether any session row still holds the token.

        A token replaced by rotation is held by no row; a logged-out one is
        still held by its inactive row until the sweep removes it.
        """

        async def work(db: AsyncSession) -> bool:
            return await session_repository.holds_refresh_token(db, refresh_token)

        return await self._run("is_refresh_token_known", work)

    async def replace_token(
        self,
        old_token: str,
        new_token: str,
        new_expires_at: datetime | None = None,
    ) -> None:
        """리프레시 토큰을 원자적으로 교체합니다.

        Swap ``old_token`` for ``new_token`` on its live session. Without an
        explicit ``new_expires_at`` the session's own sliding lifetime is
        applied from now.

        Raises:
            SessionNotFound: 일치하는 활성 세션 없음, 동시 회전에서 패배 포함
                             (No live session holds old_token; includes losing a race)
            StoreUnavailable: 저장소 장애 (Store failure or timeout)
        """
        now: datetime = self._clock()
        remember_me_expiry = new_expires_at or now + self.session_lifetime(True)
        default_expiry = new_expires_at or now + self.session_lifetime(False)

        async def work(db: AsyncSession) -> int:
            return await session_repository.replace_refresh_token(
                db, old_token, new_token, now, remember_me_expiry, default_expiry
            )

        updated: int = await self._run("replace_token", work)
        if updated != 1:
            raise SessionNotFound()

    async def deactivate(self, refresh_token: str) -> int:
        """리프레시 토큰의 세션을 비활성화합니다 (멱등) — Idempotent single-session deactivation."""
        now: datetime = self._clock()

        async def work(db: AsyncSession) -> int:
            return await session_repository.deactivate_by_refresh_token(db, refresh_token, now)

        return await self._run("deactivate", work)

    async def deactivate_session(self, session_id: UUID) -> int:
        """세션 ID로 비활성화합니다 — Deactivate a session by id."""
        now: datetime = self._clock()

        async def work(db: AsyncSession) -> int:
            return await session_repository.deactivate_by_id(db, session_id, now)

        return await self._run("deactivate_session", work)

    async def deactivate_all_for_user(self, user_id: UUID) -> int:
        """사용자의 모든 세션 비활성화 — Deactivate every session of a user."""
        now: datetime = self._clock()

        async def work(db: AsyncSession) -> int:
            return await session_repository.deactivate_for_user(db, user_id, now)

        return await self._run("deactivate_all_for_user", work)

    async def deactivate_all_except(self, user_id: UUID, keep_token: str) -> int:
        """현재 세션을 제외한 모든 세션 비활성화 — Deactivate all sessions but the one holding keep_token."""
        now: datetime = self._clock()

        async def work(db: AsyncSession) -> int:
            return await session_repository.deactivate_for_user(db, user_id, now, keep_token)

        return await self._run("deactivate_all_except", work)

    async def count_active_for_user(self, user_id: UUID) -> int:
        """활성 세션 수 — Number of live sessions."""
        now: datetime = self._clock()

        async def work(db: AsyncSession) -> int:
            return await session_repository.count_live_for_user(db, user_id, now)

        return await self._run("count_active_for_user", work)

    async def list_active_for_user(self, user_id: UUID) -> Sequence[UserSession]:
        """활성 세션 목록 — Live sessions, most recent activity first."""
        now: datetime = self._clock()

        async def work(db: AsyncSession) -> Sequence[UserSession]:
            return await session_repository.list_live_for_user(db, user_id, now)

        return await self._run("list_active_for_user", work)

    async def active_refresh_tokens(self, user_id: UUID, exclude_token: str | None = None) -> list[str]:
        """활성 세션의 리프레시 토큰 — Refresh tokens held by live sessions."""
        now: datetime = self._clock()

        async def work(db: AsyncSession) -> list[str]:
            return await session_repository.live_refresh_tokens(db, user_id, now, exclude_token)

        return await self._run("active_refresh_tokens", work)

    async def get_active_session(self, session_id: UUID, user_id: UUID) -> UserSession | None:
        """사용자 소유 활성 세션 조회 — Live session by id owned by user_id."""
        now: datetime = self._clock()

        async def work(db: AsyncSession) -> UserSession | None:
            return await session_repository.get_live_by_id(db, session_id, user_id, now)

        return await self._run("get_active_session", work)

    async def has_active_device(self, user_id: UUID, device_id: str) -> bool:
        """기기의 활성 세션 존재 여부 — Whether a live session exists for the device."""
        now: datetime = self._clock()

        async def work(db: AsyncSession) -> bool:
            return await session_repository.has_live_device(db, user_id, device_id, now)

        return await self._run("has_active_device", work)

    async def touch(self, refresh_token: str, ip_address: str | None = None) -> bool:
        """마지막 활동 시각 갱신 — Record activity on the session holding the token."""
        now: datetime = self._clock()

        async def work(db: AsyncSession) -> int:
            return await session_repository.touch(db, refresh_token, now, ip_address)

        return await self._run("touch", work) > 0

    async def enforce_session_limit(self, user_id: UUID, max_sessions: int | None = None) -> list[str]:
        """세션 수 상한을 적용합니다.

        Deactivate the oldest live sessions beyond the per-user cap.

        Args:
            user_id: 사용자 UUID (User UUID)
            max_sessions: 상한, 기본값 MAX_SESSIONS_PER_USER (Cap; defaults to the setting)

        Returns:
            list[str]: 축출된 세션의 리프레시 토큰 (Refresh tokens of evicted sessions)
        """
        now: datetime = self._clock()
        keep: int = max_sessions if max_sessions is not None else self._settings.MAX_SESSIONS_PER_USER

        async def work(db: AsyncSession) -> list[str]:
            evicted = await session_repository.oldest_live_beyond(db, user_id, now, keep)
            for row in evicted:
                await session_repository.deactivate_by_id(db, row.id, now)
            return [row.refresh_token for row in evicted]

        evicted_tokens: list[str] = await self._run("enforce_session_limit", work)
        if evicted_tokens:
            logger.info("session_limit_enforced", user_id=str(user_id), evicted=len(evicted_tokens))
        return evicted_tokens

    async def sweep_expired(self) -> int:
        """만료/비활성 세션 삭제 — Delete expired or inactive rows."""
        now: datetime = self._clock()

        async def work(db: AsyncSession) -> int:
            return await session_repository.delete_dead(db, now)

        removed: int = await self._run("sweep_expired", work)
        logger.info("sessions_swept", removed=removed)
        return removed
