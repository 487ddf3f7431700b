"""토큰 수명주기 서비스 — 발급, 검증, 회전, 로그아웃, 세션 관리.

Token Lifecycle Service — Orchestrates the codec, the revocation store, the
session ledger and the user directory.

Rotation order (strict):
    1. 리프레시 토큰 서명/만료 검증 (Verify the refresh token)
    2. 폐기 목록 확인 (Revocation check)
    3. 사용자 존재/활성 확인 (User directory lookup)
    4. 새 토큰 쌍 발급 (Mint the new pair)
    5. 원장에서 원자적 교체 — 패배 시 SessionNotFound (Atomic ledger swap)
    6. 이전 토큰 폐기, 실패 무시 (Best-effort revocation of the old token)
    7. 새 쌍 반환 (Return the new pair)

Store failures are fail-open on revocation reads and at login, and
fail-closed at the rotation ledger swap.
"""

from collections.abc import Iterable
from typing import Any
from uuid import UUID

from airvik_auth.config import Settings, settings
from airvik_auth.models.session import UserSession
from airvik_auth.models.user import User
from airvik_auth.schemas.token import (
    ConfigurationReport,
    IssuedTokenPair,
    LogoutResult,
    LogoutScope,
    RotatedTokenPair,
    SessionInfo,
    SubjectClaims,
    TokenClaims,
)
from airvik_auth.services.device_policy import location_hint
from airvik_auth.services.revocation_store import RevocationStore
from airvik_auth.services.session_ledger import SessionLedger
from airvik_auth.services.user_directory import UserDirectory
from airvik_auth.utils.clock import ensure_utc
from airvik_auth.utils.exceptions import (
    BadRequestError,
    RefreshTokenExpired,
    RefreshTokenInvalid,
    SessionNotFound,
    StoreUnavailable,
    TokenExpired,
    TokenMalformed,
    TokenRevoked,
    UserInactive,
)
from airvik_auth.utils.jwt import TokenCodec, validate_configuration
from airvik_auth.utils.logging import get_logger

logger = get_logger(__name__)


def _as_uuid(value: UUID | str) -> UUID | None:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


class TokenLifecycleService:
    """토큰 수명주기 서비스.

    Args:
        codec: 토큰 코덱 (Token codec)
        revocation_store: 폐기 저장소 (Revocation store)
        ledger: 세션 원장 (Session ledger)
        user_directory: 사용자 디렉터리 (User directory)
        config: 애플리케이션 설정 (Application settings)
    """

    def __init__(
        self,
        codec: TokenCodec,
        revocation_store: RevocationStore,
        ledger: SessionLedger,
        user_directory: UserDirectory,
        config: Settings = settings,
    ) -> None:
        self.codec = codec
        self.revocation_store = revocation_store
        self.ledger = ledger
        self.user_directory = user_directory
        self._settings = config

    @property
    def access_expires_in(self) -> int:
        return int(self.codec.access_ttl.total_seconds())

    def validate_configuration(self) -> ConfigurationReport:
        """서명 설정 검증 — Validate signing configuration."""
        return validate_configuration(self._settings)

    async def _revoke_quietly(self, tokens: Iterable[str], owner_user_id: str) -> int:
        revoked = 0
        for token in tokens:
            if await self.revocation_store.revoke(token, owner_user_id):
                revoked += 1
        return revoked

    async def issue_initial_pair(
        self,
        claims: SubjectClaims,
        device_info: dict[str, Any] | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        remember_me: bool = False,
    ) -> IssuedTokenPair:
        """로그인 성공 후 최초 토큰 쌍을 발급합니다.

        Mint the first access/refresh pair after a successful login and
        record the session. A ledger failure does not fail the login: the
        pair is returned with ``session_id=None`` and will be rejected at
        its first rotation.

        Args:
            claims: 사용자 식별 클레임 (Subject claims)
            device_info: 기기 정보 (Device info blob)
            ip_address: 클라이언트 IP (Client IP)
            user_agent: 클라이언트 User-Agent (Client user agent)
            remember_me: 로그인 유지 (Selects the 30-day session lifetime)

        Returns:
            IssuedTokenPair: 발급된 토큰 쌍 (Issued pair)

        Raises:
            ConfigurationError: 서명 비밀키 미설정 (Signing secret missing)
        """
        access_token: str = self.codec.issue_access_token(claims)
        refresh_token: str = self.codec.issue_refresh_token(claims)

        session_id: UUID | None = None
        user_id = _as_uuid(claims.subject_id)
        if user_id is not None:
            try:
                session_id = await self.ledger.create_session(
                    user_id,
                    refresh_token,
                    device_info=device_info,
                    ip_address=ip_address,
                    user_agent=user_agent,
                    remember_me=remember_me,
                )
                evicted: list[str] = await self.ledger.enforce_session_limit(user_id)
                await self._revoke_quietly(evicted, claims.subject_id)
            except StoreUnavailable:
                logger.warning("session_record_failed", user_id=claims.subject_id, session_recorded=session_id is not None)

        session_seconds = int(self.ledger.session_lifetime(remember_me).total_seconds())
        refresh_seconds = int(self.codec.refresh_ttl.total_seconds())
        logger.info("token_pair_issued", user_id=claims.subject_id, session_id=str(session_id) if session_id else None)
        return IssuedTokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            session_id=str(session_id) if session_id else None,
            expires_in=self.access_expires_in,
            refresh_expires_in=min(refresh_seconds, session_seconds),
        )

    async def validate_access(self, token: str) -> TokenClaims:
        """액세스 토큰을 검증합니다.

        Verify an access token: signature and expiry first, then the
        revocation list (fail-open when the store is unreachable).

        Raises:
            TokenExpired: 만료 (Expired)
            TokenMalformed: 서명/구조 오류 (Bad signature or structure)
            TokenRevoked: 폐기됨 (On the revocation list)
        """
        claims: TokenClaims = self.codec.verify_access(token)
        if await self.revocation_store.is_revoked(token):
            raise TokenRevoked()
        return claims

    async def rotate(self, refresh_token: str) -> RotatedTokenPair:
        """리프레시 토큰을 회전합니다.

        Exchange a refresh token for a new pair. The presented token is
        single-use: of two concurrent calls with the same token exactly
        one succeeds, the other gets SessionNotFound.

        Raises:
            RefreshTokenInvalid: 서명/구조 오류 (Bad signature or structure)
            RefreshTokenExpired: 만료 (Expired)
            TokenRevoked: 폐기됨 (On the revocation list)
            UserInactive: 사용자 없음 또는 비활성 (User missing or inactive)
            SessionNotFound: 활성 세션 없음 또는 경쟁 패배 (No live session, or lost the race)
            StoreUnavailable: 원장 장애 (Ledger failure; rotation fails closed)
        """
        # 1. 검증 — Verify
        try:
            claims: TokenClaims = self.codec.verify_refresh(refresh_token)
        except TokenExpired as exc:
            raise RefreshTokenExpired() from exc
        except TokenMalformed as exc:
            raise RefreshTokenInvalid() from exc

        # 2. 폐기 확인 — Revocation check
        if await self.revocation_store.is_revoked(refresh_token):
            raise TokenRevoked()

        # 3. 사용자 확인 — User directory lookup
        user_id = _as_uuid(claims.subject_id)
        if user_id is None:
            raise RefreshTokenInvalid()
        user: User | None = await self.user_directory.find_by_id(user_id)
        if user is None or not user.is_active:
            raise UserInactive()

        # 4. 새 쌍 발급 — Mint
        subject = SubjectClaims(subject_id=str(user.id), email=user.email, role=user.role)
        new_access: str = self.codec.issue_access_token(subject)
        new_refresh: str = self.codec.issue_refresh_token(subject)

        # 5. 원자적 교체 — Atomic ledger swap
        await self.ledger.replace_token(refresh_token, new_refresh)

        # 6. 이전 토큰 폐기 — Best-effort revocation of the presented token
        await self.revocation_store.revoke(refresh_token, claims.subject_id)

        logger.info("refresh_token_rotated", user_id=claims.subject_id)
        # 7. 반환 — Return
        return RotatedTokenPair(
            access_token=new_access,
            refresh_token=new_refresh,
            expires_in=self.access_expires_in,
        )

    async def logout(
        self,
        user_id: UUID | str,
        scope: LogoutScope = LogoutScope.THIS_SESSION,
        refresh_token: str | None = None,
        access_token: str | None = None,
    ) -> LogoutResult:
        """로그아웃 처리.

        Deactivate the sessions selected by ``scope`` and revoke their
        refresh tokens. Ledger deactivation is authoritative; revocation
        writes are best-effort. The presented access token is revoked as
        well unless the caller keeps its current session.

        Args:
            user_id: 사용자 ID (User id)
            scope: 로그아웃 범위 (this_session | all_devices | all_except_current)
            refresh_token: 현재 세션의 리프레시 토큰 (Current session's refresh token)
            access_token: 현재 액세스 토큰 (Current access token)

        Returns:
            LogoutResult: 무효화된 세션 수 포함 (Includes sessions invalidated)

        Raises:
            BadRequestError: 필요한 리프레시 토큰 누락 (Required refresh token missing)
            SessionNotFound: 다른 사용자의 토큰 또는 회전으로 대체된 토큰
                             (Refresh token of another user, or one superseded by rotation)
            StoreUnavailable: 원장 장애 (Ledger failure)
        """
        uid = _as_uuid(user_id)
        if uid is None:
            raise SessionNotFound()
        owner = str(uid)

        if scope in (LogoutScope.THIS_SESSION, LogoutScope.ALL_EXCEPT_CURRENT):
            if not refresh_token:
                raise BadRequestError("refresh_token is required for this logout scope")
            peeked = self.codec.peek(refresh_token)
            if peeked is not None and peeked.subject_id != owner:
                raise SessionNotFound()

        if scope == LogoutScope.THIS_SESSION:
            invalidated = await self.ledger.deactivate(refresh_token)
            # 회전으로 대체된 토큰 — The device's live session holds a newer token
            if invalidated == 0 and not await self.ledger.is_refresh_token_known(refresh_token):
                raise SessionNotFound("Refresh token was superseded; present the latest one")
            await self.revocation_store.revoke(refresh_token, owner)
        elif scope == LogoutScope.ALL_DEVICES:
            tokens = await self.ledger.active_refresh_tokens(uid)
            invalidated = await self.ledger.deactivate_all_for_user(uid)
            await self._revoke_quietly(tokens, owner)
        else:
            tokens = await self.ledger.active_refresh_tokens(uid, exclude_token=refresh_token)
            invalidated = await self.ledger.deactivate_all_except(uid, refresh_token)
            await self._revoke_quietly(tokens, owner)

        if access_token and scope != LogoutScope.ALL_EXCEPT_CURRENT:
            await self.revocation_store.revoke(access_token, owner)

        logger.info("logout", user_id=owner, scope=scope.value, sessions_invalidated=invalidated)
        return LogoutResult(logged_out=True, sessions_invalidated=invalidated)

    async def record_activity(self, refresh_token: str, ip_address: str | None = None) -> bool:
        """세션 활동 기록 (실패 무시) — Best-effort last-activity and IP update for the token's session."""
        try:
            return await self.ledger.touch(refresh_token, ip_address)
        except StoreUnavailable:
            logger.warning("session_activity_failed", ip_address=ip_address)
            return False

    async def invalidate_session(self, user_id: UUID | str, session_id: UUID | str) -> LogoutResult:
        """특정 기기 세션을 강제 종료합니다.

        Force logout of one device session owned by the user.

        Raises:
            SessionNotFound: 없음/타인 소유/비활성 (Unknown, foreign or inactive session)
        """
        uid = _as_uuid(user_id)
        sid = _as_uuid(session_id)
        if uid is None or sid is None:
            raise SessionNotFound()

        row: UserSession | None = await self.ledger.get_active_session(sid, uid)
        if row is None:
            raise SessionNotFound()

        invalidated = await self.ledger.deactivate_session(row.id)
        await self.revocation_store.revoke(row.refresh_token, str(uid))
        logger.info("session_invalidated", user_id=str(uid), session_id=str(sid))
        return LogoutResult(logged_out=True, sessions_invalidated=invalidated)

    async def list_sessions(
        self,
        user_id: UUID | str,
        current_refresh_token: str | None = None,
    ) -> list[SessionInfo]:
        """활성 세션 목록을 반환합니다 — Live sessions of the user, most recent activity first."""
        uid = _as_uuid(user_id)
        if uid is None:
            return []
        rows = await self.ledger.list_active_for_user(uid)
        return [
            SessionInfo(
                session_id=str(row.id),
                device_info=row.device_info or {},
                ip_address=row.ip_address,
                location=location_hint(row.ip_address),
                created_at=ensure_utc(row.created_at),
                last_activity=ensure_utc(row.updated_at),
                expires_at=ensure_utc(row.expires_at),
                is_current=current_refresh_token is not None and row.refresh_token == current_refresh_token,
            )
            for row in rows
        ]

    async def count_active_sessions(self, user_id: UUID | str) -> int:
        uid = _as_uuid(user_id)
        if uid is None:
            return 0
        return await self.ledger.count_active_for_user(uid)

    async def sweep_expired(self) -> int:
        return await self.ledger.sweep_expired()
