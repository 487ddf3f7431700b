"""인증 서비스 — 로그인 흐름 및 프로필 조회.

Auth Service — Login flows and profile retrieval.
Password and Google logins both end in the same completion step: device
fingerprint, new-device check, token pair issuance and notification.
The new-device check runs before the session is written, otherwise every
login would look like a known device.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from airvik_auth.models.user import User
from airvik_auth.repositories.user_repository import user_repository
from airvik_auth.schemas.auth import (
    ClientContext,
    GoogleLoginRequest,
    LoginRequest,
    LoginResponse,
    UserMeResponse,
)
from airvik_auth.schemas.token import IssuedTokenPair, SubjectClaims
from airvik_auth.services.device_policy import DevicePolicy, build_device_info, location_hint
from airvik_auth.services.google_identity import GoogleIdentity, GoogleIdentityVerifier
from airvik_auth.services.login_attempts import LoginAttemptLimiter, RateLimitInfo
from airvik_auth.services.notification_service import SecurityNotifier
from airvik_auth.services.token_service import TokenLifecycleService
from airvik_auth.utils.clock import utcnow
from airvik_auth.utils.exceptions import (
    ForbiddenError,
    RateLimitExceeded,
    UnauthorizedError,
    UserInactive,
)
from airvik_auth.utils.logging import get_logger
from airvik_auth.utils.password import burn_password_check, verify_password

logger = get_logger(__name__)


class AuthService:
    """인증 관련 비즈니스 로직을 처리하는 서비스.

    Service handling authentication business logic.

    Args:
        tokens: 토큰 수명주기 서비스 (Token lifecycle service)
        device_policy: 기기 정책 (Device policy)
        attempt_limiter: 로그인 시도 제한기 (Login attempt limiter)
        notifier: 보안 알림 발송기 (Security notifier)
        google_verifier: Google ID 토큰 검증기 (Google identity verifier)
    """

    def __init__(
        self,
        tokens: TokenLifecycleService,
        device_policy: DevicePolicy,
        attempt_limiter: LoginAttemptLimiter,
        notifier: SecurityNotifier,
        google_verifier: GoogleIdentityVerifier,
    ) -> None:
        self.tokens = tokens
        self.device_policy = device_policy
        self.attempt_limiter = attempt_limiter
        self.notifier = notifier
        self.google_verifier = google_verifier

    async def _record_failure(self, email: str, client: ClientContext, user: User | None) -> None:
        info: RateLimitInfo = await self.attempt_limiter.record_failure(email, client.ip_address)
        if info.just_locked and user is not None:
            await self.notifier.account_locked(user.email, info.lockout_until)

    async def _complete_login(
        self,
        db: AsyncSession,
        user: User,
        remember_me: bool,
        client: ClientContext,
    ) -> LoginResponse:
        """로그인 완료 처리 — Issue tokens for an authenticated user.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            user: 인증된 사용자 (Authenticated user)
            remember_me: 로그인 유지 (30-day session when True)
            client: 클라이언트 정보 (Client metadata)

        Returns:
            LoginResponse: 토큰 및 세션 정보 (Tokens and session details)
        """
        device_info = build_device_info(client.user_agent, client.accept_language, client.timezone, client.extra)
        # 세션 생성 전에 판별 — Decide before the new session exists
        is_new_device: bool = await self.device_policy.is_new_device(user.id, device_info["device_id"])

        pair: IssuedTokenPair = await self.tokens.issue_initial_pair(
            SubjectClaims(subject_id=str(user.id), email=user.email, role=user.role),
            device_info=device_info,
            ip_address=client.ip_address,
            user_agent=client.user_agent,
            remember_me=remember_me,
        )
        await user_repository.mark_logged_in(db, user.id, utcnow())

        if is_new_device:
            await self.notifier.new_device_login(
                user.email,
                user.full_name,
                device_info,
                client.ip_address,
                location=location_hint(client.ip_address),
            )

        logger.info("login_succeeded", user_id=str(user.id), new_device=is_new_device)
        return LoginResponse(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            expires_in=pair.expires_in,
            refresh_expires_in=pair.refresh_expires_in,
            session_id=pair.session_id,
            is_new_device=is_new_device,
        )

    async def login(
        self,
        db: AsyncSession,
        data: LoginRequest,
        client: ClientContext,
    ) -> LoginResponse:
        """이메일/비밀번호 로그인을 처리합니다.

        Process an e-mail and password login.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            data: 로그인 요청 데이터 (Login request data)
            client: 클라이언트 정보 (Client metadata)

        Returns:
            LoginResponse: 토큰 응답 (Token response)

        Raises:
            RateLimitExceeded: 시도 초과로 잠김 (Locked out after too many failures)
            UnauthorizedError: 잘못된 인증 정보일 때 (Invalid credentials)
            UserInactive: 비활성 계정 (Deactivated account)
            ForbiddenError: 이메일 미인증 (E-mail not verified)
        """
        email: str = data.email.strip().lower()
        limit: RateLimitInfo = await self.attempt_limiter.check(email, client.ip_address)
        if not limit.allowed:
            retry_after = None
            if limit.lockout_until is not None:
                retry_after = {"Retry-After": str(max(1, int((limit.lockout_until - utcnow()).total_seconds())))}
            raise RateLimitExceeded(headers=retry_after)

        user: User | None = await user_repository.get_by_email(db, email)
        if user is None or not user.password_hash:
            burn_password_check(data.password)
            await self._record_failure(email, client, user)
            raise UnauthorizedError("Invalid email or password")
        if not verify_password(data.password, user.password_hash):
            await self._record_failure(email, client, user)
            raise UnauthorizedError("Invalid email or password")

        if not user.is_active:
            raise UserInactive("Account is deactivated")
        if not user.is_email_verified:
            raise ForbiddenError("Email address is not verified")

        await self.attempt_limiter.reset(email)
        client = client.model_copy(update={"timezone": data.timezone or client.timezone, "extra": data.device_hints or client.extra})
        return await self._complete_login(db, user, data.remember_me, client)

    async def google_login(
        self,
        db: AsyncSession,
        data: GoogleLoginRequest,
        client: ClientContext,
    ) -> LoginResponse:
        """Google ID 토큰 로그인을 처리합니다.

        Process a Google sign-in for an existing account, matched by Google
        subject first and e-mail second. A matching e-mail account without a
        Google link gets linked.

        Raises:
            UnauthorizedError: 토큰 무효 또는 연결된 계정 없음 (Invalid token or no account)
            UserInactive: 비활성 계정 (Deactivated account)
        """
        identity: GoogleIdentity = await self.google_verifier.verify(data.id_token)

        user: User | None = await user_repository.get_by_google_id(db, identity.subject)
        if user is None and identity.email_verified:
            user = await user_repository.get_by_email(db, identity.email)
            if user is not None and user.google_id is None:
                user.google_id = identity.subject
        if user is None:
            raise UnauthorizedError("No account is linked to this Google identity")
        if not user.is_active:
            raise UserInactive("Account is deactivated")

        # 변경 사항은 로그인 완료 시 함께 flush — Flushed together with last_login_at
        if identity.email_verified and not user.is_email_verified:
            user.is_email_verified = True

        client = client.model_copy(update={"timezone": data.timezone or client.timezone, "extra": data.device_hints or client.extra})
        return await self._complete_login(db, user, data.remember_me, client)

    async def get_me(self, user: User) -> UserMeResponse:
        """현재 로그인한 사용자 프로필을 반환합니다.

        Return the profile of the currently authenticated user.

        Args:
            user: 인증된 사용자 모델 (Authenticated user model)

        Returns:
            UserMeResponse: 사용자 프로필 응답 (User profile response)
        """
        active_sessions: int = await self.tokens.count_active_sessions(user.id)
        return UserMeResponse(
            id=str(user.id),
            email=user.email,
            full_name=user.full_name,
            role=user.role,
            is_active=user.is_active,
            is_email_verified=user.is_email_verified,
            last_login_at=user.last_login_at,
            active_sessions=active_sessions,
        )
