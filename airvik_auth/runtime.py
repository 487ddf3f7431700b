"""런타임 구성 — 모든 인증 컴포넌트를 하나의 설정으로 조립.

Runtime wiring — Builds every authentication component once from a single
Settings object. The FastAPI lifespan creates the runtime, stores it on
``app.state.auth`` and closes it on shutdown; tests build their own.
"""

from dataclasses import dataclass

import redis.asyncio as redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from airvik_auth.config import Settings
from airvik_auth.services.auth_service import AuthService
from airvik_auth.services.device_policy import DevicePolicy
from airvik_auth.services.google_identity import GoogleIdentityVerifier
from airvik_auth.services.login_attempts import (
    AttemptCounter,
    LoginAttemptLimiter,
    MemoryAttemptCounter,
    RedisAttemptCounter,
)
from airvik_auth.services.notification_service import SecurityNotifier
from airvik_auth.services.revocation_store import (
    MemoryRevocationStore,
    RedisRevocationStore,
    RevocationStore,
)
from airvik_auth.services.session_ledger import SessionLedger
from airvik_auth.services.session_sweeper import SessionSweeper
from airvik_auth.services.token_service import TokenLifecycleService
from airvik_auth.services.user_directory import UserDirectory
from airvik_auth.utils.exceptions import ConfigurationError
from airvik_auth.utils.jwt import TokenCodec, validate_configuration
from airvik_auth.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class AuthRuntime:
    """조립된 인증 컴포넌트 묶음 — Assembled authentication components."""

    settings: Settings
    codec: TokenCodec
    revocation_store: RevocationStore
    ledger: SessionLedger
    tokens: TokenLifecycleService
    device_policy: DevicePolicy
    attempt_limiter: LoginAttemptLimiter
    notifier: SecurityNotifier
    auth: AuthService
    sweeper: SessionSweeper
    attempt_counter: AttemptCounter

    async def close(self) -> None:
        await self.sweeper.stop()
        await self.revocation_store.close()
        await self.attempt_counter.close()


def build_runtime(
    config: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    revocation_store: RevocationStore | None = None,
    attempt_counter: AttemptCounter | None = None,
    notifier: SecurityNotifier | None = None,
    google_verifier: GoogleIdentityVerifier | None = None,
) -> AuthRuntime:
    """설정으로부터 런타임을 조립합니다.

    Validate the signing configuration and assemble all components.
    An empty REDIS_URL selects the in-process revocation store and
    attempt counter.

    Args:
        config: 애플리케이션 설정 (Application settings)
        session_factory: 비동기 세션 팩토리 (Async session factory)
        revocation_store: 폐기 저장소 재정의 (Optional revocation store override)
        attempt_counter: 시도 카운터 재정의 (Optional attempt counter override)
        notifier: 알림 발송기 재정의 (Optional notifier override)
        google_verifier: Google 검증기 재정의 (Optional Google verifier override)

    Returns:
        AuthRuntime: 조립된 런타임 (Assembled runtime)

    Raises:
        ConfigurationError: 서명 설정이 유효하지 않음 (Invalid signing configuration)
    """
    report = validate_configuration(config)
    if not report.is_valid:
        for error in report.errors:
            logger.error("invalid_configuration", error=error)
        raise ConfigurationError("Invalid token signing configuration", report.errors)

    codec = TokenCodec(config)

    redis_client: redis.Redis | None = None
    if config.REDIS_URL and (revocation_store is None or attempt_counter is None):
        redis_client = redis.from_url(
            config.REDIS_URL,
            decode_responses=True,
            socket_timeout=config.REVOCATION_STORE_TIMEOUT_SECONDS,
            socket_connect_timeout=config.REVOCATION_STORE_TIMEOUT_SECONDS,
        )

    if revocation_store is None:
        if redis_client is not None:
            revocation_store = RedisRevocationStore(codec, redis_client, config.REVOCATION_STORE_TIMEOUT_SECONDS)
        else:
            logger.warning("revocation_store_in_memory", reason="REDIS_URL not configured")
            revocation_store = MemoryRevocationStore(codec, config.REVOCATION_STORE_TIMEOUT_SECONDS)

    if attempt_counter is None:
        attempt_counter = RedisAttemptCounter(redis_client) if redis_client is not None else MemoryAttemptCounter()

    ledger = SessionLedger(session_factory, config)
    directory = UserDirectory(session_factory, config.SESSION_LEDGER_TIMEOUT_SECONDS)
    tokens = TokenLifecycleService(codec, revocation_store, ledger, directory, config)
    device_policy = DevicePolicy(ledger)
    attempt_limiter = LoginAttemptLimiter(attempt_counter, config)
    notifier = notifier or SecurityNotifier(config)
    auth = AuthService(
        tokens,
        device_policy,
        attempt_limiter,
        notifier,
        google_verifier or GoogleIdentityVerifier(config),
    )

    return AuthRuntime(
        settings=config,
        codec=codec,
        revocation_store=revocation_store,
        ledger=ledger,
        tokens=tokens,
        device_policy=device_policy,
        attempt_limiter=attempt_limiter,
        notifier=notifier,
        auth=auth,
        sweeper=SessionSweeper(ledger, config.SESSION_SWEEP_INTERVAL_SECONDS),
        attempt_counter=attempt_counter,
    )
