"""테스트 인프라 — 임시 SQLite DB, 인증 런타임, httpx 클라이언트 픽스처.

Test infrastructure — Temporary SQLite database (file-backed so concurrent
connections really contend), an authentication runtime with in-memory
stores, and an httpx client bound to the FastAPI app.
"""

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from airvik_auth.config import Settings
from airvik_auth.database import Base, build_session_factory, get_db
from airvik_auth.main import app
from airvik_auth.models import *  # noqa: F401,F403 — register all models with metadata
from airvik_auth.models.user import User, UserRole
from airvik_auth.runtime import AuthRuntime, build_runtime
from airvik_auth.services.notification_service import SecurityNotifier
from airvik_auth.services.revocation_store import RevocationStore
from airvik_auth.services.session_ledger import SessionLedger
from airvik_auth.utils.exceptions import StoreUnavailable
from airvik_auth.utils.password import hash_password

ACCESS_SECRET = "test-access-secret-0123456789abcdefghijkl"
REFRESH_SECRET = "test-refresh-secret-0123456789abcdefghijk"
USER_PASSWORD = "guest-pass-123!"


def make_settings(**overrides: Any) -> Settings:
    """테스트용 설정 — Settings isolated from any .env file."""
    values: dict[str, Any] = {
        "DATABASE_URL": "sqlite+aiosqlite://",
        "REDIS_URL": "",
        "JWT_ACCESS_SECRET": ACCESS_SECRET,
        "JWT_REFRESH_SECRET": REFRESH_SECRET,
        "SMTP_FROM_EMAIL": "security@airvik.test",
        "GOOGLE_CLIENT_ID": "test-google-client",
        "DEBUG": False,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class RecordingSender:
    """메일 발송 기록기 — Captures mails instead of sending them."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []

    async def __call__(self, **kwargs: Any) -> None:
        self.sent.append(kwargs)

    def subjects(self) -> list[str]:
        return [mail["subject"] for mail in self.sent]


class BrokenRevocationStore(RevocationStore):
    """항상 실패하는 폐기 저장소 — Revocation store whose backend is down."""

    async def _store(self, key: str, owner_user_id: str, ttl_seconds: int) -> None:
        raise StoreUnavailable("revocation backend down")

    async def _exists(self, key: str) -> bool:
        raise StoreUnavailable("revocation backend down")

    async def _ping(self) -> bool:
        raise StoreUnavailable("revocation backend down")


def unreachable_session_factory() -> async_sessionmaker[AsyncSession]:
    """접근 불가 DB 세션 팩토리 — Session factory for a database that cannot be opened."""
    return build_session_factory(create_async_engine("sqlite+aiosqlite:////nonexistent-dir/airvik/ledger.db"))


def broken_ledger(config: Settings) -> SessionLedger:
    """접근 불가 DB를 가리키는 원장 — Ledger pointing at an unreachable database."""
    return SessionLedger(unreachable_session_factory(), config)


def past_clock(delta: timedelta):
    """과거 시각을 반환하는 시계 — Clock frozen ``delta`` in the past."""
    frozen = datetime.now(timezone.utc) - delta
    return lambda: frozen


# ---------------------------------------------------------------------------
# Function-scoped: 설정, 엔진, 세션 팩토리, 런타임, 클라이언트
# ---------------------------------------------------------------------------
@pytest.fixture
def test_settings() -> Settings:
    return make_settings()


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """테스트별 SQLite 파일 DB 엔진 — Per-test SQLite file database."""
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'auth.db'}", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """픽스처 데이터 생성용 세션 — Session used to seed test data."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def mail_sender() -> RecordingSender:
    return RecordingSender()


@pytest_asyncio.fixture
async def runtime(test_settings, session_factory, mail_sender) -> AsyncGenerator[AuthRuntime, None]:
    """인메모리 저장소 기반 인증 런타임 — Runtime with in-memory revocation store and counters."""
    rt = build_runtime(
        test_settings,
        session_factory,
        notifier=SecurityNotifier(test_settings, sender=mail_sender),
    )
    yield rt
    await rt.close()


@pytest_asyncio.fixture
async def client(runtime: AuthRuntime, session_factory) -> AsyncGenerator[AsyncClient, None]:
    """FastAPI 테스트 클라이언트 — 런타임과 DB 세션을 주입합니다."""
    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.state.auth = runtime

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    app.state.auth = None


# ---------------------------------------------------------------------------
# 헬퍼 픽스처: 테스트용 사용자 생성
# ---------------------------------------------------------------------------
async def create_user(
    db: AsyncSession,
    email: str,
    full_name: str = "Test Guest",
    role: UserRole = UserRole.GUEST,
    is_active: bool = True,
    is_email_verified: bool = True,
    password: str | None = USER_PASSWORD,
    google_id: str | None = None,
) -> User:
    """사용자를 생성하고 커밋합니다 — Create and commit a user."""
    user = User(
        email=email,
        full_name=full_name,
        role=role.value,
        is_active=is_active,
        is_email_verified=is_email_verified,
        password_hash=hash_password(password, rounds=4) if password else None,
        google_id=google_id,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def guest_user(db: AsyncSession) -> User:
    """인증된 게스트 사용자 — Verified, active guest."""
    return await create_user(db, "guest@airvik.test")


@pytest_asyncio.fixture
async def other_user(db: AsyncSession) -> User:
    """다른 사용자 — A second verified user."""
    return await create_user(db, "other@airvik.test", full_name="Other Guest", role=UserRole.STAFF)


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
