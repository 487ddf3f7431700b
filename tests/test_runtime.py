"""런타임 조립 테스트 — 설정 검증, 백엔드 선택, 세션 정리 작업.

Runtime wiring tests — Startup configuration checks, backend selection and
the session sweeper.
"""

import asyncio
from datetime import timedelta

import pytest

from airvik_auth.runtime import build_runtime
from airvik_auth.services.login_attempts import MemoryAttemptCounter, RedisAttemptCounter
from airvik_auth.services.revocation_store import MemoryRevocationStore, RedisRevocationStore
from airvik_auth.services.session_ledger import SessionLedger
from airvik_auth.services.session_sweeper import SessionSweeper
from airvik_auth.utils.exceptions import ConfigurationError
from tests.conftest import broken_ledger, make_settings, past_clock


class CountingLedger:
    def __init__(self) -> None:
        self.calls = 0

    async def sweep_expired(self) -> int:
        self.calls += 1
        return 0


class TestBuildRuntime:
    """런타임 조립 테스트."""

    def test_invalid_configuration_is_fatal(self, session_factory):
        """서명 설정 오류 시 기동 중단."""
        with pytest.raises(ConfigurationError) as exc_info:
            build_runtime(make_settings(JWT_ACCESS_SECRET="short", JWT_REFRESH_SECRET=""), session_factory)
        assert len(exc_info.value.errors) == 2

    def test_identical_secrets_are_fatal(self, session_factory):
        """동일 비밀키 거부."""
        secret = "x" * 40
        with pytest.raises(ConfigurationError):
            build_runtime(make_settings(JWT_ACCESS_SECRET=secret, JWT_REFRESH_SECRET=secret), session_factory)

    async def test_memory_backends_without_redis(self, session_factory):
        """REDIS_URL 미설정 시 인메모리 백엔드."""
        runtime = build_runtime(make_settings(), session_factory)
        assert isinstance(runtime.revocation_store, MemoryRevocationStore)
        assert isinstance(runtime.attempt_counter, MemoryAttemptCounter)
        assert runtime.tokens.validate_configuration().is_valid
        await runtime.close()

    async def test_redis_backends_with_url(self, session_factory):
        """REDIS_URL 설정 시 Redis 백엔드 (연결은 지연)."""
        runtime = build_runtime(make_settings(REDIS_URL="redis://localhost:6390/0"), session_factory)
        assert isinstance(runtime.revocation_store, RedisRevocationStore)
        assert isinstance(runtime.attempt_counter, RedisAttemptCounter)
        await runtime.close()


class TestSessionSweeper:
    """세션 정리 작업 테스트."""

    async def test_run_once(self, session_factory, test_settings, guest_user):
        """만료 세션 한 번 정리."""
        stale = SessionLedger(session_factory, test_settings, clock=past_clock(timedelta(days=10)))
        await stale.create_session(guest_user.id, "refresh-stale")

        sweeper = SessionSweeper(SessionLedger(session_factory, test_settings), interval_seconds=3600)
        assert await sweeper.run_once() == 1

    async def test_run_once_store_down(self, test_settings):
        """원장 장애 시 0 반환."""
        sweeper = SessionSweeper(broken_ledger(test_settings), interval_seconds=3600)
        assert await sweeper.run_once() == 0

    async def test_periodic_loop(self):
        """주기 실행 및 중지."""
        ledger = CountingLedger()
        sweeper = SessionSweeper(ledger, interval_seconds=0.01)

        sweeper.start()
        assert sweeper.running
        for _ in range(100):
            if ledger.calls >= 2:
                break
            await asyncio.sleep(0.01)
        await sweeper.stop()

        assert ledger.calls >= 2
        assert not sweeper.running
