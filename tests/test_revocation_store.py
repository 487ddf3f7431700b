"""폐기 저장소 테스트 — 인메모리/Redis 백엔드, TTL, 장애 시 fail-open.

Revocation store tests — In-memory and Redis backends, TTL sizing and the
fail-open read path.
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
import redis.asyncio as redis

from airvik_auth.schemas.token import SubjectClaims
from airvik_auth.services.revocation_store import (
    MemoryRevocationStore,
    RedisRevocationStore,
    revocation_key,
)
from airvik_auth.utils.jwt import TokenCodec
from tests.conftest import BrokenRevocationStore, make_settings, past_clock

SUBJECT = SubjectClaims(subject_id="0b7f8c3e-9a51-4f0e-8f76-1d2a3b4c5d6e", email="guest@airvik.test", role="GUEST")
OWNER = SUBJECT.subject_id


class FakeMonotonic:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class SlowMemoryStore(MemoryRevocationStore):
    async def _exists(self, key: str) -> bool:
        await asyncio.sleep(1)
        return True


@pytest.fixture
def codec() -> TokenCodec:
    return TokenCodec(make_settings())


class TestRevocationKey:
    """키 생성 테스트."""

    def test_key_hides_token(self, codec: TokenCodec):
        """키에 토큰 원문이 포함되지 않음."""
        token = codec.issue_access_token(SUBJECT)
        key = revocation_key(token)
        assert key.startswith("auth:revoked:")
        assert token not in key
        assert len(key) == len("auth:revoked:") + 64
        assert revocation_key(token) == key


class TestMemoryStore:
    """인메모리 백엔드 테스트."""

    async def test_revoke_then_check(self, codec: TokenCodec):
        """폐기 후 is_revoked=True."""
        store = MemoryRevocationStore(codec)
        token = codec.issue_access_token(SUBJECT)
        assert await store.is_revoked(token) is False
        assert await store.revoke(token, OWNER) is True
        assert await store.is_revoked(token) is True
        assert store.active_count() == 1

    def test_empty_store_is_truthy(self, codec: TokenCodec):
        """빈 저장소도 참 — An empty store still counts as a configured store."""
        store = MemoryRevocationStore(codec)
        assert store.active_count() == 0
        assert bool(store) is True

    async def test_other_token_unaffected(self, codec: TokenCodec):
        """다른 토큰은 영향 없음."""
        store = MemoryRevocationStore(codec)
        await store.revoke(codec.issue_access_token(SUBJECT), OWNER)
        assert await store.is_revoked(codec.issue_access_token(SUBJECT)) is False

    async def test_expired_token_is_noop(self, codec: TokenCodec):
        """이미 만료된 토큰 폐기는 기록 없이 성공."""
        store = MemoryRevocationStore(codec)
        expired = TokenCodec(make_settings(), clock=past_clock(timedelta(hours=1))).issue_access_token(SUBJECT)
        assert await store.revoke(expired, OWNER) is True
        assert store.active_count() == 0

    async def test_garbage_token_is_noop(self, codec: TokenCodec):
        """디코딩 불가 토큰 폐기는 기록 없음."""
        store = MemoryRevocationStore(codec)
        assert await store.revoke("garbage", OWNER) is True
        assert store.active_count() == 0

    async def test_entry_expires_with_token(self, codec: TokenCodec):
        """토큰 만료 시점 이후 항목 자동 소멸."""
        clock = FakeMonotonic()
        store = MemoryRevocationStore(codec, clock=clock)
        token = codec.issue_access_token(SUBJECT)
        await store.revoke(token, OWNER)

        clock.now += 898
        assert await store.is_revoked(token) is True
        clock.now += 3
        assert await store.is_revoked(token) is False
        assert store.active_count() == 0

    async def test_slow_backend_fails_open(self, codec: TokenCodec):
        """시간 초과 시 미폐기로 응답."""
        store = SlowMemoryStore(codec, timeout_seconds=0.05)
        assert await store.is_revoked(codec.issue_access_token(SUBJECT)) is False


class TestRedisStore:
    """Redis 백엔드 테스트."""

    async def test_revoke_sets_key_with_ttl(self, codec: TokenCodec):
        """SET key owner EX ttl 호출."""
        client = AsyncMock()
        store = RedisRevocationStore(codec, client)
        token = codec.issue_access_token(SUBJECT)

        assert await store.revoke(token, OWNER) is True
        client.set.assert_awaited_once()
        args, kwargs = client.set.call_args
        assert args == (revocation_key(token), OWNER)
        assert 899 <= kwargs["ex"] <= 900

    async def test_is_revoked_uses_exists(self, codec: TokenCodec):
        """EXISTS 결과 반영."""
        client = AsyncMock()
        client.exists.return_value = 1
        store = RedisRevocationStore(codec, client)
        token = codec.issue_access_token(SUBJECT)
        assert await store.is_revoked(token) is True
        client.exists.assert_awaited_once_with(revocation_key(token))

    async def test_connection_error_fails_open(self, codec: TokenCodec):
        """Redis 장애 시 is_revoked=False, revoke=False."""
        client = AsyncMock()
        client.exists.side_effect = redis.ConnectionError("down")
        client.set.side_effect = redis.ConnectionError("down")
        client.ping.side_effect = redis.ConnectionError("down")
        store = RedisRevocationStore(codec, client)
        token = codec.issue_access_token(SUBJECT)

        assert await store.is_revoked(token) is False
        assert await store.revoke(token, OWNER) is False
        assert await store.ping() is False

    async def test_close(self, codec: TokenCodec):
        """close 시 클라이언트 종료."""
        client = AsyncMock()
        await RedisRevocationStore(codec, client).close()
        client.aclose.assert_awaited_once()


class TestBrokenStore:
    """장애 저장소 정책 테스트."""

    async def test_failures_never_raise(self, codec: TokenCodec):
        """장애는 예외 없이 보고."""
        store = BrokenRevocationStore(codec)
        token = codec.issue_access_token(SUBJECT)
        assert await store.revoke(token, OWNER) is False
        assert await store.is_revoked(token) is False
        assert await store.ping() is False
