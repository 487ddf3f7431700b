"""토큰 폐기 저장소 — 만료 전 무효화된 토큰 목록.

Revocation Store — Tokens invalidated before their natural expiry.
Entries expire on their own once the token would have expired anyway, so
the store never needs a cleanup job.

Failure policy:
    - revoke(): 실패 시 경고 로그 후 False 반환, 예외 없음
      (Logged and reported as False, never raised)
    - is_revoked(): 장애 또는 시간 초과 시 False (fail-open)
      (Store failure or timeout answers "not revoked")
"""

import asyncio
import hashlib
import math
import time
from collections.abc import Callable

import redis.asyncio as redis

from airvik_auth.utils.exceptions import StoreUnavailable
from airvik_auth.utils.jwt import TokenCodec
from airvik_auth.utils.logging import get_logger

logger = get_logger(__name__)

KEY_PREFIX: str = "auth:revoked:"


def revocation_key(token: str) -> str:
    """토큰 원문 대신 SHA-256 해시를 키로 사용 — Key derived from the token's SHA-256."""
    return KEY_PREFIX + hashlib.sha256(token.encode("utf-8")).hexdigest()


class RevocationStore:
    """폐기 저장소 기반 클래스.

    Base class holding the TTL and failure policy. Backends implement
    ``_store``, ``_exists`` and ``_ping``.

    Args:
        codec: TTL 계산용 토큰 코덱 (Codec used to read token expiry)
        timeout_seconds: 저장소 호출 제한 시간 (Per-call timeout)
    """

    def __init__(self, codec: TokenCodec, timeout_seconds: float = 2.0) -> None:
        self._codec = codec
        self._timeout = timeout_seconds

    async def _store(self, key: str, owner_user_id: str, ttl_seconds: int) -> None:
        raise NotImplementedError

    async def _exists(self, key: str) -> bool:
        raise NotImplementedError

    async def _ping(self) -> bool:
        raise NotImplementedError

    async def close(self) -> None:
        return None

    async def revoke(self, token: str, owner_user_id: str) -> bool:
        """토큰을 폐기 목록에 등록합니다.

        Add a token to the revocation list for the remainder of its
        validity. Already-expired or undecodable tokens are a no-op success.

        Args:
            token: 폐기할 토큰 (Token to revoke)
            owner_user_id: 토큰 소유자 ID (Owner user id, stored as the value)

        Returns:
            bool: 기록 성공 여부 (Whether the entry is recorded)
        """
        ttl: int = math.ceil(self._codec.expires_in(token))
        if ttl <= 0:
            return True
        try:
            await asyncio.wait_for(self._store(revocation_key(token), owner_user_id, ttl), timeout=self._timeout)
        except (StoreUnavailable, asyncio.TimeoutError) as exc:
            logger.warning("token_revocation_failed", user_id=owner_user_id, error=repr(exc))
            return False
        return True

    async def is_revoked(self, token: str) -> bool:
        """토큰이 폐기되었는지 확인합니다.

        Check whether a token is on the revocation list. Fails open: a store
        failure or timeout answers False.
        """
        try:
            return await asyncio.wait_for(self._exists(revocation_key(token)), timeout=self._timeout)
        except (StoreUnavailable, asyncio.TimeoutError) as exc:
            logger.warning("revocation_check_failed_open", error=repr(exc))
            return False

    async def ping(self) -> bool:
        """저장소 연결 확인 — Reachability check for the health endpoint."""
        try:
            return await asyncio.wait_for(self._ping(), timeout=self._timeout)
        except (StoreUnavailable, asyncio.TimeoutError):
            return False


class RedisRevocationStore(RevocationStore):
    """Redis 기반 폐기 저장소 — Production backend using SET with EX."""

    def __init__(self, codec: TokenCodec, client: redis.Redis, timeout_seconds: float = 2.0) -> None:
        super().__init__(codec, timeout_seconds)
        self._client = client

    @classmethod
    def from_url(cls, url: str, codec: TokenCodec, timeout_seconds: float = 2.0) -> "RedisRevocationStore":
        client = redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
        )
        return cls(codec, client, timeout_seconds)

    async def _store(self, key: str, owner_user_id: str, ttl_seconds: int) -> None:
        try:
            await self._client.set(key, owner_user_id, ex=ttl_seconds)
        except redis.RedisError as exc:
            raise StoreUnavailable("Revocation store unavailable") from exc

    async def _exists(self, key: str) -> bool:
        try:
            return bool(await self._client.exists(key))
        except redis.RedisError as exc:
            raise StoreUnavailable("Revocation store unavailable") from exc

    async def _ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except redis.RedisError as exc:
            raise StoreUnavailable("Revocation store unavailable") from exc

    async def close(self) -> None:
        await self._client.aclose()


class MemoryRevocationStore(RevocationStore):
    """프로세스 내 폐기 저장소 — Single-process backend for development and tests.

    Entries carry a monotonic deadline and are dropped lazily once it passes.
    """

    def __init__(
        self,
        codec: TokenCodec,
        timeout_seconds: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(codec, timeout_seconds)
        self._entries: dict[str, tuple[str, float]] = {}
        self._clock = clock

    async def _store(self, key: str, owner_user_id: str, ttl_seconds: int) -> None:
        self._entries[key] = (owner_user_id, self._clock() + ttl_seconds)

    async def _exists(self, key: str) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return False
        if entry[1] <= self._clock():
            self._entries.pop(key, None)
            return False
        return True

    async def _ping(self) -> bool:
        return True

    def active_count(self) -> int:
        """만료되지 않은 항목 수 — Number of unexpired entries."""
        now = self._clock()
        return sum(1 for _, deadline in self._entries.values() if deadline > now)
