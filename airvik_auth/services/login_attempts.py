"""로그인 시도 제한 — 이메일/IP별 실패 횟수 추적 및 잠금.

Login attempt limiter — Counts failed logins per e-mail and per IP inside
a fixed window and locks the identifier out until the window ends.
Counters live in an injected store keyed by (identifier, window); a
counter store failure lets the login through.
"""

import asyncio
import hashlib
import time
from collections.abc import Callable
from datetime import datetime, timezone

import redis.asyncio as redis
from pydantic import BaseModel

from airvik_auth.config import Settings, settings
from airvik_auth.utils.exceptions import StoreUnavailable
from airvik_auth.utils.logging import get_logger

logger = get_logger(__name__)


class RateLimitInfo(BaseModel):
    """시도 제한 상태 — Throttling state for one login attempt.

    Attributes:
        allowed: 로그인 시도 허용 여부 (Whether a login attempt may proceed)
        attempts: 현재 창의 이메일 실패 횟수 (Failures for the e-mail in this window)
        remaining: 잠금까지 남은 시도 (Attempts left before lockout)
        lockout_until: 잠금 해제 시각 (End of lockout, None when not locked)
        just_locked: 이번 실패로 잠금이 시작됨 (This failure triggered the lockout)
    """

    allowed: bool
    attempts: int = 0
    remaining: int = 0
    lockout_until: datetime | None = None
    just_locked: bool = False


class AttemptCounter:
    """시도 카운터 저장소 인터페이스 — Counter store interface."""

    async def increment(self, key: str, ttl_seconds: int) -> int:
        raise NotImplementedError

    async def get(self, key: str) -> int:
        raise NotImplementedError

    async def clear(self, key: str) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        return None


class RedisAttemptCounter(AttemptCounter):
    """Redis INCR + EXPIRE 카운터 — Redis counter, expiry set on first increment."""

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    async def increment(self, key: str, ttl_seconds: int) -> int:
        try:
            current = await self._client.incr(key)
            if current == 1:
                await self._client.expire(key, ttl_seconds)
            return int(current)
        except redis.RedisError as exc:
            raise StoreUnavailable("Attempt counter unavailable") from exc

    async def get(self, key: str) -> int:
        try:
            value = await self._client.get(key)
        except redis.RedisError as exc:
            raise StoreUnavailable("Attempt counter unavailable") from exc
        return int(value) if value else 0

    async def clear(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except redis.RedisError as exc:
            raise StoreUnavailable("Attempt counter unavailable") from exc

    async def close(self) -> None:
        await self._client.aclose()


class MemoryAttemptCounter(AttemptCounter):
    """프로세스 내 카운터 — In-process counter with per-key deadlines."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._counts: dict[str, tuple[int, float]] = {}
        self._clock = clock

    def _current(self, key: str) -> int:
        entry = self._counts.get(key)
        if entry is None:
            return 0
        if entry[1] <= self._clock():
            self._counts.pop(key, None)
            return 0
        return entry[0]

    async def increment(self, key: str, ttl_seconds: int) -> int:
        count = self._current(key) + 1
        deadline = self._counts[key][1] if count > 1 else self._clock() + ttl_seconds
        self._counts[key] = (count, deadline)
        return count

    async def get(self, key: str) -> int:
        return self._current(key)

    async def clear(self, key: str) -> None:
        self._counts.pop(key, None)


class LoginAttemptLimiter:
    """로그인 시도 제한기.

    Fixed-window limiter: 3 failures per e-mail or 5 per IP inside a
    15-minute window lock further attempts until the window closes.

    Args:
        counter: 카운터 저장소 (Counter store)
        config: 애플리케이션 설정 (Application settings)
        clock: 현재 UNIX 시각 공급자 (Wall-clock provider in seconds)
    """

    def __init__(
        self,
        counter: AttemptCounter,
        config: Settings = settings,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._counter = counter
        self._settings = config
        self._clock = clock

    @property
    def window(self) -> int:
        return self._settings.LOGIN_ATTEMPT_WINDOW_SECONDS

    def _bucket(self) -> int:
        return int(self._clock() // self.window)

    def _key(self, scope: str, identifier: str, bucket: int) -> str:
        digest = hashlib.sha256(identifier.strip().lower().encode("utf-8")).hexdigest()[:32]
        return f"auth:attempts:{scope}:{digest}:{bucket}"

    def _window_end(self, bucket: int) -> datetime:
        return datetime.fromtimestamp((bucket + 1) * self.window, tz=timezone.utc)

    def _info(self, email_count: int, ip_count: int, bucket: int) -> RateLimitInfo:
        max_email = self._settings.LOGIN_MAX_ATTEMPTS_PER_EMAIL
        max_ip = self._settings.LOGIN_MAX_ATTEMPTS_PER_IP
        allowed = email_count < max_email and ip_count < max_ip
        return RateLimitInfo(
            allowed=allowed,
            attempts=email_count,
            remaining=max(0, min(max_email - email_count, max_ip - ip_count)),
            lockout_until=None if allowed else self._window_end(bucket),
        )

    async def _with_timeout(self, coro):
        return await asyncio.wait_for(coro, timeout=self._settings.REVOCATION_STORE_TIMEOUT_SECONDS)

    async def check(self, email: str, ip_address: str | None) -> RateLimitInfo:
        """로그인 시도 가능 여부를 확인합니다.

        Check whether the e-mail and IP may attempt a login right now.

        Returns:
            RateLimitInfo: 허용 여부 및 잠금 정보 (Allowed flag and lockout details)
        """
        bucket = self._bucket()
        try:
            email_count = await self._with_timeout(self._counter.get(self._key("email", email, bucket)))
            ip_count = 0
            if ip_address:
                ip_count = await self._with_timeout(self._counter.get(self._key("ip", ip_address, bucket)))
        except (StoreUnavailable, asyncio.TimeoutError) as exc:
            logger.warning("login_attempt_check_failed_open", error=repr(exc))
            return RateLimitInfo(allowed=True)
        return self._info(email_count, ip_count, bucket)

    async def record_failure(self, email: str, ip_address: str | None) -> RateLimitInfo:
        """로그인 실패를 기록합니다.

        Record a failed attempt for the e-mail and IP.

        Returns:
            RateLimitInfo: 기록 후 상태, 이번에 잠겼으면 just_locked=True
                           (State after recording; just_locked marks the failure that locked the e-mail)
        """
        bucket = self._bucket()
        try:
            email_count = await self._with_timeout(
                self._counter.increment(self._key("email", email, bucket), self.window)
            )
            ip_count = 0
            if ip_address:
                ip_count = await self._with_timeout(
                    self._counter.increment(self._key("ip", ip_address, bucket), self.window)
                )
        except (StoreUnavailable, asyncio.TimeoutError) as exc:
            logger.warning("login_attempt_record_failed", error=repr(exc))
            return RateLimitInfo(allowed=True)

        info = self._info(email_count, ip_count, bucket)
        info.just_locked = email_count == self._settings.LOGIN_MAX_ATTEMPTS_PER_EMAIL
        if not info.allowed:
            logger.warning("login_locked_out", attempts=email_count, ip_attempts=ip_count)
        return info

    async def reset(self, email: str) -> None:
        """로그인 성공 시 이메일 카운터 초기화 — Clear the e-mail counter after a successful login."""
        try:
            await self._with_timeout(self._counter.clear(self._key("email", email, self._bucket())))
        except (StoreUnavailable, asyncio.TimeoutError) as exc:
            logger.warning("login_attempt_reset_failed", error=repr(exc))
