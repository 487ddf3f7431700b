"""세션/기기 정책 — 기기 지문, 신규 기기 판별, 기기 표시 이름.

Session/Device Policy — Device fingerprinting, new-device detection and
human-readable device labels for the session list and security mails.
"""

import hashlib
import json
from typing import Any
from uuid import UUID

from airvik_auth.services.session_ledger import SessionLedger
from airvik_auth.utils.clock import utcnow
from airvik_auth.utils.exceptions import StoreUnavailable
from airvik_auth.utils.logging import get_logger

logger = get_logger(__name__)

FINGERPRINT_LENGTH: int = 32

# 사설 IP 대역 접두사 — Private network prefixes
_PRIVATE_PREFIXES: tuple[str, ...] = ("192.168.", "10.", "172.", "127.")


def fingerprint(
    user_agent: str | None,
    accept_language: str | None = None,
    timezone: str | None = None,
    extra: dict[str, Any] | None = None,
) -> str:
    """기기 지문을 계산합니다.

    Derive a stable device id from client hints. Same inputs always give
    the same id; the id is a truncated SHA-256 over canonical JSON.

    Args:
        user_agent: User-Agent 헤더 (User agent header)
        accept_language: Accept-Language 헤더 (Accept-Language header)
        timezone: 클라이언트 시간대 (Client timezone, e.g. "Asia/Seoul")
        extra: 추가 힌트 (Extra client hints such as screen size)

    Returns:
        str: 32자 16진수 기기 ID (32-char hex device id)
    """
    canonical = json.dumps(
        {
            "user_agent": user_agent or "",
            "accept_language": accept_language or "",
            "timezone": timezone or "",
            "extra": extra or {},
        },
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def describe_device(user_agent: str | None) -> str:
    """User-Agent로 기기 표시 이름을 추정합니다 — Heuristic device label."""
    if not user_agent:
        return "Unknown Device"
    ua = user_agent.lower()

    if "iphone" in ua:
        return "iPhone"
    if "ipad" in ua:
        return "iPad"
    if "android" in ua:
        return "Android Phone" if "mobile" in ua else "Android Tablet"
    if "windows nt 10" in ua:
        return "Windows 10/11"
    if "windows nt 6" in ua:
        return "Windows 7/8"
    if "windows" in ua:
        return "Windows"
    if "mac os x" in ua or "macintosh" in ua:
        return "macOS"
    if "linux" in ua:
        return "Linux"

    # 운영체제를 알 수 없으면 브라우저 이름 — Fall back to the browser name
    if "edg" in ua:
        return "Edge Browser"
    if "opr" in ua or "opera" in ua:
        return "Opera Browser"
    if "chrome" in ua:
        return "Chrome Browser"
    if "firefox" in ua:
        return "Firefox Browser"
    if "safari" in ua:
        return "Safari Browser"
    return "Unknown Device"


def location_hint(ip_address: str | None) -> str | None:
    """IP 주소로 대략적 위치 표시 — Coarse location label for an IP address."""
    if not ip_address:
        return None
    if ip_address.startswith(_PRIVATE_PREFIXES) or ip_address == "::1":
        return "Local Network"
    return "Unknown Location"


def build_device_info(
    user_agent: str | None,
    accept_language: str | None = None,
    timezone: str | None = None,
    extra: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """세션에 저장할 기기 정보 — Device info blob persisted on the session row."""
    return {
        "device_id": fingerprint(user_agent, accept_language, timezone, extra),
        "device_name": describe_device(user_agent),
        "user_agent": user_agent or "",
        "last_activity": utcnow().isoformat(),
    }


class DevicePolicy:
    """기기 정책 서비스.

    Answers whether a login comes from a device with no live session.

    Args:
        ledger: 세션 원장 (Session ledger)
    """

    def __init__(self, ledger: SessionLedger) -> None:
        self._ledger = ledger

    fingerprint = staticmethod(fingerprint)
    describe_device = staticmethod(describe_device)
    build_device_info = staticmethod(build_device_info)
    location_hint = staticmethod(location_hint)

    async def is_new_device(self, user_id: UUID, device_id: str) -> bool:
        """신규 기기 여부를 판별합니다.

        True when the user has no live session for ``device_id``. A ledger
        failure answers True so the user is still notified.
        """
        try:
            return not await self._ledger.has_active_device(user_id, device_id)
        except StoreUnavailable:
            logger.warning("new_device_check_failed_open", user_id=str(user_id))
            return True
