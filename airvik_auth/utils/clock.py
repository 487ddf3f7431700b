"""UTC 시간 유틸리티.

UTC time helpers shared by the codec, the ledger and the limiter.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """현재 UTC 시각 — Current timezone-aware UTC time."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """naive datetime을 UTC로 간주 — Treat naive datetimes as UTC.

    SQLite는 timezone 정보를 저장하지 않으므로 조회 결과를 정규화합니다.
    SQLite drops tzinfo on DateTime columns, so values read back are normalised.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
