"""로그인 세션 모델 — 세션 원장.

Login session model — the session ledger.
One row per device login. The row holds the only currently valid refresh
token of that device; rotation swaps it in place.
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from airvik_auth.database import Base


class UserSession(Base):
    """세션 테이블.

    Session table for tracking device logins and their refresh tokens.

    Attributes:
        id: 세션 고유 식별자 (Primary key UUID)
        user_id: 소유 사용자 ID (Owner user UUID)
        refresh_token: 현재 유효한 리프레시 토큰 (Current refresh token, unique)
        device_info: 기기 정보 JSON (device_id, device_name, user_agent, last_activity)
        ip_address: 로그인 IP (Client IP at login)
        user_agent: 로그인 User-Agent (Client user agent at login)
        remember_me: 로그인 유지 여부 (Selects the 30-day sliding lifetime)
        expires_at: 세션 만료 일시 (Expiry, extended on rotation)
        is_active: 활성 여부 (False once logged out or evicted)
        created_at: 생성 일시 (Creation timestamp)
        updated_at: 마지막 활동 일시 (Last activity timestamp)
    """

    __tablename__ = "sessions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    refresh_token: Mapped[str] = mapped_column(String(1024), unique=True, nullable=False)
    device_info: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)
    remember_me: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("ix_sessions_user_active", "user_id", "is_active"),
        Index("ix_sessions_expires_at", "expires_at"),
    )

    # Relationships
    user = relationship("User", back_populates="sessions")
