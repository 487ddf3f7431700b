"""사용자 SQLAlchemy ORM 모델 정의.

User SQLAlchemy ORM model definition.
The users table is the user directory the token lifecycle consults on
rotation (existence and active status) and the identity source for login.

Tables:
    - users: 사용자 계정 (User accounts with a single role)
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Boolean, DateTime, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from airvik_auth.database import Base


class UserRole(str, enum.Enum):
    """사용자 역할 — User role names carried in the role claim."""

    GUEST = "GUEST"
    STAFF = "STAFF"
    ADMIN = "ADMIN"
    OWNER = "OWNER"


class User(Base):
    """사용자 모델 — 시스템 사용자 계정 정보.

    User model — System user account information.
    E-mail is globally unique. Accounts created through Google sign-in
    carry a google_id and may have no password hash.

    Attributes:
        id: 고유 식별자 UUID (Unique identifier)
        email: 로그인 이메일 (Login e-mail, unique)
        full_name: 실명 (Full display name)
        role: 역할 이름 (Role name, see UserRole)
        password_hash: bcrypt 해시된 비밀번호 (bcrypt-hashed password, nullable)
        google_id: Google 계정 식별자 (Google subject id, nullable)
        is_active: 활성 상태 (Active status, soft-delete pattern)
        is_email_verified: 이메일 인증 여부 (Email verification status)
        last_login_at: 마지막 로그인 일시 (Last successful login)
        created_at: 생성 일시 UTC (Creation timestamp)
        updated_at: 수정 일시 UTC (Last update timestamp)

    Relationships:
        sessions: 로그인 세션 목록 (Login sessions, cascade delete)
    """

    __tablename__ = "users"

    # 사용자 고유 식별자 — User unique identifier (UUID v4, auto-generated)
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # 로그인 이메일 — Login e-mail (전역 고유, globally unique)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    # 실명 — User's full display name
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    # 역할 — Role name (GUEST, STAFF, ADMIN, OWNER)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=UserRole.GUEST.value)
    # 비밀번호 해시 — bcrypt hashed password (Google 전용 계정은 NULL)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # Google 계정 ID — Google account subject
    google_id: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    # 활성 상태 — Whether the user account is active
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    # 이메일 인증 여부 — Whether email has been verified
    is_email_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    # 마지막 로그인 — Last successful login timestamp (UTC)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # 생성 일시 — Record creation timestamp (UTC)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    # 수정 일시 — Last modification timestamp (UTC, auto-updated)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    # 관계 — Relationships
    sessions = relationship("UserSession", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
