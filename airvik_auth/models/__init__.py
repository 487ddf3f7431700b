"""SQLAlchemy ORM 모델 패키지 — 모든 도메인 모델의 중앙 임포트 지점.

SQLAlchemy ORM models package — Central import point for all domain models.
Importing from this package ensures all models are registered with the
SQLAlchemy metadata, which is required for Alembic migrations and
relationship resolution.

Modules:
    user: 사용자 (Users, the user directory)
    session: 로그인 세션 원장 (Login session ledger)
"""

from airvik_auth.models.user import User, UserRole
from airvik_auth.models.session import UserSession

__all__ = [
    "User", "UserRole",
    "UserSession",
]
