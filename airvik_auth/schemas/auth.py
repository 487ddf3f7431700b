"""인증 관련 Pydantic 요청/응답 스키마 정의.

Authentication-related Pydantic request/response schema definitions.
Covers login, token issuance/refresh, logout, session listing and current
user info.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from airvik_auth.schemas.token import LogoutScope, SessionInfo


class ClientContext(BaseModel):
    """요청 클라이언트 정보 — Client metadata collected from the HTTP request.

    Attributes:
        ip_address: 클라이언트 IP (Client IP)
        user_agent: User-Agent 헤더 (User agent)
        accept_language: Accept-Language 헤더 (Accept-Language)
        timezone: 클라이언트 시간대 (Client timezone)
        extra: 추가 기기 힌트 (Extra device hints)
    """

    ip_address: str | None = None
    user_agent: str | None = None
    accept_language: str | None = None
    timezone: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)


class LoginRequest(BaseModel):
    """이메일/비밀번호 로그인 요청 스키마.

    E-mail and password login request schema.

    Attributes:
        email: 로그인 이메일 (Login e-mail)
        password: 비밀번호 (Plain text password, verified against bcrypt hash)
        remember_me: 로그인 유지 (30-day session instead of 7 days)
        timezone: 클라이언트 시간대 (Client timezone, part of the device fingerprint)
        device_hints: 추가 기기 힌트 (Extra fingerprint hints, e.g. screen size)
    """

    email: str  # 로그인 이메일 (Login e-mail)
    password: str  # 비밀번호 — 평문, 서버에서 bcrypt 해시와 비교 (Plain text, compared to bcrypt hash)
    remember_me: bool = False  # 로그인 유지 — 30일 세션 (30-day session when True)
    timezone: str | None = None  # 시간대 — 기기 지문용 (Timezone for the device fingerprint)
    device_hints: dict[str, Any] | None = None  # 추가 기기 힌트 (Extra device hints)


class GoogleLoginRequest(BaseModel):
    """Google ID 토큰 로그인 요청 스키마 — Google ID token login request."""

    id_token: str  # Google이 발급한 ID 토큰 (ID token issued by Google)
    remember_me: bool = False
    timezone: str | None = None
    device_hints: dict[str, Any] | None = None


class TokenResponse(BaseModel):
    """JWT 토큰 발급 응답 스키마.

    JWT token issuance response schema.
    Returned after successful login or token refresh.

    Attributes:
        access_token: JWT 액세스 토큰 (Short-lived access token)
        refresh_token: JWT 리프레시 토큰 (Long-lived refresh token)
        token_type: 토큰 유형 (Always "bearer" for Authorization header)
        expires_in: 액세스 토큰 수명(초) (Access token lifetime in seconds)
    """

    access_token: str  # JWT 액세스 토큰 — 만료: 15분 기본 (Access token, default TTL: 15min)
    refresh_token: str  # JWT 리프레시 토큰 — 만료: 7일 기본 (Refresh token, default TTL: 7 days)
    token_type: str = "bearer"  # 토큰 유형 — 항상 "bearer" (Token type for Authorization header)
    expires_in: int  # 액세스 토큰 수명(초) (Access token lifetime in seconds)


class LoginResponse(TokenResponse):
    """로그인 응답 — Token response with the new session details."""

    refresh_expires_in: int  # 리프레시 유효 시간(초) (Refresh validity in seconds)
    session_id: str | None = None  # 원장 기록 실패 시 None (None when the ledger write failed)
    is_new_device: bool = False  # 신규 기기 로그인 여부 (Login from a device with no live session)


class RefreshRequest(BaseModel):
    """토큰 갱신 요청 스키마.

    Token refresh request schema.
    Exchanges a valid refresh token for a new access/refresh token pair.

    Attributes:
        refresh_token: 기존 리프레시 토큰 (Existing refresh token to exchange)
    """

    refresh_token: str  # 기존 리프레시 토큰 (Current refresh token)


class LogoutRequest(BaseModel):
    """로그아웃 요청 스키마.

    Logout request schema. ``refresh_token`` identifies the current session
    and is required for the this_session and all_except_current scopes.
    """

    refresh_token: str | None = None
    scope: LogoutScope = LogoutScope.THIS_SESSION


class LogoutResponse(BaseModel):
    """로그아웃 응답 — Logout outcome."""

    logged_out: bool
    sessions_invalidated: int


class SessionListResponse(BaseModel):
    """활성 세션 목록 응답 — Active session list."""

    sessions: list[SessionInfo]
    total: int


class UserMeResponse(BaseModel):
    """현재 사용자 정보 응답 스키마 (GET /me).

    Current user info response schema for the /me endpoint.

    Attributes:
        id: 사용자 UUID (User unique identifier)
        email: 이메일 (E-mail)
        full_name: 실명 (Full display name)
        role: 역할 이름 (Role name)
        is_active: 활성 상태 (Account active status)
        is_email_verified: 이메일 인증 여부 (E-mail verification status)
        last_login_at: 마지막 로그인 (Last login timestamp)
        active_sessions: 활성 세션 수 (Number of live sessions)
    """

    id: str
    email: str
    full_name: str
    role: str
    is_active: bool
    is_email_verified: bool
    last_login_at: datetime | None = None
    active_sessions: int = 0
