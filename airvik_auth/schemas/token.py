"""토큰 수명주기 도메인 스키마.

Token lifecycle domain schemas — claims, issued pairs, session summaries
and the configuration report. Shared by the codec, the lifecycle service
and the API layer.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class SubjectClaims(BaseModel):
    """토큰에 서명될 사용자 식별 정보.

    Identity claims supplied by the identity source when minting tokens.

    Attributes:
        subject_id: 사용자 UUID 문자열 (User identifier)
        email: 이메일 (E-mail address)
        role: 역할 이름 (Role name, e.g. "GUEST")
    """

    subject_id: str
    email: str
    role: str


class TokenClaims(SubjectClaims):
    """검증 또는 디코딩된 토큰 클레임.

    Claims recovered from a verified (or peeked) token.
    Invariant: expires_at > issued_at.
    """

    issued_at: datetime
    expires_at: datetime
    issuer: str
    audience: str
    token_id: str = ""  # jti — 동일 초 발급 토큰도 서로 다름 (Unique per token)
    token_type: str = "access"  # "access" | "refresh"

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "TokenClaims":
        """JWT 페이로드 딕셔너리로부터 생성 — Build claims from a decoded JWT payload."""
        audience = payload["aud"]
        if isinstance(audience, list):
            audience = audience[0] if audience else ""
        return cls(
            subject_id=payload["sub"],
            email=payload.get("email", ""),
            role=payload.get("role", ""),
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            issuer=payload["iss"],
            audience=audience,
            token_id=payload.get("jti", ""),
            token_type=payload.get("type", "access"),
        )


class IssuedTokenPair(BaseModel):
    """최초 로그인 시 발급된 토큰 쌍.

    Token pair issued at login. ``session_id`` is None when the ledger write
    failed; the pair is still valid until rotation is attempted.
    """

    access_token: str
    refresh_token: str
    session_id: str | None = None
    expires_in: int  # 액세스 토큰 수명(초) (Access token lifetime in seconds)
    refresh_expires_in: int  # 리프레시 토큰 수명(초) (Refresh token lifetime in seconds)


class RotatedTokenPair(BaseModel):
    """회전으로 발급된 새 토큰 쌍 — Pair minted by a successful rotation."""

    access_token: str
    refresh_token: str
    expires_in: int


class LogoutScope(str, Enum):
    """로그아웃 범위 — Logout scope."""

    THIS_SESSION = "this_session"
    ALL_DEVICES = "all_devices"
    ALL_EXCEPT_CURRENT = "all_except_current"


class LogoutResult(BaseModel):
    """로그아웃 결과 — Outcome of a logout request."""

    logged_out: bool
    sessions_invalidated: int = 0


class SessionInfo(BaseModel):
    """활성 세션 요약 — Active session summary shown on the device list."""

    session_id: str
    device_info: dict[str, Any] = Field(default_factory=dict)
    ip_address: str | None = None
    location: str | None = None
    created_at: datetime
    last_activity: datetime
    expires_at: datetime
    is_current: bool = False


class ConfigurationReport(BaseModel):
    """서명 설정 검증 결과 — Signing configuration validation report."""

    is_valid: bool
    errors: list[str] = Field(default_factory=list)
