"""커스텀 예외 클래스 모듈.

Custom exception classes module.
Provides pre-configured HTTPException subclasses for the token lifecycle.
Every AuthError carries a stable machine-readable ``code`` that the API
returns next to ``detail``, so clients can tell an expired token from a
revoked one without parsing messages.

Usage:
    from airvik_auth.utils.exceptions import TokenExpired, SessionNotFound
    raise TokenExpired()
    raise SessionNotFound("Session has been replaced")
"""

from fastapi import HTTPException, status


class ConfigurationError(RuntimeError):
    """치명적 설정 오류 — 시작 시 서비스 기동을 중단.

    Fatal configuration error. Raised when signing secrets are missing or
    weak; aborts application startup instead of surfacing as an HTTP error.

    Args:
        message: 오류 메시지 (Error message)
        errors: 개별 검증 오류 목록 (Individual validation errors)
    """

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors: list[str] = errors or [message]


class AuthError(HTTPException):
    """인증 계열 예외의 기반 클래스.

    Base class for token lifecycle errors. Subclasses fix the HTTP status,
    the machine code and the default message.
    """

    status_code_default: int = status.HTTP_401_UNAUTHORIZED
    code: str = "AUTH_ERROR"
    default_detail: str = "Authentication failed"

    def __init__(self, detail: str | None = None, headers: dict[str, str] | None = None) -> None:
        super().__init__(
            status_code=self.status_code_default,
            detail=detail or self.default_detail,
            headers=headers,
        )


class TokenMalformed(AuthError):
    """401 — 서명 불일치 또는 구조 오류 토큰 (Bad signature, structure, issuer or audience)."""

    code = "TOKEN_INVALID"
    default_detail = "Invalid token"


class TokenExpired(AuthError):
    """401 — 만료된 액세스 토큰 (Expired access token)."""

    code = "TOKEN_EXPIRED"
    default_detail = "Token has expired"


class TokenRevoked(AuthError):
    """401 — 폐기 목록에 등록된 토큰 (Token is on the revocation list)."""

    code = "TOKEN_REVOKED"
    default_detail = "Token has been revoked"


class RefreshTokenInvalid(AuthError):
    """401 — 유효하지 않은 리프레시 토큰 (Invalid refresh token)."""

    code = "REFRESH_TOKEN_INVALID"
    default_detail = "Invalid refresh token"


class RefreshTokenExpired(AuthError):
    """401 — 만료된 리프레시 토큰 (Expired refresh token)."""

    code = "REFRESH_TOKEN_EXPIRED"
    default_detail = "Refresh token has expired"


class SessionNotFound(AuthError):
    """401 — 활성 세션 없음 (No live session matches the presented token).

    회전 중 경쟁에서 진 요청도 이 예외를 받습니다.
    Also raised to the loser of a concurrent rotation of the same token.
    """

    code = "SESSION_NOT_FOUND"
    default_detail = "Session not found or no longer active"


class UserInactive(AuthError):
    """403 — 비활성 또는 존재하지 않는 사용자 (User missing or deactivated)."""

    status_code_default = status.HTTP_403_FORBIDDEN
    code = "USER_INACTIVE"
    default_detail = "User not found or inactive"


class StoreUnavailable(AuthError):
    """503 — 세션 원장 또는 폐기 저장소 장애 (Ledger or revocation store failure)."""

    status_code_default = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "STORE_UNAVAILABLE"
    default_detail = "Authentication store temporarily unavailable"


class RateLimitExceeded(AuthError):
    """429 — 로그인 시도 초과로 잠김 (Too many failed login attempts)."""

    status_code_default = status.HTTP_429_TOO_MANY_REQUESTS
    code = "RATE_LIMIT_EXCEEDED"
    default_detail = "Too many login attempts. Please try again later."


class UnauthorizedError(AuthError):
    """401 Unauthorized 예외 — 인증 실패 시 사용.

    401 Unauthorized exception.
    Raised for failed credential checks (wrong e-mail or password,
    unknown Google account).

    Args:
        detail: 오류 메시지 (Error message, default: "Authentication required")
    """

    code = "INVALID_CREDENTIALS"
    default_detail = "Authentication required"


class ForbiddenError(AuthError):
    """403 Forbidden 예외 — 권한 부족 또는 계정 상태 제한 시 사용.

    403 Forbidden exception.
    Raised when the account may not sign in yet (e.g. unverified e-mail).

    Args:
        detail: 오류 메시지 (Error message, default: "Insufficient permissions")
    """

    status_code_default = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"
    default_detail = "Insufficient permissions"


class BadRequestError(AuthError):
    """400 Bad Request 예외 — 잘못된 요청 데이터 시 사용.

    400 Bad Request exception.
    Raised when the request data is invalid beyond what Pydantic validation catches
    (e.g. a single-session logout without the session's refresh token).

    Args:
        detail: 오류 메시지 (Error message, default: "Bad request")
    """

    status_code_default = status.HTTP_400_BAD_REQUEST
    code = "BAD_REQUEST"
    default_detail = "Bad request"
