"""JWT 토큰 코덱 모듈.

JWT token codec module.
Mints and verifies signed access/refresh tokens. Pure and stateless apart
from the configured secrets; it never consults the revocation store.

JWT Payload Structure:
    액세스/리프레시 토큰 모두 동일한 기본 페이로드를 사용합니다.
    Both access and refresh tokens share the same base payload:
    {
        "sub": "user_uuid",            # 사용자 ID (User identifier)
        "email": "guest@example.com",  # 이메일 (E-mail)
        "role": "GUEST",               # 역할 이름 (Role name)
        "iat": 1234567000,             # 발급 시간 (Issued at)
        "exp": 1234567890,             # 만료 시간 UNIX timestamp (Expiration)
        "iss": "airvikbook",           # 발급자 (Issuer)
        "aud": "airvikbook-users",     # 대상 (Audience)
        "jti": "hex uuid",             # 토큰 고유 ID (Unique token id)
        "type": "access"|"refresh"     # 토큰 유형 (Token type discriminator)
    }
"""

import uuid
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

import jwt
from pydantic import ValidationError

from airvik_auth.config import Settings, settings
from airvik_auth.schemas.token import ConfigurationReport, SubjectClaims, TokenClaims
from airvik_auth.utils.clock import utcnow
from airvik_auth.utils.exceptions import ConfigurationError, TokenExpired, TokenMalformed

ACCESS_TOKEN_TYPE: str = "access"
REFRESH_TOKEN_TYPE: str = "refresh"


def validate_configuration(config: Settings) -> ConfigurationReport:
    """서명 비밀키 설정을 검증합니다.

    Check that both signing secrets are present, long enough and distinct.

    Args:
        config: 애플리케이션 설정 (Application settings)

    Returns:
        ConfigurationReport: is_valid 및 오류 목록 (Validity flag and error list)
    """
    errors: list[str] = []
    min_length: int = config.JWT_MIN_SECRET_LENGTH

    for name, secret in (
        ("JWT_ACCESS_SECRET", config.JWT_ACCESS_SECRET),
        ("JWT_REFRESH_SECRET", config.JWT_REFRESH_SECRET),
    ):
        if not secret:
            errors.append(f"{name} is not configured")
        elif len(secret) < min_length:
            errors.append(f"{name} must be at least {min_length} characters long")

    if config.JWT_ACCESS_SECRET and config.JWT_ACCESS_SECRET == config.JWT_REFRESH_SECRET:
        errors.append("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must be different")

    return ConfigurationReport(is_valid=not errors, errors=errors)


class TokenCodec:
    """JWT 서명/검증 코덱.

    Signs and verifies HS256 tokens with separate access and refresh secrets.

    Args:
        config: 애플리케이션 설정 (Application settings)
        clock: 현재 UTC 시각 공급자 (Current-time provider, injectable for tests)
    """

    def __init__(
        self,
        config: Settings = settings,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings: Settings = config
        self._clock: Callable[[], datetime] = clock or utcnow

    @property
    def access_ttl(self) -> timedelta:
        return timedelta(minutes=self._settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)

    @property
    def refresh_ttl(self) -> timedelta:
        return timedelta(days=self._settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS)

    @property
    def access_secret(self) -> str:
        return self._settings.JWT_ACCESS_SECRET

    @property
    def refresh_secret(self) -> str:
        return self._settings.JWT_REFRESH_SECRET

    def _encode(
        self,
        claims: SubjectClaims,
        secret: str,
        lifetime: timedelta,
        token_type: str,
    ) -> str:
        if not secret:
            raise ConfigurationError(f"Signing secret for {token_type} tokens is not configured")

        now: datetime = self._clock()
        payload: dict[str, Any] = {
            "sub": claims.subject_id,
            "email": claims.email,
            "role": claims.role,
            "iat": now,
            "exp": now + lifetime,
            "iss": self._settings.JWT_ISSUER,
            "aud": self._settings.JWT_AUDIENCE,
            "jti": uuid.uuid4().hex,
            "type": token_type,
        }
        return jwt.encode(payload, secret, algorithm=self._settings.JWT_ALGORITHM)

    def issue_access_token(self, claims: SubjectClaims) -> str:
        """JWT 액세스 토큰을 생성합니다.

        Generate a JWT access token.
        Token expires after JWT_ACCESS_TOKEN_EXPIRE_MINUTES (default: 15 min).

        Args:
            claims: 사용자 식별 클레임 (Subject claims)

        Returns:
            str: 인코딩된 JWT 문자열 (Encoded JWT token string)

        Raises:
            ConfigurationError: 액세스 비밀키 미설정 (Access secret missing)
        """
        return self._encode(claims, self.access_secret, self.access_ttl, ACCESS_TOKEN_TYPE)

    def issue_refresh_token(self, claims: SubjectClaims) -> str:
        """JWT 리프레시 토큰을 생성합니다.

        Generate a JWT refresh token signed with the refresh secret.
        Token expires after JWT_REFRESH_TOKEN_EXPIRE_DAYS (default: 7 days).

        Args:
            claims: 사용자 식별 클레임 (Subject claims)

        Returns:
            str: 인코딩된 JWT 리프레시 토큰 문자열 (Encoded JWT refresh token string)

        Raises:
            ConfigurationError: 리프레시 비밀키 미설정 (Refresh secret missing)
        """
        return self._encode(claims, self.refresh_secret, self.refresh_ttl, REFRESH_TOKEN_TYPE)

    def verify(self, token: str, secret: str) -> TokenClaims:
        """JWT 토큰의 서명, 발급자, 대상, 만료를 검증합니다.

        Verify signature, issuer, audience and expiry of a token.

        Args:
            token: JWT 토큰 문자열 (Encoded JWT token string)
            secret: 검증에 사용할 비밀키 (Secret to verify against)

        Returns:
            TokenClaims: 검증된 클레임 (Verified claims)

        Raises:
            TokenExpired: 토큰 만료 시 (When the token has expired)
            TokenMalformed: 서명/구조/발급자/대상 불일치 (Any other validation failure)
        """
        if not secret:
            raise ConfigurationError("Verification secret is not configured")
        try:
            payload: dict[str, Any] = jwt.decode(
                token,
                secret,
                algorithms=[self._settings.JWT_ALGORITHM],
                audience=self._settings.JWT_AUDIENCE,
                issuer=self._settings.JWT_ISSUER,
                options={"require": ["exp", "iat", "sub", "iss", "aud"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise TokenExpired() from exc
        except jwt.InvalidTokenError as exc:
            raise TokenMalformed() from exc

        try:
            claims: TokenClaims = TokenClaims.from_payload(payload)
        except (KeyError, TypeError, ValueError, ValidationError) as exc:
            raise TokenMalformed("Invalid token payload") from exc

        if claims.expires_at <= claims.issued_at:
            raise TokenMalformed("Invalid token lifetime")
        return claims

    def verify_access(self, token: str) -> TokenClaims:
        """액세스 토큰 검증 — Verify an access token, rejecting refresh tokens."""
        claims = self.verify(token, self.access_secret)
        if claims.token_type != ACCESS_TOKEN_TYPE:
            raise TokenMalformed("Invalid token type")
        return claims

    def verify_refresh(self, token: str) -> TokenClaims:
        """리프레시 토큰 검증 — Verify a refresh token, rejecting access tokens."""
        claims = self.verify(token, self.refresh_secret)
        if claims.token_type != REFRESH_TOKEN_TYPE:
            raise TokenMalformed("Invalid token type")
        return claims

    def peek(self, token: str) -> TokenClaims | None:
        """서명 검증 없이 클레임을 디코딩합니다.

        Decode claims without verifying the signature. Only for reading
        expiry and subject (e.g. to size a revocation TTL); never for
        authentication decisions.

        Returns:
            TokenClaims | None: 디코딩 실패 시 None (None when undecodable)
        """
        try:
            payload = jwt.decode(token, options={"verify_signature": False})
            return TokenClaims.from_payload(payload)
        except (jwt.PyJWTError, KeyError, TypeError, ValueError, ValidationError):
            return None

    def expires_in(self, token: str) -> float:
        """남은 유효 시간(초), 디코딩 불가 또는 만료 시 0 이하.

        Remaining validity in seconds; zero or negative when expired or undecodable.
        """
        claims = self.peek(token)
        if claims is None:
            return 0.0
        return (claims.expires_at - self._clock()).total_seconds()
