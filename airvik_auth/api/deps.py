"""FastAPI 의존성 주입 모듈 — 인증 런타임 및 현재 사용자.

FastAPI dependency injection module — Authentication runtime and the
current user.

Authentication Flow:
    1. 클라이언트가 Authorization: Bearer <token> 헤더를 전송
       (Client sends Authorization: Bearer <token> header)
    2. HTTPBearer가 토큰을 추출 (HTTPBearer extracts the token)
    3. validate_access()가 서명/만료 검증 후 폐기 목록 확인
       (validate_access verifies signature and expiry, then the revocation list)
    4. 클레임의 "sub"로 DB에서 사용자를 조회
       (User is fetched from DB using the "sub" claim)
    5. 사용자 활성 상태를 확인 (User active status is verified)
"""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from airvik_auth.database import get_db
from airvik_auth.models.user import User
from airvik_auth.repositories.user_repository import user_repository
from airvik_auth.runtime import AuthRuntime
from airvik_auth.schemas.auth import ClientContext
from airvik_auth.schemas.token import TokenClaims
from airvik_auth.utils.exceptions import TokenMalformed, UnauthorizedError, UserInactive

# HTTP Bearer 토큰 추출기 — auto_error=False로 누락 시 자체 401 코드 반환
# (Extracts the bearer token; a missing header yields our own 401 body)
security: HTTPBearer = HTTPBearer(auto_error=False)


def get_runtime(request: Request) -> AuthRuntime:
    """앱 상태의 인증 런타임 — Authentication runtime stored on app.state."""
    return request.app.state.auth


def get_client_context(request: Request) -> ClientContext:
    """요청 헤더로부터 클라이언트 정보 수집 — Collect client metadata from the request."""
    forwarded = request.headers.get("x-forwarded-for")
    ip_address = forwarded.split(",")[0].strip() if forwarded else (request.client.host if request.client else None)
    return ClientContext(
        ip_address=ip_address,
        user_agent=request.headers.get("user-agent"),
        accept_language=request.headers.get("accept-language"),
        timezone=request.headers.get("x-timezone"),
    )


async def get_access_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> str:
    """Authorization 헤더의 bearer 토큰 — Bearer token from the Authorization header."""
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Authentication required")
    return credentials.credentials


async def get_current_claims(
    token: Annotated[str, Depends(get_access_token)],
    runtime: Annotated[AuthRuntime, Depends(get_runtime)],
) -> TokenClaims:
    """검증된 액세스 토큰 클레임을 반환합니다.

    Return the claims of a verified, non-revoked access token.

    Raises:
        TokenExpired / TokenMalformed / TokenRevoked: 토큰 검증 실패 (Token verification failure)
    """
    return await runtime.tokens.validate_access(token)


async def get_current_user(
    claims: Annotated[TokenClaims, Depends(get_current_claims)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """JWT 클레임에서 현재 인증된 사용자를 조회합니다.

    Load the authenticated user named by the access token.

    Raises:
        TokenMalformed: sub 클레임이 UUID가 아님 (Subject is not a UUID)
        UserInactive: 사용자를 찾을 수 없거나 비활성 (User not found or inactive)
    """
    try:
        user_id = UUID(claims.subject_id)
    except ValueError:
        raise TokenMalformed("Invalid token subject")

    user: User | None = await user_repository.get_by_id(db, user_id)
    if user is None or not user.is_active:
        raise UserInactive()
    return user


async def record_session_activity(
    current_user: Annotated[User, Depends(get_current_user)],
    runtime: Annotated[AuthRuntime, Depends(get_runtime)],
    client: Annotated[ClientContext, Depends(get_client_context)],
    x_refresh_token: Annotated[str | None, Header()] = None,
) -> None:
    """X-Refresh-Token 세션의 활동 기록 — Touch the caller's own session when it identifies itself.

    Tokens belonging to another user are ignored.
    """
    if not x_refresh_token:
        return
    claims: TokenClaims | None = runtime.codec.peek(x_refresh_token)
    if claims is None or claims.subject_id != str(current_user.id):
        return
    await runtime.tokens.record_activity(x_refresh_token, client.ip_address)
