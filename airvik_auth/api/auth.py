"""인증 라우터 — 로그인, 토큰 회전, 로그아웃, 세션 관리, 프로필 조회.

Auth Router — Login, token rotation, logout, session management and
profile endpoints.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from airvik_auth.api.deps import (
    get_access_token,
    get_client_context,
    get_current_user,
    get_runtime,
    record_session_activity,
)
from airvik_auth.database import get_db
from airvik_auth.models.user import User
from airvik_auth.runtime import AuthRuntime
from airvik_auth.schemas.auth import (
    ClientContext,
    GoogleLoginRequest,
    LoginRequest,
    LoginResponse,
    LogoutRequest,
    LogoutResponse,
    RefreshRequest,
    SessionListResponse,
    TokenResponse,
    UserMeResponse,
)
from airvik_auth.schemas.token import LogoutResult, LogoutScope, RotatedTokenPair, SessionInfo

router: APIRouter = APIRouter()


@router.post("/login", response_model=LoginResponse)
async def login(
    data: LoginRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    runtime: Annotated[AuthRuntime, Depends(get_runtime)],
    client: Annotated[ClientContext, Depends(get_client_context)],
) -> LoginResponse:
    """이메일/비밀번호 로그인.

    Password login. Issues an access/refresh pair and records the session.
    """
    result: LoginResponse = await runtime.auth.login(db, data, client)
    await db.commit()
    return result


@router.post("/google-login", response_model=LoginResponse)
async def google_login(
    data: GoogleLoginRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    runtime: Annotated[AuthRuntime, Depends(get_runtime)],
    client: Annotated[ClientContext, Depends(get_client_context)],
) -> LoginResponse:
    """Google 로그인 — Sign in an existing account with a Google ID token."""
    result: LoginResponse = await runtime.auth.google_login(db, data, client)
    await db.commit()
    return result


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
    data: RefreshRequest,
    runtime: Annotated[AuthRuntime, Depends(get_runtime)],
    client: Annotated[ClientContext, Depends(get_client_context)],
) -> TokenResponse:
    """토큰 갱신 — 리프레시 토큰을 회전하여 새 토큰 쌍 발급.

    Refresh endpoint. Rotates the refresh token; the presented token is
    single-use. The session's last activity and IP are refreshed.
    """
    pair: RotatedTokenPair = await runtime.tokens.rotate(data.refresh_token)
    await runtime.tokens.record_activity(pair.refresh_token, client.ip_address)
    return TokenResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        expires_in=pair.expires_in,
    )


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    data: LogoutRequest,
    access_token: Annotated[str, Depends(get_access_token)],
    current_user: Annotated[User, Depends(get_current_user)],
    runtime: Annotated[AuthRuntime, Depends(get_runtime)],
) -> LogoutResponse:
    """로그아웃 — 범위에 따라 세션 비활성화 및 토큰 폐기.

    Logout endpoint. Scope selects this session, all devices, or all
    devices except the current one.
    """
    result: LogoutResult = await runtime.tokens.logout(
        current_user.id,
        data.scope,
        refresh_token=data.refresh_token,
        access_token=access_token,
    )
    return LogoutResponse(**result.model_dump())


@router.get(
    "/sessions",
    response_model=SessionListResponse,
    dependencies=[Depends(record_session_activity)],
)
async def list_sessions(
    current_user: Annotated[User, Depends(get_current_user)],
    runtime: Annotated[AuthRuntime, Depends(get_runtime)],
    x_refresh_token: Annotated[str | None, Header()] = None,
) -> SessionListResponse:
    """활성 세션 목록 — X-Refresh-Token 헤더로 현재 세션 표시.

    List live sessions. The optional X-Refresh-Token header marks the
    caller's own session as current.
    """
    sessions: list[SessionInfo] = await runtime.tokens.list_sessions(current_user.id, x_refresh_token)
    return SessionListResponse(sessions=sessions, total=len(sessions))


@router.delete(
    "/sessions",
    response_model=LogoutResponse,
    dependencies=[Depends(record_session_activity)],
)
async def logout_all_devices(
    access_token: Annotated[str, Depends(get_access_token)],
    current_user: Annotated[User, Depends(get_current_user)],
    runtime: Annotated[AuthRuntime, Depends(get_runtime)],
) -> LogoutResponse:
    """모든 기기 로그아웃 — Log out every device of the current user."""
    result: LogoutResult = await runtime.tokens.logout(
        current_user.id, LogoutScope.ALL_DEVICES, access_token=access_token
    )
    return LogoutResponse(**result.model_dump())


@router.delete(
    "/sessions/{session_id}",
    response_model=LogoutResponse,
    dependencies=[Depends(record_session_activity)],
)
async def invalidate_session(
    session_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    runtime: Annotated[AuthRuntime, Depends(get_runtime)],
) -> LogoutResponse:
    """특정 기기 강제 로그아웃 — Force logout of one device session."""
    result: LogoutResult = await runtime.tokens.invalidate_session(current_user.id, session_id)
    return LogoutResponse(**result.model_dump())


@router.get("/me", response_model=UserMeResponse)
async def get_me(
    current_user: Annotated[User, Depends(get_current_user)],
    runtime: Annotated[AuthRuntime, Depends(get_runtime)],
) -> UserMeResponse:
    """현재 사용자 프로필 조회.

    Get the profile of the currently authenticated user.
    """
    return await runtime.auth.get_me(current_user)
