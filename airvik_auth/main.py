"""FastAPI 애플리케이션 엔트리포인트 — 수명주기, 미들웨어 및 라우터 등록.

FastAPI application entry point — Lifespan, middleware and router
registration. Startup validates the signing configuration (fatal when
invalid), assembles the authentication runtime and starts the session
sweeper.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from airvik_auth.config import settings
from airvik_auth.database import async_session
from airvik_auth.middleware.request_logging import RequestLoggingMiddleware
from airvik_auth.runtime import build_runtime
from airvik_auth.utils.exceptions import AuthError
from airvik_auth.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """앱 수명주기 — 런타임 조립 및 세션 정리 작업 시작/종료.

    Build the runtime unless one was installed already (tests), start the
    sweeper, and close everything on shutdown.
    """
    configure_logging(settings)
    owns_runtime = getattr(app.state, "auth", None) is None
    if owns_runtime:
        app.state.auth = build_runtime(settings, async_session)
        app.state.auth.sweeper.start()
    logger.info("application_started", app=settings.APP_NAME)
    try:
        yield
    finally:
        if owns_runtime:
            await app.state.auth.close()
            app.state.auth = None
        logger.info("application_stopped")


app: FastAPI = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# 요청 로깅 미들웨어 — Request logging (structlog + Axiom)
# CORS보다 먼저 등록하여 모든 요청을 캡처 (Registered before CORS to capture all requests)
app.add_middleware(RequestLoggingMiddleware)

# CORS 미들웨어 — Cross-Origin Resource Sharing middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """인증 예외 응답 — Return ``{"detail", "code"}`` for authentication errors."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code},
        headers=exc.headers,
    )


@app.get("/health")
async def health_check(request: Request) -> dict[str, str]:
    """서버 상태 확인 엔드포인트.

    Health check endpoint for load balancers and monitoring. Reports
    whether the revocation store answers; the service stays up without it.
    """
    runtime = getattr(request.app.state, "auth", None)
    revocation = "unknown"
    if runtime is not None:
        revocation = "ok" if await runtime.revocation_store.ping() else "unavailable"
    return {"status": "ok", "revocation_store": revocation}


# ---------------------------------------------------------------------------
# 라우터 등록 — Router registration
# ---------------------------------------------------------------------------
from airvik_auth.api.auth import router as auth_router  # noqa: E402

app.include_router(auth_router, prefix="/api/v1/auth", tags=["Auth"])
