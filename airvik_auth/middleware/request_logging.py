"""요청 로깅 미들웨어 — structlog 로그 + Axiom 전송.

Request logging middleware.
Logs every API request through structlog with a request id bound to the
context, and ships the same event to Axiom when AXIOM_API_TOKEN and
AXIOM_DATASET are configured. Sensitive body fields (password, token,
secret) are masked; auth endpoints carry credentials in their bodies.
"""

import json
import re
import time
import uuid
from typing import Any

import structlog
from axiom_py import Client as AxiomClient
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from airvik_auth.config import Settings, settings
from airvik_auth.utils.logging import get_logger

logger = get_logger(__name__)

# 마스킹 대상 필드 패턴 — Fields to mask in request bodies
_SENSITIVE_KEYS = re.compile(
    r"(password|passwd|secret|token|authorization|api_key|apikey|credential)",
    re.IGNORECASE,
)

# 로깅 제외 경로 — Paths excluded from logging
_SKIP_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}


def _mask_dict(data: Any, depth: int = 0) -> Any:
    """민감 필드 자동 마스킹 — Recursively mask sensitive fields in dicts/lists."""
    if depth > 5:
        return "..."
    if isinstance(data, dict):
        return {
            k: "***" if _SENSITIVE_KEYS.search(k) else _mask_dict(v, depth + 1)
            for k, v in data.items()
        }
    if isinstance(data, list):
        return [_mask_dict(item, depth + 1) for item in data[:20]]
    return data


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """모든 API 요청을 로깅하는 미들웨어.

    Middleware logging method, path, status, duration and masked body of
    each request, optionally forwarding the event to Axiom.
    """

    def __init__(self, app: Any, config: Settings = settings) -> None:
        super().__init__(app)
        self._client: AxiomClient | None = None
        self._dataset: str = config.AXIOM_DATASET

        if config.AXIOM_API_TOKEN and config.AXIOM_DATASET:
            self._client = AxiomClient(token=config.AXIOM_API_TOKEN)

    async def _read_body(self, request: Request) -> Any:
        if request.method not in ("POST", "PUT", "PATCH", "DELETE"):
            return None
        body_bytes = await request.body()
        if not body_bytes:
            return None
        try:
            return _mask_dict(json.loads(body_bytes))
        except (json.JSONDecodeError, UnicodeDecodeError):
            return "(non-json body)"

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        # 제외 경로 스킵 — Skip excluded paths
        if request.url.path in _SKIP_PATHS:
            return await call_next(request)

        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start_time = time.perf_counter()
        request_body = await self._read_body(request)
        status_code: int = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
            log_event: dict[str, Any] = {
                "method": request.method,
                "path": request.url.path,
                "status_code": status_code,
                "duration_ms": duration_ms,
                "request_id": request_id,
            }
            if request.query_params:
                log_event["query_params"] = _mask_dict(dict(request.query_params))
            if request_body is not None:
                log_event["request_body"] = request_body

            if status_code >= 500:
                logger.error("http_request", **{k: v for k, v in log_event.items() if k != "request_id"})
            else:
                logger.info("http_request", **{k: v for k, v in log_event.items() if k != "request_id"})
            self._ship(log_event)
            structlog.contextvars.clear_contextvars()

    def _ship(self, event: dict[str, Any]) -> None:
        """Axiom 전송 — Send the event to Axiom; failures are only logged."""
        if self._client is None:
            return
        try:
            self._client.ingest_events(self._dataset, [event])
        except Exception as exc:  # axiom-py raises transport-specific errors
            logger.warning("axiom_ingest_failed", error=repr(exc))
