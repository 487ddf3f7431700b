"""Google ID 토큰 검증기 — httpx로 Google tokeninfo 엔드포인트 호출.

Google identity verifier — Validates a Google ID token against Google's
tokeninfo endpoint and returns the identity claims. Account creation is
out of scope; the login flow only maps the identity to an existing user.
"""

import httpx
from pydantic import BaseModel

from airvik_auth.config import Settings, settings
from airvik_auth.utils.exceptions import StoreUnavailable, UnauthorizedError
from airvik_auth.utils.logging import get_logger

logger = get_logger(__name__)

_VALID_ISSUERS: frozenset[str] = frozenset({"accounts.google.com", "https://accounts.google.com"})


class GoogleIdentity(BaseModel):
    """Google 신원 정보 — Verified Google identity."""

    subject: str
    email: str
    email_verified: bool = False
    name: str | None = None


class GoogleIdentityVerifier:
    """Google ID 토큰 검증기.

    Args:
        config: 애플리케이션 설정 (GOOGLE_CLIENT_ID, GOOGLE_TOKENINFO_URL)
        client: 공유 httpx 클라이언트, 없으면 호출마다 생성 (Shared client; one per call when None)
    """

    def __init__(self, config: Settings = settings, client: httpx.AsyncClient | None = None) -> None:
        self._settings = config
        self._client = client

    async def _fetch(self, id_token: str) -> httpx.Response:
        params = {"id_token": id_token}
        if self._client is not None:
            return await self._client.get(self._settings.GOOGLE_TOKENINFO_URL, params=params)
        async with httpx.AsyncClient(timeout=10.0, follow_redirects=False) as client:
            return await client.get(self._settings.GOOGLE_TOKENINFO_URL, params=params)

    async def verify(self, id_token: str) -> GoogleIdentity:
        """ID 토큰을 검증합니다.

        Verify a Google ID token and return its identity.

        Raises:
            UnauthorizedError: 토큰 무효, 대상/발급자 불일치 (Invalid token, audience or issuer)
            StoreUnavailable: Google 엔드포인트 접근 불가 (Google endpoint unreachable)
        """
        if not self._settings.GOOGLE_CLIENT_ID:
            raise UnauthorizedError("Google sign-in is not configured")

        try:
            response = await self._fetch(id_token)
        except httpx.HTTPError as exc:
            logger.warning("google_tokeninfo_unreachable", error=str(exc))
            raise StoreUnavailable("Identity provider unavailable") from exc

        if response.status_code != 200:
            logger.info("google_token_rejected", status_code=response.status_code)
            raise UnauthorizedError("Invalid Google token")

        try:
            data = response.json()
        except ValueError as exc:
            raise UnauthorizedError("Invalid Google token") from exc

        if data.get("aud") != self._settings.GOOGLE_CLIENT_ID:
            raise UnauthorizedError("Google token audience mismatch")
        if data.get("iss") not in _VALID_ISSUERS:
            raise UnauthorizedError("Google token issuer mismatch")
        if not data.get("sub") or not data.get("email"):
            raise UnauthorizedError("Google token is missing identity claims")

        return GoogleIdentity(
            subject=data["sub"],
            email=data["email"].strip().lower(),
            email_verified=str(data.get("email_verified", "")).lower() == "true",
            name=data.get("name"),
        )
