"""인증 API 테스트 — 로그인, 토큰 갱신, 로그아웃, 세션 관리, /me 엔드포인트.

Auth API tests — Login, token refresh, logout, session management and the
/me endpoint, including lockout, replayed refresh tokens and error codes.
"""

from datetime import datetime, timedelta

import httpx
from httpx import AsyncClient

from airvik_auth.schemas.token import SubjectClaims
from airvik_auth.services.google_identity import GoogleIdentityVerifier
from airvik_auth.utils.jwt import TokenCodec
from tests.conftest import USER_PASSWORD, auth_header, create_user, past_clock

AUTH = "/api/v1/auth"


async def login(client: AsyncClient, email: str = "guest@airvik.test", password: str = USER_PASSWORD, **extra) -> httpx.Response:
    return await client.post(f"{AUTH}/login", json={"email": email, "password": password, **extra})


# ===== Login =====

class TestLogin:
    """이메일/비밀번호 로그인 테스트."""

    async def test_login_success(self, client: AsyncClient, guest_user, mail_sender):
        """로그인 성공 — 토큰 쌍, 세션 ID, 신규 기기 알림."""
        res = await login(client)
        assert res.status_code == 200
        data = res.json()
        assert data["token_type"] == "bearer"
        assert data["expires_in"] == 900
        assert data["refresh_expires_in"] == 7 * 24 * 3600
        assert data["session_id"]
        assert data["is_new_device"] is True
        assert res.headers["X-Request-ID"]
        assert mail_sender.subjects() == ["New sign-in to your account"]

    async def test_login_same_device_not_new(self, client: AsyncClient, guest_user, mail_sender):
        """같은 기기 재로그인은 신규 기기 아님."""
        await login(client)
        res = await login(client)
        assert res.status_code == 200
        assert res.json()["is_new_device"] is False
        assert mail_sender.subjects() == ["New sign-in to your account"]

    async def test_login_new_timezone_is_new_device(self, client: AsyncClient, guest_user):
        """다른 시간대는 다른 기기."""
        await login(client, timezone="Asia/Seoul")
        res = await login(client, timezone="Europe/Berlin")
        assert res.json()["is_new_device"] is True

    async def test_login_email_case_insensitive(self, client: AsyncClient, guest_user):
        """이메일 대소문자 무시."""
        res = await login(client, email="GUEST@airvik.test")
        assert res.status_code == 200

    async def test_login_wrong_password(self, client: AsyncClient, guest_user):
        """잘못된 비밀번호로 로그인 실패."""
        res = await login(client, password="wrong_password")
        assert res.status_code == 401
        assert res.json()["code"] == "INVALID_CREDENTIALS"

    async def test_login_nonexistent_user(self, client: AsyncClient):
        """존재하지 않는 사용자로 로그인 실패."""
        res = await login(client, email="nobody@airvik.test")
        assert res.status_code == 401
        assert res.json()["code"] == "INVALID_CREDENTIALS"

    async def test_login_inactive_user(self, client: AsyncClient, db):
        """비활성 사용자 로그인 시 403."""
        await create_user(db, "inactive@airvik.test", is_active=False)
        res = await login(client, email="inactive@airvik.test")
        assert res.status_code == 403
        assert res.json()["code"] == "USER_INACTIVE"

    async def test_login_unverified_email(self, client: AsyncClient, db):
        """이메일 미인증 사용자 로그인 시 403."""
        await create_user(db, "unverified@airvik.test", is_email_verified=False)
        res = await login(client, email="unverified@airvik.test")
        assert res.status_code == 403
        assert res.json()["code"] == "FORBIDDEN"

    async def test_lockout_after_three_failures(self, client: AsyncClient, guest_user, mail_sender):
        """3회 실패 후 올바른 비밀번호도 429, 잠금 알림 1회."""
        for _ in range(3):
            res = await login(client, password="wrong_password")
            assert res.status_code == 401

        res = await login(client)
        assert res.status_code == 429
        assert res.json()["code"] == "RATE_LIMIT_EXCEEDED"
        assert int(res.headers["Retry-After"]) >= 1
        assert mail_sender.subjects() == ["Sign-in temporarily locked"]

    async def test_success_resets_failures(self, client: AsyncClient, guest_user):
        """성공 시 실패 횟수 초기화."""
        for _ in range(2):
            await login(client, password="wrong_password")
        assert (await login(client)).status_code == 200
        for _ in range(2):
            await login(client, password="wrong_password")
        assert (await login(client)).status_code == 200

    async def test_last_login_recorded(self, client: AsyncClient, guest_user):
        """마지막 로그인 시각 기록."""
        tokens = (await login(client)).json()
        me = await client.get(f"{AUTH}/me", headers=auth_header(tokens["access_token"]))
        assert me.json()["last_login_at"] is not None


# ===== Refresh =====

class TestRefresh:
    """토큰 갱신 테스트."""

    async def test_refresh_rotates(self, client: AsyncClient, guest_user):
        """토큰 갱신 성공 — 새 리프레시 토큰."""
        tokens = (await login(client)).json()
        res = await client.post(f"{AUTH}/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert res.status_code == 200
        data = res.json()
        assert data["refresh_token"] != tokens["refresh_token"]
        assert data["expires_in"] == 900

        me = await client.get(f"{AUTH}/me", headers=auth_header(data["access_token"]))
        assert me.status_code == 200

    async def test_refresh_reuse_rejected(self, client: AsyncClient, guest_user):
        """사용된 리프레시 토큰 재사용 시 401."""
        tokens = (await login(client)).json()
        first = await client.post(f"{AUTH}/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert first.status_code == 200

        again = await client.post(f"{AUTH}/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert again.status_code == 401
        assert again.json()["code"] == "TOKEN_REVOKED"

        rotated = await client.post(f"{AUTH}/refresh", json={"refresh_token": first.json()["refresh_token"]})
        assert rotated.status_code == 200

    async def test_refresh_invalid_token(self, client: AsyncClient):
        """유효하지 않은 리프레시 토큰으로 갱신 실패."""
        res = await client.post(f"{AUTH}/refresh", json={"refresh_token": "invalid.token.here"})
        assert res.status_code == 401
        assert res.json()["code"] == "REFRESH_TOKEN_INVALID"

    async def test_refresh_with_access_token(self, client: AsyncClient, guest_user):
        """액세스 토큰으로 갱신 시도 시 실패."""
        tokens = (await login(client)).json()
        res = await client.post(f"{AUTH}/refresh", json={"refresh_token": tokens["access_token"]})
        assert res.status_code == 401
        assert res.json()["code"] == "REFRESH_TOKEN_INVALID"

    async def test_refresh_expired_token(self, client: AsyncClient, guest_user, runtime):
        """만료된 리프레시 토큰."""
        old = TokenCodec(runtime.settings, clock=past_clock(timedelta(days=8)))
        expired = old.issue_refresh_token(
            SubjectClaims(subject_id=str(guest_user.id), email=guest_user.email, role=guest_user.role)
        )
        res = await client.post(f"{AUTH}/refresh", json={"refresh_token": expired})
        assert res.status_code == 401
        assert res.json()["code"] == "REFRESH_TOKEN_EXPIRED"


# ===== Logout =====

class TestLogout:
    """로그아웃 테스트."""

    async def test_logout_this_session(self, client: AsyncClient, guest_user):
        """로그아웃 후 액세스/리프레시 토큰 모두 거부."""
        tokens = (await login(client)).json()
        res = await client.post(
            f"{AUTH}/logout",
            json={"refresh_token": tokens["refresh_token"]},
            headers=auth_header(tokens["access_token"]),
        )
        assert res.status_code == 200
        assert res.json() == {"logged_out": True, "sessions_invalidated": 1}

        me = await client.get(f"{AUTH}/me", headers=auth_header(tokens["access_token"]))
        assert me.status_code == 401
        assert me.json()["code"] == "TOKEN_REVOKED"

        refresh = await client.post(f"{AUTH}/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert refresh.status_code == 401

    async def test_logout_requires_refresh_token(self, client: AsyncClient, guest_user):
        """리프레시 토큰 없는 단일 세션 로그아웃은 400."""
        tokens = (await login(client)).json()
        res = await client.post(f"{AUTH}/logout", json={}, headers=auth_header(tokens["access_token"]))
        assert res.status_code == 400
        assert res.json()["code"] == "BAD_REQUEST"

    async def test_logout_all_except_current(self, client: AsyncClient, guest_user):
        """현재 기기 외 로그아웃 — 현재 토큰 유지."""
        current = (await login(client)).json()
        other = (await login(client, timezone="Europe/Berlin")).json()

        res = await client.post(
            f"{AUTH}/logout",
            json={"refresh_token": current["refresh_token"], "scope": "all_except_current"},
            headers=auth_header(current["access_token"]),
        )
        assert res.status_code == 200
        assert res.json()["sessions_invalidated"] == 1

        me = await client.get(f"{AUTH}/me", headers=auth_header(current["access_token"]))
        assert me.status_code == 200
        assert me.json()["active_sessions"] == 1
        refresh = await client.post(f"{AUTH}/refresh", json={"refresh_token": other["refresh_token"]})
        assert refresh.status_code == 401

    async def test_logout_all_devices(self, client: AsyncClient, guest_user):
        """모든 기기 로그아웃."""
        first = (await login(client)).json()
        second = (await login(client, timezone="Europe/Berlin")).json()

        res = await client.delete(f"{AUTH}/sessions", headers=auth_header(first["access_token"]))
        assert res.status_code == 200
        assert res.json()["sessions_invalidated"] == 2

        for tokens in (first, second):
            refresh = await client.post(f"{AUTH}/refresh", json={"refresh_token": tokens["refresh_token"]})
            assert refresh.status_code == 401
        me = await client.get(f"{AUTH}/me", headers=auth_header(first["access_token"]))
        assert me.status_code == 401

    async def test_logout_without_bearer(self, client: AsyncClient):
        """인증 헤더 없이 로그아웃 시 401."""
        res = await client.post(f"{AUTH}/logout", json={"refresh_token": "x"})
        assert res.status_code == 401


# ===== Sessions =====

class TestSessions:
    """세션 목록 및 강제 종료 테스트."""

    async def test_list_sessions(self, client: AsyncClient, guest_user):
        """세션 목록 — 현재 세션 표시."""
        current = (await login(client)).json()
        await login(client, timezone="Europe/Berlin")

        res = await client.get(
            f"{AUTH}/sessions",
            headers={**auth_header(current["access_token"]), "X-Refresh-Token": current["refresh_token"]},
        )
        assert res.status_code == 200
        data = res.json()
        assert data["total"] == 2
        flagged = [s for s in data["sessions"] if s["is_current"]]
        assert [s["session_id"] for s in flagged] == [current["session_id"]]
        assert flagged[0]["device_info"]["device_id"]

    async def test_list_sessions_records_activity(self, client: AsyncClient, guest_user):
        """세션 조회 시 현재 세션의 활동 시각/IP 갱신."""
        current = (await login(client)).json()

        res = await client.get(
            f"{AUTH}/sessions",
            headers={
                **auth_header(current["access_token"]),
                "X-Refresh-Token": current["refresh_token"],
                "X-Forwarded-For": "198.51.100.7",
            },
        )
        assert res.status_code == 200
        session = res.json()["sessions"][0]
        assert session["ip_address"] == "198.51.100.7"
        assert datetime.fromisoformat(session["last_activity"]) > datetime.fromisoformat(session["created_at"])

    async def test_foreign_refresh_header_not_touched(self, client: AsyncClient, guest_user, other_user):
        """다른 사용자의 리프레시 토큰 헤더는 무시."""
        mine = (await login(client)).json()
        theirs = (await login(client, email="other@airvik.test")).json()

        await client.get(
            f"{AUTH}/sessions",
            headers={
                **auth_header(mine["access_token"]),
                "X-Refresh-Token": theirs["refresh_token"],
                "X-Forwarded-For": "198.51.100.7",
            },
        )
        res = await client.get(f"{AUTH}/sessions", headers=auth_header(theirs["access_token"]))
        assert res.json()["sessions"][0]["ip_address"] != "198.51.100.7"

    async def test_refresh_records_activity(self, client: AsyncClient, guest_user):
        """토큰 갱신 시 세션 IP 갱신."""
        tokens = (await login(client)).json()

        refreshed = await client.post(
            f"{AUTH}/refresh",
            json={"refresh_token": tokens["refresh_token"]},
            headers={"X-Forwarded-For": "192.0.2.44"},
        )
        assert refreshed.status_code == 200

        res = await client.get(f"{AUTH}/sessions", headers=auth_header(refreshed.json()["access_token"]))
        assert res.json()["sessions"][0]["ip_address"] == "192.0.2.44"

    async def test_invalidate_session(self, client: AsyncClient, guest_user):
        """다른 기기 세션 강제 종료."""
        current = (await login(client)).json()
        other = (await login(client, timezone="Europe/Berlin")).json()

        res = await client.delete(
            f"{AUTH}/sessions/{other['session_id']}",
            headers=auth_header(current["access_token"]),
        )
        assert res.status_code == 200
        assert res.json()["sessions_invalidated"] == 1

        refresh = await client.post(f"{AUTH}/refresh", json={"refresh_token": other["refresh_token"]})
        assert refresh.status_code == 401

        again = await client.delete(
            f"{AUTH}/sessions/{other['session_id']}",
            headers=auth_header(current["access_token"]),
        )
        assert again.status_code == 401
        assert again.json()["code"] == "SESSION_NOT_FOUND"

    async def test_cannot_invalidate_foreign_session(self, client: AsyncClient, guest_user, other_user):
        """다른 사용자의 세션 종료 불가."""
        mine = (await login(client)).json()
        theirs = (await login(client, email="other@airvik.test")).json()

        res = await client.delete(
            f"{AUTH}/sessions/{theirs['session_id']}",
            headers=auth_header(mine["access_token"]),
        )
        assert res.status_code == 401
        assert res.json()["code"] == "SESSION_NOT_FOUND"


# ===== /me =====

class TestGetMe:
    """/me 엔드포인트 테스트."""

    async def test_get_me(self, client: AsyncClient, guest_user):
        """현재 사용자 프로필 조회."""
        tokens = (await login(client)).json()
        res = await client.get(f"{AUTH}/me", headers=auth_header(tokens["access_token"]))
        assert res.status_code == 200
        data = res.json()
        assert data["email"] == "guest@airvik.test"
        assert data["role"] == "GUEST"
        assert data["active_sessions"] == 1

    async def test_get_me_without_token(self, client: AsyncClient):
        """토큰 없이 조회 시 401."""
        res = await client.get(f"{AUTH}/me")
        assert res.status_code == 401
        assert res.json()["code"] == "INVALID_CREDENTIALS"

    async def test_get_me_invalid_token(self, client: AsyncClient):
        """유효하지 않은 토큰으로 조회 시 401."""
        res = await client.get(f"{AUTH}/me", headers=auth_header("invalid.token.here"))
        assert res.status_code == 401
        assert res.json()["code"] == "TOKEN_INVALID"

    async def test_get_me_expired_token(self, client: AsyncClient, guest_user, runtime):
        """만료된 토큰으로 조회 시 401 TOKEN_EXPIRED."""
        old = TokenCodec(runtime.settings, clock=past_clock(timedelta(hours=1)))
        expired = old.issue_access_token(
            SubjectClaims(subject_id=str(guest_user.id), email=guest_user.email, role=guest_user.role)
        )
        res = await client.get(f"{AUTH}/me", headers=auth_header(expired))
        assert res.status_code == 401
        assert res.json()["code"] == "TOKEN_EXPIRED"

    async def test_get_me_deactivated_user(self, client: AsyncClient, guest_user, db):
        """로그인 후 비활성화된 사용자는 403."""
        tokens = (await login(client)).json()
        guest_user.is_active = False
        db.add(guest_user)
        await db.commit()

        res = await client.get(f"{AUTH}/me", headers=auth_header(tokens["access_token"]))
        assert res.status_code == 403
        assert res.json()["code"] == "USER_INACTIVE"


# ===== Google Login =====

class TestGoogleLogin:
    """Google 로그인 테스트."""

    @staticmethod
    def use_google(runtime, payload: dict) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=payload)

        runtime.auth.google_verifier = GoogleIdentityVerifier(
            runtime.settings,
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

    async def test_google_login_links_account(self, client: AsyncClient, guest_user, runtime):
        """인증된 이메일로 기존 계정 연결 후 로그인."""
        self.use_google(runtime, {
            "aud": "test-google-client",
            "iss": "accounts.google.com",
            "sub": "google-sub-1",
            "email": "guest@airvik.test",
            "email_verified": "true",
        })

        res = await client.post(f"{AUTH}/google-login", json={"id_token": "google-id-token"})
        assert res.status_code == 200
        assert res.json()["session_id"]

        again = await client.post(f"{AUTH}/google-login", json={"id_token": "google-id-token"})
        assert again.status_code == 200
        assert again.json()["is_new_device"] is False

    async def test_google_login_unknown_account(self, client: AsyncClient, runtime):
        """연결된 계정이 없으면 401."""
        self.use_google(runtime, {
            "aud": "test-google-client",
            "iss": "accounts.google.com",
            "sub": "google-sub-2",
            "email": "stranger@airvik.test",
            "email_verified": "true",
        })
        res = await client.post(f"{AUTH}/google-login", json={"id_token": "google-id-token"})
        assert res.status_code == 401
        assert res.json()["code"] == "INVALID_CREDENTIALS"

    async def test_google_login_unverified_email_not_linked(self, client: AsyncClient, guest_user, runtime):
        """미인증 Google 이메일은 계정 연결 안 함."""
        self.use_google(runtime, {
            "aud": "test-google-client",
            "iss": "accounts.google.com",
            "sub": "google-sub-3",
            "email": "guest@airvik.test",
            "email_verified": "false",
        })
        res = await client.post(f"{AUTH}/google-login", json={"id_token": "google-id-token"})
        assert res.status_code == 401


# ===== Health =====

class TestHealth:
    """헬스 체크 테스트."""

    async def test_health(self, client: AsyncClient):
        """폐기 저장소 상태 포함."""
        res = await client.get("/health")
        assert res.status_code == 200
        assert res.json() == {"status": "ok", "revocation_store": "ok"}
