"""보안 알림 서비스 — 신규 기기 로그인 및 계정 잠금 메일.

Security notification service — New-device login and account lockout mails.
Delivery is best-effort: failures are logged and never reach the caller.
"""

from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

from airvik_auth.config import Settings, settings
from airvik_auth.utils.clock import utcnow
from airvik_auth.utils.email import send_email
from airvik_auth.utils.logging import get_logger

logger = get_logger(__name__)

EmailSender = Callable[..., Awaitable[None]]


class SecurityNotifier:
    """보안 알림 발송기.

    Security notifier sending plain security alerts by e-mail.

    Args:
        config: 애플리케이션 설정 (Application settings)
        sender: 메일 발송 함수 (Mail sender, defaults to utils.email.send_email)
    """

    def __init__(self, config: Settings = settings, sender: EmailSender | None = None) -> None:
        self._settings = config
        self._sender: EmailSender = sender or send_email

    @property
    def enabled(self) -> bool:
        return bool(self._settings.SMTP_FROM_EMAIL)

    async def _deliver(self, event: str, to: str, subject: str, html: str, text: str) -> bool:
        if not self.enabled:
            logger.info("security_notification_skipped", notification=event, reason="smtp_not_configured")
            return False
        try:
            await self._sender(to=to, subject=subject, html=html, text=text, config=self._settings)
        except Exception as exc:  # includes message encoding errors
            logger.warning("security_notification_failed", notification=event, error=repr(exc))
            return False
        logger.info("security_notification_sent", notification=event)
        return True

    async def new_device_login(
        self,
        email: str,
        full_name: str,
        device_info: dict[str, Any],
        ip_address: str | None,
        location: str | None = None,
        when: datetime | None = None,
    ) -> bool:
        """신규 기기 로그인 알림을 보냅니다.

        Notify the user of a login from a device with no live session.

        Returns:
            bool: 발송 여부 (Whether the mail was handed to SMTP)
        """
        device_name = device_info.get("device_name") or "Unknown device"
        timestamp = (when or utcnow()).strftime("%Y-%m-%d %H:%M UTC")
        text = (
            f"Hi {full_name},\n\n"
            f"A new sign-in to your account was detected.\n"
            f"Device: {device_name}\nIP address: {ip_address or 'unknown'}\n"
            f"Location: {location or 'Unknown location'}\nTime: {timestamp}\n\n"
            "If this was not you, sign out all devices and change your password."
        )
        html = "<p>" + text.replace("\n\n", "</p><p>").replace("\n", "<br>") + "</p>"
        return await self._deliver("new_device_login", email, "New sign-in to your account", html, text)

    async def account_locked(self, email: str, lockout_until: datetime | None = None) -> bool:
        """계정 잠금 알림을 보냅니다 — Notify the user of a login lockout."""
        until = lockout_until.strftime("%Y-%m-%d %H:%M UTC") if lockout_until else "a few minutes"
        text = (
            "We blocked further sign-in attempts to your account after several failed attempts.\n"
            f"You can try again after {until}."
        )
        html = "<p>" + text.replace("\n", "<br>") + "</p>"
        return await self._deliver("account_locked", email, "Sign-in temporarily locked", html, text)
