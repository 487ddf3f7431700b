"""만료 세션 정리 작업 — 주기적 백그라운드 태스크.

Session sweeper — Periodic background task deleting dead session rows.
Started and stopped from the application lifespan.
"""

import asyncio

from airvik_auth.services.session_ledger import SessionLedger
from airvik_auth.utils.exceptions import StoreUnavailable
from airvik_auth.utils.logging import get_logger

logger = get_logger(__name__)


class SessionSweeper:
    """세션 정리기.

    Args:
        ledger: 세션 원장 (Session ledger)
        interval_seconds: 정리 주기(초) (Sweep interval, default 24h via settings)
    """

    def __init__(self, ledger: SessionLedger, interval_seconds: float) -> None:
        self._ledger = ledger
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> int:
        """한 번 정리 — Sweep once; a store failure is logged and counts as zero."""
        try:
            return await self._ledger.sweep_expired()
        except StoreUnavailable as exc:
            logger.warning("session_sweep_failed", error=exc.detail)
            return 0

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await self.run_once()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="session-sweeper")
        logger.info("session_sweeper_started", interval_seconds=self._interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("session_sweeper_stopped")
