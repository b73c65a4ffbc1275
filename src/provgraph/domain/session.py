"""Auth session monitoring.

SessionMonitor re-checks the auth service every
AppConfig.session_check_interval seconds and refreshes the session in the
background when the service reports it is close to expiry.
"""

from __future__ import annotations

import asyncio
import logging

from provgraph.config import config_provider
from provgraph.domain.models import SessionState
from provgraph.domain.repositories import AuthService, dependency
from provgraph.notifier import Notifier
from provgraph.provider import NotifierProvider, Provider

logger = logging.getLogger("provgraph.domain.session")

auth_service: Provider[AuthService] = dependency("auth_service")


class SessionMonitor(Notifier[SessionState]):
    """Holds the latest SessionState. Needs a running event loop to build."""

    def build(self, ref) -> SessionState:
        self._auth = ref.watch(auth_service)
        self._refresh_task: asyncio.Task | None = None
        interval = ref.watch(config_provider).session_check_interval
        ref.periodic(interval, self.check)
        state = self._evaluate()
        if state.needs_refresh:
            self._schedule_refresh()
        return state

    def _evaluate(self) -> SessionState:
        if not self._auth.is_signed_in:
            return SessionState(is_expired=True)
        remaining = self._auth.time_until_expiry()
        if remaining is None or remaining.total_seconds() < 0:
            logger.warning("Session has expired")
            return SessionState(is_expired=True)
        return SessionState(
            expires_at=self._auth.session_expiry(),
            time_remaining=remaining,
            needs_refresh=self._auth.should_refresh_session(),
        )

    def check(self, *, auto_refresh: bool = True) -> None:
        """Re-read the session from the auth service."""
        if not self.mounted:
            return
        state = self._evaluate()
        self.state = state
        if auto_refresh and state.needs_refresh:
            self._schedule_refresh()

    def _schedule_refresh(self) -> None:
        if self._refresh_task is not None and not self._refresh_task.done():
            return
        self._refresh_task = asyncio.get_running_loop().create_task(self._auto_refresh())

    async def _auto_refresh(self) -> None:
        remaining = self.state.time_remaining if self.state is not None else None
        minutes = int(remaining.total_seconds() // 60) if remaining is not None else None
        logger.info("Auto-refreshing session (%s minutes remaining)", minutes)
        try:
            success = await self._auth.refresh_session()
        except Exception:
            logger.exception("Auto-refresh failed")
            return
        if not success:
            logger.error("Auto-refresh failed")
            return
        # A successful refresh must not schedule another one.
        self.check(auto_refresh=False)

    async def manual_refresh(self) -> None:
        await self._auth.refresh_session()
        self.check()

    def dispose(self) -> None:
        task = getattr(self, "_refresh_task", None)
        if task is not None and not task.done():
            task.cancel()


session_monitor: NotifierProvider[SessionState] = NotifierProvider(
    SessionMonitor, name="session_monitor"
)


def _is_session_expiring_soon(ref) -> bool:
    state = ref.watch(session_monitor)
    if state.is_expired or state.time_remaining is None:
        return False
    threshold = ref.watch(config_provider).session_expiring_soon_minutes
    return state.time_remaining.total_seconds() // 60 < threshold


is_session_expiring_soon: Provider[bool] = Provider(
    _is_session_expiring_soon, name="is_session_expiring_soon"
)


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


def _session_time_remaining_text(ref) -> str | None:
    state = ref.watch(session_monitor)
    if state.is_expired:
        return "Expired"
    if state.time_remaining is None:
        return None
    seconds = int(state.time_remaining.total_seconds())
    if seconds >= 86400:
        return _plural(seconds // 86400, "day")
    if seconds >= 3600:
        return _plural(seconds // 3600, "hour")
    if seconds >= 60:
        return _plural(seconds // 60, "minute")
    return "Less than a minute"


session_time_remaining_text: Provider[str | None] = Provider(
    _session_time_remaining_text, name="session_time_remaining_text"
)
