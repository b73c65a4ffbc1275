"""PeriodicTimer — a repeating wakeup on the asyncio event loop.

Providers that poll (session checks, expired-timer checks) register one via
ref.periodic(), which ties dispose() to the node's cleanup so no periodic
work outlives the scope that started it.
"""

from __future__ import annotations

import asyncio
from typing import Callable


class PeriodicTimer:
    """Disposable handle for a call_later chain."""

    __slots__ = ("_interval", "_callback", "_loop", "_handle", "_disposed")

    def __init__(
        self,
        interval: float,
        callback: Callable[[], None],
        *,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval!r}")
        self._interval = interval
        self._callback = callback
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None
        self._disposed = False

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def disposed(self) -> bool:
        return self._disposed

    def start(self) -> None:
        """Schedule the first tick. Requires a running loop unless one was given."""
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        self._schedule()

    def _schedule(self) -> None:
        if not self._disposed:
            self._handle = self._loop.call_later(self._interval, self._tick)

    def _tick(self) -> None:
        self._handle = None
        if self._disposed:
            return
        try:
            self._callback()
        finally:
            self._schedule()

    def dispose(self) -> None:
        """Cancel the pending tick. Idempotent."""
        self._disposed = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


def periodic(interval: float, callback: Callable[[], None]) -> PeriodicTimer:
    """Start callback every interval seconds on the running loop.

    Usage:
        timer = periodic(60, check_session)
        ...
        timer.dispose()
    """
    timer = PeriodicTimer(interval, callback)
    timer.start()
    return timer
