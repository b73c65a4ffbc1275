"""EventStream — the push channel behind StreamProvider.

Realtime sources (device status feeds and the like) hand out an EventStream
per channel. A StreamProvider node subscribes to the stream its computation
returns and exposes the most recent value as Data; until the first emit the
node is Loading.

Operators build child streams that are torn down with their parent:

    updates = source.device_updates(device_id)
    statuses = updates.map(lambda d: d.status).distinct().debounce(0.25)
    ...
    updates.dispose()  # statuses is disposed too
"""

from __future__ import annotations

import asyncio
from typing import Callable, Generic, TypeVar

T = TypeVar("T")
U = TypeVar("U")

Disposer = Callable[[], None]
_UNSET = object()


class EventStream(Generic[T]):
    """Multicast stream of values pushed through emit()."""

    def __init__(self) -> None:
        self._callbacks: list[Callable[[T], None]] = []
        self._downstream: list[EventStream] = []
        self._on_dispose: list[Disposer] = []
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def subscriber_count(self) -> int:
        return len(self._callbacks)

    def emit(self, value: T) -> None:
        if self._disposed:
            return
        # Snapshot: a callback may unsubscribe itself.
        for callback in tuple(self._callbacks):
            callback(value)

    def subscribe(self, callback: Callable[[T], None]) -> Disposer:
        """Deliver every later emit to callback until the returned disposer runs."""
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    # ─── Operators ──────────────────────────────────────────────────────

    def _derive(self, handler: Callable[[T, Callable[[U], None]], None]) -> EventStream[U]:
        child: EventStream[U] = EventStream()
        self._downstream.append(child)
        unsubscribe = self.subscribe(lambda value: handler(value, child.emit))

        def detach() -> None:
            unsubscribe()
            if child in self._downstream:
                self._downstream.remove(child)

        child._on_dispose.append(detach)
        return child

    def map(self, fn: Callable[[T], U]) -> EventStream[U]:
        return self._derive(lambda value, emit: emit(fn(value)))

    def filter(self, predicate: Callable[[T], bool]) -> EventStream[T]:
        def handler(value, emit):
            if predicate(value):
                emit(value)

        return self._derive(handler)

    def distinct(self) -> EventStream[T]:
        """Drop values equal to the previous one."""
        last = [_UNSET]

        def handler(value, emit):
            if last[0] is not _UNSET and last[0] == value:
                return
            last[0] = value
            emit(value)

        return self._derive(handler)

    def debounce(self, seconds: float) -> EventStream[T]:
        """Emit the last value of a burst once seconds pass without another.

        Scheduled with call_later, so emits must happen on the running loop.
        """
        handle: list[asyncio.TimerHandle | None] = [None]

        def handler(value, emit):
            if handle[0] is not None:
                handle[0].cancel()
            handle[0] = asyncio.get_running_loop().call_later(seconds, emit, value)

        child = self._derive(handler)

        def cancel_pending() -> None:
            if handle[0] is not None:
                handle[0].cancel()
                handle[0] = None

        child._on_dispose.append(cancel_pending)
        return child

    def dispose(self) -> None:
        """Stop this stream and every stream derived from it. Idempotent."""
        if self._disposed:
            return
        self._disposed = True
        self._callbacks.clear()
        for child in tuple(self._downstream):
            child.dispose()
        callbacks, self._on_dispose = self._on_dispose, []
        for fn in callbacks:
            fn()
