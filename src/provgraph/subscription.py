"""Subscriptions — external listeners on a provider.

A subscription re-reads its node when notified and calls the callback only
when the value actually changed. Subscriptions are what make a node eager:
a listened node is rebuilt right after invalidation instead of on the next
read.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from provgraph._node import Node
    from provgraph.container import ProviderContainer

logger = logging.getLogger("provgraph.subscription")

_FAILED = object()


class ProviderSubscription:
    """Handle returned by container.listen(). Call dispose() to stop."""

    __slots__ = (
        "_container",
        "_node",
        "_callback",
        "_on_error",
        "_last_value",
        "_initialized",
        "_disposed",
    )

    def __init__(
        self,
        container: ProviderContainer,
        node: Node,
        callback: Callable[[Any], None],
        on_error: Callable[[Exception], None] | None = None,
    ) -> None:
        self._container = container
        self._node = node
        self._callback = callback
        self._on_error = on_error
        self._last_value: Any = None
        self._initialized = False
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def read(self) -> Any:
        """Current value of the listened provider."""
        return self._container._read_node(self._node)

    def _prime(self, fire_immediately: bool) -> None:
        """Read once to establish the baseline, optionally firing."""
        if fire_immediately:
            self._run()
            return
        value = self._safe_read()
        if value is not _FAILED:
            self._last_value = value
            self._initialized = True

    def _safe_read(self) -> Any:
        try:
            return self.read()
        except Exception as exc:
            if self._on_error is None:
                logger.exception("Listener of %r failed to read", self._node.provider)
            else:
                self._on_error(exc)
            return _FAILED

    def _run(self) -> None:
        if self._disposed:
            return
        value = self._safe_read()
        if value is _FAILED:
            return
        if not self._initialized or (value is not self._last_value and value != self._last_value):
            self._last_value = value
            self._initialized = True
            self._callback(value)

    def dispose(self) -> None:
        """Stop listening. Idempotent."""
        if self._disposed:
            return
        self._disposed = True
        try:
            self._node.subscriptions.remove(self)
        except ValueError:
            pass  # node already disposed
        self._container._release(self._node)

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "active"
        return f"ProviderSubscription({self._node.provider.name}, {state})"

