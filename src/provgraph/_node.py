"""Node storage — the per-provider data a container holds.

A Node stores everything about one provider instance: its cached state,
dirty flag, edges, cleanups and in-flight work. Behavior lives in the
container; nodes are plain records so the graph can be inspected directly.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Callable

from provgraph.state import NodeStatus, ProviderState

if TYPE_CHECKING:
    from provgraph.notifier import Notifier
    from provgraph.provider import ProviderBase
    from provgraph.subscription import ProviderSubscription


class Node:
    """One provider instance inside a container."""

    __slots__ = (
        "provider",
        "fn",
        "state",
        "dirty",
        "dependencies",
        "dependents",
        "subscriptions",
        "cleanups",
        "task",
        "generation",
        "computing",
        "disposed",
        "notifier",
    )

    def __init__(self, provider: ProviderBase, fn: Callable) -> None:
        self.provider = provider
        self.fn = fn
        # None means uninitialized: nothing computed yet, or invalidated.
        self.state: ProviderState | None = None
        self.dirty = True
        self.dependencies: set[Node] = set()  # upstream nodes read via watch
        self.dependents: set[Node] = set()  # downstream nodes that watch us
        self.subscriptions: list[ProviderSubscription] = []
        self.cleanups: list[Callable[[], None]] = []
        # Future resolving to the ProviderState of the current generation.
        self.task: asyncio.Future | None = None
        self.generation = 0
        self.computing = False
        self.disposed = False
        self.notifier: Notifier | None = None

    @property
    def kind(self) -> str:
        return self.provider.kind

    @property
    def status(self) -> NodeStatus:
        if self.disposed:
            return NodeStatus.DISPOSED
        if self.state is None:
            return NodeStatus.UNINITIALIZED
        return self.state.status

    @property
    def value(self) -> Any:
        return self.state.value_or(None) if self.state is not None else None

    def __repr__(self) -> str:
        flag = "dirty" if self.dirty else "fresh"
        return f"Node({self.provider.name}, {self.status.value}, {flag})"
