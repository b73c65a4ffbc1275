"""Ref — the handle every provider computation receives.

A Ref is bound to one node and one generation of that node. Once the node
is rebuilt, invalidated or disposed, the ref is unmounted: watch() degrades
to read() and on_dispose() runs its callback straight away, so work from a
superseded computation never leaks edges or resources into the graph.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable

from provgraph.timer import PeriodicTimer

if TYPE_CHECKING:
    from provgraph._node import Node
    from provgraph.container import ProviderContainer
    from provgraph.provider import ProviderBase


class Ref:
    __slots__ = ("_container", "_node", "_generation")

    def __init__(self, container: ProviderContainer, node: Node, generation: int) -> None:
        self._container = container
        self._node = node
        self._generation = generation

    @property
    def container(self) -> ProviderContainer:
        return self._container

    @property
    def provider(self) -> ProviderBase:
        return self._node.provider

    @property
    def mounted(self) -> bool:
        return not self._node.disposed and self._node.generation == self._generation

    def watch(self, provider: ProviderBase) -> Any:
        """Read provider and rebuild this node whenever it changes."""
        if not self.mounted:
            return self._container.read(provider)
        return self._container._watch_from(self._node, provider)

    def read(self, provider: ProviderBase) -> Any:
        """Read provider once, without subscribing."""
        return self._container.read(provider)

    async def watch_future(self, provider: ProviderBase) -> Any:
        """Await an async provider's value and subscribe to it."""
        if not self.mounted:
            return await self._container.read_future(provider)
        return await self._container._watch_future_from(self._node, provider)

    def invalidate(self, target: Any) -> None:
        self._container.invalidate(target)

    def invalidate_self(self) -> None:
        self._container.invalidate(self._node.provider)

    def on_dispose(self, fn: Callable[[], None]) -> None:
        """Run fn when this computation is invalidated, rebuilt or disposed."""
        if self.mounted:
            self._node.cleanups.append(fn)
        else:
            fn()

    def periodic(self, interval: float, callback: Callable[[], None]) -> PeriodicTimer:
        """Start a periodic wakeup owned by this computation."""
        timer = PeriodicTimer(interval, callback)
        timer.start()
        self.on_dispose(timer.dispose)
        return timer

    def __repr__(self) -> str:
        state = "mounted" if self.mounted else "unmounted"
        return f"Ref({self._node.provider.name}, {state})"
