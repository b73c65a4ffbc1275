"""Notifier — a command object that owns its provider's state.

NotifierProvider(factory) creates one Notifier per node. build(ref) returns
the initial state; assigning self.state later writes through the container,
notifying listeners and dirtying dependents like a StateProvider write.

When the node is rebuilt (a watched dependency changed), invalidated or
disposed, the notifier is unmounted and dispose() runs. A fresh instance
serves the next build.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Generic, TypeVar

from provgraph._errors import ProviderDisposedError
from provgraph.state import Data

if TYPE_CHECKING:
    from provgraph._node import Node
    from provgraph.container import ProviderContainer
    from provgraph.ref import Ref

T = TypeVar("T")


class Notifier(Generic[T]):
    """Base class for state-holding command objects.

    Usage:
        class Counter(Notifier[int]):
            def build(self, ref):
                return 0

            def increment(self):
                self.state = self.state + 1

        counter = NotifierProvider(Counter)
        container.notifier(counter).increment()
        container.read(counter)  # 1
    """

    def __init__(self) -> None:
        self._container: ProviderContainer | None = None
        self._node: Node | None = None

    def build(self, ref: Ref) -> T:
        raise NotImplementedError

    def _attach(self, container: ProviderContainer, node: Node) -> None:
        self._container = container
        self._node = node

    def _unmount(self) -> None:
        self._node = None
        self.dispose()

    @property
    def container(self) -> ProviderContainer:
        if self._container is None:
            raise ProviderDisposedError(f"{type(self).__name__} was never mounted")
        return self._container

    @property
    def mounted(self) -> bool:
        return self._node is not None and not self._node.disposed

    @property
    def state(self) -> T:
        if self._node is None or not isinstance(self._node.state, Data):
            return None
        return self._node.state.value

    @state.setter
    def state(self, value: T) -> None:
        if not self.mounted:
            raise ProviderDisposedError(f"{type(self).__name__} is no longer mounted")
        self.container._write(self._node, value)

    def dispose(self) -> None:
        """Release resources held by the notifier. Override as needed."""

    def __repr__(self) -> str:
        state = "mounted" if self.mounted else "unmounted"
        return f"{type(self).__name__}({state})"
