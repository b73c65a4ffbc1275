"""ProviderContainer — the context object that owns a dependency graph.

Every read goes through a container. The container creates nodes lazily,
records edges from the providers a computation watches, and invalidates
dependents transitively. There is no process-wide registry: two containers
never share state, which is what makes per-test containers with overridden
repositories possible.

Recompute policy: every node is lazy. Invalidation only marks nodes dirty;
the next read rebuilds them. Nodes with a listen() subscription are re-read
when the outermost batch closes, which is what makes them look eager.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import deque
from typing import Any, Callable, Iterable

from provgraph import _tracking
from provgraph._errors import CircularDependencyError, ProviderDisposedError
from provgraph._node import Node
from provgraph.action import transaction
from provgraph.provider import Override, ProviderBase, ProviderFamily
from provgraph.ref import Ref
from provgraph.state import Data, Error, Loading, NodeStatus, ProviderState
from provgraph.subscription import ProviderSubscription

logger = logging.getLogger("provgraph.container")

_UNSET = object()


class ProviderContainer:
    """Owns the nodes, edges and pending notifications of one scope.

    Usage:
        container = ProviderContainer(overrides=[
            macro_repository.override_with_value(FakeMacroRepository()),
        ])
        state = container.read(all_macros)        # Loading(), fetch started
        macros = await container.read_future(all_macros)
        container.dispose()
    """

    def __init__(self, *, overrides: Iterable[Override] = ()) -> None:
        self._nodes: dict[ProviderBase, Node] = {}
        self._overrides: dict[Any, Callable] = {o.target: o.fn for o in overrides}
        self._batch_depth = 0
        self._pending: list[ProviderSubscription] = []
        self._building = 0
        self._dispose_candidates: set[Node] = set()
        self._disposed = False
        # Providers whose node was disposed and not yet recreated.
        self._disposed_providers: set[ProviderBase] = set()

    # ─── Public read API ────────────────────────────────────────────────

    def read(self, provider: ProviderBase) -> Any:
        """Current value of provider, computing it when missing or dirty.

        Sync, state and notifier providers return their value and re-raise a
        cached computation error. Future and stream providers return their
        ProviderState; a cold async provider starts computing and returns
        Loading().
        """
        return self._read_node(self._node_for(provider))

    def watch(self, provider: ProviderBase) -> Any:
        """read() that also subscribes the currently computing node.

        Outside of a computation this is a plain read.
        """
        listener = _tracking.get_current_node()
        if listener is None:
            return self.read(provider)
        return self._watch_from(listener, provider)

    async def read_future(self, provider: ProviderBase) -> Any:
        """Await the value of provider.

        Concurrent callers share the single in-flight computation. Raises the
        computation's error instead of returning an Error state.
        """
        return await self._await_node(self._node_for(provider))

    def notifier(self, provider: ProviderBase) -> Any:
        """The Notifier instance behind a NotifierProvider."""
        node = self._node_for(provider)
        if node.kind != "notifier":
            raise TypeError(f"{provider!r} is not a NotifierProvider")
        self._ensure_fresh(node)
        if isinstance(node.state, Error):
            raise node.state.error
        return node.notifier

    # ─── Public write API ───────────────────────────────────────────────

    def set(self, provider: ProviderBase, value: Any) -> None:
        """Write a StateProvider cell. Equal values are ignored."""
        node = self._node_for(provider)
        if node.kind != "state":
            raise TypeError(f"{provider!r} is not a StateProvider")
        self._ensure_fresh(node)
        self._write(node, value)

    def update(self, provider: ProviderBase, fn: Callable[[Any], Any]) -> None:
        """Write fn(current) into a StateProvider cell."""
        self.set(provider, fn(self.read(provider)))

    def invalidate(self, target: ProviderBase | ProviderFamily) -> None:
        """Drop cached state and mark every transitive dependent dirty.

        target may be a provider, a family member, or a family object (every
        member is invalidated). Providers never read are ignored.
        """
        with self.batch():
            for node in self._nodes_for(target):
                self._invalidate_node(node)

    def refresh(self, provider: ProviderBase) -> Any:
        """Invalidate provider and read it again."""
        self.invalidate(provider)
        return self.read(provider)

    def dispose(self, target: ProviderBase | ProviderFamily | None = None) -> None:
        """Tear down one node, a family, or (with no target) the whole container."""
        if target is None:
            if self._disposed:
                return
            logger.debug("Disposing container with %d nodes", len(self._nodes))
            self._disposed = True
            for node in list(self._nodes.values()):
                self._dispose_node(node)
            self._pending.clear()
            self._dispose_candidates.clear()
            return
        with self.batch():
            for node in self._nodes_for(target):
                self._dispose_node(node)
        self._collect_unused()

    def listen(
        self,
        provider: ProviderBase,
        callback: Callable[[Any], None],
        *,
        fire_immediately: bool = False,
        on_error: Callable[[Exception], None] | None = None,
    ) -> ProviderSubscription:
        """Call callback with the new value each time provider's value changes.

        A listened node is re-read as soon as it is invalidated, so async
        providers report Loading() then Data/Error.
        """
        node = self._node_for(provider)
        subscription = ProviderSubscription(self, node, callback, on_error)
        node.subscriptions.append(subscription)
        self._dispose_candidates.discard(node)
        subscription._prime(fire_immediately)
        return subscription

    def batch(self):
        """Context manager deferring listener notification until it exits."""
        return transaction(self)

    # ─── Introspection ──────────────────────────────────────────────────

    def status(self, provider: ProviderBase) -> NodeStatus:
        if self._disposed:
            return NodeStatus.DISPOSED
        node = self._nodes.get(provider)
        if node is not None:
            return node.status
        if provider in self._disposed_providers:
            return NodeStatus.DISPOSED
        return NodeStatus.UNINITIALIZED

    def is_dirty(self, provider: ProviderBase) -> bool:
        """True when the next read will run provider's computation."""
        node = self._nodes.get(provider)
        return node is None or node.dirty

    def exists(self, provider: ProviderBase) -> bool:
        return provider in self._nodes

    def dependencies(self, provider: ProviderBase) -> set[ProviderBase]:
        """Providers watched by provider's last computation."""
        node = self._nodes.get(provider)
        if node is None:
            return set()
        return {dep.provider for dep in node.dependencies}

    def dependents(self, provider: ProviderBase) -> set[ProviderBase]:
        """Every provider that transitively watches provider."""
        node = self._nodes.get(provider)
        if node is None:
            return set()
        return {dep.provider for dep in self._walk_dependents(node)}

    @property
    def disposed(self) -> bool:
        return self._disposed

    # ─── Batching ───────────────────────────────────────────────────────

    def _begin_batch(self) -> None:
        self._batch_depth += 1

    def _end_batch(self) -> None:
        self._batch_depth -= 1
        if self._batch_depth == 0:
            self._flush_pending()

    def _enqueue(self, subscriptions: Iterable[ProviderSubscription]) -> None:
        for subscription in subscriptions:
            if subscription not in self._pending:
                self._pending.append(subscription)

    def _flush_pending(self) -> None:
        while self._pending:
            # Snapshot and clear: listeners may invalidate during the run.
            pending = list(self._pending)
            self._pending.clear()
            for subscription in pending:
                subscription._run()

    # ─── Nodes ──────────────────────────────────────────────────────────

    def _check_alive(self) -> None:
        if self._disposed:
            raise ProviderDisposedError("container has been disposed")

    def _resolve_fn(self, provider: ProviderBase) -> Callable:
        fn = self._overrides.get(provider)
        if fn is not None:
            return fn
        if provider.origin is not None:
            family_fn = self._overrides.get(provider.origin)
            if family_fn is not None:
                return provider.origin.bind(family_fn, provider.argument)
        return provider.fn

    def _node_for(self, provider: ProviderBase) -> Node:
        self._check_alive()
        node = self._nodes.get(provider)
        if node is None:
            node = Node(provider, self._resolve_fn(provider))
            self._nodes[provider] = node
            self._disposed_providers.discard(provider)
        return node

    def _nodes_for(self, target: ProviderBase | ProviderFamily) -> list[Node]:
        if isinstance(target, ProviderFamily):
            return [n for p, n in self._nodes.items() if p.origin is target]
        node = self._nodes.get(target)
        return [node] if node is not None else []

    def _read_node(self, node: Node) -> Any:
        self._ensure_fresh(node)
        return self._present(node)

    def _present(self, node: Node) -> Any:
        if node.kind in ("future", "stream"):
            return node.state
        if isinstance(node.state, Error):
            raise node.state.error
        return node.value

    def _watch_from(self, listener: Node, provider: ProviderBase) -> Any:
        node = self._node_for(provider)
        self._add_edge(listener, node)
        return self._read_node(node)

    async def _watch_future_from(self, listener: Node, provider: ProviderBase) -> Any:
        node = self._node_for(provider)
        self._add_edge(listener, node)
        return await self._await_node(node)

    async def _await_node(self, node: Node) -> Any:
        while True:
            self._ensure_fresh(node)
            if node.task is None:
                return self._present(node)
            # Shielded so a cancelled caller never cancels the shared computation.
            state: ProviderState | None = await asyncio.shield(node.task)
            if state is None:
                # A stream was rebuilt before its first value; wait on the new one.
                continue
            if node.kind == "stream" and node.state is not None:
                # first only holds the earliest value of this generation.
                state = node.state
            if isinstance(state, Error):
                raise state.error
            return state.value

    # ─── Edges ──────────────────────────────────────────────────────────

    def _add_edge(self, dependent: Node, dependency: Node) -> None:
        if dependency in dependent.dependencies:
            return
        if dependency is dependent or self._reaches(dependency, dependent):
            raise CircularDependencyError(
                f"{dependent.provider!r} depends on itself through {dependency.provider!r}"
            )
        dependent.dependencies.add(dependency)
        dependency.dependents.add(dependent)
        self._dispose_candidates.discard(dependency)

    @staticmethod
    def _reaches(start: Node, target: Node) -> bool:
        """True when start (transitively) depends on target."""
        stack = [start]
        seen: set[Node] = set()
        while stack:
            node = stack.pop()
            if node is target:
                return True
            if node in seen:
                continue
            seen.add(node)
            stack.extend(node.dependencies)
        return False

    def _detach(self, node: Node) -> list[Node]:
        """Drop node's upstream edges. Returns auto-dispose nodes left unused."""
        released = []
        for dep in node.dependencies:
            dep.dependents.discard(node)
            if dep.provider.auto_dispose and not dep.dependents and not dep.subscriptions:
                released.append(dep)
        node.dependencies = set()
        return released

    @staticmethod
    def _walk_dependents(node: Node) -> list[Node]:
        """Breadth-first transitive dependents, each visited once."""
        order: list[Node] = []
        seen: set[Node] = set()
        queue = deque(node.dependents)
        while queue:
            dep = queue.popleft()
            if dep in seen:
                continue
            seen.add(dep)
            order.append(dep)
            queue.extend(dep.dependents)
        return order

    def _mark_dependents_dirty(self, node: Node) -> None:
        for dep in self._walk_dependents(node):
            dep.dirty = True
            self._supersede_first(dep)
            self._enqueue(dep.subscriptions)

    # ─── Building ───────────────────────────────────────────────────────

    def _ensure_fresh(self, node: Node) -> None:
        if node.disposed:
            raise ProviderDisposedError(f"{node.provider!r} has been disposed")
        if not node.dirty:
            return
        if node.computing:
            raise CircularDependencyError(f"{node.provider!r} read itself while computing")
        self._build(node)

    def _teardown(self, node: Node) -> None:
        """Run cleanups registered by the last computation."""
        cleanups, node.cleanups = node.cleanups, []
        for fn in cleanups:
            fn()
        if node.notifier is not None:
            notifier, node.notifier = node.notifier, None
            notifier._unmount()

    def _build(self, node: Node) -> None:
        # Async kinds need a running loop; fail before touching the node.
        loop = asyncio.get_running_loop() if node.kind in ("future", "stream") else None
        self._teardown(node)
        released = self._detach(node)
        node.generation += 1
        node.dirty = False
        ref = Ref(self, node, node.generation)
        logger.debug("Building %r (generation %d)", node.provider, node.generation)

        if node.kind == "future":
            self._build_future(loop, node, ref, released)
            return
        if node.kind == "stream":
            self._dispose_candidates.update(released)
            self._build_stream(loop, node, ref)
            return

        self._dispose_candidates.update(released)
        node.computing = True
        self._building += 1
        try:
            with _tracking.tracking(node):
                if node.kind == "notifier":
                    notifier = node.fn()
                    notifier._attach(self, node)
                    node.notifier = notifier
                    value = notifier.build(ref)
                else:
                    value = node.fn(ref)
        except CircularDependencyError:
            node.dirty = True
            raise
        except Exception as exc:
            node.state = Error(exc)
        else:
            node.state = Data(value)
        finally:
            node.computing = False
            self._building -= 1
        self._collect_unused()

    def _build_future(
        self, loop: asyncio.AbstractEventLoop, node: Node, ref: Ref, released: list[Node]
    ) -> None:
        node.state = Loading()
        # The task copies the current context, so it keeps node as listener.
        with _tracking.tracking(node):
            node.task = loop.create_task(self._resolve(node, ref, node.generation, released))

    async def _resolve(
        self, node: Node, ref: Ref, generation: int, released: list[Node]
    ) -> ProviderState:
        try:
            result = node.fn(ref)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            state: ProviderState = Error(exc)
        else:
            state = Data(result)
        self._dispose_candidates.update(released)
        if node.disposed or node.generation != generation:
            # Superseded by an invalidation; the result never reaches the cache.
            return state
        node.state = state
        self._changed(node)
        self._collect_unused()
        return state

    def _build_stream(self, loop: asyncio.AbstractEventLoop, node: Node, ref: Ref) -> None:
        self._supersede_first(node)
        first: asyncio.Future = loop.create_future()
        node.task = first
        node.state = Loading()
        generation = node.generation

        def _on_value(value: Any) -> None:
            if node.disposed or node.generation != generation:
                return
            node.state = Data(value)
            if not first.done():
                first.set_result(node.state)
            self._changed(node)

        try:
            with _tracking.tracking(node):
                stream = node.fn(ref)
        except Exception as exc:
            node.state = Error(exc)
            first.set_result(node.state)
            return
        ref.on_dispose(stream.subscribe(_on_value))

    @staticmethod
    def _supersede_first(node: Node) -> None:
        """Release waiters on a stream's first value from a replaced generation."""
        first = node.task
        if node.kind == "stream" and first is not None and not first.done():
            first.set_result(None)

    def _changed(self, node: Node) -> None:
        """node holds a new value: notify its listeners and dirty its dependents."""
        with self.batch():
            self._enqueue(node.subscriptions)
            self._mark_dependents_dirty(node)

    def _write(self, node: Node, value: Any) -> None:
        old = node.state.value if isinstance(node.state, Data) else _UNSET
        if old is value or (old is not _UNSET and old == value):
            return
        node.state = Data(value)
        self._changed(node)

    # ─── Invalidation & disposal ────────────────────────────────────────

    def _invalidate_node(self, node: Node) -> None:
        logger.debug("Invalidating %r", node.provider)
        self._teardown(node)
        node.generation += 1
        node.state = None
        node.dirty = True
        self._supersede_first(node)
        node.task = None
        self._enqueue(node.subscriptions)
        self._mark_dependents_dirty(node)

    def _dispose_node(self, node: Node) -> None:
        if node.disposed:
            return
        logger.debug("Disposing %r", node.provider)
        self._teardown(node)
        if node.task is not None and not node.task.done():
            node.task.cancel()
        node.task = None
        self._dispose_candidates.update(self._detach(node))
        for subscription in node.subscriptions:
            subscription._disposed = True
        node.subscriptions.clear()
        self._mark_dependents_dirty(node)
        for dep in node.dependents:
            dep.dependencies.discard(node)
        node.dependents.clear()
        node.disposed = True
        node.state = None
        if self._nodes.get(node.provider) is node:
            del self._nodes[node.provider]
            self._disposed_providers.add(node.provider)

    def _release(self, node: Node) -> None:
        """A subscription on node went away."""
        if node.provider.auto_dispose and not node.dependents and not node.subscriptions:
            self._dispose_candidates.add(node)
            self._collect_unused()

    def _collect_unused(self) -> None:
        """Dispose auto_dispose nodes nobody watches or listens to anymore."""
        if self._building:
            return
        while self._dispose_candidates:
            node = self._dispose_candidates.pop()
            if node.disposed or node.dependents or node.subscriptions:
                continue
            self._dispose_node(node)

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else f"{len(self._nodes)} nodes"
        return f"ProviderContainer({state})"
