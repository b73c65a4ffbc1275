"""Tests for ProviderContainer — caching, dependency tracking, invalidation."""

import asyncio

import pytest

from provgraph import (
    CircularDependencyError,
    Data,
    Error,
    EventStream,
    FutureProvider,
    Loading,
    MissingOverrideError,
    NodeStatus,
    Provider,
    ProviderContainer,
    ProviderDisposedError,
    RepositoryFailure,
    StateProvider,
)


class TestCaching:
    def test_computes_once_until_invalidated(self):
        calls = []
        p = Provider(lambda ref: calls.append(1) or len(calls))
        container = ProviderContainer()

        first = container.read(p)
        second = container.read(p)

        assert first is second
        assert len(calls) == 1

    def test_invalidate_recomputes_on_next_read(self):
        calls = []
        p = Provider(lambda ref: calls.append(1) or len(calls))
        container = ProviderContainer()
        container.read(p)

        container.invalidate(p)
        assert container.is_dirty(p)
        assert container.status(p) is NodeStatus.UNINITIALIZED
        assert container.read(p) == 2

    def test_invalidate_self_from_callback(self):
        resets = EventStream()
        calls = []

        def build(ref):
            ref.on_dispose(resets.subscribe(lambda _: ref.invalidate_self()))
            calls.append(1)
            return len(calls)

        p = Provider(build)
        container = ProviderContainer()
        assert container.read(p) == 1

        resets.emit(None)

        assert container.is_dirty(p)
        assert container.read(p) == 2
        assert resets.subscriber_count == 1

    def test_refresh(self):
        calls = []
        p = Provider(lambda ref: calls.append(1) or len(calls))
        container = ProviderContainer()
        container.read(p)
        assert container.refresh(p) == 2

    def test_containers_are_isolated(self):
        cell = StateProvider(lambda ref: 0)
        a, b = ProviderContainer(), ProviderContainer()
        a.set(cell, 5)
        assert a.read(cell) == 5
        assert b.read(cell) == 0

    def test_invalidate_unread_provider_is_noop(self):
        p = Provider(lambda ref: 1)
        container = ProviderContainer()
        container.invalidate(p)
        assert not container.exists(p)


class TestDependencies:
    def test_watch_records_edge(self):
        cell = StateProvider(lambda ref: 1)
        doubled = Provider(lambda ref: ref.watch(cell) * 2)
        container = ProviderContainer()

        assert container.read(doubled) == 2
        assert container.dependencies(doubled) == {cell}
        assert container.dependents(cell) == {doubled}

    def test_change_marks_dependents_dirty(self):
        cell = StateProvider(lambda ref: 1)
        doubled = Provider(lambda ref: ref.watch(cell) * 2)
        container = ProviderContainer()
        container.read(doubled)

        container.set(cell, 5)

        assert container.is_dirty(doubled)
        assert container.read(doubled) == 10

    def test_read_does_not_subscribe(self):
        cell = StateProvider(lambda ref: 1)
        snapshot = Provider(lambda ref: ref.read(cell))
        container = ProviderContainer()
        container.read(snapshot)

        container.set(cell, 2)

        assert not container.is_dirty(snapshot)
        assert container.read(snapshot) == 1

    def test_invalidation_is_transitive(self):
        cell = StateProvider(lambda ref: 1)
        a = Provider(lambda ref: ref.watch(cell))
        b = Provider(lambda ref: ref.watch(a))
        c = Provider(lambda ref: ref.watch(b))
        container = ProviderContainer()
        container.read(c)

        assert container.dependents(cell) == {a, b, c}
        container.invalidate(cell)
        assert all(container.is_dirty(p) for p in (a, b, c))

    def test_diamond_recomputes_each_node_once(self):
        counts = {"left": 0, "right": 0, "bottom": 0}
        top = StateProvider(lambda ref: 1)

        def _count(name, fn):
            def _compute(ref):
                counts[name] += 1
                return fn(ref)

            return _compute

        left = Provider(_count("left", lambda ref: ref.watch(top) + 1))
        right = Provider(_count("right", lambda ref: ref.watch(top) * 2))
        bottom = Provider(_count("bottom", lambda ref: ref.watch(left) + ref.watch(right)))
        container = ProviderContainer()
        assert container.read(bottom) == 4

        container.set(top, 10)

        assert container.read(bottom) == 31
        assert counts == {"left": 2, "right": 2, "bottom": 2}

    def test_dynamic_dependencies_are_rebuilt(self):
        use_a = StateProvider(lambda ref: True)
        a = StateProvider(lambda ref: "a")
        b = StateProvider(lambda ref: "b")
        pick = Provider(lambda ref: ref.watch(a) if ref.watch(use_a) else ref.watch(b))
        container = ProviderContainer()
        container.read(pick)

        container.set(use_a, False)
        assert container.read(pick) == "b"
        assert container.dependencies(pick) == {use_a, b}

        container.set(a, "changed")
        assert not container.is_dirty(pick)

    def test_watch_outside_computation_is_plain_read(self):
        cell = StateProvider(lambda ref: 3)
        container = ProviderContainer()
        assert container.watch(cell) == 3


class TestCycles:
    def test_self_dependency(self):
        loop = Provider(lambda ref: ref.watch(loop))
        container = ProviderContainer()
        with pytest.raises(CircularDependencyError):
            container.read(loop)

    def test_indirect_cycle(self):
        a = Provider(lambda ref: ref.watch(b))
        b = Provider(lambda ref: ref.watch(a))
        container = ProviderContainer()
        with pytest.raises(CircularDependencyError):
            container.read(a)

    def test_cycle_is_not_cached(self):
        a = Provider(lambda ref: ref.watch(a))
        container = ProviderContainer()
        with pytest.raises(CircularDependencyError):
            container.read(a)
        assert container.is_dirty(a)


class TestErrors:
    def test_error_is_cached_and_reraised(self):
        calls = []

        def _fail(ref):
            calls.append(1)
            raise ValueError("bad")

        p = Provider(_fail)
        container = ProviderContainer()

        for _ in range(2):
            with pytest.raises(ValueError, match="bad"):
                container.read(p)
        assert len(calls) == 1
        assert container.status(p) is NodeStatus.ERROR

    def test_missing_override(self):
        from provgraph.domain.repositories import dependency

        repository = dependency("repository")
        container = ProviderContainer()
        with pytest.raises(MissingOverrideError):
            container.read(repository)

    def test_set_on_non_state_provider(self):
        p = Provider(lambda ref: 1)
        container = ProviderContainer()
        with pytest.raises(TypeError):
            container.set(p, 2)


class TestOverrides:
    def test_override_with_value(self):
        repository = Provider(lambda ref: "real")
        container = ProviderContainer(overrides=[repository.override_with_value("fake")])
        assert container.read(repository) == "fake"

    def test_override_with_function(self):
        base = StateProvider(lambda ref: 2)
        derived = Provider(lambda ref: ref.watch(base) + 1)
        container = ProviderContainer(
            overrides=[derived.override_with(lambda ref: ref.watch(base) * 100)]
        )
        assert container.read(derived) == 200

    @pytest.mark.asyncio
    async def test_override_future_with_value(self):
        async def _fetch(ref):
            return "real"

        remote = FutureProvider(_fetch)
        container = ProviderContainer(overrides=[remote.override_with_value("fake")])
        assert await container.read_future(remote) == "fake"


class TestFutureProviders:
    @pytest.mark.asyncio
    async def test_loading_then_data(self):
        async def _fetch(ref):
            return 42

        p = FutureProvider(_fetch)
        container = ProviderContainer()

        assert container.read(p) == Loading()
        assert container.status(p) is NodeStatus.LOADING
        assert await container.read_future(p) == 42
        assert container.read(p) == Data(42)

    @pytest.mark.asyncio
    async def test_concurrent_reads_share_one_fetch(self):
        calls = []
        gate = asyncio.Event()

        async def _fetch(ref):
            calls.append(1)
            await gate.wait()
            return "done"

        p = FutureProvider(_fetch)
        container = ProviderContainer()

        waiters = [asyncio.ensure_future(container.read_future(p)) for _ in range(3)]
        await asyncio.sleep(0)
        gate.set()

        assert await asyncio.gather(*waiters) == ["done"] * 3
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_error_state(self):
        failure = RepositoryFailure("offline")

        async def _fetch(ref):
            raise failure

        p = FutureProvider(_fetch)
        container = ProviderContainer()

        with pytest.raises(RepositoryFailure):
            await container.read_future(p)
        state = container.read(p)
        assert isinstance(state, Error)
        assert state.error is failure
        assert state.value_or([]) == []

    @pytest.mark.asyncio
    async def test_superseded_result_is_discarded(self):
        calls = []

        async def _fetch(ref):
            calls.append(1)
            n = len(calls)
            await asyncio.sleep(0)
            return n

        p = FutureProvider(_fetch)
        container = ProviderContainer()

        container.read(p)
        container.invalidate(p)
        assert await container.read_future(p) == 2

        await asyncio.sleep(0.01)
        assert container.read(p) == Data(2)

    @pytest.mark.asyncio
    async def test_sync_dependent_sees_loading_then_data(self):
        async def _fetch(ref):
            return [3, 1, 2]

        numbers = FutureProvider(_fetch)
        ordered = Provider(lambda ref: sorted(ref.watch(numbers).value_or([])))
        container = ProviderContainer()

        assert container.read(ordered) == []
        await container.read_future(numbers)
        assert container.is_dirty(ordered)
        assert container.read(ordered) == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_watch_future_chains_async_providers(self):
        async def _user(ref):
            return "ada"

        user = FutureProvider(_user)

        async def _greeting(ref):
            name = await ref.watch_future(user)
            return f"hello {name}"

        greeting = FutureProvider(_greeting)
        container = ProviderContainer()

        assert await container.read_future(greeting) == "hello ada"
        assert container.dependents(user) == {greeting}

    @pytest.mark.asyncio
    async def test_dispose_cancels_in_flight_fetch(self):
        cancelled = []

        async def _fetch(ref):
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                cancelled.append(True)
                raise

        p = FutureProvider(_fetch)
        container = ProviderContainer()
        container.read(p)
        await asyncio.sleep(0)

        container.dispose(p)
        await asyncio.sleep(0)

        assert cancelled == [True]
        assert not container.exists(p)


class TestLifecycle:
    def test_on_dispose_runs_on_invalidate(self):
        cleaned = []

        def _build(ref):
            ref.on_dispose(lambda: cleaned.append(True))
            return 1

        p = Provider(_build)
        container = ProviderContainer()
        container.read(p)

        container.invalidate(p)
        assert cleaned == [True]

    def test_auto_dispose_when_unwatched(self):
        show = StateProvider(lambda ref: True)
        leaf = Provider(lambda ref: "leaf", auto_dispose=True)
        top = Provider(lambda ref: ref.watch(leaf) if ref.watch(show) else None)
        container = ProviderContainer()
        container.read(top)
        assert container.exists(leaf)

        container.set(show, False)
        container.read(top)

        assert not container.exists(leaf)

    def test_auto_dispose_after_listener_leaves(self):
        p = Provider(lambda ref: 1, auto_dispose=True)
        container = ProviderContainer()
        subscription = container.listen(p, lambda v: None)
        assert container.exists(p)

        subscription.dispose()
        assert not container.exists(p)
        assert container.status(p) is NodeStatus.DISPOSED

    def test_disposed_node_is_recreated_on_read(self):
        calls = []
        p = Provider(lambda ref: calls.append(1) or len(calls))
        container = ProviderContainer()
        container.read(p)

        container.dispose(p)
        assert container.status(p) is NodeStatus.DISPOSED
        assert container.read(p) == 2
        assert container.status(p) is NodeStatus.DATA

    def test_container_dispose(self):
        cleaned = []

        def _build(ref):
            ref.on_dispose(lambda: cleaned.append(True))
            return 1

        p = Provider(_build)
        container = ProviderContainer()
        container.read(p)

        container.dispose()

        assert cleaned == [True]
        assert container.disposed
        assert container.status(p) is NodeStatus.DISPOSED
        with pytest.raises(ProviderDisposedError):
            container.read(p)

    def test_unmounted_ref_runs_on_dispose_immediately(self):
        refs = []
        p = Provider(lambda ref: refs.append(ref) or len(refs))
        container = ProviderContainer()
        container.read(p)
        container.invalidate(p)

        stale = refs[0]
        cleaned = []
        stale.on_dispose(lambda: cleaned.append(True))

        assert not stale.mounted
        assert cleaned == [True]
