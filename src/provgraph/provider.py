"""Provider definitions — what to compute, not the computed value.

A provider object is an immutable recipe: a function plus a kind. The
container turns recipes into nodes on first read. Definitions are plain
module-level objects that can be shared by any number of containers.

Kinds:
- Provider: sync derived value, fn(ref) -> T.
- FutureProvider: async value, async fn(ref) -> T. Read as ProviderState.
- StateProvider: mutable cell, fn(ref) -> initial T. Written via container.set().
- StreamProvider: latest value of an EventStream, fn(ref) -> EventStream[T].
- NotifierProvider: state owned by a Notifier, factory() -> Notifier.

Each kind has a .family(fn) constructor for parameterized providers, where
fn takes (ref, param) and family(param) yields an independent member.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Generic, Hashable, TypeVar

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Override:
    """Replacement computation for a provider or a whole family."""

    target: Any
    fn: Callable


class ProviderBase(Generic[T]):
    """Common identity and override plumbing for every provider kind."""

    __slots__ = ("fn", "name", "auto_dispose", "origin", "argument")

    kind: ClassVar[str] = ""

    def __init__(
        self, fn: Callable, *, name: str | None = None, auto_dispose: bool = False
    ) -> None:
        self.fn = fn
        self.name = name or getattr(fn, "__name__", type(self).__name__)
        self.auto_dispose = auto_dispose
        self.origin: ProviderFamily | None = None
        self.argument: Any = None

    @classmethod
    def family(
        cls, fn: Callable, *, name: str | None = None, auto_dispose: bool = False
    ) -> ProviderFamily:
        """Parameterized provider: one independent node per argument.

        Usage:
            macros_by_machine_type = FutureProvider.family(
                lambda ref, machine_type: ref.read(macro_repository)
                .get_macros_by_machine_type_all(machine_type)
            )
            container.read(macros_by_machine_type("cnc"))
        """
        return ProviderFamily(cls, fn, name=name, auto_dispose=auto_dispose)

    @classmethod
    def _bind(cls, fn: Callable, argument: Any) -> Callable:
        return lambda ref: fn(ref, argument)

    @classmethod
    def _constant(cls, value: Any) -> Callable:
        return lambda ref: value

    def override_with(self, fn: Callable) -> Override:
        return Override(self, fn)

    def override_with_value(self, value: Any) -> Override:
        return Override(self, self._constant(value))

    def __eq__(self, other: object) -> bool:
        if self.origin is None or not isinstance(other, ProviderBase):
            return self is other
        return self.origin is other.origin and self.argument == other.argument

    def __hash__(self) -> int:
        if self.origin is None:
            return id(self)
        return hash((id(self.origin), self.argument))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name})"


class Provider(ProviderBase[T]):
    """Sync computed value. Cached until a watched dependency changes."""

    __slots__ = ()
    kind = "sync"


class FutureProvider(ProviderBase[T]):
    """Async computed value. Read returns Loading / Data / Error."""

    __slots__ = ()
    kind = "future"

    @classmethod
    def _constant(cls, value: Any) -> Callable:
        async def _value(ref):
            return value

        return _value


class StateProvider(ProviderBase[T]):
    """Mutable cell. fn(ref) supplies the initial value."""

    __slots__ = ()
    kind = "state"


class StreamProvider(ProviderBase[T]):
    """Latest value emitted by the EventStream returned from fn(ref)."""

    __slots__ = ()
    kind = "stream"


class NotifierProvider(ProviderBase[T]):
    """State owned by a Notifier. fn is a zero-argument factory."""

    __slots__ = ()
    kind = "notifier"

    @classmethod
    def _bind(cls, fn: Callable, argument: Any) -> Callable:
        return lambda: fn(argument)

    @classmethod
    def _constant(cls, value: Any) -> Callable:
        return lambda: value


class ProviderFamily(Generic[T]):
    """Factory of parameterized providers sharing one computation."""

    __slots__ = ("kind_cls", "fn", "name", "auto_dispose")

    def __init__(
        self,
        kind_cls: type[ProviderBase],
        fn: Callable,
        *,
        name: str | None = None,
        auto_dispose: bool = False,
    ) -> None:
        self.kind_cls = kind_cls
        self.fn = fn
        self.name = name or getattr(fn, "__name__", kind_cls.__name__)
        self.auto_dispose = auto_dispose

    def __call__(self, argument: Hashable) -> ProviderBase[T]:
        hash(argument)  # unhashable arguments cannot key a cache entry
        member = self.kind_cls(
            self.kind_cls._bind(self.fn, argument),
            name=f"{self.name}({argument!r})",
            auto_dispose=self.auto_dispose,
        )
        member.origin = self
        member.argument = argument
        return member

    def bind(self, fn: Callable, argument: Any) -> Callable:
        """Bind a replacement family computation to one argument."""
        return self.kind_cls._bind(fn, argument)

    def override_with(self, fn: Callable) -> Override:
        return Override(self, fn)

    def __repr__(self) -> str:
        return f"{self.kind_cls.__name__}.family({self.name})"
