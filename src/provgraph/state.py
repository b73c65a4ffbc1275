"""Provider state — the value a node currently holds.

Async providers (FutureProvider, StreamProvider) expose their state as one of
three variants. Sync providers only ever hold Data or Error.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

T = TypeVar("T")
R = TypeVar("R")


class NodeStatus(enum.Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    DATA = "data"
    ERROR = "error"
    DISPOSED = "disposed"


class ProviderState(Generic[T]):
    """Base for Loading / Data / Error."""

    __slots__ = ()

    @property
    def is_loading(self) -> bool:
        return False

    @property
    def has_value(self) -> bool:
        return False

    @property
    def has_error(self) -> bool:
        return False

    @property
    def status(self) -> NodeStatus:
        raise NotImplementedError

    def value_or(self, default: T) -> T:
        """The value when this is Data, otherwise default."""
        return default

    def when(
        self,
        *,
        data: Callable[[T], R],
        loading: Callable[[], R],
        error: Callable[[BaseException], R],
    ) -> R:
        """Dispatch on the variant.

        Usage:
            label = state.when(
                data=lambda albums: f"{len(albums)} albums",
                loading=lambda: "Loading...",
                error=lambda e: f"Failed: {e}",
            )
        """
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class Loading(ProviderState[Any]):
    @property
    def is_loading(self) -> bool:
        return True

    @property
    def status(self) -> NodeStatus:
        return NodeStatus.LOADING

    def when(self, *, data, loading, error):
        return loading()


@dataclass(frozen=True, slots=True)
class Data(ProviderState[T]):
    value: T

    @property
    def has_value(self) -> bool:
        return True

    @property
    def status(self) -> NodeStatus:
        return NodeStatus.DATA

    def value_or(self, default: T) -> T:
        return self.value

    def when(self, *, data, loading, error):
        return data(self.value)


@dataclass(frozen=True, slots=True)
class Error(ProviderState[Any]):
    error: BaseException

    @property
    def has_error(self) -> bool:
        return True

    @property
    def status(self) -> NodeStatus:
        return NodeStatus.ERROR

    def when(self, *, data, loading, error):
        return error(self.error)
