"""Actions and transactions — batched invalidation.

Wrapping writes and invalidations in an @action or `with transaction()`
defers listener notification until the outermost scope exits, so listeners
never observe a half-applied mutation (e.g. the sort cell updated but the
filter cell not yet).

Batching is per container. Only synchronous code may run inside a batch:
holding one open across an await would stall every other task's listeners.
"""

from __future__ import annotations

import functools
import inspect
from contextlib import contextmanager
from typing import TYPE_CHECKING, Callable, Iterator, ParamSpec, TypeVar

if TYPE_CHECKING:
    from provgraph.container import ProviderContainer

P = ParamSpec("P")
R = TypeVar("R")


@contextmanager
def transaction(container: ProviderContainer) -> Iterator[None]:
    """Context manager batching writes on container.

    Usage:
        with transaction(container):
            container.set(album_sort, AlbumSortOption.YEAR_ASC)
            container.set(album_filters, None)
            # listeners fire here, after both writes
    """
    container._begin_batch()
    try:
        yield
    finally:
        container._end_batch()


def action(fn: Callable[P, R]) -> Callable[P, R]:
    """Decorator: batch a method's writes on self.container.

    Usage:
        class LibraryFilterNotifier(Notifier[LibraryFilterState]):
            @action
            def clear_filters(self):
                self.state = LibraryFilterState(sort_option=self.state.sort_option)
                self._sync()
    """
    if inspect.iscoroutinefunction(fn):
        raise TypeError(f"action() wraps synchronous callables only, got {fn.__name__}")

    @functools.wraps(fn)
    def wrapper(self, *args: P.args, **kwargs: P.kwargs) -> R:
        with transaction(self.container):
            return fn(self, *args, **kwargs)

    return wrapper
