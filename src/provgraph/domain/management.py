"""Base class for mutation commands.

A command performs one repository call and then invalidates an explicit
list of providers. The list is spelled out per command instead of being
derived from the graph, so a reviewer can see what a mutation refreshes;
tests compare it against container.dependents() to catch omissions.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Iterable, TypeVar, Union

from provgraph.action import transaction
from provgraph.container import ProviderContainer
from provgraph.provider import ProviderBase, ProviderFamily

R = TypeVar("R")

Target = Union[ProviderBase, ProviderFamily]
Invalidates = Union[Iterable[Target], Callable[[Any], Iterable[Target]]]


class Management:
    """Runs repository mutations and invalidates what they made stale.

    On failure nothing is invalidated and the exception propagates as the
    repository raised it, so the same call can simply be retried.
    """

    logger = logging.getLogger("provgraph.domain")

    def __init__(self, container: ProviderContainer) -> None:
        self.container = container

    async def _mutate(
        self,
        description: str,
        operation: Awaitable[R],
        invalidates: Invalidates = (),
    ) -> R:
        try:
            result = await operation
        except Exception:
            self.logger.exception("Failed to %s", description)
            raise
        targets = invalidates(result) if callable(invalidates) else invalidates
        self._invalidate(targets)
        self.logger.info("%s succeeded", description.capitalize())
        return result

    def _invalidate(self, targets: Iterable[Target]) -> None:
        with transaction(self.container):
            for target in targets:
                self.container.invalidate(target)
