"""Dependency tracking scope.

Uses contextvars to record which node is currently computing. Every
container.watch() made while a node is on the scope registers an edge from
that node to the provider being read, building the dependency graph
automatically.

Async computations run as asyncio tasks created while their node is on the
scope, so each task keeps its own listener across await points.
"""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from provgraph._node import Node

# The node whose computation is currently executing.
current_node: contextvars.ContextVar[Node | None] = contextvars.ContextVar(
    "current_node", default=None
)


@contextmanager
def tracking(node: Node) -> Iterator[None]:
    """Push node as the current listener for the duration of the block."""
    token = current_node.set(node)
    try:
        yield
    finally:
        current_node.reset(token)


def get_current_node() -> Node | None:
    return current_node.get()
