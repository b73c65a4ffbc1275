"""provgraph: reactive provider graph with dependent invalidation."""

from importlib.metadata import version as _version

__version__ = _version("provgraph")

from provgraph._errors import (
    CircularDependencyError,
    MissingOverrideError,
    ProvgraphError,
    ProviderDisposedError,
    RepositoryFailure,
    ValidationFailure,
)
from provgraph.state import Data, Error, Loading, NodeStatus, ProviderState
from provgraph.provider import (
    FutureProvider,
    NotifierProvider,
    Override,
    Provider,
    ProviderFamily,
    StateProvider,
    StreamProvider,
)
from provgraph.container import ProviderContainer
from provgraph.ref import Ref
from provgraph.notifier import Notifier
from provgraph.subscription import ProviderSubscription
from provgraph.action import action, transaction
from provgraph.timer import PeriodicTimer, periodic
from provgraph.stream import EventStream
from provgraph.config import AppConfig, config_provider
# provgraph.textual is opt-in and not imported here.

__all__ = [
    "ProviderContainer",
    "Provider",
    "FutureProvider",
    "StateProvider",
    "StreamProvider",
    "NotifierProvider",
    "ProviderFamily",
    "Override",
    "Ref",
    "Notifier",
    "ProviderSubscription",
    "ProviderState",
    "Loading",
    "Data",
    "Error",
    "NodeStatus",
    "action",
    "transaction",
    "PeriodicTimer",
    "periodic",
    "EventStream",
    "AppConfig",
    "config_provider",
    "ProvgraphError",
    "CircularDependencyError",
    "ProviderDisposedError",
    "MissingOverrideError",
    "RepositoryFailure",
    "ValidationFailure",
]
