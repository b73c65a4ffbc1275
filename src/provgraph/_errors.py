"""provgraph error hierarchy.

All provgraph-specific errors inherit from ProvgraphError for easy catching.
"""


class ProvgraphError(Exception):
    """Base error for all provgraph operations."""


class CircularDependencyError(ProvgraphError):
    """A provider (transitively) depends on itself."""


class ProviderDisposedError(ProvgraphError):
    """A read went through a container that has already been disposed."""


class MissingOverrideError(ProvgraphError):
    """An injected dependency (repository, service) was never overridden."""


class RepositoryFailure(ProvgraphError):
    """Network or storage failure raised by a repository."""


class ValidationFailure(ProvgraphError):
    """A payload was rejected before it reached the repository."""
