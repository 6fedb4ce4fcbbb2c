"""Exception hierarchy for the cache layer.

Adapters translate driver errors (redis, pymongo, httpx) into these types so
the service layer can decide between "treat as miss" and "treat as no-op"
without knowing which backend failed.
"""


class CacheError(Exception):
    """Base class for recoverable cache-layer failures."""


class InfrastructureUnavailable(CacheError):
    """A backing store could not be reached or rejected the operation."""


class ProviderError(CacheError):
    """An embedding or generation provider call failed."""
