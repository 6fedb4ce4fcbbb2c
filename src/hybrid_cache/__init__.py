"""Hybrid Answer Cache - reuse previously computed answers.

Lookups try, in order, an exact fingerprint match on the durable tier
(MongoDB), a lexical near-duplicate on the hot tier (Redis) and a paged
semantic scan over stored embeddings.

Layers:
    - protocols: Interface contracts (DurableStore, HotStore, EmbeddingProvider, AnswerGenerator)
    - repositories: Data access implementations
    - services: Business logic
    - handlers: HTTP endpoint handlers
    - dto: Data transfer objects (API contracts)
    - entities: Domain models (internal)

Usage:
    ```python
    from hybrid_cache.services import CacheService

    cache = CacheService.from_settings()
    await cache.connect()
    answer = await cache.get_cached_result("What is the capital of France?")
    ```

For HTTP API:
    ```python
    from hybrid_cache.api.app import app
    ```
"""

from hybrid_cache.config import get_mongo_client, get_redis_client, settings
from hybrid_cache.dto import LookupCacheRequest, StoreCacheRequest
from hybrid_cache.entities import CacheEntryEntity, CacheMatchEntity, MatchClass
from hybrid_cache.exceptions import CacheError, InfrastructureUnavailable, ProviderError
from hybrid_cache.handlers import CacheHandler
from hybrid_cache.protocols import AnswerGenerator, DurableStore, EmbeddingProvider, HotStore
from hybrid_cache.repositories import (
    MongoDurableRepository,
    RedisHotRepository,
    VoyageEmbeddingProvider,
)
from hybrid_cache.services import CacheService, LookupMode

__all__ = [
    # Configuration
    "settings",
    "get_mongo_client",
    "get_redis_client",
    # Errors
    "CacheError",
    "InfrastructureUnavailable",
    "ProviderError",
    # Protocols (interfaces)
    "AnswerGenerator",
    "DurableStore",
    "EmbeddingProvider",
    "HotStore",
    # Services (business logic)
    "CacheService",
    "LookupMode",
    # Handlers (HTTP)
    "CacheHandler",
    # Repositories (data access)
    "MongoDurableRepository",
    "RedisHotRepository",
    "VoyageEmbeddingProvider",
    # Entities (domain models)
    "CacheEntryEntity",
    "CacheMatchEntity",
    "MatchClass",
    # DTOs (API contracts)
    "LookupCacheRequest",
    "StoreCacheRequest",
]
