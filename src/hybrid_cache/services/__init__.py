"""Service layer for business logic.

This layer contains the core business logic and orchestration.
Services depend on protocols (interfaces), not concrete implementations,
making them testable and flexible.

Architecture:
    Handler -> Service -> Repository
    (HTTP)  -> (Business) -> (Data Access)

Usage:
    ```python
    from hybrid_cache.services import CacheService

    # Using factory method (recommended)
    cache = CacheService.from_settings()
    await cache.connect()

    # Or manual creation
    cache = CacheService(durable_store=store, embedding_provider=provider)
    ```
"""

from .backfill_service import BackfillReport, BackfillService
from .cache_service import CacheService, LookupMode
from .similarity_pool import SimilarityWorkerPool, cosine_similarity, score_page
from .warmup_service import WarmupReport, WarmupService, read_inputs

__all__ = [
    "BackfillReport",
    "BackfillService",
    "CacheService",
    "LookupMode",
    "SimilarityWorkerPool",
    "WarmupReport",
    "WarmupService",
    "cosine_similarity",
    "read_inputs",
    "score_page",
]
