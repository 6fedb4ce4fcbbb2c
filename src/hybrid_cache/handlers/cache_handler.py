"""HTTP handlers for cache operations.

Handlers convert between DTOs (API contracts) and service calls.
They handle HTTP concerns like status codes, validation, and error handling.
"""

import logging
import time

from fastapi import HTTPException, status

from hybrid_cache.dto import (
    CacheLookupResponse,
    CacheStatsResponse,
    CacheStoreResponse,
    HealthCheckResponse,
    LookupCacheRequest,
    StoreCacheRequest,
)
from hybrid_cache.services import CacheService
from hybrid_cache.utils.text import normalize

logger = logging.getLogger(__name__)


class CacheHandler:
    """HTTP handlers for cache operations.

    This handler delegates business logic to CacheService
    and handles HTTP-specific concerns like:
    - Converting entities to DTOs
    - Setting appropriate status codes
    - Error handling and responses

    Example:
        ```python
        from hybrid_cache.services import CacheService
        from hybrid_cache.handlers import CacheHandler

        cache_service = CacheService.from_settings()
        handler = CacheHandler(cache_service=cache_service)

        # Use in FastAPI route
        @app.post("/cache/lookup", response_model=CacheLookupResponse)
        async def lookup_cache(request: LookupCacheRequest):
            return await handler.lookup_cache(request)
        ```
    """

    def __init__(self, cache_service: CacheService) -> None:
        """Initialize the cache handler.

        Args:
            cache_service: The cache service for business logic (required).
        """
        self._cache = cache_service

    async def lookup_cache(self, request: LookupCacheRequest) -> CacheLookupResponse:
        """Handle POST /cache/lookup requests.

        Args:
            request: The lookup request DTO

        Returns:
            CacheLookupResponse with the match, if any

        Raises:
            HTTPException: 400 for an invalid threshold, 500 on unexpected errors
        """
        try:
            start_time = time.perf_counter()
            match = await self._cache.lookup(request.prompt, threshold=request.threshold)
            lookup_time_ms = (time.perf_counter() - start_time) * 1000
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
        except Exception as e:
            logger.exception("Cache lookup failed")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to look up cache: {e}",
            ) from e

        if match is None:
            return CacheLookupResponse(
                prompt=request.prompt,
                is_hit=False,
                lookup_time_ms=lookup_time_ms,
            )
        return CacheLookupResponse(
            prompt=request.prompt,
            is_hit=True,
            match_class=match.match_class,
            key=match.key,
            value=match.value,
            score=match.score,
            lookup_time_ms=lookup_time_ms,
        )

    async def store_cache(self, request: StoreCacheRequest) -> CacheStoreResponse:
        """Handle POST /cache/store requests.

        Writes fail soft, so success means the request was accepted, not
        necessarily persisted (the durable tier may be read-only or down).

        Raises:
            HTTPException: If an unexpected error occurs during storage
        """
        try:
            persisted = await self._cache.set_cache(request.prompt, request.response)
        except Exception as e:
            logger.exception("Cache store failed")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to store entry: {e}",
            ) from e

        return CacheStoreResponse(
            success=True,
            key=normalize(request.prompt),
            message="Entry stored" if persisted else "Entry accepted but not persisted",
        )

    async def get_stats(self) -> CacheStatsResponse:
        """Handle GET /stats requests.

        Returns:
            CacheStatsResponse with tier statistics and counters
        """
        try:
            stats = await self._cache.get_stats()
        except Exception as e:
            logger.exception("Fetching stats failed")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to get stats: {e}",
            ) from e

        return CacheStatsResponse(**stats)

    async def health_check(self) -> HealthCheckResponse:
        """Handle GET /health requests.

        Returns:
            HealthCheckResponse with per-component health
        """
        components = await self._cache.health_status()
        is_healthy = bool(components["durable"] and components["embedding"])

        return HealthCheckResponse(
            status="healthy" if is_healthy else "unhealthy",
            durable_healthy=bool(components["durable"]),
            hot_healthy=components["hot"],
            embedding_healthy=bool(components["embedding"]),
        )
