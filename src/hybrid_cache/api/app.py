from typing import Any

from fastapi import FastAPI, Response, status
from fastapi.middleware.cors import CORSMiddleware

from hybrid_cache.api.dependencies import HandlerDep, lifespan
from hybrid_cache.config import settings
from hybrid_cache.dto import (
    CacheLookupResponse,
    CacheStatsResponse,
    CacheStoreResponse,
    HealthCheckResponse,
    LookupCacheRequest,
    StoreCacheRequest,
)

app = FastAPI(
    title="Hybrid Answer Cache API",
    description="Exact, lexical and semantic answer caching over MongoDB and Redis",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,  # type: ignore[arg-type]
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root() -> dict[str, Any]:
    """Root endpoint with API information."""
    return {
        "name": "Hybrid Answer Cache API",
        "version": "0.1.0",
        "description": "Exact, lexical and semantic answer caching over MongoDB and Redis",
        "endpoints": {
            "lookup": "/cache/lookup",
            "store": "/cache/store",
            "stats": "/stats",
            "health": "/health",
            "docs": "/docs",
        },
    }


@app.get("/health", response_model=HealthCheckResponse)
async def health(handler: HandlerDep, response: Response) -> HealthCheckResponse:
    """Health check endpoint. Answers 503 when the cache cannot serve lookups."""
    result = await handler.health_check()
    if result.status != "healthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return result


@app.post("/cache/lookup", response_model=CacheLookupResponse)
async def lookup_cache(request: LookupCacheRequest, handler: HandlerDep) -> CacheLookupResponse:
    """
    Look up a reusable answer for a prompt.

    Args:
        request: Lookup request with prompt and optional threshold.

    Returns:
        Lookup response with the match class, value and score on a hit.
    """
    return await handler.lookup_cache(request)


@app.post("/cache/store", response_model=CacheStoreResponse)
async def store_cache(request: StoreCacheRequest, handler: HandlerDep) -> CacheStoreResponse:
    """
    Store a prompt/response pair in the cache.

    Args:
        request: Store request with prompt and response.

    Returns:
        Store response with the normalized key.
    """
    return await handler.store_cache(request)


@app.get("/stats", response_model=CacheStatsResponse)
async def get_stats(handler: HandlerDep) -> CacheStatsResponse:
    """Get cache statistics."""
    return await handler.get_stats()


def main() -> None:
    import uvicorn

    uvicorn.run(
        "hybrid_cache.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )


if __name__ == "__main__":
    main()
