"""Dependency injection configuration for FastAPI app.

Uses FastAPI's app.state pattern for storing service instances.

Pattern:
    - Services stored in app.state during lifespan
    - Dependency functions retrieve from request.app.state
    - Clean separation, no global mutable state
"""

import logging
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Request

from hybrid_cache.config import configure_logging, settings
from hybrid_cache.handlers import CacheHandler
from hybrid_cache.services import CacheService

logger = logging.getLogger(__name__)


def get_cache_service(request: Request) -> CacheService:
    """Dependency injection for CacheService from app.state.

    Raises:
        RuntimeError: If service is not initialized
    """
    service = getattr(request.app.state, "cache_service", None)
    if service is None:
        raise RuntimeError("CacheService not initialized. Check lifespan setup.")
    return service


def get_handler(request: Request) -> CacheHandler:
    """Dependency injection for CacheHandler from app.state.

    Args:
        request: FastAPI Request object

    Returns:
        The CacheHandler instance from app.state

    Raises:
        RuntimeError: If handler is not initialized
    """
    handler = getattr(request.app.state, "cache_handler", None)
    if handler is None:
        raise RuntimeError("CacheHandler not initialized. Check lifespan setup.")
    return handler


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for FastAPI app.

    Initializes all layers and stores in app.state:
    1. Service (business logic, owns the adapters) - app.state.cache_service
    2. Handler (HTTP endpoints) - app.state.cache_handler

    The embedding provider and backends come from settings
    (EMBEDDING_PROVIDER, MONGO_URL, REDIS_URL, ...). When switching
    embedding models or dimensions, run scripts/backfill_embeddings.py
    with --overwrite so stored vectors stay comparable.
    """
    configure_logging()

    cache_service = CacheService.from_settings()
    await cache_service.connect()
    cache_handler = CacheHandler(cache_service=cache_service)

    app.state.cache_service = cache_service
    app.state.cache_handler = cache_handler

    logger.info("Cache service initialized")
    logger.info("Lookup mode: %s", cache_service.lookup_mode.value)
    logger.info("Threshold: %s", cache_service.threshold)
    logger.info("Embedding model: %s", settings.embedding_model)

    yield

    await cache_service.close()
    del app.state.cache_handler
    del app.state.cache_service
    logger.info("Cache service shut down")


# Type aliases for cleaner dependency injection
HandlerDep = Annotated[CacheHandler, Depends(get_handler)]
ServiceDep = Annotated[CacheService, Depends(get_cache_service)]
