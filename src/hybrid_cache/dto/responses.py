"""Response DTOs for API endpoints."""

from typing import Any

from pydantic import BaseModel, Field

from hybrid_cache.entities import MatchClass


class CacheLookupResponse(BaseModel):
    """Response DTO for cache lookup operation.

    On a miss ``match_class``, ``value`` and ``score`` are null.
    """

    prompt: str = Field(..., description="The original query prompt")
    is_hit: bool = Field(..., description="Whether a reusable answer was found")
    match_class: MatchClass | None = Field(
        None,
        description="Strategy that produced the hit: exact, lexical or semantic",
    )
    key: str | None = Field(None, description="Normalized request text of the matched entry")
    value: str | None = Field(None, description="The cached answer")
    score: float | None = Field(
        None,
        description="1.0 for exact hits, edit-distance or cosine similarity otherwise",
    )
    lookup_time_ms: float = Field(..., description="Time taken for the cache lookup in milliseconds")


class CacheStoreResponse(BaseModel):
    """Response DTO for cache store operation."""

    success: bool = Field(..., description="Whether the request was accepted")
    key: str = Field(..., description="The normalized storage key for the entry")
    message: str = Field(..., description="Human-readable status message")


class CacheStatsResponse(BaseModel):
    """Response DTO for cache statistics."""

    durable: dict[str, Any] = Field(..., description="Durable tier statistics")
    hot: dict[str, Any] | None = Field(None, description="Hot tier statistics, if enabled")
    config: dict[str, Any] = Field(..., description="Effective lookup configuration")
    performance: dict[str, float | int] = Field(..., description="Lookup and write counters")


class HealthCheckResponse(BaseModel):
    """Response DTO for health check."""

    status: str = Field(..., description="Health status: 'healthy' or 'unhealthy'")
    durable_healthy: bool = Field(..., description="Whether the durable tier is reachable")
    hot_healthy: bool | None = Field(
        None,
        description="Whether the hot tier is reachable (null when disabled)",
    )
    embedding_healthy: bool = Field(..., description="Whether the embedding service is reachable")
