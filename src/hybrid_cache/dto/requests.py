"""Request DTOs for API endpoints."""

from pydantic import BaseModel, Field


class LookupCacheRequest(BaseModel):
    """Request DTO for looking up a cached answer.

    The handler will convert this to internal calls to the service layer.
    """

    prompt: str = Field(..., description="The request text to look up", min_length=1)
    threshold: float | None = Field(
        None,
        description="Override the semantic similarity threshold (-1 to 1, higher = more strict)",
        ge=-1.0,
        le=1.0,
    )


class StoreCacheRequest(BaseModel):
    """Request DTO for storing in cache."""

    prompt: str = Field(..., description="The original request text", min_length=1)
    response: str = Field(..., description="The answer to cache")
