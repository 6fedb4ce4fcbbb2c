"""Hot tier storage protocol.

An ephemeral key-value store with per-key TTL. Its live key set is small
enough to scan for lexical near-duplicates.

Implementations never raise on unavailability: reads return None
("unknown") and writes are skipped.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class HotStore(Protocol):
    """Protocol for the expiring hot tier."""

    @property
    def connected(self) -> bool:
        """Whether the last connection attempt succeeded."""
        ...

    async def connect(self) -> None:
        """Open the connection. Failure leaves the store disconnected."""
        ...

    async def close(self) -> None:
        """Release the connection."""
        ...

    async def get_exact(self, key: str) -> str | None:
        """Value stored under exactly this key, or None."""
        ...

    async def get_fuzzy(self, key: str, min_similarity: float) -> str | None:
        """Value of the most similar live key at or above ``min_similarity``."""
        ...

    async def find_fuzzy(self, key: str, min_similarity: float) -> tuple[str, str, float] | None:
        """Like get_fuzzy, but returns (matched key, value, similarity)."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        """Store a value that expires after ``ttl_seconds``."""
        ...

    async def health_check(self) -> bool:
        """Check if the store is reachable."""
        ...

    async def get_stats(self) -> dict:
        """Get store statistics (implementation-specific)."""
        ...
