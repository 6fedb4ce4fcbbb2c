"""Durable tier storage protocol.

Defines the interface for the persistent store of record. It holds every
cache entry, answers exact lookups through unique indexes and serves the
semantic scan one page at a time, so the full corpus never has to fit in
memory.

Implementations can include:
- MongoDB (default)
- Any document or relational store with unique indexes and offset paging
"""

from typing import Protocol, runtime_checkable

from hybrid_cache.entities import CacheEntryEntity


@runtime_checkable
class DurableStore(Protocol):
    """Protocol for durable cache storage backends.

    Read methods raise ``InfrastructureUnavailable`` when the store cannot
    be reached; the service layer treats that as a miss.
    """

    @property
    def read_only(self) -> bool:
        """Whether writes are being skipped for lack of write permission."""
        ...

    async def connect(self) -> None:
        """Open the connection, ensure indexes and probe write access."""
        ...

    async def close(self) -> None:
        """Release the connection."""
        ...

    async def get_by_fingerprint(self, fingerprint: str) -> CacheEntryEntity | None:
        """Exact lookup through the unique fingerprint index."""
        ...

    async def get_by_key(self, key: str) -> CacheEntryEntity | None:
        """Exact lookup through the unique key index."""
        ...

    async def scan_embedding_page(self, page_index: int, page_size: int) -> list[CacheEntryEntity]:
        """Return one page of entries that carry an embedding.

        Pages follow a stable ordering. An empty list means the scan is
        exhausted.
        """
        ...

    async def upsert(self, entry: CacheEntryEntity) -> bool:
        """Insert or replace the entry by key.

        Returns:
            True if the entry was persisted, False if skipped (read-only)
        """
        ...

    async def count(self) -> int:
        """Count stored entries (diagnostic only)."""
        ...

    async def scan_for_backfill(
        self,
        after_key: str | None,
        limit: int,
        overwrite: bool = False,
    ) -> list[CacheEntryEntity]:
        """Keyset-paginate entries ordered by key, starting after ``after_key``.

        With ``overwrite=False`` only entries missing an embedding or a
        fingerprint are returned.
        """
        ...

    async def set_derived_fields(
        self,
        key: str,
        fingerprint: str,
        embedding: list[float],
    ) -> bool:
        """Write fingerprint and embedding onto an existing entry."""
        ...

    async def health_check(self) -> bool:
        """Check if the store is reachable."""
        ...

    async def get_stats(self) -> dict:
        """Get store statistics (implementation-specific)."""
        ...
