"""Cache entry domain entity."""

from dataclasses import dataclass
from datetime import datetime

from hybrid_cache.utils.text import fingerprint, normalize


@dataclass(frozen=True)
class CacheEntryEntity:
    """Domain entity for a cached request-answer pair.

    This is an internal representation used by services and repositories.
    For API contracts, use the DTO classes from the dto package.

    Attributes:
        key: The normalized request text (unique in the durable tier)
        fingerprint: SHA-256 of the key, used for exact-match lookup
        value: The stored answer text
        embedding: Embedding vector of the request, if one was computed
        created_at: When the entry was first written
        updated_at: When the entry was last overwritten
    """

    key: str
    fingerprint: str
    value: str
    embedding: list[float] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def has_embedding(self) -> bool:
        """Whether this entry takes part in semantic scans."""
        return bool(self.embedding)

    @classmethod
    def create(
        cls,
        text: str,
        value: str,
        embedding: list[float] | None = None,
    ) -> "CacheEntryEntity":
        """Build an entry from raw request text, deriving key and fingerprint."""
        return cls(
            key=normalize(text),
            fingerprint=fingerprint(text),
            value=value,
            embedding=embedding,
        )
