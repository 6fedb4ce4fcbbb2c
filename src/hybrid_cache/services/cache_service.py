"""Cache service for core business logic.

This service orchestrates lookups and writes across the durable tier, the
optional hot tier, the embedding provider and the similarity worker pool.

Lookup order:
    1. Exact fingerprint match on the durable tier (always first)
    2. Lexical near-duplicate on the hot tier (``lexical``/``layered`` modes)
    3. Semantic match over a paged scan of the durable tier
       (``semantic``/``layered`` modes)

Every infrastructure or provider failure degrades to a miss (reads) or a
no-op (writes). Only malformed arguments raise.
"""

import logging
import time
from enum import Enum

from hybrid_cache.config import Settings, get_mongo_client, get_redis_client, settings
from hybrid_cache.entities import CacheEntryEntity, CacheMatchEntity, MatchClass
from hybrid_cache.exceptions import CacheError, ProviderError
from hybrid_cache.models import PerformanceMetrics
from hybrid_cache.protocols import DurableStore, EmbeddingProvider, HotStore
from hybrid_cache.repositories import (
    MongoDurableRepository,
    RedisHotRepository,
    create_embedding_provider,
)
from hybrid_cache.utils.text import fingerprint, normalize

from .similarity_pool import SimilarityWorkerPool

logger = logging.getLogger(__name__)


class LookupMode(str, Enum):
    """Which fuzzy strategies run after the exact probe."""

    SEMANTIC = "semantic"
    LEXICAL = "lexical"
    LAYERED = "layered"


def _validate_threshold(threshold: float) -> float:
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
        raise TypeError(f"threshold must be a number, got {type(threshold).__name__}")
    if not -1 <= threshold <= 1:
        raise ValueError("Threshold must be between -1 and 1 for cosine similarity")
    return float(threshold)


class CacheService:
    """Hybrid answer cache.

    This service depends on PROTOCOLS, not concrete implementations:
    - DurableStore: MongoDB by default
    - HotStore: Redis by default, optional
    - EmbeddingProvider: Voyage, Ollama, local, ...

    Example:
        ```python
        from hybrid_cache.services import CacheService

        cache = CacheService.from_settings()
        await cache.connect()

        answer = await cache.get_cached_result("What is 2+2?")
        if answer is None:
            answer = await generate(...)
            await cache.set_cache("What is 2+2?", answer)

        await cache.close()
        ```
    """

    def __init__(
        self,
        durable_store: DurableStore,
        embedding_provider: EmbeddingProvider,
        similarity_pool: SimilarityWorkerPool | None = None,
        hot_store: HotStore | None = None,
        threshold: float | None = None,
        page_size: int | None = None,
        early_exit_score: float | None = None,
        lookup_mode: LookupMode | str | None = None,
        hot_min_similarity: float | None = None,
        hot_ttl: int | None = None,
        mirror_to_hot_tier: bool | None = None,
    ) -> None:
        """Initialize the cache service.

        Args:
            durable_store: Store of record (required).
            embedding_provider: Embedding generation service (required).
            similarity_pool: Page scorer. If None, a thread pool is created.
            hot_store: Optional expiring hot tier.
            threshold: Minimum cosine similarity for a semantic hit. Defaults to settings.
            page_size: Entries per semantic scan page. Defaults to settings.
            early_exit_score: Stop scanning once a match reaches this score. Defaults to settings.
            lookup_mode: "semantic", "lexical" or "layered". Defaults to settings.
            hot_min_similarity: Minimum edit-distance similarity for lexical hits.
            hot_ttl: TTL of hot tier mirrors in seconds.
            mirror_to_hot_tier: Copy successful writes into the hot tier.
        """
        self._durable = durable_store
        self._embeddings = embedding_provider
        self._hot = hot_store
        self._threshold = _validate_threshold(
            threshold if threshold is not None else settings.cache_similarity_threshold
        )
        self._page_size = page_size or settings.cache_page_size
        self._early_exit_score = (
            early_exit_score if early_exit_score is not None else settings.cache_early_exit_score
        )
        self._mode = LookupMode(lookup_mode or settings.cache_lookup_mode)
        self._hot_min_similarity = (
            hot_min_similarity if hot_min_similarity is not None else settings.hot_tier_min_similarity
        )
        self._hot_ttl = hot_ttl or settings.hot_tier_ttl
        self._mirror = (
            mirror_to_hot_tier if mirror_to_hot_tier is not None else settings.cache_mirror_to_hot_tier
        )
        self._metrics = PerformanceMetrics()

        if self._page_size < 1:
            raise ValueError(f"page_size must be positive, got {self._page_size}")
        if self._mode is not LookupMode.SEMANTIC and self._hot is None:
            raise ValueError(f"Lookup mode {self._mode.value!r} requires a hot store")

        self._pool = similarity_pool or SimilarityWorkerPool()

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "CacheService":
        """Build the default stack (MongoDB, Redis, configured embeddings).

        The returned service is not connected yet; call ``connect()``.
        """
        config = config or settings
        hot_store = None
        if config.hot_tier_enabled:
            hot_store = RedisHotRepository(
                redis_client=get_redis_client(config.redis_url),
                key_prefix=config.hot_tier_key_prefix,
                ttl=config.hot_tier_ttl,
                error_log_limit=config.hot_tier_error_log_limit,
            )

        return cls(
            durable_store=MongoDurableRepository(
                client=get_mongo_client(config.mongo_url),
                db_name=config.mongo_db_name,
                collection_name=config.mongo_collection_name,
            ),
            embedding_provider=create_embedding_provider(config),
            similarity_pool=SimilarityWorkerPool.create(
                kind=config.similarity_executor,
                max_workers=config.similarity_workers,
            ),
            hot_store=hot_store,
            threshold=config.cache_similarity_threshold,
            page_size=config.cache_page_size,
            early_exit_score=config.cache_early_exit_score,
            lookup_mode=config.cache_lookup_mode,
            hot_min_similarity=config.hot_tier_min_similarity,
            hot_ttl=config.hot_tier_ttl,
            mirror_to_hot_tier=config.cache_mirror_to_hot_tier,
        )

    async def connect(self) -> None:
        """Connect the adapters.

        A durable tier that is down at startup is logged, not raised; the
        repository retries on its next call.
        """
        try:
            await self._durable.connect()
        except CacheError as e:
            logger.error("Durable tier unavailable at startup: %s", e)
        if self._hot is not None:
            await self._hot.connect()

    async def close(self) -> None:
        """Close adapters, the embedding client and the worker pool."""
        if self._hot is not None:
            await self._hot.close()
        await self._durable.close()
        await self._embeddings.close()
        self._pool.close()

    async def get_cached_result(self, text: str, threshold: float | None = None) -> str | None:
        """Return a reusable answer for ``text``, or None on a miss.

        Args:
            text: The request text
            threshold: Override the semantic similarity threshold

        Returns:
            The cached answer, or None

        Raises:
            TypeError: If ``text`` is not a string
            ValueError: If ``threshold`` is outside [-1, 1]
        """
        match = await self.lookup(text, threshold)
        return match.value if match else None

    async def lookup(self, text: str, threshold: float | None = None) -> CacheMatchEntity | None:
        """Look up ``text`` and report which strategy matched.

        Args:
            text: The request text
            threshold: Override the semantic similarity threshold

        Returns:
            CacheMatchEntity if found, None otherwise
        """
        if not isinstance(text, str):
            raise TypeError(f"text must be str, got {type(text).__name__}")
        threshold = _validate_threshold(threshold if threshold is not None else self._threshold)

        start_time = time.perf_counter()
        match = await self._find(text, threshold)
        lookup_time_ms = (time.perf_counter() - start_time) * 1000

        if match is None:
            self._metrics.record_miss(lookup_time_ms)
            logger.debug("Cache miss (%.1fms)", lookup_time_ms)
        else:
            self._metrics.record_hit(match.match_class, lookup_time_ms)
            logger.info(
                "Cache hit: %s match with score %.2f (%.1fms)",
                match.match_class.value,
                match.score,
                lookup_time_ms,
            )
        return match

    async def _find(self, text: str, threshold: float) -> CacheMatchEntity | None:
        match = await self._find_exact(text)
        if match is not None:
            return match

        if self._mode in (LookupMode.LEXICAL, LookupMode.LAYERED):
            match = await self._find_lexical(text)
            if match is not None or self._mode is LookupMode.LEXICAL:
                return match

        return await self._find_semantic(text, threshold)

    async def _find_exact(self, text: str) -> CacheMatchEntity | None:
        try:
            entry = await self._durable.get_by_fingerprint(fingerprint(text))
        except CacheError as e:
            self._metrics.record_infrastructure_error()
            logger.warning("Exact lookup failed, treating as miss: %s", e)
            return None
        if entry is None:
            return None
        return CacheMatchEntity(
            key=entry.key,
            value=entry.value,
            score=1.0,
            match_class=MatchClass.EXACT,
        )

    async def _find_lexical(self, text: str) -> CacheMatchEntity | None:
        hit = await self._hot.find_fuzzy(normalize(text), self._hot_min_similarity)
        if hit is None:
            return None
        key, value, score = hit
        return CacheMatchEntity(key=key, value=value, score=score, match_class=MatchClass.LEXICAL)

    async def _find_semantic(self, text: str, threshold: float) -> CacheMatchEntity | None:
        try:
            query_vector = await self._embeddings.embed(text)
        except ProviderError as e:
            self._metrics.record_provider_error()
            logger.warning("Embedding failed, skipping semantic lookup: %s", e)
            return None

        best: CacheEntryEntity | None = None
        best_score = threshold
        page = 0
        # One page in memory and one scoring job in flight at a time
        while True:
            try:
                entries = await self._durable.scan_embedding_page(page, self._page_size)
            except CacheError as e:
                self._metrics.record_infrastructure_error()
                logger.warning("Semantic scan stopped at page %d: %s", page, e)
                break
            if not entries:
                break

            result = await self._pool.score_page(query_vector, entries, best_score)
            if result.best_match is not None and result.best_score > best_score:
                best, best_score = result.best_match, result.best_score

            if best is not None and best_score >= self._early_exit_score:
                logger.debug("Early exit after page %d with score %.3f", page, best_score)
                break
            page += 1

        if best is None:
            return None
        return CacheMatchEntity(
            key=best.key,
            value=best.value,
            score=best_score,
            match_class=MatchClass.SEMANTIC,
        )

    async def set_cache(self, text: str, value: str) -> bool:
        """Store an answer for ``text``.

        The entry is written to the durable tier with its embedding; if
        embedding fails the entry is still stored for exact matching. A
        persisted write is mirrored into the hot tier when enabled.

        Args:
            text: The request text
            value: The answer to cache

        Returns:
            True if the durable tier kept the entry

        Raises:
            TypeError: If ``text`` or ``value`` is not a string
        """
        if not isinstance(text, str):
            raise TypeError(f"text must be str, got {type(text).__name__}")
        if not isinstance(value, str):
            raise TypeError(f"value must be str, got {type(value).__name__}")

        embedding = await self._embed_for_storage(text)
        entry = CacheEntryEntity.create(text, value, embedding)

        try:
            persisted = await self._durable.upsert(entry)
        except CacheError as e:
            self._metrics.record_infrastructure_error()
            logger.warning("Cache write failed, skipping: %s", e)
            persisted = False
        self._metrics.record_write(persisted)

        if persisted and self._mirror and self._hot is not None:
            await self._hot.set(entry.key, value, self._hot_ttl)
        if persisted:
            logger.debug("Stored cache entry %r (embedding: %s)", entry.key, entry.has_embedding)
        return persisted

    async def _embed_for_storage(self, text: str) -> list[float] | None:
        try:
            embedding = await self._embeddings.embed(text)
        except ProviderError as e:
            self._metrics.record_provider_error()
            logger.warning("Embedding failed, storing entry without embedding: %s", e)
            return None

        expected = self._embeddings.dimension
        if len(embedding) != expected:
            logger.warning(
                "Embedding has %d dimensions, expected %d; storing entry without embedding",
                len(embedding),
                expected,
            )
            return None
        return embedding

    async def health_status(self) -> dict[str, bool | None]:
        """Check each component.

        Returns:
            Dict with durable, hot (None when not configured) and embedding health
        """
        return {
            "durable": await self._durable.health_check(),
            "hot": await self._hot.health_check() if self._hot is not None else None,
            "embedding": await self._embeddings.is_available(),
        }

    async def is_healthy(self) -> bool:
        """Durable tier and embeddings reachable. The hot tier is optional."""
        status = await self.health_status()
        return bool(status["durable"] and status["embedding"])

    async def get_stats(self) -> dict:
        """Get cache statistics.

        Returns:
            Dictionary with tier stats, configuration and metrics
        """
        return {
            "durable": await self._durable.get_stats(),
            "hot": await self._hot.get_stats() if self._hot is not None else None,
            "config": {
                "lookup_mode": self._mode.value,
                "threshold": self._threshold,
                "page_size": self._page_size,
                "early_exit_score": self._early_exit_score,
                "hot_min_similarity": self._hot_min_similarity,
                "hot_ttl": self._hot_ttl,
                "embedding_model": self._embeddings.model_name,
                "embedding_dimension": self._embeddings.dimension,
            },
            "performance": self._metrics.to_dict(),
        }

    @property
    def threshold(self) -> float:
        """Get current similarity threshold."""
        return self._threshold

    @property
    def lookup_mode(self) -> LookupMode:
        return self._mode

    @property
    def metrics(self) -> PerformanceMetrics:
        return self._metrics

    @property
    def durable_store(self) -> DurableStore:
        """Get the underlying durable store (for testing)."""
        return self._durable

    @property
    def hot_store(self) -> HotStore | None:
        """Get the underlying hot store (for testing)."""
        return self._hot

    @property
    def embedding_provider(self) -> EmbeddingProvider:
        """Get the underlying embedding provider."""
        return self._embeddings
