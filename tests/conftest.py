"""In-memory test doubles for the cache protocols."""

import fnmatch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from hybrid_cache.entities import CacheEntryEntity
from hybrid_cache.exceptions import InfrastructureUnavailable, ProviderError
from hybrid_cache.services import SimilarityWorkerPool
from hybrid_cache.utils.text import lexical_similarity, normalize


class InMemoryDurableStore:
    """DurableStore keeping entries in insertion order."""

    def __init__(self, read_only: bool = False) -> None:
        self.entries: dict[str, CacheEntryEntity] = {}
        self._read_only = read_only
        self.available = True
        self.fail_on_page: int | None = None
        self.pages_requested: list[int] = []
        self.connected = False

    @property
    def read_only(self) -> bool:
        return self._read_only

    def _check(self) -> None:
        if not self.available:
            raise InfrastructureUnavailable("durable store down")

    def add(self, text: str, value: str, embedding: list[float] | None = None) -> CacheEntryEntity:
        entry = CacheEntryEntity.create(text, value, embedding)
        self.entries[entry.key] = entry
        return entry

    async def connect(self) -> None:
        self._check()
        self.connected = True

    async def close(self) -> None:
        self.connected = False

    async def get_by_fingerprint(self, fingerprint: str) -> CacheEntryEntity | None:
        self._check()
        for entry in self.entries.values():
            if entry.fingerprint == fingerprint:
                return entry
        return None

    async def get_by_key(self, key: str) -> CacheEntryEntity | None:
        self._check()
        return self.entries.get(key)

    async def scan_embedding_page(self, page_index: int, page_size: int) -> list[CacheEntryEntity]:
        self._check()
        if self.fail_on_page is not None and page_index == self.fail_on_page:
            raise InfrastructureUnavailable(f"page {page_index} failed")
        self.pages_requested.append(page_index)
        embedded = [e for e in self.entries.values() if e.has_embedding]
        start = page_index * page_size
        return embedded[start : start + page_size]

    async def upsert(self, entry: CacheEntryEntity) -> bool:
        self._check()
        if self._read_only:
            return False
        self.entries[entry.key] = entry
        return True

    async def count(self) -> int:
        self._check()
        return len(self.entries)

    async def scan_for_backfill(
        self,
        after_key: str | None,
        limit: int,
        overwrite: bool = False,
    ) -> list[CacheEntryEntity]:
        self._check()
        keys = sorted(self.entries)
        if after_key is not None:
            keys = [k for k in keys if k > after_key]
        if not overwrite:
            keys = [k for k in keys if not self.entries[k].has_embedding]
        return [self.entries[k] for k in keys[:limit]]

    async def set_derived_fields(self, key: str, fingerprint: str, embedding: list[float]) -> bool:
        self._check()
        if self._read_only or key not in self.entries:
            return False
        old = self.entries[key]
        self.entries[key] = CacheEntryEntity(
            key=key, fingerprint=fingerprint, value=old.value, embedding=embedding
        )
        return True

    async def health_check(self) -> bool:
        return self.available

    async def get_stats(self) -> dict:
        return {"total_entries": len(self.entries), "read_only": self._read_only}


class FakeEmbeddingProvider:
    """EmbeddingProvider returning preset vectors keyed by normalized text."""

    def __init__(self, vectors: dict[str, list[float]] | None = None, dimension: int = 3) -> None:
        self.vectors = {normalize(k): v for k, v in (vectors or {}).items()}
        self._dimension = dimension
        self.fail = False
        self.calls: list[str] = []
        self.batch_calls: list[list[str]] = []
        self.closed = False

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def model_name(self) -> str:
        return "fake-embedding"

    def _vector(self, text: str) -> list[float]:
        # Unknown texts get an axis no preset vector uses
        return self.vectors.get(normalize(text), [0.0] * (self._dimension - 1) + [1.0])

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail:
            raise ProviderError("embedding service down")
        return self._vector(text)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.batch_calls.append(list(texts))
        if self.fail:
            raise ProviderError("embedding service down")
        return [self._vector(t) for t in texts]

    async def is_available(self) -> bool:
        return not self.fail

    async def close(self) -> None:
        self.closed = True


class InMemoryHotStore:
    """HotStore backed by a dict; ``available=False`` behaves like an outage."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}
        self.available = True

    @property
    def connected(self) -> bool:
        return self.available

    async def connect(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def get_exact(self, key: str) -> str | None:
        return self.values.get(key) if self.available else None

    async def get_fuzzy(self, key: str, min_similarity: float) -> str | None:
        hit = await self.find_fuzzy(key, min_similarity)
        return hit[1] if hit else None

    async def find_fuzzy(self, key: str, min_similarity: float) -> tuple[str, str, float] | None:
        if not self.available:
            return None
        best = None
        for stored_key, value in self.values.items():
            score = lexical_similarity(key, stored_key)
            if score >= min_similarity and (best is None or score > best[2]):
                best = (stored_key, value, score)
        return best

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        if self.available:
            self.values[key] = value
            self.ttls[key] = ttl_seconds

    async def health_check(self) -> bool:
        return self.available

    async def get_stats(self) -> dict:
        return {"live_keys": len(self.values)}


class FakeRedis:
    """The subset of redis.asyncio.Redis the hot tier repository uses."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.expiries: dict[str, int | None] = {}
        self.down = False
        self.ping_calls = 0
        self.closed = False

    def _check(self) -> None:
        if self.down:
            raise RedisConnectionError("Connection refused")

    async def ping(self) -> bool:
        self.ping_calls += 1
        self._check()
        return True

    async def get(self, key: str) -> str | None:
        self._check()
        return self.data.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self._check()
        self.data[key] = value
        self.expiries[key] = ex
        return True

    async def scan_iter(self, match: str | None = None):
        self._check()
        for key in list(self.data):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def durable_store():
    return InMemoryDurableStore()


@pytest.fixture
def embedding_provider():
    return FakeEmbeddingProvider()


@pytest.fixture
def hot_store():
    return InMemoryHotStore()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def similarity_pool():
    pool = SimilarityWorkerPool(max_workers=2)
    yield pool
    pool.close()