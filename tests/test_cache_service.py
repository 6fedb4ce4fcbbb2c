"""
Tests for the cache service lookup and write paths.
"""

import math

import pytest
from conftest import FakeEmbeddingProvider, InMemoryDurableStore, InMemoryHotStore

from hybrid_cache.entities import MatchClass
from hybrid_cache.services import CacheService, LookupMode, cache_service

E1 = [1.0, 0.0, 0.0]
# cosine(E1, E2) == 0.93
E2 = [0.93, math.sqrt(1 - 0.93**2), 0.0]


def make_service(durable, provider, pool, **kwargs) -> CacheService:
    options = {
        "threshold": 0.9,
        "page_size": 100,
        "early_exit_score": 0.95,
        "lookup_mode": "semantic",
        "mirror_to_hot_tier": False,
    }
    options.update(kwargs)
    return CacheService(
        durable_store=durable,
        embedding_provider=provider,
        similarity_pool=pool,
        **options,
    )


@pytest.mark.asyncio
async def test_paraphrase_hits_semantically(durable_store, similarity_pool):
    durable_store.add("what is 2+2", "4", E1)
    provider = FakeEmbeddingProvider({"what's 2+2?": E2})
    service = make_service(durable_store, provider, similarity_pool)

    assert await service.get_cached_result("what's 2+2?") == "4"

    match = await service.lookup("what's 2+2?")
    assert match.match_class is MatchClass.SEMANTIC
    assert match.score == pytest.approx(0.93)


@pytest.mark.asyncio
async def test_empty_store_always_misses(durable_store, embedding_provider, similarity_pool):
    service = make_service(durable_store, embedding_provider, similarity_pool)

    for threshold in (-1.0, 0.0, 0.5, 1.0):
        assert await service.get_cached_result("anything at all", threshold) is None


@pytest.mark.asyncio
async def test_read_only_write_does_not_fabricate_hit(similarity_pool):
    durable = InMemoryDurableStore(read_only=True)
    hot = InMemoryHotStore()
    provider = FakeEmbeddingProvider({"hello": [0.0, 1.0, 0.0]})
    service = make_service(
        durable, provider, similarity_pool, hot_store=hot, mirror_to_hot_tier=True
    )

    assert await service.set_cache("Hello", "world") is False

    assert await service.get_cached_result("Hello") is None
    assert hot.values == {}
    assert service.metrics.skipped_writes == 1


@pytest.mark.asyncio
async def test_provider_failure_is_a_miss(durable_store, similarity_pool):
    durable_store.add("what is 2+2", "4", E1)
    provider = FakeEmbeddingProvider({"what's 2+2?": E2})
    provider.fail = True
    service = make_service(durable_store, provider, similarity_pool)

    assert await service.get_cached_result("what's 2+2?") is None
    assert service.metrics.provider_errors == 1


@pytest.mark.asyncio
async def test_exact_match_needs_no_embedding(durable_store, similarity_pool):
    durable_store.add("What is 2+2", "4", E1)
    provider = FakeEmbeddingProvider()
    provider.fail = True
    service = make_service(durable_store, provider, similarity_pool)

    match = await service.lookup("  WHAT IS 2+2 ")

    assert match.match_class is MatchClass.EXACT
    assert match.value == "4"
    assert match.score == 1.0
    assert provider.calls == []


@pytest.mark.asyncio
async def test_exact_match_wins_over_better_semantic_candidate(durable_store, similarity_pool):
    # The exact entry's embedding is orthogonal to the query's, another entry is identical
    durable_store.add("ping", "exact answer", [0.0, 1.0, 0.0])
    durable_store.add("pong", "semantic answer", E1)
    provider = FakeEmbeddingProvider({"ping": E1})
    service = make_service(durable_store, provider, similarity_pool)

    assert await service.get_cached_result("Ping") == "exact answer"


@pytest.mark.asyncio
async def test_below_threshold_is_a_miss(durable_store, similarity_pool):
    durable_store.add("what is 2+2", "4", E1)
    provider = FakeEmbeddingProvider({"what's 2+2?": E2})
    service = make_service(durable_store, provider, similarity_pool)

    assert await service.get_cached_result("what's 2+2?", threshold=0.95) is None


@pytest.mark.asyncio
async def test_score_equal_to_threshold_is_a_miss(durable_store, similarity_pool):
    durable_store.add("stored", "value", E1)
    provider = FakeEmbeddingProvider({"query": E1})
    service = make_service(durable_store, provider, similarity_pool)

    assert await service.get_cached_result("query", threshold=1.0) is None


@pytest.mark.asyncio
@pytest.mark.parametrize(("entries", "page_size", "pages"), [(7, 3, 3), (6, 3, 2), (1, 100, 1)])
async def test_scan_visits_every_page_without_a_match(similarity_pool, entries, page_size, pages):
    durable = InMemoryDurableStore()
    for i in range(entries):
        durable.add(f"entry {i}", f"value {i}", [0.0, 1.0, 0.0])
    provider = FakeEmbeddingProvider({"query": E1})
    service = make_service(durable, provider, similarity_pool, page_size=page_size)

    assert await service.get_cached_result("query") is None
    # ceil(N / P) pages with data, plus the empty page that ends the scan
    assert durable.pages_requested == list(range(pages + 1))


@pytest.mark.asyncio
async def test_best_match_across_pages_wins(similarity_pool):
    durable = InMemoryDurableStore()
    durable.add("first", "first value", [0.92, math.sqrt(1 - 0.92**2), 0.0])
    durable.add("filler", "filler value", [0.0, 0.0, 1.0])
    durable.add("second", "second value", [0.94, math.sqrt(1 - 0.94**2), 0.0])
    provider = FakeEmbeddingProvider({"query": E1})
    service = make_service(durable, provider, similarity_pool, page_size=2)

    match = await service.lookup("query")

    assert match.value == "second value"
    assert match.score == pytest.approx(0.94)


@pytest.mark.asyncio
async def test_early_exit_after_strong_match(similarity_pool):
    durable = InMemoryDurableStore()
    durable.add("near", "near value", E1)
    for i in range(5):
        durable.add(f"other {i}", "other", [0.0, 1.0, 0.0])
    provider = FakeEmbeddingProvider({"query": E1})
    service = make_service(durable, provider, similarity_pool, page_size=2)

    assert await service.get_cached_result("query") == "near value"
    assert durable.pages_requested == [0]


@pytest.mark.asyncio
async def test_no_early_exit_without_a_match(similarity_pool):
    # A threshold above the cutoff must not stop the scan after page 0
    durable = InMemoryDurableStore()
    durable.add("far", "far value", [0.0, 1.0, 0.0])
    durable.add("near", "near value", E1)
    provider = FakeEmbeddingProvider({"query": E1})
    service = make_service(durable, provider, similarity_pool, page_size=1)

    assert await service.get_cached_result("query", threshold=0.97) == "near value"


@pytest.mark.asyncio
async def test_scan_failure_keeps_best_so_far(similarity_pool):
    durable = InMemoryDurableStore()
    durable.add("good", "good value", E2)
    durable.add("later", "later value", E1)
    durable.fail_on_page = 1
    provider = FakeEmbeddingProvider({"query": E1})
    service = make_service(durable, provider, similarity_pool, page_size=1)

    assert await service.get_cached_result("query") == "good value"
    assert service.metrics.infrastructure_errors == 1


@pytest.mark.asyncio
async def test_durable_outage_is_a_miss(durable_store, embedding_provider, similarity_pool):
    durable_store.add("hello", "world", E1)
    durable_store.available = False
    service = make_service(durable_store, embedding_provider, similarity_pool)

    assert await service.get_cached_result("hello") is None
    await service.set_cache("hello", "again")


@pytest.mark.asyncio
async def test_round_trip(durable_store, similarity_pool):
    provider = FakeEmbeddingProvider({"capital of france": [0.2, 0.9, 0.1]})
    service = make_service(durable_store, provider, similarity_pool)

    assert await service.set_cache("Capital of France", "Paris") is True

    assert await service.get_cached_result("capital of france  ") == "Paris"
    stored = durable_store.entries["capital of france"]
    assert stored.embedding == [0.2, 0.9, 0.1]
    assert service.metrics.writes == 1


@pytest.mark.asyncio
async def test_overwrite_replaces_value(durable_store, embedding_provider, similarity_pool):
    service = make_service(durable_store, embedding_provider, similarity_pool)

    await service.set_cache("question", "old")
    await service.set_cache("Question", "new")

    assert await service.get_cached_result("question") == "new"
    assert len(durable_store.entries) == 1


@pytest.mark.asyncio
async def test_provider_failure_on_write_stores_without_embedding(durable_store, similarity_pool):
    provider = FakeEmbeddingProvider()
    provider.fail = True
    service = make_service(durable_store, provider, similarity_pool)

    await service.set_cache("hello", "world")

    entry = durable_store.entries["hello"]
    assert entry.embedding is None
    assert not entry.has_embedding
    assert await service.get_cached_result("hello") == "world"


@pytest.mark.asyncio
async def test_wrong_dimension_embedding_is_not_stored(durable_store, similarity_pool):
    provider = FakeEmbeddingProvider({"hello": [1.0, 0.0]}, dimension=3)
    service = make_service(durable_store, provider, similarity_pool)

    await service.set_cache("hello", "world")

    assert durable_store.entries["hello"].embedding is None


@pytest.mark.asyncio
async def test_invalid_arguments_raise(durable_store, embedding_provider, similarity_pool):
    service = make_service(durable_store, embedding_provider, similarity_pool)

    with pytest.raises(TypeError):
        await service.get_cached_result(None)
    with pytest.raises(TypeError):
        await service.set_cache("key", 42)
    with pytest.raises(ValueError):
        await service.get_cached_result("key", threshold=1.5)


def test_invalid_configuration_raises(durable_store, embedding_provider, similarity_pool):
    with pytest.raises(ValueError):
        make_service(durable_store, embedding_provider, similarity_pool, threshold=-2)
    with pytest.raises(ValueError):
        make_service(durable_store, embedding_provider, similarity_pool, lookup_mode="layered")
    with pytest.raises(ValueError):
        make_service(durable_store, embedding_provider, similarity_pool, lookup_mode="fuzzy")


def test_invalid_configuration_creates_no_worker_pool(durable_store, embedding_provider, monkeypatch):
    created = []
    monkeypatch.setattr(cache_service, "SimilarityWorkerPool", lambda: created.append(True))

    with pytest.raises(ValueError):
        make_service(durable_store, embedding_provider, None, threshold=2)
    with pytest.raises(ValueError):
        make_service(durable_store, embedding_provider, None, page_size=-1)
    with pytest.raises(ValueError):
        make_service(durable_store, embedding_provider, None, lookup_mode="lexical")
    assert created == []


@pytest.mark.asyncio
async def test_write_mirrors_to_hot_tier(durable_store, embedding_provider, hot_store, similarity_pool):
    service = make_service(
        durable_store,
        embedding_provider,
        similarity_pool,
        hot_store=hot_store,
        mirror_to_hot_tier=True,
        hot_ttl=60,
    )

    await service.set_cache("  Hello There ", "hi")

    assert hot_store.values == {"hello there": "hi"}
    assert hot_store.ttls == {"hello there": 60}


@pytest.mark.asyncio
async def test_lexical_mode_uses_hot_tier_only(durable_store, hot_store, similarity_pool):
    durable_store.add("what is 2+2", "4", E1)
    hot_store.values["what is the capital of france"] = "Paris"
    provider = FakeEmbeddingProvider({"what's 2+2?": E2})
    service = make_service(
        durable_store,
        provider,
        similarity_pool,
        hot_store=hot_store,
        lookup_mode=LookupMode.LEXICAL,
        hot_min_similarity=0.8,
    )

    match = await service.lookup("What is the capitol of France")

    assert match.match_class is MatchClass.LEXICAL
    assert match.value == "Paris"
    assert await service.get_cached_result("what's 2+2?") is None
    assert provider.calls == []


@pytest.mark.asyncio
async def test_layered_mode_falls_back_to_semantic(durable_store, hot_store, similarity_pool):
    durable_store.add("what is 2+2", "4", E1)
    provider = FakeEmbeddingProvider({"what's 2+2?": E2})
    service = make_service(
        durable_store,
        provider,
        similarity_pool,
        hot_store=hot_store,
        lookup_mode="layered",
    )

    match = await service.lookup("what's 2+2?")

    assert match.match_class is MatchClass.SEMANTIC


@pytest.mark.asyncio
async def test_hot_tier_outage_does_not_break_lookup(durable_store, hot_store, similarity_pool):
    durable_store.add("what is 2+2", "4", E1)
    hot_store.available = False
    provider = FakeEmbeddingProvider({"what's 2+2?": E2})
    service = make_service(
        durable_store,
        provider,
        similarity_pool,
        hot_store=hot_store,
        lookup_mode="layered",
        mirror_to_hot_tier=True,
    )

    assert await service.get_cached_result("what's 2+2?") == "4"
    await service.set_cache("new question", "new answer")
    assert "new question" in durable_store.entries


@pytest.mark.asyncio
async def test_metrics_and_stats(durable_store, similarity_pool):
    durable_store.add("what is 2+2", "4", E1)
    provider = FakeEmbeddingProvider({"what's 2+2?": E2})
    service = make_service(durable_store, provider, similarity_pool)

    await service.get_cached_result("what is 2+2")
    await service.get_cached_result("what's 2+2?")
    await service.get_cached_result("unrelated")

    stats = await service.get_stats()
    performance = stats["performance"]
    assert performance["total_lookups"] == 3
    assert performance["exact_hits"] == 1
    assert performance["semantic_hits"] == 1
    assert performance["misses"] == 1
    assert performance["hit_rate"] == pytest.approx(2 / 3)
    assert stats["config"]["lookup_mode"] == "semantic"
    assert stats["hot"] is None


@pytest.mark.asyncio
async def test_connect_survives_durable_outage(durable_store, embedding_provider, similarity_pool):
    durable_store.available = False
    service = make_service(durable_store, embedding_provider, similarity_pool)

    await service.connect()

    assert not await service.is_healthy()
    durable_store.available = True
    assert await service.is_healthy()


@pytest.mark.asyncio
async def test_close_releases_adapters(durable_store, embedding_provider):
    service = make_service(durable_store, embedding_provider, None)
    await service.connect()

    await service.close()

    assert not durable_store.connected
    assert embedding_provider.closed
