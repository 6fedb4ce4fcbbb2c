"""
Tests for the hybrid cache API.
"""

import pytest
from conftest import FakeEmbeddingProvider, InMemoryDurableStore
from fastapi.testclient import TestClient

from hybrid_cache.api.app import app
from hybrid_cache.handlers import CacheHandler
from hybrid_cache.services import CacheService, SimilarityWorkerPool


@pytest.fixture
def durable():
    store = InMemoryDurableStore()
    store.add("what is 2+2", "4", [1.0, 0.0, 0.0])
    return store


@pytest.fixture
def provider():
    return FakeEmbeddingProvider({"what's 2+2?": [0.93, 0.3676, 0.0]})


@pytest.fixture
def client(durable, provider):
    """Create a test client with in-memory backends (lifespan not run)."""
    pool = SimilarityWorkerPool(max_workers=1)
    service = CacheService(
        durable_store=durable,
        embedding_provider=provider,
        similarity_pool=pool,
        threshold=0.9,
        lookup_mode="semantic",
        mirror_to_hot_tier=False,
    )
    app.state.cache_service = service
    app.state.cache_handler = CacheHandler(cache_service=service)
    yield TestClient(app)
    del app.state.cache_handler
    del app.state.cache_service
    pool.close()


def test_root(client):
    """Test root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Hybrid Answer Cache API"


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["hot_healthy"] is None


def test_health_unavailable(client, durable):
    durable.available = False
    response = client.get("/health")
    assert response.status_code == 503
    assert response.json()["durable_healthy"] is False


def test_lookup_exact_hit(client):
    response = client.post("/cache/lookup", json={"prompt": "What is 2+2"})
    assert response.status_code == 200
    data = response.json()
    assert data["is_hit"] is True
    assert data["match_class"] == "exact"
    assert data["value"] == "4"
    assert data["score"] == 1.0


def test_lookup_semantic_hit(client):
    response = client.post("/cache/lookup", json={"prompt": "what's 2+2?"})
    data = response.json()
    assert data["is_hit"] is True
    assert data["match_class"] == "semantic"


def test_lookup_miss(client):
    response = client.post("/cache/lookup", json={"prompt": "what's 2+2?", "threshold": 0.99})
    assert response.status_code == 200
    data = response.json()
    assert data["is_hit"] is False
    assert data["value"] is None
    assert "lookup_time_ms" in data


def test_lookup_rejects_invalid_threshold(client):
    response = client.post("/cache/lookup", json={"prompt": "hi", "threshold": 2})
    assert response.status_code == 422


def test_store_then_lookup(client, durable):
    response = client.post("/cache/store", json={"prompt": "  New Prompt ", "response": "new"})
    assert response.status_code == 200
    assert response.json()["key"] == "new prompt"
    assert "new prompt" in durable.entries

    response = client.post("/cache/lookup", json={"prompt": "new prompt"})
    assert response.json()["value"] == "new"


def test_get_stats(client):
    client.post("/cache/lookup", json={"prompt": "What is 2+2"})
    response = client.get("/stats")
    assert response.status_code == 200
    data = response.json()
    assert data["performance"]["exact_hits"] == 1
    assert data["config"]["lookup_mode"] == "semantic"
    assert data["hot"] is None
