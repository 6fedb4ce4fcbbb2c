import logging
import os
from dataclasses import dataclass
from functools import lru_cache

import redis.asyncio as redis
from dotenv import load_dotenv
from pymongo import AsyncMongoClient

load_dotenv()

LOOKUP_MODES = ("semantic", "lexical", "layered")
EMBEDDING_PROVIDERS = ("voyage", "ollama", "local")
SIMILARITY_EXECUTORS = ("thread", "process")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables."""

    # MongoDB (durable tier)
    mongo_url: str = os.getenv("MONGO_URL", "mongodb://localhost:27017")
    mongo_db_name: str = os.getenv("MONGO_DB_NAME", "hybrid_cache")
    mongo_collection_name: str = os.getenv("MONGO_COLLECTION_NAME", "cache")
    mongo_timeout_ms: int = int(os.getenv("MONGO_TIMEOUT_MS", "5000"))

    # Redis (hot tier)
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379")
    redis_password: str | None = os.getenv("REDIS_PASSWORD")
    hot_tier_enabled: bool = _env_bool("HOT_TIER_ENABLED", "true")
    hot_tier_key_prefix: str = os.getenv("HOT_TIER_KEY_PREFIX", "cache:")
    hot_tier_ttl: int = int(os.getenv("HOT_TIER_TTL", "3600"))  # 1 hour
    hot_tier_min_similarity: float = float(os.getenv("HOT_TIER_MIN_SIMILARITY", "0.8"))
    hot_tier_error_log_limit: int = int(os.getenv("HOT_TIER_ERROR_LOG_LIMIT", "3"))

    # Cache engine
    cache_similarity_threshold: float = float(os.getenv("CACHE_SIMILARITY_THRESHOLD", "0.9"))
    cache_page_size: int = int(os.getenv("CACHE_PAGE_SIZE", "100"))
    cache_early_exit_score: float = float(os.getenv("CACHE_EARLY_EXIT_SCORE", "0.95"))
    cache_lookup_mode: str = os.getenv("CACHE_LOOKUP_MODE", "semantic")
    cache_mirror_to_hot_tier: bool = _env_bool("CACHE_MIRROR_TO_HOT_TIER", "true")

    # Similarity scoring
    similarity_executor: str = os.getenv("SIMILARITY_EXECUTOR", "thread")
    similarity_workers: int = int(os.getenv("SIMILARITY_WORKERS", "2"))

    # Embedding
    embedding_provider: str = os.getenv("EMBEDDING_PROVIDER", "voyage")
    embedding_model: str = os.getenv("EMBEDDING_MODEL", "voyage-3.5-lite")
    embedding_dimension: int = int(os.getenv("EMBEDDING_DIMENSION", "1024"))
    voyage_api_key: str | None = os.getenv("VOYAGE_API_KEY")
    voyage_embedding_url: str = os.getenv(
        "VOYAGE_EMBEDDING_URL", "https://api.voyageai.com/v1/embeddings"
    )

    # Ollama
    ollama_base_url: str = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")

    # Answer generation (cache warm-up only)
    generation_api_url: str = os.getenv(
        "GENERATION_API_URL", "https://api.llm7.io/v1/chat/completions"
    )
    generation_api_key: str | None = os.getenv("GENERATION_API_KEY")
    generation_models: str = os.getenv("GENERATION_MODELS", "gpt-4.1")

    # API
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    api_reload: bool = _env_bool("API_RELOAD", "false")

    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def generation_model_list(self) -> list[str]:
        """Comma separated GENERATION_MODELS as a list."""
        return [m.strip() for m in self.generation_models.split(",") if m.strip()]

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        if not -1 <= self.cache_similarity_threshold <= 1:
            raise ValueError("CACHE_SIMILARITY_THRESHOLD must be between -1 and 1 for cosine similarity")

        if not 0 <= self.cache_early_exit_score <= 1:
            raise ValueError("CACHE_EARLY_EXIT_SCORE must be between 0 and 1")

        if not 0 <= self.hot_tier_min_similarity <= 1:
            raise ValueError("HOT_TIER_MIN_SIMILARITY must be between 0 and 1")

        if self.cache_page_size < 1:
            raise ValueError(f"CACHE_PAGE_SIZE must be positive, got {self.cache_page_size}")

        if self.cache_lookup_mode not in LOOKUP_MODES:
            raise ValueError(
                f"CACHE_LOOKUP_MODE must be one of {list(LOOKUP_MODES)}, "
                f"got {self.cache_lookup_mode!r}"
            )

        if self.embedding_provider not in EMBEDDING_PROVIDERS:
            raise ValueError(
                f"EMBEDDING_PROVIDER must be one of {list(EMBEDDING_PROVIDERS)}, "
                f"got {self.embedding_provider!r}"
            )

        if self.similarity_executor not in SIMILARITY_EXECUTORS:
            raise ValueError(
                f"SIMILARITY_EXECUTOR must be one of {list(SIMILARITY_EXECUTORS)}, "
                f"got {self.similarity_executor!r}"
            )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for the service and scripts."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def get_redis_client(url: str | None = None) -> redis.Redis:
    """Create an asyncio Redis client instance for the hot tier."""
    return redis.from_url(
        url or settings.redis_url,
        password=settings.redis_password,
        decode_responses=True,
    )


def get_mongo_client(url: str | None = None) -> AsyncMongoClient:
    """Create an asyncio MongoDB client instance for the durable tier."""
    return AsyncMongoClient(
        url or settings.mongo_url,
        serverSelectionTimeoutMS=settings.mongo_timeout_ms,
    )
