"""Repository layer for data access.

This layer abstracts external dependencies (MongoDB, Redis, embedding and
generation APIs) behind protocol-based interfaces. This enables:
- Easy swapping of implementations
- Unit testing with in-memory implementations
- Clear separation of concerns

The repositories are protocol-based (structural typing), not inheritance-based.
Any class implementing the required methods will satisfy the protocol.

``LocalEmbeddingProvider`` needs the optional sentence-transformers
dependency and is imported from its module directly.
"""

from hybrid_cache.protocols import AnswerGenerator, DurableStore, EmbeddingProvider, HotStore

from .chat_completion_generator import ChatCompletionGenerator
from .factory import create_embedding_provider
from .mongo_durable_repository import MongoDurableRepository
from .ollama_embedding_provider import OllamaEmbeddingProvider
from .redis_hot_repository import RedisHotRepository
from .voyage_embedding_provider import VoyageEmbeddingProvider

__all__ = [
    "AnswerGenerator",
    "DurableStore",
    "EmbeddingProvider",
    "HotStore",
    "ChatCompletionGenerator",
    "MongoDurableRepository",
    "OllamaEmbeddingProvider",
    "RedisHotRepository",
    "VoyageEmbeddingProvider",
    "create_embedding_provider",
]
