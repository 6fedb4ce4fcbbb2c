"""Protocol interfaces for swappable implementations.

This package contains protocol definitions using structural typing.
Protocols enable:
- Easy swapping of implementations (MongoDB → PostgreSQL, Voyage → Ollama, etc.)
- Unit testing with in-memory implementations
- Clear separation of concerns

Usage:
    ```python
    from hybrid_cache.protocols import DurableStore, HotStore

    durable: DurableStore = MongoDurableRepository.create()
    hot: HotStore = RedisHotRepository.create()
    ```
"""

from .answer_generator import AnswerGenerator
from .durable_store import DurableStore
from .embedding_provider import EmbeddingProvider
from .hot_store import HotStore

__all__ = [
    "AnswerGenerator",
    "DurableStore",
    "EmbeddingProvider",
    "HotStore",
]
