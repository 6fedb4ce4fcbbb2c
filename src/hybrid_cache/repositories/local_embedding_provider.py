"""Local sentence-transformers embedding provider.

Runs a sentence-transformers model in-process, no API calls required.
Needs the ``local`` extra: ``pip install hybrid-answer-cache[local]``.

Encoding is CPU-bound, so it runs in a worker thread to keep the event
loop responsive.
"""

import asyncio
import logging
import time

import numpy as np
from sentence_transformers import SentenceTransformer

from hybrid_cache.config import settings
from hybrid_cache.exceptions import ProviderError

logger = logging.getLogger(__name__)


class LocalEmbeddingProvider:
    """Local sentence-transformers implementation of EmbeddingProvider.

    Set EMBEDDING_MODEL to a sentence-transformers model name, e.g.
    paraphrase-multilingual-MiniLM-L12-v2 (384 dimensions).
    """

    def __init__(self, model_name: str | None = None) -> None:
        """Initialize the local embedding provider.

        Args:
            model_name: Name of the sentence-transformers model.
                       Defaults to settings.embedding_model.
        """
        self._model_name = model_name or settings.embedding_model
        self._model: SentenceTransformer | None = None
        self._dimension: int | None = None

    @classmethod
    def create(cls, model_name: str | None = None) -> "LocalEmbeddingProvider":
        """Factory method to create LocalEmbeddingProvider with defaults."""
        return cls(model_name=model_name)

    @property
    def model(self) -> SentenceTransformer:
        """Lazy-load the embedding model."""
        if self._model is None:
            logger.info("Loading embedding model: %s", self._model_name)
            start_time = time.time()
            self._model = SentenceTransformer(self._model_name)
            logger.info("Model loaded in %.2fs", time.time() - start_time)
        return self._model

    @property
    def dimension(self) -> int:
        """Get the embedding vector dimension."""
        if self._dimension is None:
            self._dimension = self.model.get_sentence_embedding_dimension()
        return self._dimension

    @property
    def model_name(self) -> str:
        return self._model_name

    def _encode(self, texts: list[str], batch_size: int) -> list[list[float]]:
        embeddings = self.model.encode(
            texts,
            batch_size=batch_size,
            show_progress_bar=False,
            normalize_embeddings=True,
        )
        return np.asarray(embeddings, dtype=float).tolist()

    async def embed(self, text: str) -> list[float]:
        """Generate embedding vector for a single text."""
        embeddings = await self.embed_batch([text])
        return embeddings[0]

    async def embed_batch(self, texts: list[str], batch_size: int = 32) -> list[list[float]]:
        """Generate embeddings for multiple texts efficiently.

        Raises:
            ProviderError: If the model cannot be loaded or encoding fails
        """
        if not texts:
            return []
        try:
            return await asyncio.to_thread(self._encode, texts, batch_size)
        except (OSError, RuntimeError, ValueError) as e:
            raise ProviderError(f"Local embedding failed: {e}") from e

    async def is_available(self) -> bool:
        """Check if the model can be loaded."""
        try:
            await asyncio.to_thread(lambda: self.model)
            return True
        except (OSError, RuntimeError, ValueError) as e:
            logger.debug("Local embedding model unavailable: %s", e)
            return False

    async def close(self) -> None:
        """Release the loaded model."""
        self._model = None
