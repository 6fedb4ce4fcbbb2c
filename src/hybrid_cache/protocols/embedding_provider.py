"""Embedding provider protocol.

Defines the interface for any embedding generation service that can
convert text to vector embeddings.

Implementations can include:
- Voyage AI embeddings (API, default)
- Ollama (local HTTP API)
- sentence-transformers (local, optional extra)
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Protocol for embedding generation services.

    Any type that implements these methods satisfies the protocol, no
    explicit inheritance needed. Failures surface as ``ProviderError``.

    Example:
        ```python
        from hybrid_cache.protocols import EmbeddingProvider

        provider: EmbeddingProvider = VoyageEmbeddingProvider.create()
        provider: EmbeddingProvider = OllamaEmbeddingProvider.create()
        ```
    """

    @property
    def dimension(self) -> int:
        """Return the dimension of the embedding vectors."""
        ...

    @property
    def model_name(self) -> str:
        """Return the name/identifier of the model."""
        ...

    async def embed(self, text: str) -> list[float]:
        """Generate embedding vector for a single text.

        Args:
            text: The text to encode

        Returns:
            The embedding vector as a list of floats

        Raises:
            ProviderError: On network failure or malformed response
        """
        ...

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts in one call.

        Args:
            texts: List of texts to encode

        Returns:
            List of embedding vectors, in the same order as ``texts``
        """
        ...

    async def is_available(self) -> bool:
        """Check if the embedding provider is available."""
        ...

    async def close(self) -> None:
        """Release any underlying client."""
        ...
