"""Build repository implementations from settings."""

from hybrid_cache.config import Settings, settings
from hybrid_cache.protocols import EmbeddingProvider

from .ollama_embedding_provider import OllamaEmbeddingProvider
from .voyage_embedding_provider import VoyageEmbeddingProvider


def create_embedding_provider(config: Settings | None = None) -> EmbeddingProvider:
    """Create the embedding provider selected by EMBEDDING_PROVIDER.

    ⚠️ Switching providers or dimensions makes stored embeddings
    incomparable; run the backfill with --overwrite afterwards.
    """
    config = config or settings
    if config.embedding_provider == "voyage":
        return VoyageEmbeddingProvider(
            api_key=config.voyage_api_key,
            model_name=config.embedding_model,
            base_url=config.voyage_embedding_url,
            output_dimension=config.embedding_dimension,
        )
    if config.embedding_provider == "ollama":
        return OllamaEmbeddingProvider(
            model_name=config.embedding_model,
            base_url=config.ollama_base_url,
        )
    if config.embedding_provider == "local":
        # Optional dependency (sentence-transformers), imported on demand
        from .local_embedding_provider import LocalEmbeddingProvider

        return LocalEmbeddingProvider(model_name=config.embedding_model)
    raise ValueError(f"Unknown embedding provider: {config.embedding_provider!r}")
