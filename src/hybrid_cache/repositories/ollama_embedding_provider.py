"""Ollama-based embedding provider.

Uses Ollama's local API to generate embeddings. Ollama serves models locally
without requiring HuggingFace authentication or downloading models manually.

Requirements:
    - Ollama installed: https://ollama.com
    - Model pulled: `ollama pull embeddinggemma`
    - Ollama running: `ollama serve` (usually runs automatically)

Models available:
- embeddinggemma (308M params, 768 dims, 2K context)
- nomic-embed-text (137M params, 768 dims)
- mxbai-embed-large (335M params, 1024 dims)
- all-minilm (22M params, 384 dims)
"""

import logging

import httpx

from hybrid_cache.config import settings
from hybrid_cache.exceptions import ProviderError

logger = logging.getLogger(__name__)


class OllamaEmbeddingProvider:
    """Ollama-based implementation of EmbeddingProvider protocol.

    Uses Ollama's ``/api/embed`` endpoint, which takes either one string or
    a list of strings as input.

    Example:
        ```python
        provider = OllamaEmbeddingProvider.create(
            model_name="embeddinggemma",
            base_url="http://localhost:11434"
        )
        embedding = await provider.embed("Hello, world!")
        print(len(embedding))  # 768
        ```
    """

    # Known model dimensions (for common models)
    MODEL_DIMENSIONS = {
        "embeddinggemma": 768,
        "embeddinggemma:300m": 768,
        "nomic-embed-text": 768,
        "mxbai-embed-large": 1024,
        "all-minilm": 384,
        "all-minilm:l6-v2": 384,
    }

    def __init__(
        self,
        model_name: str | None = None,
        base_url: str | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the Ollama embedding provider.

        Args:
            model_name: Name of the Ollama model.
                       Defaults to settings.embedding_model.
            base_url: Ollama API base URL.
                     Defaults to settings.ollama_base_url.
            timeout: Request timeout in seconds.
            client: HTTP client to use instead of a lazily created one.
        """
        self._model_name = model_name or settings.embedding_model
        self._base_url = base_url or settings.ollama_base_url
        self._timeout = timeout
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
            )
        return self._client

    @classmethod
    def create(
        cls,
        model_name: str | None = None,
        base_url: str | None = None,
    ) -> "OllamaEmbeddingProvider":
        """Factory method to create OllamaEmbeddingProvider with defaults.

        Args:
            model_name: Model name. If None, uses settings.
            base_url: Ollama API URL. If None, uses settings.

        Returns:
            Configured OllamaEmbeddingProvider
        """
        return cls(model_name=model_name, base_url=base_url)

    @property
    def dimension(self) -> int:
        """Get the embedding vector dimension.

        Known models use their published size; anything else falls back to
        settings.embedding_dimension.
        """
        return self.MODEL_DIMENSIONS.get(self._model_name, settings.embedding_dimension)

    @property
    def model_name(self) -> str:
        return self._model_name

    async def embed(self, text: str) -> list[float]:
        """Generate embedding vector for a single text.

        Raises:
            ProviderError: If the Ollama API request fails or the response is invalid
        """
        embeddings = await self._request(text)
        return embeddings[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts in one request.

        Raises:
            ProviderError: If the Ollama API request fails or the response is invalid
        """
        if not texts:
            return []
        embeddings = await self._request(texts)
        if len(embeddings) != len(texts):
            raise ProviderError(
                f"Ollama returned {len(embeddings)} embeddings for {len(texts)} inputs"
            )
        return embeddings

    async def _request(self, payload_input: str | list[str]) -> list[list[float]]:
        url = f"{self._base_url}/api/embed"
        payload = {
            "model": self._model_name,
            "input": payload_input,
        }

        try:
            response = await self.client.post(url, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            error_msg = f"Ollama API error: {e}"
            if "connection refused" in str(e).lower():
                error_msg += " (is Ollama running? Try: ollama serve)"
            elif "not found" in str(e).lower():
                error_msg += f" (model not found? Try: ollama pull {self._model_name})"
            raise ProviderError(error_msg) from e
        except ValueError as e:
            raise ProviderError(f"Ollama API returned invalid JSON: {e}") from e

        # Ollama returns {"embeddings": [[...], ...]}
        embeddings = data.get("embeddings") if isinstance(data, dict) else None
        if not embeddings:
            raise ProviderError(f"Unexpected Ollama response format: {str(data)[:200]}")
        return embeddings

    async def is_available(self) -> bool:
        """Check if Ollama is running and the model answers."""
        try:
            await self.embed("test")
            return True
        except ProviderError as e:
            logger.debug("Ollama provider unavailable: %s", e)
            return False

    async def close(self) -> None:
        """Close the async HTTP client.

        Should be called when shutting down the application.
        """
        if self._client is not None:
            await self._client.aclose()
            self._client = None
