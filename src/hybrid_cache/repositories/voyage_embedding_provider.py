"""Voyage AI embedding provider.

Calls the Voyage ``/v1/embeddings`` endpoint with a bearer API key. The
endpoint accepts a list of inputs, so single-text and batch encoding share
one request path.

Models:
- voyage-3.5-lite (default, 1024 dims with output_dimension)
- voyage-3.5
- voyage-3-large
"""

import logging
import time

import httpx

from hybrid_cache.config import settings
from hybrid_cache.exceptions import ProviderError

logger = logging.getLogger(__name__)


class VoyageEmbeddingProvider:
    """Voyage AI implementation of EmbeddingProvider protocol.

    Example:
        ```python
        provider = VoyageEmbeddingProvider.create(api_key="...")
        embedding = await provider.embed("What is 2+2?")
        print(len(embedding))  # 1024
        ```
    """

    def __init__(
        self,
        api_key: str | None = None,
        model_name: str | None = None,
        base_url: str | None = None,
        output_dimension: int | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
        availability_ttl: float = 60.0,
    ) -> None:
        """Initialize the Voyage embedding provider.

        Args:
            api_key: Voyage API key. Defaults to settings.voyage_api_key.
            model_name: Voyage model. Defaults to settings.embedding_model.
            base_url: Embeddings endpoint. Defaults to settings.voyage_embedding_url.
            output_dimension: Requested vector size. Defaults to settings.embedding_dimension.
            timeout: Request timeout in seconds.
            client: HTTP client to use instead of a lazily created one.
            availability_ttl: Seconds an is_available() result is reused.
        """
        self._api_key = api_key or settings.voyage_api_key
        self._model_name = model_name or settings.embedding_model
        self._url = base_url or settings.voyage_embedding_url
        self._output_dimension = output_dimension or settings.embedding_dimension
        self._timeout = timeout
        self._client = client
        self._availability_ttl = availability_ttl
        self._availability: tuple[float, bool] | None = None

    @classmethod
    def create(
        cls,
        api_key: str | None = None,
        model_name: str | None = None,
        output_dimension: int | None = None,
    ) -> "VoyageEmbeddingProvider":
        """Factory method to create VoyageEmbeddingProvider with defaults."""
        return cls(api_key=api_key, model_name=model_name, output_dimension=output_dimension)

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    @property
    def dimension(self) -> int:
        return self._output_dimension

    @property
    def model_name(self) -> str:
        return self._model_name

    async def embed(self, text: str) -> list[float]:
        """Generate embedding vector for a single text.

        Raises:
            ProviderError: If the API request fails or the response is malformed
        """
        embeddings = await self.embed_batch([text])
        return embeddings[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts in one request.

        Args:
            texts: List of texts to encode

        Returns:
            List of embedding vectors in input order

        Raises:
            ProviderError: If the API request fails or the response is malformed
        """
        if not texts:
            return []

        payload = {
            "model": self._model_name,
            "input": texts,
            "output_dimension": self._output_dimension,
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}

        try:
            response = await self.client.post(self._url, json=payload, headers=headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                f"Voyage API error {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Voyage API request failed: {e}") from e
        except ValueError as e:
            raise ProviderError(f"Voyage API returned invalid JSON: {e}") from e

        return self._parse_embeddings(data, len(texts))

    def _parse_embeddings(self, data: object, expected: int) -> list[list[float]]:
        items = data.get("data") if isinstance(data, dict) else None
        if not isinstance(items, list) or len(items) != expected:
            raise ProviderError(f"Unexpected Voyage response format: expected {expected} embeddings")

        # Items carry their input position; do not rely on response order
        items = sorted(items, key=lambda item: item.get("index", 0))
        embeddings = []
        for item in items:
            embedding = item.get("embedding")
            if not isinstance(embedding, list) or len(embedding) != self._output_dimension:
                raise ProviderError(
                    f"Voyage embedding has wrong shape, expected {self._output_dimension} floats"
                )
            embeddings.append([float(v) for v in embedding])
        return embeddings

    async def is_available(self) -> bool:
        """Check if the Voyage API answers with a valid embedding.

        A result is reused for ``availability_ttl`` seconds.
        """
        now = time.monotonic()
        if self._availability is not None and now - self._availability[0] < self._availability_ttl:
            return self._availability[1]

        try:
            await self.embed("test")
            available = True
        except ProviderError as e:
            logger.debug("Voyage provider unavailable: %s", e)
            available = False
        self._availability = (now, available)
        return available

    async def close(self) -> None:
        """Close the async HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
