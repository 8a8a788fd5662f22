"""Embedding model integration with Hugging Face Inference API."""
import asyncio
import time
import logging
from typing import List, Optional
import httpx
import numpy as np
from config import HUGGINGFACE_API_KEY, EMBEDDING_MODEL, EMBEDDING_DIMENSION, EMBED_TIMEOUT
from services.errors import EmbeddingError

logger = logging.getLogger(__name__)


class EmbeddingModel:
    """Async wrapper for the Hugging Face Inference API embedding model.

    Without an API key the model is *unconfigured*: every call returns the
    zero vector of length `dimension` instead of failing, so indexing and
    search keep working (with vector scores of 0) in local setups.
    """

    def __init__(
        self,
        api_key: Optional[str] = HUGGINGFACE_API_KEY,
        model_name: str = EMBEDDING_MODEL,
        dimension: int = EMBEDDING_DIMENSION,
        max_retries: int = 5,
        initial_delay: float = 5.0,
        timeout: float = EMBED_TIMEOUT
    ):
        """
        Initialize the embedding model client.

        Args:
            api_key: Hugging Face API key; None or empty selects degraded mode
            model_name: Model identifier (default: sentence-transformers/all-mpnet-base-v2)
            dimension: Length of every embedding vector
            max_retries: Maximum number of attempts for 503/transport errors
            initial_delay: Initial delay in seconds for exponential backoff
            timeout: Request timeout in seconds
        """
        self.api_key = api_key or None
        self.model_name = model_name
        self.dimension = dimension
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.timeout = timeout
        self.api_url = f"https://api-inference.huggingface.co/models/{model_name}"

        if self.configured:
            logger.info(f"Initialized EmbeddingModel with model: {model_name} (dim={dimension})")
        else:
            logger.warning("HUGGINGFACE_API_KEY not configured, embeddings will be zero vectors")

    @property
    def configured(self) -> bool:
        return self.api_key is not None

    def zero_vector(self) -> np.ndarray:
        """Placeholder embedding used when no provider is configured."""
        return np.zeros(self.dimension, dtype=np.float32)

    async def embed(self, text: str) -> np.ndarray:
        """
        Generate the embedding for a single text.

        Args:
            text: Text to embed

        Returns:
            float32 vector of length `dimension`

        Raises:
            EmbeddingError: If the provider fails after all retries, times
                out, or returns a malformed vector
        """
        if not self.configured:
            return self.zero_vector()
        if not text or not text.strip():
            return self.zero_vector()

        return (await self._embed_with_retry([text]))[0]

    async def _embed_with_retry(self, texts: List[str]) -> List[np.ndarray]:
        """
        Call the HF API with exponential backoff.

        HF free tier models "sleep" and take 15-20s to load on first query,
        answering 503 in the meantime; those and transport errors are retried.
        Authentication, rate-limit and other non-2xx responses fail at once.
        """
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

        payload = {
            "inputs": texts,
            "options": {
                "wait_for_model": True
            }
        }

        delay = self.initial_delay
        last_error = None

        for attempt in range(self.max_retries):
            try:
                start_time = time.time()

                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(
                        self.api_url,
                        headers=headers,
                        json=payload
                    )

                elapsed = time.time() - start_time

                # Model still loading
                if response.status_code == 503:
                    logger.warning(
                        f"Model loading (503) on attempt {attempt + 1}/{self.max_retries}. "
                        f"Retrying in {delay}s..."
                    )
                    last_error = "Model not loaded (503)"
                    if attempt < self.max_retries - 1:
                        await asyncio.sleep(delay)
                        delay = min(delay * 2, 60.0)
                    continue

                if response.status_code == 429:
                    raise EmbeddingError(
                        "Rate limit exceeded for embedding provider",
                        {"status_code": 429, "model": self.model_name}
                    )

                if response.status_code == 401:
                    raise EmbeddingError(
                        "Invalid embedding provider API key",
                        {"status_code": 401, "model": self.model_name}
                    )

                if response.status_code != 200:
                    raise EmbeddingError(
                        f"Embedding request failed with status {response.status_code}",
                        {"status_code": response.status_code, "body": response.text[:500]}
                    )

                vectors = self._parse_embeddings(response.json(), len(texts))
                logger.debug(f"Generated embeddings for {len(texts)} texts in {elapsed:.2f}s")
                return vectors

            except httpx.TimeoutException:
                last_error = f"Request timeout after {self.timeout}s"
                logger.error(f"{last_error} on attempt {attempt + 1}/{self.max_retries}")
            except httpx.RequestError as e:
                last_error = f"Network error: {e}"
                logger.error(f"{last_error} on attempt {attempt + 1}/{self.max_retries}")

            if attempt < self.max_retries - 1:
                await asyncio.sleep(delay)
                delay = min(delay * 2, 60.0)

        raise EmbeddingError(
            f"Failed to generate embeddings after {self.max_retries} attempts",
            {"last_error": last_error, "model": self.model_name}
        )

    def _parse_embeddings(self, data, expected: int) -> List[np.ndarray]:
        """Convert the provider payload into float32 vectors of the configured dimension."""
        if not isinstance(data, list) or len(data) != expected:
            raise EmbeddingError(
                "Malformed embedding response",
                {"expected_vectors": expected, "payload_type": type(data).__name__}
            )

        vectors = []
        for item in data:
            try:
                vector = np.asarray(item, dtype=np.float32)
            except (TypeError, ValueError) as e:
                raise EmbeddingError("Malformed embedding vector", {"error": str(e)}) from e
            if vector.ndim != 1 or vector.shape[0] != self.dimension:
                raise EmbeddingError(
                    "Embedding dimension mismatch",
                    {"expected": self.dimension, "got": list(vector.shape)}
                )
            vectors.append(vector)
        return vectors

    async def warmup(self) -> bool:
        """
        Warm up the model with a dummy query to avoid cold start delays.

        Returns:
            True if warmup successful (or nothing to warm up), False otherwise
        """
        if not self.configured:
            return True
        try:
            logger.info("Warming up embedding model...")
            start_time = time.time()
            await self.embed("warmup query")
            logger.info(f"Model warmup completed in {time.time() - start_time:.1f}s")
            return True
        except EmbeddingError as e:
            logger.error(f"Model warmup failed: {e}")
            return False
