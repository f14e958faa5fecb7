"""Text embedding with lazy, single-flight initialization."""
import asyncio
from typing import List, Optional

import structlog

from ragchat import config
from ragchat.errors import DimensionMismatchError, EmbeddingError
from ragchat.llm_client import LLMClient

logger = structlog.get_logger()

_PROBE_TEXT = "dimension probe"


class Embedder:
    """Turns text into fixed-length vectors via the embedding service.

    The first call probes the model once to learn its dimension. Concurrent
    callers that arrive before the probe finishes wait on the same probe. A
    failed probe is discarded so a later call can try again.
    """

    def __init__(self, client: LLMClient, model: str = None):
        self.client = client
        self.model = model or config.EMBEDDING_MODEL

        self.dimension: Optional[int] = None
        self._init_task: Optional[asyncio.Task] = None

    async def _initialize(self) -> int:
        logger.info("loading_embedding_model", model=self.model)

        try:
            embedding = await self.client.embeddings(_PROBE_TEXT, model=self.model)
        except Exception as e:
            logger.error("embedding_model_load_failed", model=self.model, error=str(e))
            raise EmbeddingError(f"Failed to load embedding model {self.model}: {e}") from e

        if not embedding:
            raise EmbeddingError(f"Empty embedding returned by {self.model}")

        self.dimension = len(embedding)
        logger.info("embedding_model_loaded", model=self.model, dimension=self.dimension)
        return self.dimension

    async def ensure_ready(self) -> int:
        """Initialize once and return the embedding dimension."""
        if self.dimension is not None:
            return self.dimension

        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._initialize())

        task = self._init_task
        try:
            return await asyncio.shield(task)
        except EmbeddingError:
            if self._init_task is task:
                self._init_task = None
            raise

    async def embed(self, text: str) -> List[float]:
        """Embed ``text``.

        Raises:
            EmbeddingError: If the service fails or returns an empty vector
            DimensionMismatchError: If the vector length differs from the probed one
        """
        dimension = await self.ensure_ready()

        try:
            embedding = await self.client.embeddings(text, model=self.model)
        except Exception as e:
            raise EmbeddingError(f"Embedding request failed: {e}") from e

        if not embedding:
            raise EmbeddingError("Empty embedding returned for text")

        if len(embedding) != dimension:
            raise DimensionMismatchError(dimension, len(embedding))

        return [float(x) for x in embedding]
