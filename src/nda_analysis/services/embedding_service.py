"""
Sentence embeddings for chunk, query and reference texts.
"""

from functools import lru_cache

import structlog
from sentence_transformers import SentenceTransformer

from nda_analysis.config import get_settings
from nda_analysis.storage.redis_cache import RedisCache, get_redis_cache

logger = structlog.get_logger(__name__)


class EmbeddingService:
    """
    Encodes texts with a sentence-transformers model.

    Vectors are looked up in the Redis cache first; only misses are
    encoded. Blank texts map to the zero vector without touching the
    model or the cache.
    """

    def __init__(self, cache: RedisCache | None = None):
        self.settings = get_settings()
        self.model_name = self.settings.embedding_model
        self.dimension = self.settings.embedding_dimension
        self._model: SentenceTransformer | None = None
        self._cache = cache

    @property
    def cache(self) -> RedisCache:
        if self._cache is None:
            self._cache = get_redis_cache()
        return self._cache

    @property
    def model(self) -> SentenceTransformer:
        """Lazy-load the embedding model."""
        if self._model is None:
            logger.info("loading_embedding_model", model=self.model_name)
            self._model = SentenceTransformer(self.model_name)
            logger.info("embedding_model_loaded", model=self.model_name, dimension=self.dimension)
        return self._model

    def embed(self, text: str, use_cache: bool = True) -> list[float]:
        return self.embed_batch([text], use_cache=use_cache)[0]

    def embed_batch(
        self,
        texts: list[str],
        use_cache: bool = True,
        batch_size: int = 32,
    ) -> list[list[float]]:
        """
        Embed texts, preserving input order.

        Args:
            texts: Texts to embed
            use_cache: Read and write the Redis cache
            batch_size: Encoder batch size for the cache misses

        Returns:
            One vector per input text
        """
        vectors: list[list[float] | None] = [
            None if text.strip() else [0.0] * self.dimension for text in texts
        ]
        pending = [i for i, v in enumerate(vectors) if v is None]

        if use_cache and pending:
            cached = self.cache.get_embeddings([texts[i] for i in pending], self.model_name)
            for i, vector in zip(pending, cached):
                vectors[i] = vector
            pending = [i for i in pending if vectors[i] is None]

        if pending:
            encoded = self.model.encode(
                [texts[i] for i in pending],
                convert_to_numpy=True,
                batch_size=batch_size,
                show_progress_bar=len(pending) > 100,
            )
            fresh = [(i, row.tolist()) for i, row in zip(pending, encoded)]
            for i, vector in fresh:
                vectors[i] = vector
            if use_cache:
                self.cache.set_embeddings([(texts[i], v) for i, v in fresh], self.model_name)

        logger.debug("texts_embedded", count=len(texts), encoded=len(pending))
        return vectors


@lru_cache()
def get_embedding_service() -> EmbeddingService:
    """Get cached embedding service instance."""
    return EmbeddingService()
