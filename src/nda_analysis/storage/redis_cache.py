"""
Redis-backed embedding vector cache.
"""

import hashlib
import json
from functools import lru_cache
from typing import Any

import structlog
from redis import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from nda_analysis.config import get_settings

logger = structlog.get_logger(__name__)

_REDIS_ERRORS = (RedisConnectionError, RedisTimeoutError)


class RedisCache:
    """
    Embedding vectors keyed by (model, text), shared across runs.

    A disabled or unreachable cache behaves as an empty one: reads miss
    and writes are dropped.
    """

    def __init__(
        self,
        url: str | None = None,
        enabled: bool | None = None,
        ttl_seconds: int | None = None,
    ):
        settings = get_settings()
        self.url = url or settings.redis_url
        self.enabled = settings.redis_enabled if enabled is None else enabled
        self.ttl_seconds = ttl_seconds or settings.embedding_cache_ttl_seconds
        self._client: Redis | None = None

    @property
    def client(self) -> Redis:
        if self._client is None:
            self._client = Redis.from_url(self.url, decode_responses=True)
            logger.info("redis_connected", url=self.url)
        return self._client

    def health_check(self) -> bool:
        """Check Redis connectivity."""
        try:
            self.client.ping()
            return True
        except _REDIS_ERRORS as e:
            logger.error("redis_health_check_failed", error=str(e))
            return False

    @staticmethod
    def _decode(key: str, value: str | None) -> Any | None:
        if not value:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            logger.warning("cache_value_corrupt", key=key)
            return None

    # =========================================================================
    # Embeddings
    # =========================================================================

    @staticmethod
    def _make_embedding_key(text: str, model: str) -> str:
        """SHA-256 over the model name and the full text."""
        digest = hashlib.sha256(f"{model}:{text}".encode()).hexdigest()
        return f"emb:{digest}"

    def get_embeddings(self, texts: list[str], model: str) -> list[list[float] | None]:
        """Cached vectors aligned with `texts`; None marks a miss."""
        if not self.enabled or not texts:
            return [None] * len(texts)
        keys = [self._make_embedding_key(t, model) for t in texts]
        try:
            values = self.client.mget(keys)
        except _REDIS_ERRORS as e:
            logger.warning("embedding_cache_read_failed", count=len(keys), error=str(e))
            return [None] * len(texts)
        return [self._decode(k, v) for k, v in zip(keys, values)]

    def set_embeddings(self, items: list[tuple[str, list[float]]], model: str) -> int:
        """Store (text, vector) pairs in one pipeline; returns the number written."""
        if not self.enabled or not items:
            return 0
        try:
            pipe = self.client.pipeline(transaction=False)
            for text, vector in items:
                pipe.setex(self._make_embedding_key(text, model), self.ttl_seconds, json.dumps(vector))
            pipe.execute()
        except _REDIS_ERRORS as e:
            logger.warning("embedding_cache_write_failed", count=len(items), error=str(e))
            return 0
        return len(items)


@lru_cache()
def get_redis_cache() -> RedisCache:
    """Get cached Redis cache instance."""
    return RedisCache()
