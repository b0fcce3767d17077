"""
Redis Key-Value Store

Small JSON key-value layer over Redis used for per-conversation flags.
Values never expire: a conversation's state lives under its key until
someone overwrites it.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import redis.asyncio as redis

logger = logging.getLogger(__name__)


class RedisKeyValueStore:
    """JSON values stored under plain Redis string keys."""

    def __init__(self, redis_url: str, key_prefix: str = ""):
        """
        Args:
            redis_url: Redis connection URL (e.g., "redis://localhost:6379/0")
            key_prefix: Prepended to every key, e.g. "ragbot:"
        """
        self.redis_url = redis_url
        self.key_prefix = key_prefix
        self.redis_client: Optional[redis.Redis] = None
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        """Establish connection to Redis."""
        try:
            self.redis_client = redis.from_url(self.redis_url, decode_responses=True)
            await self.redis_client.ping()
            self._connected = True
            logger.info("Connected to Redis")
        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            self._connected = False
            raise

    async def close(self) -> None:
        """Close Redis connection."""
        if self.redis_client:
            await self.redis_client.aclose()
            self._connected = False
            logger.info("Redis connection closed")

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def get(self, key: str) -> Optional[Any]:
        """
        Read a value.

        Returns:
            The decoded JSON value, or None when the key is absent
        """
        if not self._connected or not self.redis_client:
            raise ConnectionError("Redis is not connected")

        data = await self.redis_client.get(self._key(key))
        if data is None:
            return None
        return json.loads(data)

    async def set(self, key: str, value: Any) -> None:
        """Store a JSON-serialisable value without expiry."""
        if not self._connected or not self.redis_client:
            raise ConnectionError("Redis is not connected")

        await self.redis_client.set(self._key(key), json.dumps(value))
