"""
Cart key-value store.

A small get/set/delete capability with an in-memory implementation for
development and tests and a Redis implementation for deployments. One is
chosen at process start and injected; nothing looks it up globally.
"""
import json
from typing import Any, Optional, Protocol

from redis import asyncio as aioredis

from checkout_api.core.config import Settings
from checkout_api.core.logging import get_logger

logger = get_logger(__name__)


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Optional[Any]: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def delete(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    """Process-local store; values are JSON round-tripped like the Redis one."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)


class RedisKeyValueStore:
    """Redis-backed store holding JSON values."""

    def __init__(self, client: aioredis.Redis) -> None:
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisKeyValueStore":
        return cls(aioredis.Redis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> Optional[Any]:
        raw = await self.client.get(key)
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any) -> None:
        await self.client.set(key, json.dumps(value))

    async def delete(self, key: str) -> None:
        await self.client.delete(key)

    async def close(self) -> None:
        await self.client.aclose()


def create_kv_store(settings: Settings) -> KeyValueStore:
    """Pick the implementation once, from configuration."""
    if settings.redis_url:
        logger.info("Using Redis cart store")
        return RedisKeyValueStore.from_url(str(settings.redis_url))
    logger.info("Using in-memory cart store")
    return InMemoryKeyValueStore()


def cart_key(user_id: str) -> str:
    return f"cart-{user_id}"
