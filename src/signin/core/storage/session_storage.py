"""Session storage interface and implementations.

Holds short-lived OAuth flow state (PKCE verifier, state, nonce) between
the sign-in redirect and the provider callback. Redis is used when it is
enabled and reachable, otherwise an in-process store.
"""

from __future__ import annotations

import fnmatch
import json
import time
from abc import ABC, abstractmethod
from typing import Any, TypeVar

import redis.asyncio as redis
from loguru import logger
from pydantic import BaseModel, ValidationError
from redis.exceptions import RedisError

from src.signin.runtime.config.config_data import ConfigData

T = TypeVar("T", bound=BaseModel)


class SessionStorage(ABC):
    """Abstract interface for session storage backends."""

    @abstractmethod
    async def set(self, key: str, value: BaseModel, ttl_seconds: int) -> None:
        """Store a session with TTL.

        Args:
            key: Session identifier
            value: Session data (Pydantic model)
            ttl_seconds: Time to live in seconds
        """

    @abstractmethod
    async def get(self, key: str, model_class: type[T]) -> T | None:
        """Retrieve a session, or None if not found/expired."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete a session."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if session exists and is not expired."""

    @abstractmethod
    async def cleanup_expired(self) -> int:
        """Clean up expired sessions.

        Returns:
            Number of sessions cleaned up
        """

    @abstractmethod
    async def list_keys(self, pattern: str) -> list[str]:
        """List keys matching a glob pattern (e.g. ``auth:*``)."""

    async def list_sessions(self, pattern: str, model_class: type[T]) -> list[T]:
        """List valid, non-expired sessions matching a pattern."""
        sessions = []
        for key in await self.list_keys(pattern):
            session = await self.get(key, model_class)
            if session:
                sessions.append(session)
        return sessions

    @abstractmethod
    def is_available(self) -> bool:
        """Check if storage backend is available."""

    async def ping(self) -> bool:
        return self.is_available()

    async def close(self) -> None:
        """Release backend resources."""


class InMemorySessionStorage(SessionStorage):
    """In-memory session storage with TTL support."""

    def __init__(self):
        self._data: dict[str, dict[str, Any]] = {}

    async def set(self, key: str, value: BaseModel, ttl_seconds: int) -> None:
        self._data[key] = {
            "data": json.loads(value.model_dump_json()),
            "expires_at": time.time() + ttl_seconds,
        }

    async def get(self, key: str, model_class: type[T]) -> T | None:
        if not await self.exists(key):
            return None

        try:
            return model_class.model_validate(self._data[key]["data"])
        except ValidationError:
            logger.warning("Discarding corrupted session entry {}", key)
            del self._data[key]
            return None

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def exists(self, key: str) -> bool:
        entry = self._data.get(key)
        if entry is None:
            return False

        if time.time() > entry["expires_at"]:
            del self._data[key]
            return False

        return True

    async def cleanup_expired(self) -> int:
        now = time.time()
        expired_keys = [
            key for key, entry in self._data.items() if now > entry["expires_at"]
        ]

        for key in expired_keys:
            del self._data[key]

        return len(expired_keys)

    async def list_keys(self, pattern: str) -> list[str]:
        await self.cleanup_expired()
        return [key for key in self._data if fnmatch.fnmatch(key, pattern)]

    def is_available(self) -> bool:
        """In-memory storage is always available."""
        return True


class RedisSessionStorage(SessionStorage):
    """Redis-based session storage with serialization."""

    def __init__(self, redis_client: redis.Redis):
        self._redis = redis_client
        self._available = True

    async def set(self, key: str, value: BaseModel, ttl_seconds: int) -> None:
        try:
            await self._redis.setex(key, ttl_seconds, value.model_dump_json())
            self._available = True
        except RedisError as e:
            self._available = False
            raise RuntimeError(f"Redis set failed: {e}") from e

    async def get(self, key: str, model_class: type[T]) -> T | None:
        try:
            data = await self._redis.get(key)
        except RedisError as e:
            self._available = False
            raise RuntimeError(f"Redis get failed: {e}") from e

        self._available = True
        if data is None:
            return None

        if isinstance(data, bytes):
            data = data.decode("utf-8")

        try:
            return model_class.model_validate_json(data)
        except ValidationError:
            logger.warning("Discarding corrupted session entry {}", key)
            await self.delete(key)
            return None

    async def delete(self, key: str) -> None:
        try:
            await self._redis.delete(key)
            self._available = True
        except RedisError as e:
            self._available = False
            raise RuntimeError(f"Redis delete failed: {e}") from e

    async def exists(self, key: str) -> bool:
        try:
            result = await self._redis.exists(key)
            self._available = True
            return bool(result)
        except RedisError as e:
            self._available = False
            raise RuntimeError(f"Redis exists failed: {e}") from e

    async def cleanup_expired(self) -> int:
        """Redis handles expiration automatically."""
        return 0

    async def list_keys(self, pattern: str) -> list[str]:
        try:
            keys = []
            cursor = 0

            while True:
                cursor, batch = await self._redis.scan(cursor, match=pattern, count=100)
                keys.extend(batch)

                if cursor == 0:
                    break

            self._available = True
            return keys
        except RedisError as e:
            self._available = False
            raise RuntimeError(f"Redis scan failed: {e}") from e

    def is_available(self) -> bool:
        return self._available

    async def ping(self) -> bool:
        """Test Redis connection health."""
        try:
            await self._redis.ping()
            self._available = True
        except RedisError:
            self._available = False
        return self._available

    async def close(self) -> None:
        await self._redis.aclose()


async def build_session_storage(config: ConfigData) -> SessionStorage:
    """Create Redis storage when configured and reachable, else in-memory."""
    if not config.redis.enabled or not config.redis.url:
        logger.info("Session storage: in-memory (Redis not configured)")
        return InMemorySessionStorage()

    redis_client = redis.from_url(
        config.redis.connection_string,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=2,
        socket_timeout=2,
    )
    redis_storage = RedisSessionStorage(redis_client)
    if await redis_storage.ping():
        logger.info("Session storage: Redis connected")
        return redis_storage

    logger.warning("Redis unavailable, using in-memory session storage")
    await redis_storage.close()
    return InMemorySessionStorage()
