from abc import ABC, abstractmethod
from typing import Any

import httpx
from cachetools import TTLCache
from loguru import logger

from src.signin.core.errors import KeySetUnavailable


class JWKSCache(ABC):
    @abstractmethod
    def get_jwks(self, jwks_uri: str) -> dict[str, Any]:
        """
        Get JWKS for the given key set URL from cache.

        Args:
            jwks_uri: The JWKS endpoint URL

        Returns:
            JWKS dictionary, empty when not cached
        """
        raise NotImplementedError

    @abstractmethod
    def set_jwks(self, jwks_uri: str, jwks: dict[str, Any]) -> None:
        """
        Set JWKS for the given key set URL in cache.

        Args:
            jwks_uri: The JWKS endpoint URL
            jwks: The JWKS dictionary to cache
        """
        raise NotImplementedError

    @abstractmethod
    def clear_jwks_cache(self) -> None:
        """Clear the JWKS cache."""
        raise NotImplementedError


class JWKSCacheInMemory(JWKSCache):
    def __init__(self, maxsize: int = 10, ttl: int = 3600) -> None:
        self._cache: TTLCache[str, dict[str, Any]] = TTLCache(maxsize=maxsize, ttl=ttl)

    def get_jwks(self, jwks_uri: str) -> dict[str, Any]:
        return self._cache.get(jwks_uri, {})

    def set_jwks(self, jwks_uri: str, jwks: dict[str, Any]) -> None:
        self._cache[jwks_uri] = jwks

    def clear_jwks_cache(self) -> None:
        self._cache.clear()


class JwksService:
    def __init__(self, cache: JWKSCache, timeout: float = 5.0) -> None:
        self._cache = cache
        self._timeout = timeout

    async def fetch_jwks(self, jwks_uri: str) -> dict[str, Any]:
        """Return the provider key set, served from cache when fresh.

        Raises:
            KeySetUnavailable: If the endpoint is missing or unreachable
        """
        if not jwks_uri:
            raise KeySetUnavailable("Issuer has no JWKS URI configured")

        jwks = self._cache.get_jwks(jwks_uri)
        if jwks:
            return jwks

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.get(jwks_uri)
                resp.raise_for_status()
                jwks = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Failed to fetch JWKS from {}: {}", jwks_uri, exc)
            raise KeySetUnavailable(f"Failed to fetch JWKS: {exc}") from exc

        if not isinstance(jwks, dict) or not jwks.get("keys"):
            raise KeySetUnavailable(f"JWKS at {jwks_uri} contains no keys")

        self._cache.set_jwks(jwks_uri, jwks)
        return jwks
