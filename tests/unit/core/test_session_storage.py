"""Tests for auth-session storage and the auth-session service."""

import asyncio
import time
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pydantic import BaseModel
from redis.exceptions import ConnectionError as RedisConnectionError

from src.signin.core.models.session import AuthSession
from src.signin.core.storage import (
    InMemorySessionStorage,
    RedisSessionStorage,
    build_session_storage,
)
from src.signin.runtime.config.config_data import RedisConfig


class StoredItem(BaseModel):
    id: str
    data: str


class TestInMemorySessionStorage:
    def setup_method(self):
        self.storage = InMemorySessionStorage()

    @pytest.mark.asyncio
    async def test_set_and_get(self):
        await self.storage.set("item-1", StoredItem(id="1", data="x"), 60)

        retrieved = await self.storage.get("item-1", StoredItem)

        assert retrieved == StoredItem(id="1", data="x")
        assert await self.storage.exists("item-1")

    @pytest.mark.asyncio
    async def test_missing_key(self):
        assert await self.storage.get("nope", StoredItem) is None
        assert not await self.storage.exists("nope")

    @pytest.mark.asyncio
    async def test_entries_expire(self):
        await self.storage.set("short", StoredItem(id="1", data="x"), 1)
        await asyncio.sleep(1.1)

        assert await self.storage.get("short", StoredItem) is None

    @pytest.mark.asyncio
    async def test_delete(self):
        await self.storage.set("item-1", StoredItem(id="1", data="x"), 60)
        await self.storage.delete("item-1")
        await self.storage.delete("item-1")

        assert not await self.storage.exists("item-1")

    @pytest.mark.asyncio
    async def test_corrupted_entry_is_discarded(self):
        await self.storage.set("item-1", StoredItem(id="1", data="x"), 60)

        assert await self.storage.get("item-1", AuthSession) is None
        assert not await self.storage.exists("item-1")

    @pytest.mark.asyncio
    async def test_cleanup_and_listing(self):
        await self.storage.set("auth:a", StoredItem(id="a", data="x"), 60)
        await self.storage.set("auth:b", StoredItem(id="b", data="x"), 60)
        await self.storage.set("other:c", StoredItem(id="c", data="x"), 60)
        self.storage._data["auth:b"]["expires_at"] = time.time() - 1

        assert await self.storage.list_keys("auth:*") == ["auth:a"]
        assert [s.id for s in await self.storage.list_sessions("auth:*", StoredItem)] == ["a"]
        assert await self.storage.cleanup_expired() == 0


class TestRedisSessionStorage:
    def setup_method(self):
        self.redis = AsyncMock()
        self.storage = RedisSessionStorage(self.redis)

    @pytest.mark.asyncio
    async def test_set_uses_ttl(self):
        await self.storage.set("k", StoredItem(id="1", data="x"), 30)

        self.redis.setex.assert_awaited_once_with("k", 30, '{"id":"1","data":"x"}')

    @pytest.mark.asyncio
    async def test_get_decodes_bytes(self):
        self.redis.get.return_value = b'{"id":"1","data":"x"}'

        assert await self.storage.get("k", StoredItem) == StoredItem(id="1", data="x")

    @pytest.mark.asyncio
    async def test_get_missing(self):
        self.redis.get.return_value = None
        assert await self.storage.get("k", StoredItem) is None

    @pytest.mark.asyncio
    async def test_redis_failure_marks_unavailable(self):
        self.redis.get.side_effect = RedisConnectionError("down")

        with pytest.raises(RuntimeError):
            await self.storage.get("k", StoredItem)
        assert not self.storage.is_available()

    @pytest.mark.asyncio
    async def test_list_keys_scans_all_pages(self):
        self.redis.scan.side_effect = [(5, ["auth:a"]), (0, ["auth:b"])]

        assert await self.storage.list_keys("auth:*") == ["auth:a", "auth:b"]

    @pytest.mark.asyncio
    async def test_ping(self):
        assert await self.storage.ping() is True
        self.redis.ping.side_effect = RedisConnectionError("down")
        assert await self.storage.ping() is False


class TestBuildSessionStorage:
    @pytest.mark.asyncio
    async def test_in_memory_when_redis_disabled(self, app_config):
        storage = await build_session_storage(app_config)
        assert isinstance(storage, InMemorySessionStorage)

    @pytest.mark.asyncio
    async def test_redis_when_reachable(self, app_config):
        config = app_config.model_copy(
            update={"redis": RedisConfig(enabled=True, url="redis://cache:6379/0")}
        )
        client = AsyncMock()

        with patch("src.signin.core.storage.session_storage.redis.from_url", return_value=client):
            storage = await build_session_storage(config)

        assert isinstance(storage, RedisSessionStorage)

    @pytest.mark.asyncio
    async def test_falls_back_to_memory_when_unreachable(self, app_config):
        config = app_config.model_copy(
            update={"redis": RedisConfig(enabled=True, url="redis://cache:6379/0")}
        )
        client = MagicMock()
        client.ping = AsyncMock(side_effect=RedisConnectionError("down"))
        client.aclose = AsyncMock()

        with patch("src.signin.core.storage.session_storage.redis.from_url", return_value=client):
            storage = await build_session_storage(config)

        assert isinstance(storage, InMemorySessionStorage)
        client.aclose.assert_awaited_once()


class TestAuthSessionService:
    async def _create(self, service, return_to="/dashboard", fingerprint="fp"):
        return await service.create_auth_session(
            pkce_verifier="verifier",
            state="state-1",
            nonce="nonce-1",
            provider="slack",
            return_to=return_to,
            client_fingerprint_hash=fingerprint,
        )

    @pytest.mark.asyncio
    async def test_create_and_validate(self, auth_session_service):
        session_id = await self._create(auth_session_service)

        session = await auth_session_service.validate_auth_session(session_id, "state-1", "fp")

        assert session is not None
        assert session.provider == "slack"
        assert session.return_to == "/dashboard"
        assert session.expires_at - session.created_at == 600

    @pytest.mark.asyncio
    async def test_return_url_is_sanitized(self, auth_session_service):
        session_id = await self._create(auth_session_service, return_to="https://evil.example.com")

        session = await auth_session_service.get_auth_session(session_id)
        assert session.return_to == "/"

    @pytest.mark.asyncio
    async def test_state_mismatch_retires_session(self, auth_session_service):
        session_id = await self._create(auth_session_service)

        assert await auth_session_service.validate_auth_session(session_id, "wrong", "fp") is None
        assert await auth_session_service.get_auth_session(session_id) is None

    @pytest.mark.asyncio
    async def test_fingerprint_mismatch_retires_session(self, auth_session_service):
        session_id = await self._create(auth_session_service)

        assert await auth_session_service.validate_auth_session(session_id, "state-1", "other") is None
        assert await auth_session_service.get_auth_session(session_id) is None

    @pytest.mark.asyncio
    async def test_fingerprint_check_can_be_skipped(self, auth_session_service):
        session_id = await self._create(auth_session_service)

        assert await auth_session_service.validate_auth_session(session_id, "state-1", None)

    @pytest.mark.asyncio
    async def test_missing_state_or_id(self, auth_session_service):
        session_id = await self._create(auth_session_service)

        assert await auth_session_service.validate_auth_session(session_id, None, "fp") is None
        assert await auth_session_service.validate_auth_session(None, "state-1", "fp") is None

    @pytest.mark.asyncio
    async def test_sessions_are_single_use(self, auth_session_service):
        session_id = await self._create(auth_session_service)

        await auth_session_service.mark_auth_session_used(session_id)

        [stored] = await auth_session_service.list_auth_sessions()
        assert stored.used is True
        assert await auth_session_service.validate_auth_session(session_id, "state-1", "fp") is None
        assert await auth_session_service.list_auth_sessions() == []
