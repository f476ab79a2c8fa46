"""
Tests for the Redis store backend with a mocked client.
"""
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.core.exceptions import StoreError
from app.infrastructure.store import RedisStore


@pytest.fixture
def redis_client():
    client = MagicMock()
    client.get = AsyncMock(return_value=None)
    client.smembers = AsyncMock(return_value=set())
    client.mget = AsyncMock(return_value=[])
    client.aclose = AsyncMock()
    return client


class TestRedisStore:
    """Test key layout and error mapping."""

    def test_key_layout(self, redis_client):
        store = RedisStore(client=redis_client, prefix="gh")

        assert store._doc_key("/departments/hr/") == "gh:doc:departments/hr"
        assert store._index_key("departments") == "gh:idx:departments"

    @pytest.mark.asyncio
    async def test_get_field(self, redis_client):
        redis_client.get.return_value = json.dumps({"settings": {"requiredRank": 5}})
        store = RedisStore(client=redis_client, prefix="gh")

        assert await store.get("departments/hr", "settings/requiredRank") == 5
        redis_client.get.assert_awaited_once_with("gh:doc:departments/hr")

    @pytest.mark.asyncio
    async def test_children(self, redis_client):
        redis_client.smembers.return_value = {"hr", "gone"}
        redis_client.mget.return_value = [None, json.dumps({"name": "HR"})]
        store = RedisStore(client=redis_client, prefix="gh")

        children = await store.children("departments")

        assert children == {"hr": {"name": "HR"}}
        redis_client.mget.assert_awaited_once_with(["gh:doc:departments/gone", "gh:doc:departments/hr"])

    @pytest.mark.asyncio
    async def test_connection_failure_raises_store_error(self, redis_client):
        redis_client.get.side_effect = RedisConnectionError("connection refused")
        store = RedisStore(client=redis_client)

        with pytest.raises(StoreError) as exc_info:
            await store.get("users/u1")

        assert exc_info.value.details == {"operation": "get", "key": "users/u1"}

    @pytest.mark.asyncio
    async def test_corrupt_document(self, redis_client):
        redis_client.get.return_value = "{not json"
        store = RedisStore(client=redis_client)

        with pytest.raises(StoreError):
            await store.get("users/u1")

    @pytest.mark.asyncio
    async def test_close(self, redis_client):
        store = RedisStore(client=redis_client)

        await store.close()

        redis_client.aclose.assert_awaited_once()
