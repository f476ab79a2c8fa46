"""
Redis store backend.

Each document is a JSON string under ``{prefix}:doc:{key}``; a set under
``{prefix}:idx:{collection}`` lists the ids stored in a collection.
Read-modify-write operations use WATCH/MULTI/EXEC and are retried on
conflict.
"""
import json
import uuid
from typing import Any, Callable, Dict, Optional, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError, WatchError

from app.core.config import settings
from app.core.exceptions import StoreError
from app.core.logging import get_logger

from .base import (
    KeyValueStore,
    TransactionResult,
    Updater,
    add_number,
    apply_updates,
    get_path,
    set_path,
    split_path,
)

logger = get_logger(__name__)

# Redis connection pool
redis_pool: Optional[redis.ConnectionPool] = None


async def get_redis_pool() -> redis.ConnectionPool:
    """
    Get or create Redis connection pool.

    Returns:
        Redis connection pool
    """
    global redis_pool

    if redis_pool is None:
        redis_pool = redis.ConnectionPool.from_url(
            str(settings.REDIS_URL),
            decode_responses=True,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
        )

    return redis_pool


async def get_redis() -> redis.Redis:
    """
    Get Redis client instance.

    Returns:
        Redis client
    """
    pool = await get_redis_pool()
    return redis.Redis(connection_pool=pool)


class RedisStore(KeyValueStore):
    """
    Store backend over a shared Redis connection pool.
    """

    def __init__(
        self,
        client: Optional[redis.Redis] = None,
        prefix: str = settings.STORE_KEY_PREFIX,
        max_retries: int = settings.STORE_MAX_RETRIES,
    ):
        self._client = client
        self.prefix = prefix
        self.max_retries = max_retries

    async def _get_client(self) -> redis.Redis:
        if self._client is None:
            self._client = await get_redis()
        return self._client

    def _doc_key(self, key: str) -> str:
        return f"{self.prefix}:doc:{'/'.join(split_path(key))}"

    def _index_key(self, collection: str) -> str:
        return f"{self.prefix}:idx:{'/'.join(split_path(collection))}"

    @staticmethod
    def _parent(key: str) -> Tuple[str, str]:
        parts = split_path(key)
        return "/".join(parts[:-1]), parts[-1]

    @staticmethod
    def _decode(raw: Optional[str]) -> Any:
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise StoreError("Corrupt document in store", operation="decode") from e

    def _queue_write(self, pipe: Any, key: str, value: Any) -> None:
        collection, child_id = self._parent(key)
        if value is None:
            pipe.delete(self._doc_key(key))
            pipe.srem(self._index_key(collection), child_id)
        else:
            pipe.set(self._doc_key(key), json.dumps(value))
            pipe.sadd(self._index_key(collection), child_id)

    async def _read_modify_write(
        self,
        key: str,
        mutate: Callable[[Any], Tuple[bool, Any, Any]],
        operation: str,
    ) -> Tuple[bool, Any]:
        """
        Run ``mutate(document) -> (write, new_document, result)`` optimistically.

        Raises:
            StoreError: On Redis failure or when retries are exhausted
        """
        redis_key = self._doc_key(key)
        try:
            client = await self._get_client()
            async with client.pipeline(transaction=True) as pipe:
                for attempt in range(self.max_retries):
                    try:
                        await pipe.watch(redis_key)
                        document = self._decode(await pipe.get(redis_key))
                        write, new_document, result = mutate(document)
                        if not write:
                            await pipe.reset()
                            return False, result
                        pipe.multi()
                        self._queue_write(pipe, key, new_document)
                        await pipe.execute()
                        return True, result
                    except WatchError:
                        logger.debug(
                            "store_transaction_conflict",
                            key=key,
                            operation=operation,
                            attempt=attempt + 1,
                        )
                        continue
        except RedisError as e:
            logger.error("store_operation_failed", key=key, operation=operation, error=str(e))
            raise StoreError("Store unavailable", operation=operation, key=key) from e

        logger.error("store_retries_exhausted", key=key, operation=operation, retries=self.max_retries)
        raise StoreError("Too many concurrent updates", operation=operation, key=key)

    async def get(self, key: str, field: Optional[str] = None) -> Any:
        try:
            client = await self._get_client()
            raw = await client.get(self._doc_key(key))
        except RedisError as e:
            logger.error("store_operation_failed", key=key, operation="get", error=str(e))
            raise StoreError("Store unavailable", operation="get", key=key) from e
        return get_path(self._decode(raw), field)

    async def set(self, key: str, value: Any) -> None:
        try:
            client = await self._get_client()
            async with client.pipeline(transaction=True) as pipe:
                self._queue_write(pipe, key, value)
                await pipe.execute()
        except RedisError as e:
            logger.error("store_operation_failed", key=key, operation="set", error=str(e))
            raise StoreError("Store unavailable", operation="set", key=key) from e

    async def update(self, key: str, changes: Dict[str, Any]) -> None:
        def mutate(document):
            return True, apply_updates(document, changes), None

        await self._read_modify_write(key, mutate, "update")

    async def increment(self, key: str, field: str, amount: float = 1) -> float:
        def mutate(document):
            value = add_number(get_path(document, field), amount)
            return True, set_path(document, field, value), value

        _, value = await self._read_modify_write(key, mutate, "increment")
        return value

    async def transaction(
        self,
        key: str,
        updater: Updater,
        field: Optional[str] = None,
    ) -> TransactionResult:
        def mutate(document):
            current = get_path(document, field)
            new_value = updater(json.loads(json.dumps(current)))
            if new_value is None:
                return False, None, current
            return True, set_path(document, field, new_value), new_value

        committed, value = await self._read_modify_write(key, mutate, "transaction")
        return TransactionResult(committed=committed, value=value)

    async def children(self, collection: str) -> Dict[str, Any]:
        try:
            client = await self._get_client()
            ids = sorted(await client.smembers(self._index_key(collection)))
            if not ids:
                return {}
            raws = await client.mget([self._doc_key(f"{collection}/{i}") for i in ids])
        except RedisError as e:
            logger.error("store_operation_failed", key=collection, operation="children", error=str(e))
            raise StoreError("Store unavailable", operation="children", key=collection) from e

        return {
            child_id: self._decode(raw)
            for child_id, raw in zip(ids, raws)
            if raw is not None
        }

    async def push(self, collection: str, value: Any) -> str:
        child_id = uuid.uuid4().hex
        await self.set(f"{collection}/{child_id}", value)
        return child_id

    async def delete(self, key: str) -> None:
        await self.set(key, None)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
