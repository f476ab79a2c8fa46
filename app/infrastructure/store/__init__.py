"""
Backing store infrastructure module.
"""
from typing import Optional

from app.core.config import settings

from .base import KeyValueStore, TransactionResult
from .memory import MemoryStore
from .redis import RedisStore

_store: Optional[KeyValueStore] = None


def create_store(backend: str = settings.STORE_BACKEND) -> KeyValueStore:
    """Build the store backend named by configuration."""
    if backend == "redis":
        return RedisStore()
    return MemoryStore()


def get_store() -> KeyValueStore:
    """Process-wide store instance."""
    global _store
    if _store is None:
        _store = create_store()
    return _store


async def close_store() -> None:
    global _store
    if _store is not None:
        await _store.close()
        _store = None


__all__ = [
    "KeyValueStore",
    "MemoryStore",
    "RedisStore",
    "TransactionResult",
    "close_store",
    "create_store",
    "get_store",
]
