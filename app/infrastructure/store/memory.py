"""
In-process store backend.
"""
import asyncio
import copy
import uuid
from typing import Any, Dict, Optional

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


class MemoryStore(KeyValueStore):
    """
    Dictionary-backed store.

    Every mutation runs under a single ``asyncio.Lock``, so transactions and
    counters are serialised within one event loop.
    """

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._documents: Dict[str, Any] = {}
        self._lock = asyncio.Lock()
        for key, value in (initial or {}).items():
            self._documents[self._normalize(key)] = copy.deepcopy(value)

    @staticmethod
    def _normalize(key: str) -> str:
        return "/".join(split_path(key))

    def _write(self, key: str, value: Any) -> None:
        if value is None:
            self._documents.pop(key, None)
        else:
            self._documents[key] = value

    async def get(self, key: str, field: Optional[str] = None) -> Any:
        value = get_path(self._documents.get(self._normalize(key)), field)
        return copy.deepcopy(value)

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            self._write(self._normalize(key), copy.deepcopy(value))

    async def update(self, key: str, changes: Dict[str, Any]) -> None:
        key = self._normalize(key)
        async with self._lock:
            self._write(key, apply_updates(self._documents.get(key), changes))

    async def increment(self, key: str, field: str, amount: float = 1) -> float:
        key = self._normalize(key)
        async with self._lock:
            document = copy.deepcopy(self._documents.get(key))
            value = add_number(get_path(document, field), amount)
            self._write(key, set_path(document, field, value))
            return value

    async def transaction(
        self,
        key: str,
        updater: Updater,
        field: Optional[str] = None,
    ) -> TransactionResult:
        key = self._normalize(key)
        async with self._lock:
            document = copy.deepcopy(self._documents.get(key))
            current = get_path(document, field)
            new_value = updater(copy.deepcopy(current))
            if new_value is None:
                logger.debug("store_transaction_aborted", key=key, field=field)
                return TransactionResult(committed=False, value=current)
            self._write(key, set_path(document, field, new_value))
            return TransactionResult(committed=True, value=copy.deepcopy(new_value))

    async def children(self, collection: str) -> Dict[str, Any]:
        prefix = self._normalize(collection) + "/"
        return {
            key[len(prefix):]: copy.deepcopy(value)
            for key, value in self._documents.items()
            if key.startswith(prefix) and "/" not in key[len(prefix):]
        }

    async def push(self, collection: str, value: Any) -> str:
        child_id = uuid.uuid4().hex
        await self.set(f"{collection}/{child_id}", value)
        return child_id

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._documents.pop(self._normalize(key), None)
