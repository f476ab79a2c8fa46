"""
Hierarchical key-value store interface.

Documents live under slash-separated keys (``departments/{id}``); a key's
direct children form a collection (``children("departments")``). Inside a
document, nested fields are addressed with slash-separated field paths
(``settings/favorites``). Writing ``None`` to a field path removes it.
"""
import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

# Receives the current value (or None) and returns the new value, or None to abort
Updater = Callable[[Any], Optional[Any]]


@dataclass
class TransactionResult:
    """Outcome of an optimistic read-modify-write."""
    committed: bool
    value: Any


def split_path(path: str) -> List[str]:
    return [part for part in path.split("/") if part]


def get_path(document: Any, path: Optional[str]) -> Any:
    """Read a nested field of a document, or None when any segment is missing."""
    if not path:
        return document
    current = document
    for part in split_path(path):
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


def set_path(document: Any, path: Optional[str], value: Any) -> Any:
    """
    Return the document with a nested field replaced.

    Intermediate objects are created as needed. Setting ``None`` removes the
    field; a document left empty collapses to ``None``.
    """
    parts = split_path(path or "")
    if not parts:
        return copy.deepcopy(value)

    root = document if isinstance(document, dict) else {}
    current = root
    for part in parts[:-1]:
        child = current.get(part)
        if not isinstance(child, dict):
            child = {}
            current[part] = child
        current = child

    if value is None:
        current.pop(parts[-1], None)
    else:
        current[parts[-1]] = copy.deepcopy(value)
    return root or None


def apply_updates(document: Any, changes: Dict[str, Any]) -> Any:
    """Apply a batch of ``{field_path: value}`` writes to a document copy."""
    result = copy.deepcopy(document) if isinstance(document, dict) else {}
    for path, value in changes.items():
        result = set_path(result, path, value) or {}
    return result or None


def add_number(current: Any, amount: float) -> float:
    base = current if isinstance(current, (int, float)) and not isinstance(current, bool) else 0
    return base + amount


class KeyValueStore(ABC):
    """Async hierarchical document store."""

    @abstractmethod
    async def get(self, key: str, field: Optional[str] = None) -> Any:
        """Read a document, or one of its nested fields."""

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Replace a document. ``None`` deletes it."""

    @abstractmethod
    async def update(self, key: str, changes: Dict[str, Any]) -> None:
        """Atomically apply several field-path writes to one document."""

    @abstractmethod
    async def increment(self, key: str, field: str, amount: float = 1) -> float:
        """Atomically add to a numeric field; missing fields count as 0."""

    @abstractmethod
    async def transaction(
        self,
        key: str,
        updater: Updater,
        field: Optional[str] = None,
    ) -> TransactionResult:
        """
        Run an optimistic read-modify-write on a document or one field.

        The updater may be called more than once and must not have side
        effects. Returning None from it aborts without writing.
        """

    @abstractmethod
    async def children(self, collection: str) -> Dict[str, Any]:
        """Return the direct child documents of a collection keyed by id."""

    @abstractmethod
    async def push(self, collection: str, value: Any) -> str:
        """Store a document under a generated id and return the id."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a document."""

    async def close(self) -> None:
        """Release backend resources."""
