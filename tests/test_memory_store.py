"""
Tests for the in-process store backend and the path helpers.
"""
import asyncio

import pytest

from app.infrastructure.store import MemoryStore
from app.infrastructure.store.base import apply_updates, get_path, set_path


class TestPathHelpers:
    """Test nested field addressing."""

    def test_get_path(self):
        document = {"a": {"b": {"c": 1}}}

        assert get_path(document, "a/b/c") == 1
        assert get_path(document, "a/x/c") is None
        assert get_path(document, None) is document

    def test_set_path_creates_parents(self):
        assert set_path({}, "a/b", 2) == {"a": {"b": 2}}

    def test_set_none_removes(self):
        assert set_path({"a": 1, "b": 2}, "a", None) == {"b": 2}
        assert set_path({"a": 1}, "a", None) is None

    def test_apply_updates(self):
        result = apply_updates({"a": {"b": 1}}, {"a/c": 2, "d": 3, "a/b": None})

        assert result == {"a": {"c": 2}, "d": 3}


class TestMemoryStore:
    """Test the memory backend."""

    @pytest.mark.asyncio
    async def test_get_set_delete(self, store: MemoryStore):
        await store.set("/users/u1/", {"name": "Ann"})

        assert await store.get("users/u1") == {"name": "Ann"}
        assert await store.get("users/u1", "name") == "Ann"

        await store.delete("users/u1")
        assert await store.get("users/u1") is None

    @pytest.mark.asyncio
    async def test_reads_are_copies(self, store: MemoryStore):
        await store.set("doc", {"list": [1]})

        value = await store.get("doc")
        value["list"].append(2)

        assert await store.get("doc") == {"list": [1]}

    @pytest.mark.asyncio
    async def test_children_are_direct_only(self, store: MemoryStore):
        await store.set("departments/hr", {"name": "HR"})
        await store.set("departments/hr/notes/1", {"text": "nested"})
        await store.set("departmentsx/other", {"name": "no"})

        assert await store.children("departments") == {"hr": {"name": "HR"}}

    @pytest.mark.asyncio
    async def test_push_generates_ids(self, store: MemoryStore):
        first = await store.push("forms/submissions", {"n": 1})
        second = await store.push("forms/submissions", {"n": 2})

        assert first != second
        assert set(await store.children("forms/submissions")) == {first, second}

    @pytest.mark.asyncio
    async def test_increment(self, store: MemoryStore):
        assert await store.increment("stats", "counters/views") == 1
        assert await store.increment("stats", "counters/views", 4) == 5
        assert await store.get("stats") == {"counters": {"views": 5}}

    @pytest.mark.asyncio
    async def test_concurrent_increments(self, store: MemoryStore):
        await asyncio.gather(*(store.increment("stats", "hits") for _ in range(50)))

        assert await store.get("stats", "hits") == 50

    @pytest.mark.asyncio
    async def test_transaction_commit(self, store: MemoryStore):
        await store.set("doc", {"count": 1})

        result = await store.transaction("doc", lambda current: current + 1, field="count")

        assert result.committed is True
        assert result.value == 2
        assert await store.get("doc") == {"count": 2}

    @pytest.mark.asyncio
    async def test_transaction_abort_returns_current(self, store: MemoryStore):
        await store.set("doc", {"owner": "a"})

        result = await store.transaction("doc", lambda current: None if current else "b", field="owner")

        assert result.committed is False
        assert result.value == "a"
        assert await store.get("doc", "owner") == "a"

    @pytest.mark.asyncio
    async def test_set_if_absent_races(self, store: MemoryStore):
        """Only one of many set-if-absent transactions wins."""
        results = await asyncio.gather(*(
            store.transaction("doc", lambda current, n=n: None if current else n, field="winner")
            for n in range(1, 11)
        ))

        winners = [r for r in results if r.committed]
        assert len(winners) == 1
        assert all(r.value == winners[0].value for r in results)

    @pytest.mark.asyncio
    async def test_update_removes_with_none(self, store: MemoryStore):
        await store.set("doc", {"a": 1, "b": 2})

        await store.update("doc", {"a": None, "c/d": 3})

        assert await store.get("doc") == {"b": 2, "c": {"d": 3}}

    @pytest.mark.asyncio
    async def test_initial_documents(self):
        store = MemoryStore({"/a/b": {"x": 1}})

        assert await store.get("a/b", "x") == 1
