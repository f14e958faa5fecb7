"""Tests for the hybrid store over both partitions."""
import asyncio
import math

import pytest

from conftest import make_doc
from ragchat.errors import PersistenceError
from ragchat.rag.backends import MemoryBackend
from ragchat.rag.documents import StorageMode
from ragchat.rag.partition import DocumentPartition
from ragchat.rag.store import HybridStore


def durable_doc(doc_id, embedding, **kwargs):
    return make_doc(doc_id, embedding, mode=StorageMode.DURABLE, **kwargs)


def unit_at(score):
    """2-d unit vector whose cosine with [1, 0] equals ``score``."""
    return [score, math.sqrt(1.0 - score * score)]


@pytest.fixture
def store(store_path):
    return HybridStore(durable_path=store_path)


class UnwritableBackend(MemoryBackend):
    async def persist(self, documents):
        raise PersistenceError("disk full")


class DelayedPartition(DocumentPartition):
    """Partition whose search waits before answering and logs when it finishes."""

    def __init__(self, mode, delay, completions):
        super().__init__(mode, MemoryBackend())
        self.delay = delay
        self.completions = completions

    async def search(self, query_vector, top_k):
        await asyncio.sleep(self.delay)
        results = await super().search(query_vector, top_k)
        self.completions.append(self.name)
        return results


class TestRouting:
    @pytest.mark.asyncio
    async def test_add_routes_by_mode(self, store):
        await store.add(make_doc("temp", [1.0, 0.0]), StorageMode.EPHEMERAL)
        await store.add(durable_doc("perm", [1.0, 0.0]), StorageMode.DURABLE)

        listing = await store.list()

        assert [d.id for d in listing.ephemeral] == ["temp"]
        assert [d.id for d in listing.durable] == ["perm"]

    @pytest.mark.asyncio
    async def test_delete_only_touches_named_partition(self, store):
        await store.add(make_doc("same", [1.0, 0.0]), StorageMode.EPHEMERAL)
        await store.add(durable_doc("same", [1.0, 0.0]), StorageMode.DURABLE)

        await store.delete("same", StorageMode.EPHEMERAL)

        listing = await store.list()
        assert listing.ephemeral == []
        assert [d.id for d in listing.durable] == ["same"]

    @pytest.mark.asyncio
    async def test_clear_one_partition(self, store):
        await store.add(make_doc("temp", [1.0, 0.0]), StorageMode.EPHEMERAL)
        await store.add(durable_doc("perm", [1.0, 0.0]), StorageMode.DURABLE)

        await store.clear(StorageMode.DURABLE)

        listing = await store.list()
        assert [d.id for d in listing.ephemeral] == ["temp"]
        assert listing.durable == []

    @pytest.mark.asyncio
    async def test_clear_all_with_only_one_partition_populated(self, store):
        await store.add(durable_doc("perm", [1.0, 0.0]), StorageMode.DURABLE)

        assert await store.clear_all() is True

        listing = await store.list()
        assert listing.ephemeral == []
        assert listing.durable == []

    @pytest.mark.asyncio
    async def test_listing_wire_format(self, store):
        await store.add(make_doc("temp", [1.0], filename="t.txt"), StorageMode.EPHEMERAL)

        payload = (await store.list()).to_dict()

        assert payload == {
            "temporary": [
                {"id": "temp", "filename": "t.txt", "mode": "temporary", "uploadedAt": 1_700_000_000_000}
            ],
            "permanent": [],
        }


class TestHybridSearch:
    @pytest.mark.asyncio
    async def test_durable_match_wins_at_k_one(self, store):
        await store.add(make_doc("temp", unit_at(0.8)), StorageMode.EPHEMERAL)
        await store.add(durable_doc("perm", unit_at(0.95)), StorageMode.DURABLE)

        results = await store.search([1.0, 0.0], 1)

        assert [r.document.id for r in results] == ["perm"]
        assert results[0].score == pytest.approx(0.95)

    @pytest.mark.asyncio
    async def test_results_interleave_by_score(self, store):
        await store.add(make_doc("t9", unit_at(0.9)), StorageMode.EPHEMERAL)
        await store.add(make_doc("t5", unit_at(0.5)), StorageMode.EPHEMERAL)
        await store.add(durable_doc("p7", unit_at(0.7)), StorageMode.DURABLE)
        await store.add(durable_doc("p3", unit_at(0.3)), StorageMode.DURABLE)

        results = await store.search([1.0, 0.0], 3)

        assert [r.document.id for r in results] == ["t9", "p7", "t5"]

    @pytest.mark.asyncio
    async def test_equal_scores_list_ephemeral_first(self, store):
        await store.add(durable_doc("perm", [1.0, 0.0]), StorageMode.DURABLE)
        await store.add(make_doc("temp", [1.0, 0.0]), StorageMode.EPHEMERAL)

        results = await store.search([1.0, 0.0], 2)

        assert [r.document.id for r in results] == ["temp", "perm"]

    @pytest.mark.asyncio
    async def test_never_returns_more_than_k(self, store):
        for i in range(4):
            await store.add(make_doc(f"t{i}", unit_at(0.1 * i)), StorageMode.EPHEMERAL)
            await store.add(durable_doc(f"p{i}", unit_at(0.1 * i + 0.05)), StorageMode.DURABLE)

        results = await store.search([1.0, 0.0], 3)

        assert len(results) == 3
        scores = [r.score for r in results]
        assert scores == sorted(scores, reverse=True)

    @pytest.mark.asyncio
    async def test_empty_store_returns_nothing(self, store):
        assert await store.search([1.0, 0.0], 3) == []

    @pytest.mark.asyncio
    async def test_merge_order_ignores_completion_order(self):
        completions = []
        store = HybridStore(
            ephemeral=DelayedPartition(StorageMode.EPHEMERAL, 0.05, completions),
            durable=DelayedPartition(StorageMode.DURABLE, 0.0, completions),
        )
        await store.add(durable_doc("perm", [1.0, 0.0]), StorageMode.DURABLE)
        await store.add(make_doc("temp", [1.0, 0.0]), StorageMode.EPHEMERAL)

        results = await store.search([1.0, 0.0], 2)

        assert completions == ["permanent", "temporary"]
        assert [r.document.id for r in results] == ["temp", "perm"]


class TestClearAll:
    @pytest.mark.asyncio
    async def test_failed_durable_clear_keeps_ephemeral_documents(self):
        store = HybridStore(durable=DocumentPartition(StorageMode.DURABLE, UnwritableBackend()))
        await store.add(make_doc("temp", [1.0, 0.0]), StorageMode.EPHEMERAL)

        with pytest.raises(PersistenceError):
            await store.clear_all()

        listing = await store.list()
        assert [d.id for d in listing.ephemeral] == ["temp"]
