"""
Tests for the vector store adapter lifecycle and degraded mode.

Run:
  pytest -q tests/test_vector_store_adapter.py
"""
import asyncio

import pytest

from core.domain import Document
from core.enums import VectorStoreState
from core.exceptions import BackendError, InvalidArgumentError
from services.vector_store_adapter import VectorStoreAdapter
from tests.fakes import FakeEmbedding, FakeIndex


def _ready_adapter(index=None):
    index = index or FakeIndex()
    return VectorStoreAdapter(lambda: index, FakeEmbedding, backend_name="fake"), index


def test_unconfigured_adapter_is_disabled_and_search_is_empty():
    adapter = VectorStoreAdapter(None, FakeEmbedding)

    async def scenario():
        results = await adapter.similarity_search("anything", 5)
        stored = await adapter.add_documents([Document(content="ignored")])
        await adapter.delete_documents({"source": "x"})
        return results, stored, await adapter.count()

    results, stored, count = asyncio.run(scenario())

    assert results == []
    assert stored == 0
    assert count == 0
    assert adapter.state is VectorStoreState.DISABLED
    assert adapter.backend_name == "none"


def test_scored_search_on_disabled_adapter_raises():
    adapter = VectorStoreAdapter(None, FakeEmbedding)

    with pytest.raises(BackendError):
        asyncio.run(adapter.similarity_search_with_score("query"))


def test_add_and_search_orders_by_relevance():
    adapter, index = _ready_adapter()
    docs = [
        Document(content="zzz yyy", metadata={"n": 1}),
        Document(content="apple apple", metadata={"n": 2}),
        Document(content="apple pie", metadata={"n": 3}),
    ]

    async def scenario():
        stored = await adapter.add_documents(docs)
        return stored, await adapter.similarity_search("apple", k=2)

    stored, results = asyncio.run(scenario())

    assert stored == 3
    assert index.add_calls == 1
    assert [doc.metadata["n"] for doc in results] == [2, 3]
    assert len({chunk.id for chunk in index.chunks}) == 3
    assert adapter.state is VectorStoreState.READY


def test_scored_search_applies_threshold():
    adapter, _ = _ready_adapter()

    async def scenario():
        await adapter.add_documents([Document(content="apple"), Document(content="zzz")])
        return await adapter.similarity_search_with_score("apple", k=5, score_threshold=0.5)

    results = asyncio.run(scenario())

    assert [doc.content for doc, _ in results] == ["apple"]
    assert results[0][1] == pytest.approx(1.0)


def test_delete_documents_by_filter():
    adapter, index = _ready_adapter()

    async def scenario():
        await adapter.add_documents([
            Document(content="a", metadata={"source": "x"}),
            Document(content="b", metadata={"source": "y"}),
        ])
        await adapter.delete_documents({"source": "x"})
        return await adapter.count()

    assert asyncio.run(scenario()) == 1
    assert index.chunks[0].metadata == {"source": "y"}


def test_backend_failure_propagates_when_ready():
    adapter, _ = _ready_adapter(FakeIndex(fail=True))

    with pytest.raises(BackendError):
        asyncio.run(adapter.similarity_search("query"))


@pytest.mark.parametrize("k", [0, -1, True])
def test_invalid_k_is_rejected(k):
    adapter, _ = _ready_adapter()

    with pytest.raises(InvalidArgumentError):
        asyncio.run(adapter.similarity_search("query", k))


def test_concurrent_first_use_initializes_once():
    builds = []

    def index_factory():
        builds.append(1)
        return FakeIndex()

    adapter = VectorStoreAdapter(index_factory, FakeEmbedding, backend_name="fake")

    async def scenario():
        return await asyncio.gather(*(adapter.similarity_search("q") for _ in range(10)))

    results = asyncio.run(scenario())

    assert builds == [1]
    assert all(r == [] for r in results)


def test_failed_initialization_can_be_retried():
    attempts = []

    def flaky_factory():
        attempts.append(1)
        if len(attempts) == 1:
            raise ConnectionError("backend down")
        return FakeIndex()

    adapter = VectorStoreAdapter(flaky_factory, FakeEmbedding, backend_name="fake")

    with pytest.raises(BackendError):
        asyncio.run(adapter.initialize())
    assert adapter.state is VectorStoreState.UNINITIALIZED

    assert asyncio.run(adapter.initialize()) is VectorStoreState.READY
    assert len(attempts) == 2
