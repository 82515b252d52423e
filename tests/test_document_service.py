"""
Tests for DocumentService ingestion, search and deletion.

Run:
  pytest -q tests/test_document_service.py
"""
import asyncio
from datetime import datetime

import pytest

from core.domain import Document
from core.exceptions import BackendError, InvalidArgumentError
from services.document_service import DocumentService
from services.vector_store_adapter import VectorStoreAdapter
from tests.fakes import FakeEmbedding, FakeIndex


@pytest.fixture
def index():
    return FakeIndex()


@pytest.fixture
def service(index):
    return DocumentService(VectorStoreAdapter(lambda: index, FakeEmbedding, backend_name="fake"))


def test_ingest_text_scenario_produces_numbered_chunks(service, index):
    text = "Sentence one. Sentence two. Sentence three."

    result = asyncio.run(service.ingest_text(text, {"source": "notes"}, chunk_size=20, overlap=5))
    count = result.count

    assert count == result.stored == len(index.chunks) >= 1
    assert not result.degraded
    assert index.add_calls == 1
    assert [c.metadata["chunkIndex"] for c in index.chunks] == list(range(count))
    assert all(c.metadata["totalChunks"] == count for c in index.chunks)
    assert all(c.metadata["source"] == "notes" for c in index.chunks)
    assert len({c.metadata["ingestedAt"] for c in index.chunks}) == 1
    assert all(c.content and c.content == c.content.strip() for c in index.chunks)


def test_ingest_stamps_ingested_at(service, index):
    result = asyncio.run(service.ingest(Document(content="hello", metadata={"k": "v"})))

    assert (result.count, result.stored) == (1, 1)
    metadata = index.chunks[0].metadata
    assert metadata["k"] == "v"
    datetime.fromisoformat(metadata["ingestedAt"])


def test_ingest_batch_is_one_write(service, index):
    docs = [Document(content=f"doc {i}") for i in range(3)]

    result = asyncio.run(service.ingest_batch(docs))

    assert (result.count, result.stored) == (3, 3)
    assert index.add_calls == 1


@pytest.mark.parametrize("metadata", [{"chunkIndex": "1"}, {"totalChunks": 0}, {"generated": "yes"}])
def test_reserved_metadata_is_validated(service, metadata):
    with pytest.raises(InvalidArgumentError):
        asyncio.run(service.ingest(Document(content="x", metadata=metadata)))


def test_empty_inputs_are_rejected(service):
    with pytest.raises(InvalidArgumentError):
        asyncio.run(service.ingest(Document(content="   ")))
    with pytest.raises(InvalidArgumentError):
        asyncio.run(service.ingest_batch([]))
    with pytest.raises(InvalidArgumentError):
        asyncio.run(service.ingest_text(""))
    with pytest.raises(InvalidArgumentError):
        asyncio.run(service.search(" "))
    with pytest.raises(InvalidArgumentError):
        asyncio.run(service.delete({}))


def test_invalid_chunk_parameters(service):
    with pytest.raises(InvalidArgumentError):
        asyncio.run(service.ingest_text("some text", chunk_size=10, overlap=10))


def test_search_and_delete(service, index):
    async def scenario():
        await service.ingest_batch([
            Document(content="apple", metadata={"source": "a"}),
            Document(content="banana", metadata={"source": "b"}),
        ])
        found = await service.search("apple", limit=1)
        await service.delete({"source": "a"})
        return found

    found = asyncio.run(scenario())

    assert [doc.content for doc in found] == ["apple"]
    assert [c.metadata["source"] for c in index.chunks] == ["b"]


def test_adapter_failures_propagate():
    service = DocumentService(
        VectorStoreAdapter(lambda: FakeIndex(fail=True), FakeEmbedding, backend_name="fake")
    )

    with pytest.raises(BackendError):
        asyncio.run(service.ingest(Document(content="x")))
    with pytest.raises(BackendError):
        asyncio.run(service.delete({"source": "x"}))


def test_disabled_store_reports_nothing_stored():
    adapter = VectorStoreAdapter(None, FakeEmbedding)
    service = DocumentService(adapter)

    async def scenario():
        single = await service.ingest(Document(content="hello"))
        text = await service.ingest_text("One. Two. Three.", None, chunk_size=10, overlap=2)
        return single, text, await adapter.count()

    single, text, stored = asyncio.run(scenario())

    assert (single.count, single.stored, single.degraded) == (1, 0, True)
    assert text.count >= 2
    assert (text.stored, text.degraded) == (0, True)
    assert stored == 0


@pytest.mark.parametrize("filter", [{"source": "a.txt", "tag": None}, {"tag": None}])
def test_null_filter_values_are_rejected(service, index, filter):
    asyncio.run(service.ingest_batch([
        Document(content="kept", metadata={"source": "a.txt", "tag": "x"}),
        Document(content="also kept", metadata={"source": "a.txt"}),
    ]))

    with pytest.raises(InvalidArgumentError):
        asyncio.run(service.delete(filter))
    assert len(index.chunks) == 2
