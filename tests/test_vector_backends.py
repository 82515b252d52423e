"""
Integration tests for the real vector index backends (skipped when the
backend library is not installed).

Run:
  pytest -q tests/test_vector_backends.py
"""
import asyncio
import uuid

import pytest

from core.domain import DocumentChunk
from core.exceptions import InvalidArgumentError
from infrastructure.vector_stores import _from_chroma_metadata, _to_chroma_metadata, _to_where


def _unit(*values):
    norm = sum(v * v for v in values) ** 0.5
    return [v / norm for v in values]


def _chunks():
    return [
        DocumentChunk(
            id="a", content="alpha", metadata={"source": "x", "page": 1, "tags": ["t1"]}, embedding=_unit(1, 0, 0)
        ),
        DocumentChunk(id="b", content="beta", metadata={"source": "y", "page": 1}, embedding=_unit(0, 1, 0)),
        DocumentChunk(id="c", content="gamma", metadata={"source": "x", "page": 2}, embedding=_unit(1, 1, 0)),
    ]


def test_chroma_metadata_flattening():
    flat = _to_chroma_metadata({"a": 1, "b": None, "c": ["x", "y"], "d": {"k": True}})

    assert flat == {"a": 1, "c": '["x", "y"]', "d": '{"k": true}', "_jsonKeys": '["c", "d"]'}


def test_chroma_metadata_decodes_nested_values():
    metadata = {"source": "x", "tags": ["a", "b"], "extra": {"k": 1}, "raw": '["not", "encoded"]'}

    assert _from_chroma_metadata(_to_chroma_metadata(metadata)) == metadata
    assert _from_chroma_metadata({"source": "x"}) == {"source": "x"}
    assert _from_chroma_metadata(None) == {}


def test_chroma_where_clause():
    assert _to_where({"source": "x"}) == {"source": "x"}
    assert _to_where({"source": "x", "page": 2}) == {"$and": [{"source": "x"}, {"page": 2}]}
    assert _to_where({"tags": ["t1"]}) == {"tags": '["t1"]'}


@pytest.mark.parametrize("filter", [{"source": "a.txt", "tag": None}, {"tag": None}, {}])
def test_chroma_where_clause_never_drops_keys(filter):
    with pytest.raises(InvalidArgumentError):
        _to_where(filter)


def test_chromadb_store_round_trip():
    chromadb = pytest.importorskip("chromadb")
    from infrastructure.vector_stores import ChromaDBVectorStore

    store = ChromaDBVectorStore(chromadb.EphemeralClient(), collection_name=f"test_{uuid.uuid4().hex}")

    async def scenario():
        await store.add_chunks(_chunks())
        hits = await store.search(_unit(1, 0, 0), top_k=2)
        with pytest.raises(InvalidArgumentError):
            await store.delete_where({"source": "x", "tag": None})
        await store.delete_where({"source": "x", "page": 2})
        return hits, await store.count()

    hits, remaining = asyncio.run(scenario())

    assert hits[0].chunk.id == "a"
    assert hits[0].chunk.metadata == {"source": "x", "page": 1, "tags": ["t1"]}
    assert hits[0].score == pytest.approx(1.0, abs=1e-4)
    assert 0.0 <= hits[1].score <= 1.0
    assert remaining == 2


def test_faiss_store_round_trip_and_reload(tmp_path):
    pytest.importorskip("faiss")
    from infrastructure.faiss_store import FAISSVectorStore

    store = FAISSVectorStore(str(tmp_path))

    async def scenario():
        await store.add_chunks(_chunks())
        hits = await store.search(_unit(1, 0, 0), top_k=3)
        with pytest.raises(InvalidArgumentError):
            await store.delete_where({"source": "x", "tag": None})
        await store.delete_where({"source": "x"})
        return hits, await store.count()

    hits, remaining = asyncio.run(scenario())

    assert [h.chunk.id for h in hits][0] == "a"
    assert hits[0].score == pytest.approx(1.0, abs=1e-4)
    assert hits[-1].chunk.id == "b"
    assert hits[-1].score == pytest.approx(0.5, abs=1e-4)
    assert remaining == 1

    reloaded = FAISSVectorStore(str(tmp_path))
    hits = asyncio.run(reloaded.search(_unit(0, 1, 0), top_k=5))
    assert [h.chunk.id for h in hits] == ["b"]
    assert hits[0].chunk.metadata == {"source": "y", "page": 1}
