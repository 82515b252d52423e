"""
Tests for backend selection in the DI factory.

Run:
  pytest -q tests/test_factory.py
"""
import asyncio
from types import SimpleNamespace

import pytest

from config import settings
from core.enums import VectorStoreState
from services import factory
from tests.fakes import FakeLLM


@pytest.mark.parametrize("store_type,db_path,host,expected", [
    ("chromadb", "./vector_db", None, "build_chroma_index"),
    ("chromadb", None, "chroma.local", "build_chroma_index"),
    ("CHROMADB", "./vector_db", None, "build_chroma_index"),
    ("faiss", "./vector_db", None, "build_faiss_index"),
    ("chromadb", None, None, None),
    ("faiss", None, "chroma.local", None),
    ("none", "./vector_db", None, None),
    ("pinecone", "./vector_db", None, None),
])
def test_index_factory_selection(monkeypatch, store_type, db_path, host, expected):
    monkeypatch.setattr(settings, "VECTOR_STORE_TYPE", store_type)
    monkeypatch.setattr(settings, "VECTOR_DB_PATH", db_path)
    monkeypatch.setattr(settings, "CHROMA_HOST", host)

    selected = factory.get_index_factory()

    assert (selected.__name__ if selected else None) == expected


def test_unconfigured_backend_builds_disabled_adapter(monkeypatch):
    monkeypatch.setattr(settings, "VECTOR_STORE_TYPE", "none")

    adapter = factory.build_vector_store_adapter()

    assert asyncio.run(adapter.initialize()) is VectorStoreState.DISABLED
    assert adapter.backend_name == "none"


def test_llm_service_uses_settings(monkeypatch):
    monkeypatch.setattr(settings, "LLM_BASE_URL", "http://llm:1234/")
    monkeypatch.setattr(settings, "LLM_MODEL_NAME", "tiny")

    llm = factory.build_llm_service()

    assert llm.base_url == "http://llm:1234"
    assert llm.model == "tiny"


def test_streaming_service_opens_its_session_on_demand(monkeypatch):
    class FakeDb:
        closed = False

        async def close(self):
            self.closed = True

    opened = []

    def open_db():
        opened.append(FakeDb())
        return opened[-1]

    monkeypatch.setattr(factory, "AsyncSessionLocal", open_db)
    open_service = factory.get_streaming_message_service(rag_chain=None, llm=FakeLLM())
    assert opened == []

    request = SimpleNamespace(state=SimpleNamespace())
    service = open_service(request)

    assert request.state.stream_db is opened[0]
    assert service.session_repo.session is opened[0]

    asyncio.run(factory.close_stream_db(request))

    assert opened[0].closed
    assert request.state.stream_db is None
