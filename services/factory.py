# services/factory.py
"""
Construction of the process-wide backend clients and the per-request
FastAPI dependency providers.

The vector store adapter and the LLM client are built once in the app
lifespan and kept on ``app.state``; repositories and services are cheap
and built per request around the request's database session.
"""
from typing import Callable, Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from core.enums import VectorStoreType
from core.interfaces import IEmbeddingService, ILLMService, IMessageRepository, ISessionRepository, IVectorIndex
from database.session import AsyncSessionLocal, get_db
from infrastructure.repositories import SQLMessageRepository, SQLSessionRepository
from infrastructure.vector_stores import ChromaDBVectorStore
from services.document_service import DocumentService
from services.llm_service import OllamaLLMService
from services.message_service import MessageService
from services.rag_chain import RAGChain
from services.session_service import SessionService
from services.vector_store_adapter import IndexFactory, VectorStoreAdapter

# ============= Backend builders =============

def build_chroma_index() -> IVectorIndex:
    """ChromaDB client: HTTP when a host is configured, embedded persistent otherwise."""
    import chromadb

    if settings.CHROMA_HOST:
        client = chromadb.HttpClient(host=settings.CHROMA_HOST, port=settings.CHROMA_PORT)
    else:
        client = chromadb.PersistentClient(path=settings.VECTOR_DB_PATH)
    return ChromaDBVectorStore(client, settings.VECTOR_COLLECTION_NAME)


def build_faiss_index() -> IVectorIndex:
    from infrastructure.faiss_store import FAISSVectorStore

    return FAISSVectorStore(settings.VECTOR_DB_PATH)


def build_embedding_service() -> IEmbeddingService:
    """Create embedding service based on configuration."""
    from infrastructure.embedding_services import SentenceTransformerEmbedding

    return SentenceTransformerEmbedding(settings.EMBEDDING_MODEL_NAME)


def get_index_factory() -> Optional[IndexFactory]:
    """Index builder for the configured backend, or None when no backend is configured."""
    if not settings.vector_store_configured:
        return None
    store_type = VectorStoreType.from_string(settings.VECTOR_STORE_TYPE)
    if store_type is VectorStoreType.CHROMADB:
        return build_chroma_index
    if store_type is VectorStoreType.FAISS:
        return build_faiss_index
    return None


def build_vector_store_adapter() -> VectorStoreAdapter:
    return VectorStoreAdapter(
        index_factory=get_index_factory(),
        embedding_factory=build_embedding_service,
        backend_name=VectorStoreType.from_string(settings.VECTOR_STORE_TYPE).value
    )


def build_llm_service() -> ILLMService:
    return OllamaLLMService(
        base_url=settings.LLM_BASE_URL,
        model=settings.LLM_MODEL_NAME,
        timeout=settings.REQUEST_TIMEOUT,
        temperature=settings.LLM_TEMPERATURE
    )


# ============= Request-scoped providers =============

def get_vector_store(request: Request) -> VectorStoreAdapter:
    return request.app.state.vector_store


def get_llm_service(request: Request) -> ILLMService:
    return request.app.state.llm_service


def get_session_repository(session: AsyncSession = Depends(get_db)) -> ISessionRepository:
    """Create session repository with injected session."""
    return SQLSessionRepository(session)


def get_message_repository(session: AsyncSession = Depends(get_db)) -> IMessageRepository:
    """Create message repository with injected session."""
    return SQLMessageRepository(session)


def get_document_service(vector_store: VectorStoreAdapter = Depends(get_vector_store)) -> DocumentService:
    return DocumentService(vector_store)


def get_rag_chain(
    vector_store: VectorStoreAdapter = Depends(get_vector_store),
    llm: ILLMService = Depends(get_llm_service)
) -> RAGChain:
    return RAGChain(vector_store, llm, top_k=settings.RAG_TOP_K)


def get_session_service(
    session_repo: ISessionRepository = Depends(get_session_repository)
) -> SessionService:
    return SessionService(session_repo)


def get_message_service(
    session_repo: ISessionRepository = Depends(get_session_repository),
    message_repo: IMessageRepository = Depends(get_message_repository),
    rag_chain: RAGChain = Depends(get_rag_chain),
    llm: ILLMService = Depends(get_llm_service)
) -> MessageService:
    """
    Create message service with full dependency injection.

    Easy to override individual components for testing.
    """
    return MessageService(session_repo, message_repo, rag_chain, llm)


def get_streaming_message_service(
    rag_chain: RAGChain = Depends(get_rag_chain),
    llm: ILLMService = Depends(get_llm_service)
) -> Callable[[Request], MessageService]:
    """
    Opener for a message service bound to its own database session.

    A streamed reply is stored after the response body has been sent, so
    the session must outlive the request handler. The endpoint calls the
    opener once the request has been validated; the session is kept on
    ``request.state.stream_db`` and closed by close_stream_db when the
    stream ends.
    """
    def open_service(request: Request) -> MessageService:
        db = AsyncSessionLocal()
        request.state.stream_db = db
        return MessageService(SQLSessionRepository(db), SQLMessageRepository(db), rag_chain, llm)

    return open_service


async def close_stream_db(request: Request) -> None:
    db: Optional[AsyncSession] = getattr(request.state, "stream_db", None)
    if db is not None:
        await db.close()
        request.state.stream_db = None
