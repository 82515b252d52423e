# api/endpoints.py
"""
HTTP endpoints of the chat RAG backend.

Every router except the health check requires the shared API key; session
and message routes additionally require a bearer token identifying the user.
"""
import asyncio
import json
import logging
from typing import AsyncGenerator, Callable, List

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import PlainTextResponse, StreamingResponse
from starlette.background import BackgroundTask

from api.errors import public_message
from api.schemas import (
    ChatHistoryItem,
    CreateMessageRequest,
    CreateSessionRequest,
    DeleteDocumentsRequest,
    DeleteResponse,
    DocumentResult,
    IngestDocumentRequest,
    IngestDocumentsRequest,
    IngestResponse,
    IngestTextRequest,
    MessageResponse,
    RenameSessionRequest,
    SessionResponse,
    StreamRequest,
    VectorStoreStatusResponse,
)
from api.security import get_current_user_id, require_api_key
from config import settings
from core.domain import Document
from services.document_service import DocumentService, IngestResult
from services.factory import (
    close_stream_db,
    get_document_service,
    get_message_service,
    get_session_service,
    get_streaming_message_service,
    get_vector_store,
)
from services.message_service import MessageService
from services.session_service import SessionService
from services.vector_store_adapter import VectorStoreAdapter

logger = logging.getLogger(settings.LOGGER_NAME)

health_router = APIRouter(tags=["health"])
documents_router = APIRouter(prefix="/documents", tags=["documents"], dependencies=[Depends(require_api_key)])
sessions_router = APIRouter(prefix="/sessions", tags=["sessions"], dependencies=[Depends(require_api_key)])
messages_router = APIRouter(prefix="/messages", tags=["messages"], dependencies=[Depends(require_api_key)])

SSE_DONE = "data: [DONE]\n\n"


def _sse(payload: dict) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


# ---------- Health ----------
@health_router.get("/healthCheck", response_class=PlainTextResponse)
async def health_check() -> str:
    return "OK"


# ---------- Documents ----------
NOT_STORED_MESSAGE = "Vector store is not configured; nothing was stored"


def _ingest_response(result: IngestResult, message: str) -> IngestResponse:
    if result.degraded:
        message = NOT_STORED_MESSAGE
    return IngestResponse(
        message=message, count=result.count, stored=result.stored, degraded=result.degraded
    )


@documents_router.post("/ingest", response_model=IngestResponse)
async def ingest_document(
    body: IngestDocumentRequest,
    document_service: DocumentService = Depends(get_document_service),
) -> IngestResponse:
    result = await document_service.ingest(Document(content=body.content, metadata=body.metadata or {}))
    return _ingest_response(result, "Document ingested successfully")


@documents_router.post("/ingest-multiple", response_model=IngestResponse)
async def ingest_documents(
    body: IngestDocumentsRequest,
    document_service: DocumentService = Depends(get_document_service),
) -> IngestResponse:
    documents = [Document(content=doc.content, metadata=doc.metadata or {}) for doc in body.documents]
    result = await document_service.ingest_batch(documents)
    return _ingest_response(result, f"{result.count} documents ingested successfully")


@documents_router.post("/ingest-text", response_model=IngestResponse)
async def ingest_text(
    body: IngestTextRequest,
    document_service: DocumentService = Depends(get_document_service),
) -> IngestResponse:
    result = await document_service.ingest_text(
        body.content,
        body.metadata,
        chunk_size=body.chunk_size or settings.CHUNK_SIZE,
        overlap=body.chunk_overlap if body.chunk_overlap is not None else settings.CHUNK_OVERLAP,
    )
    return _ingest_response(result, f"Text ingested as {result.count} chunks")


@documents_router.get("/search", response_model=List[DocumentResult])
async def search_documents(
    query: str = Query(..., min_length=1),
    limit: int = Query(settings.DEFAULT_SEARCH_RESULTS, ge=1, le=settings.MAX_SEARCH_RESULTS),
    document_service: DocumentService = Depends(get_document_service),
) -> List[DocumentResult]:
    documents = await document_service.search(query, limit)
    return [DocumentResult(content=doc.content, metadata=doc.metadata) for doc in documents]


@documents_router.delete("/delete", response_model=DeleteResponse)
async def delete_documents(
    body: DeleteDocumentsRequest,
    document_service: DocumentService = Depends(get_document_service),
) -> DeleteResponse:
    await document_service.delete(body.filter)
    return DeleteResponse(message="Documents deleted successfully")


@documents_router.get("/status", response_model=VectorStoreStatusResponse)
async def vector_store_status(
    vector_store: VectorStoreAdapter = Depends(get_vector_store),
) -> VectorStoreStatusResponse:
    return VectorStoreStatusResponse(
        state=vector_store.state,
        backend=vector_store.backend_name,
        ready=vector_store.is_ready,
    )


# ---------- Sessions ----------
@sessions_router.post("", response_model=SessionResponse, status_code=201)
async def create_session(
    body: CreateSessionRequest,
    user_id: str = Depends(get_current_user_id),
    session_service: SessionService = Depends(get_session_service),
):
    return await session_service.create_session(user_id, body.title)


@sessions_router.get("", response_model=List[SessionResponse])
async def list_sessions(
    user_id: str = Depends(get_current_user_id),
    session_service: SessionService = Depends(get_session_service),
):
    return await session_service.get_recent_sessions(user_id)


@sessions_router.patch("/{session_id}/rename", response_model=SessionResponse)
async def rename_session(
    session_id: str,
    body: RenameSessionRequest,
    user_id: str = Depends(get_current_user_id),
    session_service: SessionService = Depends(get_session_service),
):
    return await session_service.rename_session(user_id, session_id, body.title)


@sessions_router.patch("/{session_id}/favorite", response_model=SessionResponse)
async def toggle_favorite(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    session_service: SessionService = Depends(get_session_service),
):
    return await session_service.toggle_favorite(user_id, session_id)


@sessions_router.delete("/{session_id}", status_code=204)
async def delete_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    session_service: SessionService = Depends(get_session_service),
) -> Response:
    await session_service.delete_session(user_id, session_id)
    return Response(status_code=204)


# ---------- Messages ----------
@messages_router.post("/{session_id}", response_model=MessageResponse, status_code=201)
async def create_message(
    session_id: str,
    body: CreateMessageRequest,
    user_id: str = Depends(get_current_user_id),
    message_service: MessageService = Depends(get_message_service),
):
    return await message_service.create_message(
        user_id, session_id, body.role.value, body.content, body.metadata
    )


@messages_router.get("/{session_id}", response_model=List[MessageResponse])
async def list_messages(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    message_service: MessageService = Depends(get_message_service),
):
    return await message_service.list_messages(user_id, session_id)


@messages_router.get("/{session_id}/history", response_model=List[ChatHistoryItem])
async def chat_history(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    message_service: MessageService = Depends(get_message_service),
):
    return await message_service.get_chat_history(user_id, session_id)


async def _sse_events(fragments: AsyncGenerator[str, None], session_id: str) -> AsyncGenerator[str, None]:
    """Server-sent events for a reply stream, always terminated by [DONE]."""
    try:
        async for fragment in fragments:
            yield _sse({"content": fragment})
    except asyncio.CancelledError:
        logger.warning(f"Client disconnected from stream for session {session_id}")
        raise
    except Exception as e:
        logger.error(f"Stream for session {session_id} failed: {e}", exc_info=e)
        yield _sse({"error": public_message(e)})
    finally:
        await fragments.aclose()
    yield SSE_DONE


@messages_router.post("/{session_id}/stream")
async def stream_response(
    session_id: str,
    body: StreamRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    open_message_service: Callable[[Request], MessageService] = Depends(get_streaming_message_service),
) -> StreamingResponse:
    try:
        message_service = open_message_service(request)
        fragments = await message_service.stream_response(user_id, session_id, body.question)
    except Exception:
        await close_stream_db(request)
        raise

    return StreamingResponse(
        _sse_events(fragments, session_id),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        background=BackgroundTask(close_stream_db, request),
    )
