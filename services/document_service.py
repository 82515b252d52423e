# services/document_service.py
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from config import settings
from core.domain import (
    CHUNK_INDEX, INGESTED_AT, TOTAL_CHUNKS, Document, validate_filter, validate_metadata
)
from core.exceptions import InvalidArgumentError
from services.vector_store_adapter import VectorStoreAdapter
from utils.common import describe_filter
from utils.text_chunker import split_text

logger = logging.getLogger(settings.LOGGER_NAME)


@dataclass(frozen=True)
class IngestResult:
    """Outcome of an ingestion call."""
    count: int   # documents (or chunks) prepared from the input
    stored: int  # documents written to the vector store

    @property
    def degraded(self) -> bool:
        """True when the vector store skipped the write (no backend configured)."""
        return self.stored < self.count


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class DocumentService:
    """Ingestion and search API over the chunker and the vector store adapter."""

    def __init__(self, vector_store: VectorStoreAdapter):
        self.vector_store = vector_store

    def _stamp(self, doc: Document, ingested_at: str) -> Document:
        if not isinstance(doc.content, str) or not doc.content.strip():
            raise InvalidArgumentError("Document content cannot be empty")
        metadata = validate_metadata(doc.metadata)
        metadata[INGESTED_AT] = ingested_at
        return Document(content=doc.content, metadata=metadata)

    async def _store(self, documents: List[Document]) -> IngestResult:
        stored = await self.vector_store.add_documents(documents)
        result = IngestResult(count=len(documents), stored=stored)
        if result.degraded:
            logger.warning(f"Vector store stored {stored} of {len(documents)} document(s)")
        return result

    async def ingest(self, doc: Document) -> IngestResult:
        """Store one document, stamping ingestedAt."""
        result = await self._store([self._stamp(doc, _now_iso())])
        logger.info(f"Ingested document with metadata: {doc.metadata}")
        return result

    async def ingest_batch(self, docs: Sequence[Document]) -> IngestResult:
        """Store several documents in a single index write."""
        if not docs:
            raise InvalidArgumentError("At least one document is required")
        ingested_at = _now_iso()
        result = await self._store([self._stamp(doc, ingested_at) for doc in docs])
        logger.info(f"Ingested {result.stored} of {result.count} documents")
        return result

    async def ingest_text(
        self,
        text: str,
        metadata: Optional[Dict[str, Any]] = None,
        chunk_size: int = settings.CHUNK_SIZE,
        overlap: int = settings.CHUNK_OVERLAP
    ) -> IngestResult:
        """
        Split text into chunks and store each one as a document.

        Every chunk carries the caller metadata plus chunkIndex (0-based),
        totalChunks and a shared ingestedAt stamp.

        Returns:
            IngestResult whose count is the number of chunks produced
        """
        if not isinstance(text, str) or not text.strip():
            raise InvalidArgumentError("Text content cannot be empty")

        base_metadata = validate_metadata(metadata)
        chunks = split_text(text, chunk_size, overlap)
        ingested_at = _now_iso()

        documents: List[Document] = []
        for index, chunk in enumerate(chunks):
            chunk_metadata = {
                **base_metadata,
                CHUNK_INDEX: index,
                TOTAL_CHUNKS: len(chunks),
                INGESTED_AT: ingested_at,
            }
            documents.append(Document(content=chunk, metadata=validate_metadata(chunk_metadata)))

        result = await self._store(documents)
        logger.info(f"Ingested text content split into {len(chunks)} chunks")
        return result

    async def search(self, query: str, limit: int = settings.DEFAULT_SEARCH_RESULTS) -> List[Document]:
        if not isinstance(query, str) or not query.strip():
            raise InvalidArgumentError("Search query cannot be empty")
        return await self.vector_store.similarity_search(query, limit)

    async def delete(self, filter: Dict[str, Any]) -> None:
        """Delete stored documents by metadata filter (empty filters and null values are rejected)."""
        filter = validate_filter(filter)
        await self.vector_store.delete_documents(filter)
        logger.info(f"Deleted documents with filter: {describe_filter(filter)}")
