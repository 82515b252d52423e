# services/vector_store_adapter.py
"""
Vector store adapter: the only owner of the embedding model and the vector index.

Lifecycle::

    UNINITIALIZED ──(backend configured)──▶ READY
          └──────────(not configured)─────▶ DISABLED

READY and DISABLED are terminal for the lifetime of the adapter. DISABLED is a
normal operating mode, not an error: searches return nothing and writes are
skipped with a warning, so ingestion and chat keep working without a vector
backend. Initialization is lazy, runs at most once, and concurrent first
callers wait on the same lock.
"""
import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence
from uuid import uuid4

from config import settings
from core.domain import Document, DocumentChunk, RetrievedContext
from core.enums import VectorStoreState
from core.exceptions import BackendError, InvalidArgumentError
from core.interfaces import IEmbeddingService, IVectorIndex
from utils.common import describe_filter

logger = logging.getLogger(settings.LOGGER_NAME)

IndexFactory = Callable[[], IVectorIndex]
EmbeddingFactory = Callable[[], IEmbeddingService]


class VectorStoreAdapter:
    """Embeds, stores, searches and deletes documents against a vector index."""

    def __init__(
        self,
        index_factory: Optional[IndexFactory],
        embedding_factory: EmbeddingFactory,
        backend_name: str = "none"
    ):
        """
        Args:
            index_factory: Builds the index client; None means no backend is
                configured and the adapter will settle in DISABLED.
            embedding_factory: Builds the embedding service (may load a model).
            backend_name: Label used in logs and status reports.
        """
        self._index_factory = index_factory
        self._embedding_factory = embedding_factory
        self.backend_name = backend_name if index_factory else "none"

        self._index: Optional[IVectorIndex] = None
        self._embeddings: Optional[IEmbeddingService] = None
        self._state = VectorStoreState.UNINITIALIZED
        self._init_lock = asyncio.Lock()

    @property
    def state(self) -> VectorStoreState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is VectorStoreState.READY

    async def initialize(self) -> VectorStoreState:
        """
        Build the backend clients once.

        A construction failure raises BackendError and leaves the adapter
        UNINITIALIZED so a later call can try again.
        """
        if self._state is not VectorStoreState.UNINITIALIZED:
            return self._state

        async with self._init_lock:
            if self._state is not VectorStoreState.UNINITIALIZED:
                return self._state

            if self._index_factory is None:
                logger.warning("Vector store backend is not configured. RAG features will be disabled.")
                self._state = VectorStoreState.DISABLED
                return self._state

            try:
                embeddings = await asyncio.to_thread(self._embedding_factory)
                index = await asyncio.to_thread(self._index_factory)
            except Exception as e:
                logger.error(f"Vector store initialization failed ({self.backend_name}): {e}")
                raise BackendError(f"Vector store initialization failed: {e}") from e

            # Publish both clients before flipping the state
            self._embeddings = embeddings
            self._index = index
            self._state = VectorStoreState.READY
            logger.info(f"Vector store initialized successfully ({self.backend_name})")

        return self._state

    async def add_documents(self, documents: Sequence[Document]) -> int:
        """
        Embed and store documents in one batched index write.

        Returns:
            Number of documents stored (0 when the adapter is DISABLED)

        Raises:
            BackendError: If embedding or the index write fails
        """
        if not documents:
            return 0

        if await self.initialize() is VectorStoreState.DISABLED:
            logger.warning(f"Vector store disabled; skipped storing {len(documents)} document(s)")
            return 0

        embeddings = await self._embeddings.generate_embeddings([doc.content for doc in documents])
        chunks = [
            DocumentChunk(
                id=str(uuid4()),
                content=doc.content,
                metadata=dict(doc.metadata),
                embedding=embedding
            )
            for doc, embedding in zip(documents, embeddings)
        ]
        await self._index.add_chunks(chunks)
        logger.info(f"Added {len(chunks)} documents to vector store")
        return len(chunks)

    async def _search(self, query: str, k: int) -> RetrievedContext:
        query_embedding = await self._embeddings.generate_query_embedding(query)
        results = await self._index.search(query_embedding, k)
        ranked = sorted(results, key=lambda r: r.score, reverse=True)
        return [
            (Document(content=r.chunk.content, metadata=dict(r.chunk.metadata)), r.score)
            for r in ranked
        ]

    async def similarity_search(self, query: str, k: int = 5) -> List[Document]:
        """
        Most relevant documents first.

        Returns an empty list when the adapter is DISABLED or nothing matches.

        Raises:
            BackendError: If the adapter is READY and the backend fails
        """
        _validate_k(k)
        if await self.initialize() is VectorStoreState.DISABLED:
            return []

        results = await self._search(query, k)
        logger.info(f"Found {len(results)} similar documents for query: {query[:80]}")
        return [doc for doc, _ in results]

    async def similarity_search_with_score(
        self,
        query: str,
        k: int = 5,
        score_threshold: float = settings.SEARCH_SCORE_THRESHOLD
    ) -> RetrievedContext:
        """
        (document, score) pairs with score >= score_threshold, best first.

        Raises:
            BackendError: If the adapter is DISABLED or the backend fails
        """
        _validate_k(k)
        if await self.initialize() is VectorStoreState.DISABLED:
            raise BackendError("Vector store is disabled; scored search needs a live backend")

        results = await self._search(query, k)
        filtered = [(doc, score) for doc, score in results if score >= score_threshold]
        logger.info(f"Found {len(filtered)} documents above threshold {score_threshold}")
        return filtered

    async def delete_documents(self, filter: Dict[str, Any]) -> None:
        """
        Delete stored documents whose metadata equals the filter on every key.

        Raises:
            BackendError: If the backend delete fails
        """
        if await self.initialize() is VectorStoreState.DISABLED:
            logger.warning(f"Vector store disabled; skipped delete ({describe_filter(filter)})")
            return

        await self._index.delete_where(filter)
        logger.info(f"Deleted documents with filter: {describe_filter(filter)}")

    async def count(self) -> int:
        """Number of stored chunks (0 when DISABLED)."""
        if await self.initialize() is VectorStoreState.DISABLED:
            return 0
        return await self._index.count()


def _validate_k(k: int) -> None:
    if isinstance(k, bool) or not isinstance(k, int) or k < 1:
        raise InvalidArgumentError("k must be a positive integer")
