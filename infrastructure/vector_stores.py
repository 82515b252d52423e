# infrastructure/vector_stores.py
"""ChromaDB implementation of the vector index"""
import asyncio
import json
import logging
from typing import Any, Dict, List

from core.domain import ChunkSearchResult, DocumentChunk, validate_filter
from core.exceptions import BackendError
from core.interfaces import IVectorIndex
from config import settings

logger = logging.getLogger(settings.LOGGER_NAME)

_SCALAR_TYPES = (str, int, float, bool)

# Names the metadata keys whose values were JSON-encoded on write
JSON_KEYS_FIELD = "_jsonKeys"


def _encode_value(value: Any) -> Any:
    if isinstance(value, _SCALAR_TYPES):
        return value
    return json.dumps(value, ensure_ascii=False, default=str)


def _to_chroma_metadata(metadata: Dict[str, Any]) -> Dict[str, Any]:
    """
    ChromaDB only stores scalar values: nested values are JSON-encoded and
    listed under JSON_KEYS_FIELD so that they can be decoded on read; None is dropped.
    """
    flat = {}
    encoded = []
    for key, value in metadata.items():
        if value is None:
            continue
        flat[key] = _encode_value(value)
        if not isinstance(value, _SCALAR_TYPES):
            encoded.append(key)
    if encoded:
        flat[JSON_KEYS_FIELD] = json.dumps(encoded)
    return flat


def _from_chroma_metadata(metadata: Dict[str, Any]) -> Dict[str, Any]:
    """Inverse of _to_chroma_metadata."""
    restored = dict(metadata or {})
    encoded = restored.pop(JSON_KEYS_FIELD, None)
    if not encoded:
        return restored
    for key in json.loads(encoded):
        if isinstance(restored.get(key), str):
            restored[key] = json.loads(restored[key])
    return restored


def _to_where(filter: Dict[str, Any]) -> Dict[str, Any]:
    """
    Translate an equality filter to a ChromaDB where clause, one clause per key.

    Raises:
        InvalidArgumentError: If the filter is empty or holds a null value
    """
    clauses = [{key: _encode_value(value)} for key, value in validate_filter(filter).items()]
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


class ChromaDBVectorStore(IVectorIndex):
    """ChromaDB implementation with normalized cosine similarity scoring (0-1 scale)"""

    def __init__(self, client: Any, collection_name: str = settings.VECTOR_COLLECTION_NAME):
        self._client = client
        self._collection_name = collection_name
        self._collection: Any = None

    async def _ensure_collection(self):
        """Lazy initialization of collection"""
        if not self._collection:
            self._collection = await asyncio.to_thread(
                self._client.get_or_create_collection,
                name=self._collection_name,
                metadata={"hnsw:space": "cosine"}
            )

    async def add_chunks(self, chunks: List[DocumentChunk]) -> None:
        """Add chunks to ChromaDB"""
        if not chunks:
            return
        try:
            await self._ensure_collection()
            # ChromaDB rejects empty metadata dicts
            metadatas = [_to_chroma_metadata(chunk.metadata) or None for chunk in chunks]
            await asyncio.to_thread(
                self._collection.add,
                documents=[chunk.content for chunk in chunks],
                metadatas=metadatas if any(metadatas) else None,
                ids=[chunk.id for chunk in chunks],
                embeddings=[chunk.embedding for chunk in chunks]
            )
        except Exception as e:
            logger.error(f"Failed to add chunks to ChromaDB: {e}")
            raise BackendError(f"Vector index write failed: {e}") from e

    async def search(self, query_embedding: List[float], top_k: int = 5) -> List[ChunkSearchResult]:
        """
        Search with unified cosine similarity scores (0-1 scale).

        ChromaDB returns cosine distance = 1 - cos(θ) in [0, 2];
        similarity = 1 - (distance/2) maps it to [0, 1].
        """
        try:
            await self._ensure_collection()
            results = await asyncio.to_thread(
                self._collection.query,
                query_embeddings=[query_embedding],
                n_results=top_k,
                include=['metadatas', 'documents', 'distances']
            )
        except Exception as e:
            logger.error(f"Search failed in ChromaDB: {e}")
            raise BackendError(f"Vector index search failed: {e}") from e

        search_results = []
        if results['ids'] and results['ids'][0]:
            for i in range(len(results['ids'][0])):
                cosine_distance = results['distances'][0][i]
                similarity = max(0.0, min(1.0, 1.0 - (cosine_distance / 2.0)))

                chunk = DocumentChunk(
                    id=results['ids'][0][i],
                    content=results['documents'][0][i],
                    metadata=_from_chroma_metadata(results["metadatas"][0][i])
                )
                search_results.append(ChunkSearchResult(chunk=chunk, score=similarity))

        return search_results

    async def delete_where(self, filter: Dict[str, Any]) -> None:
        """Delete all chunks matching the metadata filter"""
        where = _to_where(filter)
        try:
            await self._ensure_collection()
            await asyncio.to_thread(self._collection.delete, where=where)
        except Exception as e:
            logger.error(f"Failed to delete chunks: {e}")
            raise BackendError(f"Vector index delete failed: {e}") from e

    async def count(self) -> int:
        """Get chunk count"""
        try:
            await self._ensure_collection()
            return await asyncio.to_thread(self._collection.count)
        except Exception as e:
            logger.error(f"Failed to get count: {e}")
            raise BackendError(f"Vector index count failed: {e}") from e
