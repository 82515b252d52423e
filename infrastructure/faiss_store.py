# infrastructure/faiss_store.py
import asyncio
import logging
import json
from typing import List, Optional, Dict, Any
from pathlib import Path

import faiss
import numpy as np

from core.domain import ChunkSearchResult, DocumentChunk, validate_filter
from core.exceptions import BackendError
from core.interfaces import IVectorIndex
from config import settings

logger = logging.getLogger(settings.LOGGER_NAME)


def _matches(metadata: Dict[str, Any], filter: Dict[str, Any]) -> bool:
    """Exact key equality on every filter key."""
    return all(key in metadata and metadata[key] == value for key, value in filter.items())


class FAISSVectorStore(IVectorIndex):
    """
    FAISS implementation with thread-safe mutations and stable index ordering.

    - Single asyncio.Lock() serializes all mutations
    - _row_ids list maintains stable FAISS row → chunk_id mapping
    - Deletion rebuilds the index in stable row order
    - Load/save persists both metadata and row order
    """

    def __init__(self, index_path: str):
        self._index: Optional[faiss.IndexFlatL2] = None
        self._metadata: Dict[str, Dict[str, Any]] = {}
        self._row_ids: List[str] = []  # FAISS row → chunk_id (stable order)
        self._lock = asyncio.Lock()

        self._index_path = Path(index_path) / "faiss.index"
        self._metadata_path = Path(index_path) / "faiss_metadata.json"

        self._index_path.parent.mkdir(parents=True, exist_ok=True)
        self._load_index()

    def _load_index(self):
        """Loads index, metadata, and row order from disk"""
        if self._index_path.exists():
            try:
                self._index = faiss.read_index(str(self._index_path))
                logger.info(f"[FAISS] Loaded index from {self._index_path}")
            except Exception as e:
                logger.warning(f"[FAISS] Failed to load index: {e}. Starting fresh.")
                self._index = None

        if self._metadata_path.exists():
            try:
                with open(self._metadata_path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                    self._metadata = data.get("metadata", {})
                    self._row_ids = data.get("row_ids", [])
                logger.info(f"[FAISS] Loaded {len(self._metadata)} chunks with stable ordering.")
            except Exception as e:
                logger.warning(f"[FAISS] Failed to load metadata: {e}. Starting fresh.")
                self._metadata = {}
                self._row_ids = []

    def _write_metadata(self, data: Dict[str, Any]) -> None:
        with open(self._metadata_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False, default=str)

    async def _save_index_locked(self):
        """Saves index and metadata to disk (must be called under self._lock)."""
        if self._index:
            await asyncio.to_thread(faiss.write_index, self._index, str(self._index_path))

        data = {
            "metadata": self._metadata,
            "row_ids": self._row_ids
        }
        await asyncio.to_thread(self._write_metadata, data)

    async def add_chunks(self, chunks: List[DocumentChunk]) -> None:
        """Add chunks with thread-safe mutations"""
        if not chunks:
            return

        embeddings = np.array([c.embedding for c in chunks], dtype='float32')

        try:
            async with self._lock:
                if self._index is None:
                    dim = embeddings.shape[1]
                    self._index = faiss.IndexFlatL2(dim)
                    logger.info(f"[FAISS] Initialized new index with dimension {dim}")

                await asyncio.to_thread(self._index.add, embeddings)  # type: ignore

                for chunk in chunks:
                    self._row_ids.append(chunk.id)
                    self._metadata[chunk.id] = {
                        "content": chunk.content,
                        "metadata": chunk.metadata or {}
                    }

                await self._save_index_locked()
        except Exception as e:
            logger.error(f"[FAISS] Failed to add chunks: {e}")
            raise BackendError(f"Vector index write failed: {e}") from e

    async def search(self, query_embedding: List[float], top_k: int = 5) -> List[ChunkSearchResult]:
        """
        Search using stable row ordering.
        Returns results with normalized cosine similarity scores [0,1].
        """
        if not self._index or self._index.ntotal == 0:
            logger.info("[FAISS] Search called but index is empty.")
            return []

        try:
            query_vector = np.array([query_embedding], dtype='float32')
            async with self._lock:
                distances, indices = await asyncio.to_thread(
                    self._index.search, query_vector, top_k
                )  # type: ignore

                results = []
                for pos, row in enumerate(indices[0]):
                    if row == -1 or row >= len(self._row_ids):
                        continue

                    chunk_id = self._row_ids[row]
                    stored = self._metadata.get(chunk_id)
                    if not stored:
                        continue

                    # For unit vectors: d² = 2(1-cos); map to [0,1] with 1 - d²/4
                    l2_distance_squared = float(distances[0][pos])
                    similarity = max(0.0, min(1.0, 1.0 - (l2_distance_squared / 4.0)))

                    chunk = DocumentChunk(
                        id=chunk_id,
                        content=stored['content'],
                        metadata=dict(stored['metadata'])
                    )
                    results.append(ChunkSearchResult(chunk=chunk, score=similarity))

            return results

        except Exception as e:
            logger.error(f"[FAISS] Search failed: {e}")
            raise BackendError(f"Vector index search failed: {e}") from e

    async def delete_where(self, filter: Dict[str, Any]) -> None:
        """Delete matching chunks and rebuild the index in stable row order."""
        filter = validate_filter(filter)
        if not self._index or not self._metadata:
            return

        try:
            async with self._lock:
                keep_ids: List[str] = []
                keep_vecs: List[np.ndarray] = []
                keep_meta: Dict[str, Dict[str, Any]] = {}

                for row, chunk_id in enumerate(self._row_ids):
                    stored = self._metadata.get(chunk_id)
                    if not stored or _matches(stored.get('metadata', {}), filter):
                        continue
                    keep_ids.append(chunk_id)
                    keep_meta[chunk_id] = stored
                    keep_vecs.append(self._index.reconstruct(row))  # type: ignore

                removed = len(self._row_ids) - len(keep_ids)
                new_index = faiss.IndexFlatL2(self._index.d)
                if keep_vecs:
                    embeddings = np.vstack(keep_vecs).astype('float32', copy=False)
                    await asyncio.to_thread(new_index.add, embeddings)  # type: ignore

                self._index = new_index
                self._row_ids = keep_ids
                self._metadata = keep_meta

                await self._save_index_locked()

                logger.info(f"[FAISS] Deleted {removed} chunks. Remaining chunks: {len(keep_meta)}")

        except Exception as e:
            logger.error(f"[FAISS] Deletion failed: {e}")
            raise BackendError(f"Vector index delete failed: {e}") from e

    async def count(self) -> int:
        """Get total number of chunks"""
        return self._index.ntotal if self._index else 0
