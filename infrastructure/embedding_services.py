# infrastructure/embedding_services.py
"""Embedding generation with L2 normalization for consistent similarity scoring"""
import asyncio
import logging
import numpy as np
from typing import List
from sentence_transformers import SentenceTransformer

from core.exceptions import BackendError
from core.interfaces import IEmbeddingService
from config import settings

logger = logging.getLogger(settings.LOGGER_NAME)

class SentenceTransformerEmbedding(IEmbeddingService):
    """
    Sentence transformer with L2 normalization (unit vectors).

    Why normalization matters:
    - FAISS uses L2 distance: d² = ||a-b||²
    - ChromaDB (cosine space) uses cosine distance: d = 1 - cos(a,b)
    - With normalized vectors: L2² = 2(1-cos), making both metrics equivalent
    - Result: One score threshold behaves consistently across both stores
    """

    def __init__(self, model_name: str = settings.EMBEDDING_MODEL_NAME):
        """Loads the model, preferring the local cache over a download."""
        try:
            logger.info(f"Attempting to load model {model_name} from local cache...")
            self.model = SentenceTransformer(model_name, local_files_only=True)
            logger.info(f"Successfully loaded {model_name} from local cache.")

        except Exception as e:
            logger.warning(
                f"Model {model_name} not found in cache. Attempting online download. "
                f"This may take a few minutes. Error: {e}"
            )
            self.model = SentenceTransformer(model_name)
            logger.info(f"Successfully downloaded and loaded {model_name}.")

        self.model_name = model_name

    def _l2_normalize(self, arr: np.ndarray) -> np.ndarray:
        """
        L2 normalize vectors to unit length (||v|| = 1).

        Args:
            arr: (N, D) array of N vectors with D dimensions

        Returns:
            (N, D) array of unit-normalized vectors
        """
        norms = np.linalg.norm(arr, axis=1, keepdims=True)
        norms[norms == 0] = 1e-12  # Avoid division by zero
        return arr / norms

    async def generate_embeddings(self, texts: List[str]) -> List[List[float]]:
        """Generate L2-normalized embeddings for multiple texts."""
        if not texts:
            return []
        try:
            raw = await asyncio.to_thread(
                self.model.encode,
                texts,
                convert_to_tensor=False
            )
        except Exception as e:
            raise BackendError(f"Embedding generation failed: {e}") from e
        normalized = self._l2_normalize(np.array(raw, dtype="float32"))
        return normalized.tolist()

    async def generate_query_embedding(self, query: str) -> List[float]:
        """Generate L2-normalized embedding for query, in the same space as stored vectors."""
        try:
            raw = await asyncio.to_thread(
                self.model.encode,
                query,
                convert_to_tensor=False
            )
        except Exception as e:
            raise BackendError(f"Query embedding failed: {e}") from e
        normalized = self._l2_normalize(
            np.array(raw, dtype="float32").reshape(1, -1)
        )
        return normalized[0].tolist()
