"""Core interfaces for the chat RAG system"""
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, List, Optional

from core.domain import ChatMessage, ChatSession, ChunkSearchResult, DocumentChunk
from core.enums import MessageRole

# ============= Vector Index Interface =============
class IVectorIndex(ABC):
    """
    Interface for a vector index backend (ChromaDB, FAISS...).

    Implementations raise BackendError on failure. They never embed text
    themselves: chunks arrive with their embedding already attached.
    """

    @abstractmethod
    async def add_chunks(self, chunks: List[DocumentChunk]) -> None:
        """Add document chunks with embeddings"""
        pass

    @abstractmethod
    async def search(self, query_embedding: List[float], top_k: int = 5) -> List[ChunkSearchResult]:
        """Search for similar chunks, most similar first. Scores are in [0, 1]."""
        pass

    @abstractmethod
    async def delete_where(self, filter: Dict[str, Any]) -> None:
        """Delete every chunk whose metadata equals the filter on all of its keys"""
        pass

    @abstractmethod
    async def count(self) -> int:
        """Get total number of chunks"""
        pass

# ============= Embedding Service Interface =============
class IEmbeddingService(ABC):
    """Interface for embedding generation"""

    @abstractmethod
    async def generate_embeddings(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings for text chunks"""
        pass

    @abstractmethod
    async def generate_query_embedding(self, query: str) -> List[float]:
        """Generate embedding for search query"""
        pass

# ============= LLM Interface =============
class ILLMService(ABC):
    """Raw completion backend. Failures surface as BackendError."""

    model: str

    @abstractmethod
    async def complete(self, prompt: str) -> str:
        """Single request/response completion"""
        pass

    @abstractmethod
    def stream(self, prompt: str) -> AsyncIterator[str]:
        """
        Incremental completion.

        Returns an async iterator of text fragments in arrival order. The
        iterator is finite and cannot be restarted.
        """
        pass

# ============= Repository Interfaces =============
class ISessionRepository(ABC):
    """
    Interface for chat session persistence.

    Implementations: SQLSessionRepository.
    """

    @abstractmethod
    async def create(self, user_id: str, title: str) -> ChatSession:
        pass

    @abstractmethod
    async def get_by_id(self, session_id: str) -> Optional[ChatSession]:
        pass

    @abstractmethod
    async def list_by_user(self, user_id: str) -> List[ChatSession]:
        """Sessions of one user, newest first"""
        pass

    @abstractmethod
    async def update(self, session_id: str, **changes: Any) -> Optional[ChatSession]:
        """Apply field changes (title, favorite...) and return the updated session"""
        pass

    @abstractmethod
    async def delete(self, session_id: str) -> bool:
        """Delete a session and its messages"""
        pass


class IMessageRepository(ABC):
    """Append-only chat message log, ordered by creation time."""

    @abstractmethod
    async def create(
        self,
        session_id: str,
        role: MessageRole,
        content: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> ChatMessage:
        """Persist a message; the store assigns id and created_at"""
        pass

    @abstractmethod
    async def list_by_session(self, session_id: str, limit: Optional[int] = None) -> List[ChatMessage]:
        """
        Messages of a session, oldest first.

        With ``limit`` only the most recent ``limit`` messages are returned
        (still oldest first).
        """
        pass
