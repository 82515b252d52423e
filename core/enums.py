"""Shared enumerations used across the application."""
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for user-facing error messages."""
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    BACKEND_ERROR = "BACKEND_ERROR"
    GENERATION_FAILED = "GENERATION_FAILED"


class MessageRole(str, Enum):
    """Author of a chat message."""
    USER = "user"
    ASSISTANT = "assistant"


class VectorStoreState(str, Enum):
    """Lifecycle of the vector store adapter. READY and DISABLED are terminal."""
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    DISABLED = "disabled"


class VectorStoreType(str, Enum):
    """Supported vector index backends."""
    CHROMADB = "chromadb"
    FAISS = "faiss"
    NONE = "none"

    @staticmethod
    def from_string(value: str) -> 'VectorStoreType':
        """Convert a settings value to VectorStoreType (unknown values disable the store)."""
        try:
            return VectorStoreType((value or "").lower())
        except ValueError:
            return VectorStoreType.NONE
