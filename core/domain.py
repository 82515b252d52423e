"""Domain models for the chat RAG system."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr, ValidationError

from core.enums import MessageRole
from core.exceptions import InvalidArgumentError

# ============= Core-recognized metadata keys =============

INGESTED_AT = "ingestedAt"
CHUNK_INDEX = "chunkIndex"
TOTAL_CHUNKS = "totalChunks"
GENERATED = "generated"
RAG_ENABLED = "ragEnabled"
MODEL = "model"


class ReservedMetadata(BaseModel):
    """
    Sub-schema for the metadata keys the core itself writes.

    Everything else in a metadata bag is opaque and passes through untouched.
    """
    model_config = ConfigDict(extra="allow")

    ingestedAt: Optional[datetime] = None
    chunkIndex: Optional[StrictInt] = Field(default=None, ge=0)
    totalChunks: Optional[StrictInt] = Field(default=None, ge=1)
    generated: Optional[StrictBool] = None
    ragEnabled: Optional[StrictBool] = None
    model: Optional[StrictStr] = None


def validate_metadata(metadata: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Check the reserved keys of a metadata bag; returns a shallow copy."""
    if metadata is None:
        return {}
    if not isinstance(metadata, dict):
        raise InvalidArgumentError("metadata must be an object")
    try:
        ReservedMetadata.model_validate(metadata)
    except ValidationError as e:
        fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err.get("loc"))
        raise InvalidArgumentError(f"Invalid metadata field(s): {fields}") from e
    return dict(metadata)


def validate_filter(filter: Any) -> Dict[str, Any]:
    """
    Check a metadata deletion filter: a non-empty object without null values.

    Stores drop null metadata values, so a null in a filter could never be
    matched the same way by every backend.
    """
    if not isinstance(filter, dict) or not filter:
        raise InvalidArgumentError("A non-empty metadata filter is required")
    nulls = [key for key, value in filter.items() if value is None]
    if nulls:
        raise InvalidArgumentError(f"Metadata filter values cannot be null: {', '.join(nulls)}")
    return dict(filter)


# ============= Documents =============

@dataclass(frozen=True)
class Document:
    """A piece of text plus its caller-supplied metadata bag."""
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DocumentChunk:
    """A document as stored in the vector index."""
    id: str
    content: str
    metadata: Dict[str, Any]
    embedding: Optional[List[float]] = None  # Vector of float numbers


@dataclass
class ChunkSearchResult:
    """Raw hit returned by a vector index backend."""
    chunk: DocumentChunk
    score: float


# Ordered by descending relevance
RetrievedContext = List[Tuple[Document, float]]


# ============= Chat =============

@dataclass(frozen=True)
class ChatSession:
    id: str
    user_id: Optional[str]
    title: str
    favorite: bool
    metadata: Dict[str, Any]
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class ChatMessage:
    id: str
    session_id: str
    role: MessageRole
    content: str
    metadata: Dict[str, Any]
    created_at: datetime
