# api/schemas.py
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.enums import MessageRole, VectorStoreState


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ---------- Documents ----------

class IngestDocumentRequest(CamelModel):
    content: str = Field(..., min_length=1)
    metadata: Optional[Dict[str, Any]] = None

class IngestDocumentsRequest(CamelModel):
    documents: List[IngestDocumentRequest] = Field(..., min_length=1)

class IngestTextRequest(CamelModel):
    content: str = Field(..., min_length=1)
    metadata: Optional[Dict[str, Any]] = None
    chunk_size: Optional[int] = Field(default=None, gt=0)
    chunk_overlap: Optional[int] = Field(default=None, ge=0)

class IngestResponse(CamelModel):
    message: str
    count: int
    stored: int
    degraded: bool = False

class DocumentResult(CamelModel):
    content: str
    metadata: Dict[str, Any]

class DeleteDocumentsRequest(CamelModel):
    filter: Dict[str, Any]

class DeleteResponse(CamelModel):
    message: str

class VectorStoreStatusResponse(CamelModel):
    state: VectorStoreState
    backend: str
    ready: bool


# ---------- Sessions ----------

class CreateSessionRequest(CamelModel):
    title: Optional[str] = None

class RenameSessionRequest(CamelModel):
    title: str

class SessionResponse(CamelModel):
    id: str
    user_id: Optional[str] = None
    title: str
    favorite: bool
    metadata: Dict[str, Any]
    created_at: datetime
    updated_at: datetime


# ---------- Messages ----------

class CreateMessageRequest(CamelModel):
    role: MessageRole
    content: str = Field(..., min_length=1)
    metadata: Optional[Dict[str, Any]] = None

class MessageResponse(CamelModel):
    id: str
    session_id: str
    role: MessageRole
    content: str
    metadata: Dict[str, Any]
    created_at: datetime

class ChatHistoryItem(CamelModel):
    role: MessageRole
    content: str
    timestamp: datetime

class StreamRequest(CamelModel):
    question: str = Field(..., min_length=1)
