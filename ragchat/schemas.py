"""
Pydantic schemas for request/response validation.
"""
from typing import Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field

Role = Literal["system", "user", "assistant"]


class ChatTurn(BaseModel):
    """Represents a single turn in a conversation."""
    role: Role
    content: str = ""


class ChatBody(BaseModel):
    """Request body for the streaming chat endpoint."""
    messages: List[ChatTurn] = Field(..., min_length=1, description="Conversation so far, last one is the new user turn")
    chat_id: Optional[str] = Field(None, description="Chat scope; the configured default chat when omitted")


class CreateChatBody(BaseModel):
    title: Optional[str] = None


class ToolInvocation(BaseModel):
    """Canonical record of one tool call and its result."""
    toolCallId: Optional[str] = None
    toolName: Optional[str] = None
    args: Dict[str, Any] = Field(default_factory=dict)
    result: Optional[Any] = None


class ChunkMetadata(BaseModel):
    chunkIndex: Union[int, str]
    totalChunks: Union[int, str]
    chunkLength: int
    uploadedAt: str


class SearchResult(BaseModel):
    """One ranked passage returned by the retrieval tool."""
    rank: int
    source: str
    content: str
    similarityScore: float = Field(..., ge=0.0, le=100.0)
    chunkMetadata: ChunkMetadata
    documentId: Optional[str] = None


class UploadResponse(BaseModel):
    message: str
    fileName: str
    chunks: int
    totalChunks: int
    errors: Optional[List[str]] = None
    textLength: int
