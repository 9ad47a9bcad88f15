from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from src.core.models.records import CamelModel, StageError, VectorRecord


class ConversationTurn(CamelModel):
    timestamp: str
    query: str
    response: str
    context_used: int = 0
    sources: List[str] = Field(default_factory=list)

    @property
    def approx_tokens(self) -> int:
        return len(self.query.split()) + len(self.response.split())


class RetrievedChunk(BaseModel):
    content: str
    metadata: Dict[str, Any]
    similarity: float

    @classmethod
    def from_record(cls, record: VectorRecord, similarity: float) -> "RetrievedChunk":
        return cls(content=record.content, metadata=record.metadata, similarity=similarity)


class SourceRef(BaseModel):
    title: str
    url: str = ""
    similarity: float


class ChatMetadata(CamelModel):
    search_results: int = 0
    query_terms: int = 0
    entities: int = 0
    tokens_used: int = 0
    response_time: int = 0
    turns: int = 0
    total_sources: int = 0
    retrieval_mode: str = "none"
    generation_mode: str = "none"
    degraded: bool = False


class ChatResult(CamelModel):
    response: str
    conversation_id: str
    metadata: ChatMetadata
    sources: List[SourceRef] = Field(default_factory=list)


class AgentState(BaseModel):
    """Mutable state threaded through the chat pipeline."""
    status: str = "idle"
    current_query: str = ""
    processed_query: str = ""
    conversation_id: str
    retrieved_context: List[RetrievedChunk] = Field(default_factory=list)
    response: str = ""
    metadata: ChatMetadata = Field(default_factory=ChatMetadata)
    errors: List[StageError] = Field(default_factory=list)
    started_at: Optional[float] = None
