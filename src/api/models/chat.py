from pydantic import Field
from typing import List, Optional
from src.core.models.chat import ChatResult, ConversationTurn
from src.core.models.records import CamelModel

class ChatRequest(CamelModel):
    message: Optional[str] = Field(default=None, description="The user's question")
    conversation_id: Optional[str] = Field(
        default=None,
        description="Conversation to continue; a new one is started when omitted"
    )

class ChatResponse(CamelModel):
    success: bool = True
    data: ChatResult
    timestamp: str

class HistoryResponse(CamelModel):
    success: bool = True
    conversation_id: str
    history: List[ConversationTurn]
    timestamp: str

class HealthResponse(CamelModel):
    status: str = "ok"
    agent_ready: bool
    timestamp: str
