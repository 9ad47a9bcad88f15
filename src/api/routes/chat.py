from datetime import datetime, timezone
from fastapi import APIRouter, Depends, Request
from src.api.models.chat import ChatRequest, ChatResponse, HealthResponse, HistoryResponse
from src.api.dependencies.auth import verify_token
from src.core.services.chat_agent import ChatAgent
from src.utils.errors import AgentNotReadyError, AppError, InvalidRequestError
from src.utils.logging import logger

router = APIRouter()

def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()

def get_chat_agent(request: Request) -> ChatAgent:
    return request.app.state.chat_agent

def require_ready_agent(agent: ChatAgent = Depends(get_chat_agent)) -> ChatAgent:
    if agent is None or not agent.ready:
        raise AgentNotReadyError()
    return agent

@router.get("/health", response_model=HealthResponse)
async def health_endpoint(agent: ChatAgent = Depends(get_chat_agent)):
    return HealthResponse(
        agent_ready=bool(agent is not None and agent.ready),
        timestamp=_timestamp()
    )

@router.post("/chat", response_model=ChatResponse)
async def chat_endpoint(
    request: ChatRequest,
    authenticated: bool = Depends(verify_token),
    agent: ChatAgent = Depends(require_ready_agent)
):
    message = (request.message or "").strip()
    if not message:
        raise InvalidRequestError("Message is required and must be a non-empty string")

    logger.info(f"Chat request: \"{message[:50]}{'...' if len(message) > 50 else ''}\"")

    try:
        result = await agent.chat(message, request.conversation_id)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Chat request failed: {e}")
        raise AppError("Failed to process chat request") from e

    return ChatResponse(data=result, timestamp=_timestamp())

@router.get("/conversations/{conversation_id}", response_model=HistoryResponse)
async def history_endpoint(
    conversation_id: str,
    authenticated: bool = Depends(verify_token),
    agent: ChatAgent = Depends(require_ready_agent)
):
    return HistoryResponse(
        conversation_id=conversation_id,
        history=agent.get_conversation_history(conversation_id),
        timestamp=_timestamp()
    )
