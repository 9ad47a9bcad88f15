import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional
from src.core.models.chat import AgentState, ChatResult, ConversationTurn, RetrievedChunk
from src.core.pipeline import Pipeline
from src.core.services.chat_service import ChatService
from src.core.services.embedding import EmbeddingService, MockEmbeddingProvider, build_query_embedding_service
from src.core.services.memory import ConversationStore, InMemoryConversationStore, LRUEmbeddingCache
from src.core.services.query_processor import build_search_query
from src.core.services.ranking import rank_records
from src.core.services.vector_store import (
    FileVectorStore,
    VectorStore,
    read_readiness_marker,
    select_vector_store,
)
from src.config.settings import settings
from src.utils.errors import AgentNotReadyError, StoreUnavailableError
from src.utils.logging import logger

UNANSWERED_RESPONSE = "I'm having trouble understanding your question. Could you rephrase it?"


class ChatAgent:
    """Retrieval-augmented chat over the stored vector records."""

    def __init__(
        self,
        store: Optional[VectorStore] = None,
        embedding_service: Optional[EmbeddingService] = None,
        chat_service: Optional[ChatService] = None,
        conversations: Optional[ConversationStore] = None,
        readiness_file: Optional[Path] = None,
        top_k: Optional[int] = None
    ):
        self.store = store
        if embedding_service is None:
            embedding_service = build_query_embedding_service(LRUEmbeddingCache())
        self.embedding_service = embedding_service
        self.chat_service = chat_service if chat_service is not None else ChatService()
        self.conversations = conversations if conversations is not None else InMemoryConversationStore()
        self.readiness_file = readiness_file
        self.top_k = top_k or settings.RETRIEVAL_TOP_K
        self.ready = False
        self.pipeline = Pipeline("chat", [
            ("processing_query", self.process_query),
            ("searching", self.search_vector_database),
            ("generating", self.generate_response),
            ("updating_memory", self.update_memory),
        ])

    async def initialize(self) -> bool:
        """Select a store and verify it holds vectors. Idempotent."""
        if self.ready:
            return True

        if self.store is None:
            try:
                self.store = await select_vector_store()
            except StoreUnavailableError as e:
                logger.warning(f"{e.message}, falling back to file storage")
                self.store = FileVectorStore()

        await self.verify_vector_database()
        index = await self.store.load_index()
        logger.info(f"Chat agent initialized with {len(index.records)} vectors (dim={index.dim})")
        self.ready = True
        return True

    async def verify_vector_database(self):
        if self.store.name == "file":
            marker = read_readiness_marker(self.readiness_file)
            logger.info(f"Vector database ready (file): {marker.get('vectorCount', 0)} vectors available")
        count = await self.store.count()
        if count == 0:
            raise StoreUnavailableError(f"Collection '{self.store.collection}' holds no vectors")
        logger.info(f"Vector database ready ({self.store.name}): {count} vectors available")

    async def process_query(self, state: AgentState):
        logger.info(f"Processing query: \"{state.current_query}\"")
        recent = self.conversations.recent_queries(state.conversation_id, 3)
        processed = build_search_query(state.current_query, recent)

        state.processed_query = processed.text or state.current_query
        state.metadata.query_terms = len(processed.key_terms)
        state.metadata.entities = len(processed.entities)
        logger.info(f"Query processed: \"{state.processed_query}\"")

    async def search_vector_database(self, state: AgentState):
        state.retrieved_context = []
        state.metadata.search_results = 0
        state.metadata.retrieval_mode = "none"

        index = await self.store.load_index()
        # An index holding mock vectors is ranked by keywords
        mocked = sum(1 for r in index.records if r.embedding_provider == MockEmbeddingProvider.name)
        query_vector = None
        if mocked:
            logger.warning(f"{mocked} stored vectors are mock embeddings, using keyword scoring")
        else:
            query_vector = await self.embedding_service.get_embedding(state.processed_query)

        if query_vector is not None and len(query_vector) == index.dim:
            ranked = await self.store.search(query_vector, self.top_k)
            state.metadata.retrieval_mode = "vector"
        else:
            ranked = rank_records(index.records, self.top_k, query=state.processed_query)
            state.metadata.retrieval_mode = "lexical"

        state.retrieved_context = [RetrievedChunk.from_record(r.record, r.similarity) for r in ranked]
        state.metadata.search_results = len(state.retrieved_context)

        for i, item in enumerate(state.retrieved_context, 1):
            logger.info(f"  {i}. {item.metadata.get('title', 'Untitled')} (similarity: {item.similarity:.2f})")

    async def generate_response(self, state: AgentState):
        start = time.monotonic()
        context, _ = self.chat_service.prepare_context(state.retrieved_context)
        prompt = self.chat_service.build_prompt(
            state.current_query,
            context,
            self.conversations.get(state.conversation_id)
        )

        result = await self.chat_service.generate_response(
            query=state.current_query,
            prompt=prompt,
            context=state.retrieved_context
        )

        state.response = result.text
        state.metadata.generation_mode = result.provider if result.success else "none"
        state.metadata.response_time = int((time.monotonic() - start) * 1000)
        state.metadata.tokens_used += len(prompt.split()) + len(state.response.split())
        logger.info(f"Response generated ({state.metadata.response_time}ms)")

    async def update_memory(self, state: AgentState):
        if not state.response:
            state.response = UNANSWERED_RESPONSE

        turn = ConversationTurn(
            timestamp=datetime.now(timezone.utc).isoformat(),
            query=state.current_query,
            response=state.response,
            context_used=len(state.retrieved_context),
            sources=[str(item.metadata.get("title", "")) for item in state.retrieved_context]
        )
        history = self.conversations.append(state.conversation_id, turn)

        state.metadata.turns = len(history)
        state.metadata.total_sources = sum(t.context_used for t in history)
        logger.info(f"Memory updated ({len(history)} turns stored)")

    async def chat(self, message: str, conversation_id: Optional[str] = None) -> ChatResult:
        if not self.ready:
            raise AgentNotReadyError()

        state = AgentState(
            current_query=message,
            conversation_id=conversation_id or str(uuid.uuid4())
        )
        logger.info(f"New chat request: \"{message[:50]}\"")

        state = await self.pipeline.run(state)

        state.metadata.degraded = bool(
            state.errors
            or state.metadata.retrieval_mode != "vector"
            or state.metadata.generation_mode != "llm"
        )

        _, sources = self.chat_service.prepare_context(state.retrieved_context)
        return ChatResult(
            response=state.response,
            conversation_id=state.conversation_id,
            metadata=state.metadata,
            sources=sources
        )

    def get_conversation_history(self, conversation_id: str) -> List[ConversationTurn]:
        return self.conversations.get(conversation_id)

    async def close(self):
        if self.store is not None:
            await self.store.close()
