"""Tests for the retrieval chat agent."""

import pytest

from src.core.services.chat_agent import ChatAgent
from src.core.services.chat_service import ChatService, GenerationProvider, GenerationResult
from src.core.services.embedding import EmbeddingService
from src.core.services.memory import InMemoryConversationStore
from src.core.services.vector_store import FileVectorStore, write_readiness_marker
from src.utils.errors import AgentNotReadyError, StoreUnavailableError

from tests.fakes import FakeEmbeddingProvider


class _EchoLLM(GenerationProvider):
    name = "llm"

    async def generate(self, prompt, query, context):
        return GenerationResult(True, f"Answer to {query}", self.name)


@pytest.mark.asyncio
async def test_vector_retrieval_returns_closest_record(make_agent):
    provider = FakeEmbeddingProvider({"machine learning": [1.0, 0.0]})
    agent = make_agent([provider], top_k=1)
    await agent.initialize()

    result = await agent.chat("What is ML?", "c1")

    assert provider.calls == ["machine learning"]
    assert result.metadata.retrieval_mode == "vector"
    assert result.metadata.search_results == 1
    assert [s.title for s in result.sources] == ["A"]
    assert result.sources[0].similarity == pytest.approx(1.0)
    assert "This information is sourced from: A" in result.response


@pytest.mark.asyncio
async def test_lexical_fallback_when_embeddings_unavailable(make_agent):
    agent = make_agent([], top_k=2)
    await agent.initialize()

    result = await agent.chat("What is ML?")

    assert result.metadata.retrieval_mode == "lexical"
    assert result.sources[0].title == "A"
    assert result.sources[0].similarity == 1.0
    assert result.metadata.degraded is True
    assert result.conversation_id


@pytest.mark.asyncio
async def test_dimension_mismatch_uses_lexical_ranking(make_agent):
    agent = make_agent([FakeEmbeddingProvider(default=[1.0, 0.0, 0.0])])
    await agent.initialize()

    result = await agent.chat("gardening tomatoes")

    assert result.metadata.retrieval_mode == "lexical"
    assert result.sources[0].title == "B"


@pytest.mark.asyncio
async def test_full_service_is_not_degraded(file_store, readiness_file):
    agent = ChatAgent(
        store=file_store,
        embedding_service=EmbeddingService([FakeEmbeddingProvider(default=[1.0, 0.0])]),
        chat_service=ChatService([_EchoLLM()]),
        readiness_file=readiness_file,
    )
    await agent.initialize()

    result = await agent.chat("machine learning basics")

    assert result.response == "Answer to machine learning basics"
    assert result.metadata.generation_mode == "llm"
    assert result.metadata.degraded is False
    assert result.metadata.tokens_used > 0


@pytest.mark.asyncio
async def test_turns_accumulate_in_memory(make_agent):
    conversations = InMemoryConversationStore()
    agent = make_agent([], conversations=conversations)
    await agent.initialize()

    await agent.chat("What is ML?", "c1")
    second = await agent.chat("and python?", "c1")

    history = agent.get_conversation_history("c1")
    assert second.metadata.turns == 2
    assert [t.query for t in history] == ["What is ML?", "and python?"]
    assert history[0].context_used == 2
    assert second.metadata.total_sources == 4
    assert agent.get_conversation_history("other") == []


@pytest.mark.asyncio
async def test_chat_before_initialize_is_rejected(make_agent):
    agent = make_agent([])
    with pytest.raises(AgentNotReadyError):
        await agent.chat("hello")


@pytest.mark.asyncio
async def test_initialize_is_idempotent(make_agent):
    agent = make_agent([])
    assert await agent.initialize()
    assert await agent.initialize()
    assert agent.ready


@pytest.mark.asyncio
async def test_missing_readiness_marker_blocks_initialization(file_store, tmp_path):
    agent = ChatAgent(
        store=file_store,
        embedding_service=EmbeddingService([]),
        readiness_file=tmp_path / "absent.json",
    )
    with pytest.raises(StoreUnavailableError):
        await agent.initialize()
    assert agent.ready is False


@pytest.mark.asyncio
async def test_empty_store_blocks_initialization(tmp_path):
    path = tmp_path / "vectors.json"
    path.write_text("[]", encoding="utf-8")
    marker = tmp_path / "marker.json"
    write_readiness_marker(3, "file", 2, path=marker)

    agent = ChatAgent(
        store=FileVectorStore(path),
        embedding_service=EmbeddingService([]),
        readiness_file=marker,
    )
    with pytest.raises(StoreUnavailableError):
        await agent.initialize()


@pytest.mark.asyncio
async def test_unavailable_backends_fall_back_to_file_store(monkeypatch, vector_file, readiness_file):
    monkeypatch.setattr("src.config.settings.settings.VECTOR_STORE_BACKENDS", "postgres-down")
    monkeypatch.setattr("src.config.settings.settings.VECTOR_FILE", vector_file)
    agent = ChatAgent(embedding_service=EmbeddingService([]), readiness_file=readiness_file)

    assert await agent.initialize()
    assert agent.store.name == "file"
    assert agent.store.path == vector_file
