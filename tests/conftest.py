"""Shared fixtures for the tech content RAG tests."""

import json
from pathlib import Path
from typing import List

import pytest

from src.core.services.chat_agent import ChatAgent
from src.core.services.chat_service import ChatService, MockGenerator
from src.core.services.embedding import EmbeddingService
from src.core.services.memory import InMemoryConversationStore
from src.core.services.vector_store import FileVectorStore, write_readiness_marker


@pytest.fixture
def sample_records() -> List[dict]:
    """Vector records covering two distinct topics."""
    return [
        {
            "id": "a",
            "vector": [1.0, 0.0],
            "content": "ML basics: machine learning models learn patterns from data.",
            "metadata": {"title": "A", "url": "https://example.com/a"},
        },
        {
            "id": "b",
            "vector": [0.0, 1.0],
            "content": "unrelated gardening notes about tomatoes.",
            "metadata": {"title": "B", "url": "https://example.com/b"},
        },
    ]


@pytest.fixture
def vector_file(tmp_path: Path, sample_records: List[dict]) -> Path:
    path = tmp_path / "vectors" / "tech-content-vectors.json"
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps(sample_records), encoding="utf-8")
    return path


@pytest.fixture
def readiness_file(tmp_path: Path, sample_records: List[dict]) -> Path:
    path = tmp_path / "vector-db-config.json"
    write_readiness_marker(len(sample_records), "file", 2, path=path)
    return path


@pytest.fixture
def file_store(vector_file: Path) -> FileVectorStore:
    return FileVectorStore(vector_file)


@pytest.fixture
def make_agent(file_store: FileVectorStore, readiness_file: Path):
    """Build agents over the sample store with pluggable embedding providers."""

    def _make(providers=None, conversations=None, top_k: int = 3) -> ChatAgent:
        return ChatAgent(
            store=file_store,
            embedding_service=EmbeddingService(providers or []),
            chat_service=ChatService([MockGenerator()]),
            conversations=conversations if conversations is not None else InMemoryConversationStore(),
            readiness_file=readiness_file,
            top_k=top_k,
        )

    return _make
