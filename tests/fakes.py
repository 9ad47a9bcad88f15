"""Test doubles for embedding providers."""

from typing import Dict, List, Optional

from src.core.services.embedding import EmbeddingProvider, EmbeddingResult


class FakeEmbeddingProvider(EmbeddingProvider):
    """Returns fixed vectors for known texts and a default otherwise."""

    name = "fake"

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, default: Optional[List[float]] = None):
        self.vectors = vectors or {}
        self.default = default
        self.calls: List[str] = []

    async def embed(self, text: str) -> EmbeddingResult:
        self.calls.append(text)
        vector = self.vectors.get(text, self.default)
        if vector is None:
            return EmbeddingResult(False, provider=self.name, error="no vector for text")
        return EmbeddingResult(True, list(vector), self.name)


class FailingEmbeddingProvider(EmbeddingProvider):
    name = "failing"

    async def embed(self, text: str) -> EmbeddingResult:
        return EmbeddingResult(False, provider=self.name, error="service unavailable")
