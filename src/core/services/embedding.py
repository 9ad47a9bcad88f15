import hashlib
from typing import List, NamedTuple, Optional, Sequence
import numpy as np
import google.generativeai as genai
from src.core.services.memory import EmbeddingCache
from src.utils.logging import logger
from src.config.settings import settings

MAX_EMBED_CHARS = 8000


class EmbeddingResult(NamedTuple):
    success: bool
    vector: Optional[List[float]] = None
    provider: str = ""
    error: str = ""


class EmbeddingProvider:
    name = "base"

    async def embed(self, text: str) -> EmbeddingResult:
        raise NotImplementedError


class GeminiEmbeddingProvider(EmbeddingProvider):
    name = "gemini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        dimension: Optional[int] = None,
        task_type: str = "retrieval_document"
    ):
        self.api_key = api_key if api_key is not None else settings.GOOGLE_API_KEY
        self.model = model or settings.EMBEDDING_MODEL
        self.dimension = dimension or settings.EMBEDDING_DIMENSION
        self.task_type = task_type
        if self.api_key:
            genai.configure(api_key=self.api_key)

    async def embed(self, text: str) -> EmbeddingResult:
        if not self.api_key:
            return EmbeddingResult(False, provider=self.name, error="GOOGLE_API_KEY is not set")
        try:
            text = text.replace("\n", " ")
            if len(text) > MAX_EMBED_CHARS:
                text = text[:MAX_EMBED_CHARS] + "..."

            response = genai.embed_content(
                model=self.model,
                content=text,
                task_type=self.task_type,
                output_dimensionality=self.dimension
            )
            embedding = response.get('embedding')
            if not isinstance(embedding, list) or len(embedding) != self.dimension:
                return EmbeddingResult(
                    False,
                    provider=self.name,
                    error=f"Unexpected embedding shape from {self.model}"
                )
            return EmbeddingResult(True, [float(x) for x in embedding], self.name)
        except Exception as e:
            logger.warning(f"Gemini embedding failed: {e}")
            return EmbeddingResult(False, provider=self.name, error=str(e))


class MockEmbeddingProvider(EmbeddingProvider):
    """Pseudo-random vectors seeded from the text digest."""
    name = "mock"

    def __init__(self, dimension: Optional[int] = None):
        self.dimension = dimension or settings.EMBEDDING_DIMENSION

    async def embed(self, text: str) -> EmbeddingResult:
        seed = int.from_bytes(hashlib.sha256(text.encode("utf-8")).digest()[:8], "big")
        rng = np.random.default_rng(seed)
        vector = (rng.random(self.dimension) - 0.5).tolist()
        return EmbeddingResult(True, vector, self.name)


class EmbeddingService:
    def __init__(
        self,
        providers: Sequence[EmbeddingProvider],
        cache: Optional[EmbeddingCache] = None
    ):
        self.providers = list(providers)
        self.cache = cache

    async def embed(self, text: str) -> EmbeddingResult:
        """Try each provider in order and return the first success."""
        if self.cache is not None:
            cached = self.cache.get(text)
            if cached is not None:
                return EmbeddingResult(True, cached, "cache")

        errors = []
        for provider in self.providers:
            result = await provider.embed(text)
            if result.success:
                if self.cache is not None:
                    self.cache.put(text, result.vector)
                return result
            errors.append(f"{provider.name}: {result.error}")

        return EmbeddingResult(False, provider="none", error="; ".join(errors) or "no embedding providers configured")

    async def get_embedding(self, text: str) -> Optional[List[float]]:
        result = await self.embed(text)
        if not result.success:
            logger.warning(f"Embedding unavailable, using keyword scoring: {result.error}")
            return None
        return result.vector


def build_document_embedding_service() -> EmbeddingService:
    """Real provider first, mock vectors when it fails."""
    providers: List[EmbeddingProvider] = []
    if not settings.USE_MOCK_EMBEDDINGS:
        providers.append(GeminiEmbeddingProvider(task_type="retrieval_document"))
    providers.append(MockEmbeddingProvider())
    return EmbeddingService(providers)


def build_query_embedding_service(cache: Optional[EmbeddingCache] = None) -> EmbeddingService:
    """Query embeddings never fall back to mock vectors; failure means lexical scoring."""
    providers: List[EmbeddingProvider] = []
    if not settings.SKIP_EMBEDDING_FALLBACK and not settings.USE_MOCK_EMBEDDINGS:
        providers.append(GeminiEmbeddingProvider(task_type="retrieval_query"))
    return EmbeddingService(providers, cache=cache)
