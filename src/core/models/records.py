from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Optional


class CamelModel(BaseModel):
    """Base model persisted with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ContentRecord(CamelModel):
    url: str
    title: str
    content: str
    word_count: int
    unique_words: int = 0
    top_keywords: List[str] = Field(default_factory=list)
    readability_score: float = 0.0
    quality_score: float
    fetched_at: Optional[str] = None
    analyzed_at: Optional[str] = None


class ChunkMetadata(CamelModel):
    title: str
    url: str
    chunk_index: int
    total_chunks: int
    keywords: List[str] = Field(default_factory=list)
    quality_score: float
    word_count: int
    processed_at: str
    embedding_provider: Optional[str] = None


class ChunkRecord(CamelModel):
    id: str
    content: str
    metadata: ChunkMetadata


class VectorRecord(BaseModel):
    id: str
    vector: List[float]
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def title(self) -> str:
        return str(self.metadata.get("title", ""))

    @property
    def url(self) -> str:
        return str(self.metadata.get("url", ""))

    @property
    def embedding_provider(self) -> str:
        return str(self.metadata.get("embeddingProvider", ""))


class VectorIndex(BaseModel):
    records: List[VectorRecord]
    dim: int


class StageError(BaseModel):
    stage: str
    error: str
