import asyncio
import json
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, ValidationError
from src.core.models.records import ChunkMetadata, ChunkRecord, ContentRecord, StageError, VectorRecord
from src.core.pipeline import Pipeline, PipelineStatus
from src.core.services.embedding import EmbeddingService, MockEmbeddingProvider, build_document_embedding_service
from src.core.services.vector_store import (
    FileVectorStore,
    VectorStore,
    select_vector_store,
    write_readiness_marker,
)
from src.processing.chunking import chunk_text
from src.config.settings import settings
from src.utils.errors import PipelineError, StoreUnavailableError
from src.utils.logging import logger


def chunk_id(url: str, chunk_index: int) -> str:
    """Deterministic chunk id derived from the article URL and chunk position."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"{url}#{chunk_index}"))


class PipelineMetrics(BaseModel):
    processed: int = 0
    embedded: int = 0
    stored: int = 0
    failed: int = 0


class PipelineState(BaseModel):
    status: str = PipelineStatus.IDLE.value
    input_data: Optional[Dict[str, Any]] = None
    processed_content: List[ChunkRecord] = Field(default_factory=list)
    embeddings: List[VectorRecord] = Field(default_factory=list)
    stored_vectors: int = 0
    total_vectors: int = 0
    store_backend: Optional[str] = None
    embedding_providers: Dict[str, int] = Field(default_factory=dict)
    errors: List[StageError] = Field(default_factory=list)
    metrics: PipelineMetrics = Field(default_factory=PipelineMetrics)
    report: Dict[str, Any] = Field(default_factory=dict)
    started_at: float = Field(default_factory=time.monotonic)

    def record_error(self, error: str):
        self.errors.append(StageError(stage=self.status, error=error))


class EmbeddingsPipeline:
    """Chunk analyzed articles, embed the chunks and store the vectors."""

    def __init__(
        self,
        input_file: Optional[Path] = None,
        embedding_service: Optional[EmbeddingService] = None,
        store: Optional[VectorStore] = None,
        fallback_store: Optional[VectorStore] = None,
        report_file: Optional[Path] = None,
        readiness_file: Optional[Path] = None,
        max_words: Optional[int] = None,
        embed_delay: Optional[float] = None,
        batch_size: Optional[int] = None
    ):
        self.input_file = Path(input_file) if input_file is not None else settings.CONTENT_OUTPUT_FILE
        self.embedding_service = embedding_service or build_document_embedding_service()
        self.store = store
        self.fallback_store = fallback_store or FileVectorStore()
        self.report_file = Path(report_file) if report_file is not None else settings.PIPELINE_REPORT_FILE
        self.readiness_file = readiness_file
        self.max_words = max_words or settings.CHUNK_MAX_WORDS
        self.embed_delay = embed_delay if embed_delay is not None else settings.EMBED_DELAY_SECONDS
        self.batch_size = batch_size or settings.STORE_BATCH_SIZE
        self.pipeline = Pipeline("embeddings", [
            (PipelineStatus.LOADING, self.load_data),
            (PipelineStatus.PROCESSING, self.process_content),
            (PipelineStatus.EMBEDDING, self.generate_embeddings),
            (PipelineStatus.STORING, self.store_vectors),
            (PipelineStatus.REPORTING, self.generate_report),
        ])

    def load_data(self, state: PipelineState):
        logger.info(f"Loading data from {self.input_file}")
        if not self.input_file.exists():
            raise PipelineError("Content analysis output not found. Run the analyze command first.")

        with open(self.input_file, 'r', encoding='utf-8') as f:
            state.input_data = json.load(f)

        logger.info(f"Loaded {len(state.input_data.get('contentData') or [])} articles from analysis")

    def process_content(self, state: PipelineState):
        articles = (state.input_data or {}).get("contentData")
        if not articles:
            raise PipelineError("No content data available")

        for raw in articles:
            try:
                article = ContentRecord.model_validate(raw)
            except ValidationError as e:
                state.metrics.failed += 1
                state.record_error(f"Skipping malformed article: {e.error_count()} validation errors")
                continue

            logger.info(f"Processing: {article.title}")
            chunks = chunk_text(article.content, self.max_words)
            processed_at = datetime.now(timezone.utc).isoformat()

            for index, chunk in enumerate(chunks):
                state.processed_content.append(ChunkRecord(
                    id=chunk_id(article.url, index),
                    content=chunk,
                    metadata=ChunkMetadata(
                        title=article.title,
                        url=article.url,
                        chunk_index=index,
                        total_chunks=len(chunks),
                        keywords=article.top_keywords,
                        quality_score=article.quality_score,
                        word_count=len(chunk.split()),
                        processed_at=processed_at
                    )
                ))
            state.metrics.processed += 1

        logger.info(f"Processed {len(state.processed_content)} content chunks")

    async def generate_embeddings(self, state: PipelineState):
        if not state.processed_content:
            raise PipelineError("No processed content available")

        dimension = None
        for i, chunk in enumerate(state.processed_content):
            logger.info(f"Embedding chunk: {chunk.id[:8]}...")
            result = await self.embedding_service.embed(chunk.content)

            if not result.success:
                state.metrics.failed += 1
                state.record_error(f"Chunk {chunk.id}: {result.error}")
            elif dimension is not None and len(result.vector) != dimension:
                state.metrics.failed += 1
                state.record_error(
                    f"Chunk {chunk.id}: dimension {len(result.vector)} does not match {dimension}"
                )
            else:
                dimension = len(result.vector)
                state.embeddings.append(VectorRecord(
                    id=chunk.id,
                    vector=result.vector,
                    content=chunk.content,
                    metadata=chunk.metadata.model_copy(
                        update={"embedding_provider": result.provider}
                    ).to_json_dict()
                ))
                state.metrics.embedded += 1
                state.embedding_providers[result.provider] = state.embedding_providers.get(result.provider, 0) + 1

            if self.embed_delay and i < len(state.processed_content) - 1:
                await asyncio.sleep(self.embed_delay)

        logger.info(f"Generated {len(state.embeddings)} embeddings")
        mocked = state.embedding_providers.get(MockEmbeddingProvider.name, 0)
        if mocked:
            logger.warning(f"{mocked} chunks use mock embeddings; chat will rank them by keywords")

    async def _store_batches(self, store: VectorStore, records: List[VectorRecord]) -> int:
        stored = 0
        for i in range(0, len(records), self.batch_size):
            added = await store.add(records[i:i + self.batch_size])
            stored += added
            logger.info(f"Stored batch {i // self.batch_size + 1} in {store.name}: {added} vectors")
        return stored

    async def store_vectors(self, state: PipelineState):
        if not state.embeddings:
            raise PipelineError("No embeddings to store")

        store = self.store
        if store is None:
            try:
                store = await select_vector_store()
            except StoreUnavailableError as e:
                state.record_error(f"{e.message}, falling back to file storage")
                store = self.fallback_store
        logger.info(f"Storing vectors in collection: {store.collection} ({store.name})")

        try:
            stored = await self._store_batches(store, state.embeddings)
        except Exception as e:
            if store is self.fallback_store:
                raise
            # Every record goes to the fallback so one backend holds the whole run
            state.record_error(f"{store.name} store failed, falling back to file storage: {e}")
            await store.close()
            store = self.fallback_store
            stored = await self._store_batches(store, state.embeddings)

        state.stored_vectors = stored
        state.metrics.stored = stored
        state.store_backend = store.name
        state.total_vectors = await store.count()
        logger.info(f"Stored {stored} vectors ({state.total_vectors} in {store.name} store)")

    def generate_report(self, state: PipelineState):
        duration = time.monotonic() - state.started_at
        dimension = len(state.embeddings[0].vector) if state.embeddings else None
        content_data = (state.input_data or {}).get("contentData") or []

        report = {
            "pipelineRun": {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "status": "SUCCESS" if not state.errors else "PARTIAL_SUCCESS",
                "durationSeconds": round(duration, 2),
            },
            "metrics": state.metrics.model_dump(),
            "dataQuality": {
                "inputArticles": len(content_data),
                "processedChunks": len(state.processed_content),
                "successfulEmbeddings": len(state.embeddings),
                "storedVectors": state.stored_vectors,
                "errorRate": len(state.errors) / max(1, len(state.processed_content)),
            },
            "vectorDatabase": {
                "collection": settings.COLLECTION_NAME,
                "backend": state.store_backend,
                "totalVectors": state.total_vectors,
                "embeddingProviders": state.embedding_providers,
                "dimensions": dimension,
                "ready": state.total_vectors > 0,
            },
            "errors": [e.model_dump() for e in state.errors],
        }

        write_readiness_marker(
            vector_count=state.total_vectors,
            backend=state.store_backend or "none",
            dimension=dimension,
            path=self.readiness_file,
            embedding_providers=state.embedding_providers
        )

        self.report_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.report_file, 'w', encoding='utf-8') as f:
            json.dump(report, f, indent=2)

        state.report = report
        self.display_report(report)

    @staticmethod
    def display_report(report: Dict[str, Any]):
        logger.info("=== EMBEDDINGS PIPELINE RESULTS ===")
        logger.info(f"Status: {report['pipelineRun']['status']}")
        logger.info(f"Processed: {report['metrics']['processed']} articles")
        logger.info(f"Generated: {report['metrics']['embedded']} embeddings")
        logger.info(f"Stored: {report['metrics']['stored']} vectors")
        logger.info(f"Errors: {len(report['errors'])}")
        for i, error in enumerate(report["errors"], 1):
            logger.warning(f"{i}. {error['stage']}: {error['error']}")

    async def run(self) -> PipelineState:
        logger.info("Starting embeddings pipeline...")
        return await self.pipeline.run(PipelineState())
