from .chunking import chunk_text, create_simple_chunks, split_sentences
from .content_analyzer import WebContentAnalyzer
from .embedding_pipeline import EmbeddingsPipeline, PipelineState

__all__ = [
    'chunk_text',
    'create_simple_chunks',
    'split_sentences',
    'WebContentAnalyzer',
    'EmbeddingsPipeline',
    'PipelineState',
]
