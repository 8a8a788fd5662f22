"""Services for the knowledge-base search backend."""
from .errors import (
    RAGError,
    ConfigurationError,
    QueryValidationError,
    ProviderError,
    EmbeddingError,
    LLMClientError,
    StorageError,
    DocumentNotFoundError,
)
from .chunking_engine import ChunkingEngine
from .embedding_model import EmbeddingModel
from .llm_client import LLMClient, LLMResponse
from .document_store import DocumentStore, SupabaseDocumentStore, InMemoryDocumentStore
from .chunk_store import ChunkStore, SupabaseChunkStore, InMemoryChunkStore
from .retrieval_engine import HybridSearchEngine
from .answer_synthesizer import AnswerSynthesizer
from .reindex_orchestrator import ReindexOrchestrator, ReindexSummary
from .search_service import SearchService, build_search_service, build_default_search_service

__all__ = [
    'RAGError', 'ConfigurationError', 'QueryValidationError', 'ProviderError', 'EmbeddingError',
    'LLMClientError', 'StorageError', 'DocumentNotFoundError', 'ChunkingEngine', 'EmbeddingModel',
    'LLMClient', 'LLMResponse', 'DocumentStore', 'SupabaseDocumentStore', 'InMemoryDocumentStore',
    'ChunkStore', 'SupabaseChunkStore', 'InMemoryChunkStore', 'HybridSearchEngine', 'AnswerSynthesizer',
    'ReindexOrchestrator', 'ReindexSummary', 'SearchService', 'build_search_service',
    'build_default_search_service',
]
