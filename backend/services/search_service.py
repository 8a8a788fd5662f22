"""Knowledge-base search service: the operations exposed to the application layer."""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from models.citation import Citation
from services.answer_synthesizer import AnswerSynthesizer
from services.chunk_store import ChunkStore, InMemoryChunkStore, SupabaseChunkStore
from services.chunking_engine import ChunkingEngine
from services.document_store import DocumentStore, InMemoryDocumentStore, SupabaseDocumentStore
from services.embedding_model import EmbeddingModel
from services.llm_client import LLMClient
from services.reindex_orchestrator import ReindexOrchestrator, ReindexSummary
from services.retrieval_engine import HybridSearchEngine
from services.errors import ConfigurationError, QueryValidationError
from config import CHUNK_STORE_BACKEND, DEFAULT_SEARCH_LIMIT, MAX_SEARCH_LIMIT, MAX_QUERY_LENGTH

logger = logging.getLogger(__name__)


@dataclass
class QueryResult:
    """Answer to a knowledge-base question."""
    query: str
    answer: str
    citations: List[Citation] = field(default_factory=list)
    results_count: int = 0


@dataclass
class CorpusStats:
    total_documents: int
    total_chunks: int
    average_chunks_per_document: int


def validate_query(text, limit) -> None:
    """
    Reject malformed queries before any provider is called.

    Raises:
        QueryValidationError: Naming the violated constraint
    """
    if not isinstance(text, str):
        raise QueryValidationError("Query must be a string", field="query")
    if len(text) < 1:
        raise QueryValidationError("Query must be at least 1 character", field="query")
    if len(text) > MAX_QUERY_LENGTH:
        raise QueryValidationError(
            f"Query must be at most {MAX_QUERY_LENGTH} characters",
            field="query",
            details={"length": len(text)},
        )
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise QueryValidationError("Limit must be an integer", field="limit")
    if limit < 1 or limit > MAX_SEARCH_LIMIT:
        raise QueryValidationError(
            f"Limit must be between 1 and {MAX_SEARCH_LIMIT}",
            field="limit",
            details={"limit": limit},
        )


class SearchService:
    """Facade over search, answer synthesis and indexing.

    Built from explicitly injected collaborators so tests can substitute
    in-memory stores and fake providers.
    """

    def __init__(
        self,
        document_store: DocumentStore,
        chunk_store: ChunkStore,
        search_engine: HybridSearchEngine,
        answer_synthesizer: AnswerSynthesizer,
        orchestrator: ReindexOrchestrator
    ):
        self.document_store = document_store
        self.chunk_store = chunk_store
        self.search_engine = search_engine
        self.answer_synthesizer = answer_synthesizer
        self.orchestrator = orchestrator

    async def query(self, text: str, limit: int = DEFAULT_SEARCH_LIMIT) -> QueryResult:
        """
        Answer a question from the indexed corpus.

        Raises:
            QueryValidationError: If text or limit are out of bounds
            ProviderError: If embedding or generation fails
            StorageError: If chunks cannot be read
        """
        validate_query(text, limit)
        logger.info(f"Processing query: {text[:100]}")

        results = await self.search_engine.search(text, limit)
        answer = await self.answer_synthesizer.generate_answer(text, results)

        return QueryResult(
            query=text,
            answer=answer.answer,
            citations=answer.citations,
            results_count=len(results),
        )

    async def reindex_all(self) -> ReindexSummary:
        return await self.orchestrator.reindex_all()

    async def index_document(self, document_id: int) -> int:
        """Per-upload hook: index one document, returning its chunk count."""
        return await self.orchestrator.index_document_by_id(document_id)

    async def delete_document(self, document_id: int) -> None:
        await self.orchestrator.delete_document(document_id)

    async def stats(self) -> CorpusStats:
        total_documents = await asyncio.to_thread(self.document_store.count)
        counts = await asyncio.to_thread(self.chunk_store.chunk_counts_by_document)

        total_chunks = sum(counts.values())
        # half-up rounding, matching the dashboard's display
        average = int(total_chunks / len(counts) + 0.5) if counts else 0
        return CorpusStats(
            total_documents=total_documents,
            total_chunks=total_chunks,
            average_chunks_per_document=average,
        )


def build_search_service(
    document_store: DocumentStore,
    chunk_store: ChunkStore,
    embedding_model: EmbeddingModel,
    llm_client: Optional[LLMClient] = None,
    chunking_engine: Optional[ChunkingEngine] = None
) -> SearchService:
    """Wire a SearchService from its collaborators."""
    chunking_engine = chunking_engine or ChunkingEngine()
    return SearchService(
        document_store=document_store,
        chunk_store=chunk_store,
        search_engine=HybridSearchEngine(chunk_store, embedding_model),
        answer_synthesizer=AnswerSynthesizer(llm_client),
        orchestrator=ReindexOrchestrator(document_store, chunk_store, embedding_model, chunking_engine),
    )


def build_default_search_service() -> SearchService:
    """Wire a SearchService from environment configuration."""
    if CHUNK_STORE_BACKEND == "memory":
        document_store: DocumentStore = InMemoryDocumentStore()
        chunk_store: ChunkStore = InMemoryChunkStore(document_store)
    elif CHUNK_STORE_BACKEND == "supabase":
        document_store = SupabaseDocumentStore()
        chunk_store = SupabaseChunkStore(client=document_store.client)
    else:
        raise ConfigurationError(
            f"Unknown CHUNK_STORE_BACKEND: {CHUNK_STORE_BACKEND}",
            {"supported": ["supabase", "memory"]},
        )

    logger.info(f"Using {CHUNK_STORE_BACKEND} chunk store")
    return build_search_service(
        document_store=document_store,
        chunk_store=chunk_store,
        embedding_model=EmbeddingModel(),
        llm_client=LLMClient(),
    )
