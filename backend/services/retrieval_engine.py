"""Hybrid (vector + lexical) search over every stored chunk."""
import asyncio
import logging
from typing import List, Sequence
import numpy as np

from models.chunk import SearchResult, StoredChunk
from services.chunk_store import ChunkStore
from services.embedding_model import EmbeddingModel
from config import VECTOR_WEIGHT, LEXICAL_WEIGHT

logger = logging.getLogger(__name__)


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine similarity in [-1, 1]; 0 when either vector has zero norm or lengths differ."""
    if a.shape != b.shape:
        return 0.0
    norm_a = float(np.linalg.norm(a))
    norm_b = float(np.linalg.norm(b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    score = float(np.dot(a, b)) / (norm_a * norm_b)
    # float32 rounding can push |score| a hair past 1
    return max(-1.0, min(1.0, score))


def lexical_score(query_words: Sequence[str], chunk_text: str) -> float:
    """Fraction of (lower-cased) query words that occur as words of the chunk."""
    if not query_words:
        return 0.0
    content_words = set(chunk_text.lower().split())
    matches = sum(1 for word in query_words if word in content_words)
    return matches / len(query_words)


class HybridSearchEngine:
    """Rank stored chunks against a query with a weighted vector/lexical score.

    Every query is a full linear scan of the chunk store; the corpus is
    assumed small enough for that. Ties on the combined score are broken
    by ascending chunk id so results are deterministic.
    """

    def __init__(
        self,
        chunk_store: ChunkStore,
        embedding_model: EmbeddingModel,
        vector_weight: float = VECTOR_WEIGHT,
        lexical_weight: float = LEXICAL_WEIGHT
    ):
        """
        Initialize the search engine.

        Args:
            chunk_store: Source of chunks and their document metadata
            embedding_model: Embeds the query
            vector_weight: Weight of the cosine similarity in the combined score
            lexical_weight: Weight of the lexical overlap in the combined score
        """
        self.chunk_store = chunk_store
        self.embedding_model = embedding_model
        self.vector_weight = vector_weight
        self.lexical_weight = lexical_weight
        logger.info(f"Initialized HybridSearchEngine (vector={vector_weight}, lexical={lexical_weight})")

    def score_chunk(self, query_embedding: np.ndarray, query_words: Sequence[str], chunk: StoredChunk) -> SearchResult:
        vector = cosine_similarity(query_embedding, chunk.embedding)
        lexical = lexical_score(query_words, chunk.text)
        return SearchResult(
            chunk=chunk,
            vector_score=vector,
            lexical_score=lexical,
            combined_score=self.vector_weight * vector + self.lexical_weight * lexical,
        )

    def rank(self, query_embedding: np.ndarray, query: str, chunks: List[StoredChunk], limit: int) -> List[SearchResult]:
        """Score and order chunks; pure, no I/O."""
        if limit <= 0 or not chunks:
            return []
        query_words = query.lower().split()
        results = [self.score_chunk(query_embedding, query_words, chunk) for chunk in chunks]
        results.sort(key=lambda r: (-r.combined_score, r.chunk.chunk_id))
        return results[:limit]

    async def search(self, query: str, limit: int = 10) -> List[SearchResult]:
        """
        Search every stored chunk for the query.

        Args:
            query: Query text
            limit: Maximum number of results; 0 returns an empty list

        Returns:
            Results ordered by non-increasing combined score

        Raises:
            EmbeddingError: If the query cannot be embedded (no partial results)
            StorageError: If the chunk store cannot be read
        """
        if limit <= 0:
            return []

        query_embedding = await self.embedding_model.embed(query)
        chunks = await asyncio.to_thread(self.chunk_store.list_all_chunks_with_document_meta)

        if not chunks:
            logger.info("Chunk store is empty, no results")
            return []

        results = self.rank(query_embedding, query, chunks, limit)
        logger.info(
            f"Scored {len(chunks)} chunks, returning {len(results)} "
            f"(top: {results[0].combined_score:.3f})"
        )
        return results
