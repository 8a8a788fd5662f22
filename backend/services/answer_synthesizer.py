"""Cited answer synthesis over the top search results."""
import logging
import math
from typing import List, Optional
import tiktoken

from models.chunk import SearchResult
from models.citation import Answer, Citation
from services.llm_client import LLMClient
from config import ANSWER_TOP_K, EXCERPT_LENGTH

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a helpful assistant that answers questions based on the provided document context.\n"
    "Use only the information in the context. Always cite your sources using the format "
    "[1], [2], etc. corresponding to the document numbers in the context.\n"
    "If the context doesn't contain relevant information, say so clearly."
)

DEGRADED_NOTICE = "Generative provider not configured. Using retrieved context only."


def round_score(score: float) -> float:
    """Two decimals, halves rounded up (0.125 -> 0.13)."""
    return math.floor(score * 100 + 0.5) / 100


def create_citation(result: SearchResult, excerpt_length: int = EXCERPT_LENGTH) -> Citation:
    """Build the read-only citation view of a search result."""
    text = result.chunk.text
    excerpt = text[:excerpt_length] + "..." if len(text) > excerpt_length else text
    return Citation(
        document_id=result.chunk.document_id,
        chunk_id=result.chunk.chunk_id,
        title=result.chunk.title,
        file_path=result.chunk.file_path,
        excerpt=excerpt,
        relevance_score=round_score(result.combined_score),
        page_number=result.chunk.page_number,
        paragraph_number=result.chunk.paragraph_number,
    )


def build_context(results: List[SearchResult]) -> str:
    """Number each chunk [1]..[n] with its title and path, followed by its full text."""
    return "\n\n".join(
        f"[{i}] {r.chunk.title} ({r.chunk.file_path}):\n{r.chunk.text}"
        for i, r in enumerate(results, start=1)
    )


def build_user_prompt(query: str, context: str) -> str:
    return f"Context:\n{context}\n\nQuestion: {query}\n\nAnswer:"


class AnswerSynthesizer:
    """Turns the top-K search results into a cited answer."""

    def __init__(self, llm_client: Optional[LLMClient] = None, top_k: int = ANSWER_TOP_K):
        """
        Args:
            llm_client: Generative provider; None or unconfigured selects degraded mode
            top_k: Number of results used for context and citations
        """
        self.llm_client = llm_client
        self.top_k = top_k
        self._encoder = None

    @property
    def degraded(self) -> bool:
        return self.llm_client is None or not self.llm_client.configured

    def _count_tokens(self, text: str) -> int:
        if self._encoder is None:
            self._encoder = tiktoken.get_encoding("o200k_base")
        return len(self._encoder.encode(text))

    async def generate_answer(self, query: str, results: List[SearchResult]) -> Answer:
        """
        Produce an answer for the query from the top results.

        In degraded mode the answer is a fixed notice; the citations are the
        same either way.

        Raises:
            LLMClientError: If the generative provider fails
        """
        selected = results[:self.top_k]
        citations = [create_citation(r) for r in selected]

        if self.degraded:
            logger.info("Generative provider not configured, returning degraded notice")
            return Answer(answer=DEGRADED_NOTICE, citations=citations, degraded=True)

        user_prompt = build_user_prompt(query, build_context(selected))
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Answer prompt: {self._count_tokens(SYSTEM_PROMPT + user_prompt)} tokens, {len(selected)} sources")

        answer = await self.llm_client.complete(SYSTEM_PROMPT, user_prompt)
        return Answer(answer=answer, citations=citations)
