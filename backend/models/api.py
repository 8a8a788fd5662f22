"""API request/response models."""
from typing import List, Optional
from pydantic import BaseModel, Field

from config import DEFAULT_SEARCH_LIMIT


class QueryRequest(BaseModel):
    """Body of POST /chat/query. Bounds are enforced by SearchService.query."""
    query: str
    limit: int = DEFAULT_SEARCH_LIMIT


class CitationOut(BaseModel):
    """Citation as returned to API clients."""
    documentId: int
    chunkId: int
    title: str
    filePath: str
    page: Optional[int] = None
    paragraph: Optional[int] = None
    excerpt: str
    score: float


class QueryResponse(BaseModel):
    """Answer with citations for a knowledge-base question."""
    query: str
    answer: str
    citations: List[CitationOut] = Field(default_factory=list)
    resultsCount: int


class ReindexResponse(BaseModel):
    """Summary of a full reindex run."""
    message: str = "Reindexing completed"
    processed: int
    errors: int


class IndexDocumentResponse(BaseModel):
    """Result of indexing a single document."""
    documentId: int
    chunks: int


class StatsResponse(BaseModel):
    """Corpus statistics."""
    totalDocuments: int
    totalChunks: int
    averageChunksPerDocument: int
