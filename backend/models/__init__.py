"""Data models for the knowledge-base search backend."""
from .document import Document
from .chunk import ChunkWindow, Chunk, StoredChunk, SearchResult
from .citation import Citation, Answer
from .api import (
    QueryRequest,
    QueryResponse,
    CitationOut,
    ReindexResponse,
    IndexDocumentResponse,
    StatsResponse,
)

__all__ = [
    "Document",
    "ChunkWindow",
    "Chunk",
    "StoredChunk",
    "SearchResult",
    "Citation",
    "Answer",
    "QueryRequest",
    "QueryResponse",
    "CitationOut",
    "ReindexResponse",
    "IndexDocumentResponse",
    "StatsResponse",
]
