"""Chunk data models."""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import numpy as np


@dataclass(frozen=True)
class ChunkWindow:
    """A window of words produced by the chunker.

    Offsets are word positions: the window covers words
    ``[start_offset, end_offset)`` of the whitespace-split document text.
    """
    text: str
    start_offset: int
    end_offset: int
    page_number: Optional[int] = None


@dataclass
class Chunk:
    """A chunk ready to be persisted: window + embedding + metadata."""
    document_id: int
    chunk_index: int  # 0-based, increasing within a document
    text: str
    start_offset: int
    end_offset: int
    embedding: np.ndarray  # float32, length EMBEDDING_DIMENSION
    page_number: Optional[int] = None
    paragraph_number: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class StoredChunk:
    """A persisted chunk joined with its owning document's title and path."""
    chunk_id: int
    document_id: int
    chunk_index: int
    text: str
    embedding: np.ndarray
    title: str
    file_path: str
    page_number: Optional[int] = None
    paragraph_number: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SearchResult:
    """A stored chunk scored against a query."""
    chunk: StoredChunk
    vector_score: float  # cosine similarity, [-1, 1]
    lexical_score: float  # query-word overlap, [0, 1]
    combined_score: float  # weighted hybrid score
