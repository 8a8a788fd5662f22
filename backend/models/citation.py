"""Citation and answer models."""
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class Citation:
    """User-facing reference to the chunk backing part of an answer."""
    document_id: int
    chunk_id: int
    title: str
    file_path: str
    excerpt: str
    relevance_score: float  # combined score rounded to 2 decimals
    page_number: Optional[int] = None
    paragraph_number: Optional[int] = None


@dataclass
class Answer:
    """Synthesized answer plus the citations it was built from."""
    answer: str
    citations: List[Citation] = field(default_factory=list)
    degraded: bool = False
