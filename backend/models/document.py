"""Document data models."""
from dataclasses import dataclass
from typing import Optional


@dataclass
class Document:
    """A document as owned by the document store. The search core only reads it."""
    id: int
    content: Optional[str]
    file_path: str
    title: str
