"""Shared fixtures: in-memory stores and deterministic embedding models."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import numpy as np
import pytest

from models.document import Document
from services.chunking_engine import ChunkingEngine
from services.chunk_store import InMemoryChunkStore
from services.document_store import InMemoryDocumentStore
from services.embedding_model import EmbeddingModel
from services.errors import EmbeddingError

VOCABULARY = ["alpha", "beta", "gamma", "delta", "steel", "concrete", "deadline", "budget"]


class KeywordEmbeddingModel(EmbeddingModel):
    """Deterministic bag-of-words embedding over a fixed vocabulary, no network."""

    def __init__(self, fail_on=None):
        super().__init__(api_key="test_key", dimension=len(VOCABULARY))
        self.fail_on = fail_on
        self.calls = []

    async def embed(self, text):
        self.calls.append(text)
        if self.fail_on and self.fail_on in text:
            raise EmbeddingError("provider unavailable", {"text": text[:20]})
        words = text.lower().split()
        return np.array([words.count(w) for w in VOCABULARY], dtype=np.float32)


@pytest.fixture
def documents():
    return [
        Document(id=1, content="alpha beta gamma delta", file_path="/docs/one.pdf", title="One"),
        Document(id=2, content="steel concrete steel budget", file_path="/docs/two.pdf", title="Two"),
        Document(id=3, content="deadline budget [Page 3] deadline", file_path="/docs/three.pdf", title="Three"),
    ]


@pytest.fixture
def document_store(documents):
    return InMemoryDocumentStore(documents)


@pytest.fixture
def chunk_store(document_store):
    return InMemoryChunkStore(document_store)


@pytest.fixture
def unconfigured_embedding_model():
    return EmbeddingModel(api_key=None, dimension=8)


@pytest.fixture
def keyword_embedding_model():
    return KeywordEmbeddingModel()


@pytest.fixture
def small_chunker():
    return ChunkingEngine(chunk_size=2, chunk_overlap=1)


@pytest.fixture
def failing_embedding_model():
    """Fails for any text containing "steel" (document 2 in the `documents` fixture)."""
    return KeywordEmbeddingModel(fail_on="steel")
