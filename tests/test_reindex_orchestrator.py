"""Unit tests for ReindexOrchestrator."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import asyncio
import pytest
import numpy as np
from unittest.mock import Mock, AsyncMock
from models.document import Document
from services.chunk_store import InMemoryChunkStore
from services.chunking_engine import ChunkingEngine
from services.document_store import InMemoryDocumentStore
from services.reindex_orchestrator import ReindexOrchestrator
from services.errors import EmbeddingError, StorageError


def _orchestrator(document_store, chunk_store, embedding_model, chunker=None, **kwargs):
    return ReindexOrchestrator(
        document_store,
        chunk_store,
        embedding_model,
        chunker or ChunkingEngine(chunk_size=2, chunk_overlap=1),
        **kwargs
    )


def _texts_by_document(chunk_store):
    by_doc = {}
    for chunk in chunk_store.list_all_chunks_with_document_meta():
        by_doc.setdefault(chunk.document_id, []).append((chunk.chunk_index, chunk.text))
    return {k: [t for _, t in sorted(v)] for k, v in by_doc.items()}


class TestReindexOrchestrator:
    """Test suite for ReindexOrchestrator."""

    @pytest.mark.asyncio
    async def test_reindex_all_success(self, document_store, chunk_store, keyword_embedding_model):
        summary = await _orchestrator(document_store, chunk_store, keyword_embedding_model).reindex_all()

        assert (summary.processed, summary.errors) == (3, 0)
        texts = _texts_by_document(chunk_store)
        assert texts[1] == ["alpha beta", "beta gamma", "gamma delta"]
        assert len(texts[2]) == 3

    @pytest.mark.asyncio
    async def test_chunk_fields(self, document_store, chunk_store, keyword_embedding_model):
        await _orchestrator(document_store, chunk_store, keyword_embedding_model).index_document_by_id(3)

        chunks = chunk_store.list_all_chunks_with_document_meta()
        assert [c.chunk_index for c in chunks] == list(range(len(chunks)))
        assert chunks[0].metadata == {"filePath": "/docs/three.pdf", "length": len(chunks[0].text)}
        # "[Page 3]" is split over two words; the window holding both gets the page
        assert any(c.page_number == 3 for c in chunks)
        assert all(c.embedding.shape == (keyword_embedding_model.dimension,) for c in chunks)

    @pytest.mark.asyncio
    async def test_one_failure_is_isolated(self, document_store, chunk_store, failing_embedding_model):
        summary = await _orchestrator(document_store, chunk_store, failing_embedding_model).reindex_all()

        assert (summary.processed, summary.errors) == (2, 1)
        assert set(_texts_by_document(chunk_store)) == {1, 3}

    @pytest.mark.asyncio
    async def test_timeout_counts_as_document_failure(self, document_store, chunk_store, keyword_embedding_model):
        original_embed = keyword_embedding_model.embed

        async def slow_for_document_two(text):
            if "steel" in text:
                await asyncio.sleep(1)
            return await original_embed(text)

        keyword_embedding_model.embed = slow_for_document_two
        orchestrator = _orchestrator(document_store, chunk_store, keyword_embedding_model, embed_timeout=0.05)

        summary = await orchestrator.reindex_all()

        assert (summary.processed, summary.errors) == (2, 1)
        assert set(_texts_by_document(chunk_store)) == {1, 3}

    @pytest.mark.asyncio
    async def test_failed_reindex_keeps_previous_chunks(self, document_store, chunk_store, keyword_embedding_model):
        orchestrator = _orchestrator(document_store, chunk_store, keyword_embedding_model)
        await orchestrator.index_document_by_id(2)
        before = _texts_by_document(chunk_store)[2]

        orchestrator.embedding_model = Mock(embed=AsyncMock(side_effect=EmbeddingError("down")))
        with pytest.raises(EmbeddingError):
            await orchestrator.index_document_by_id(2)

        assert _texts_by_document(chunk_store)[2] == before

    @pytest.mark.asyncio
    async def test_empty_document_counts_as_processed(self, chunk_store, document_store, keyword_embedding_model):
        document_store.add(Document(id=4, content="", file_path="/docs/empty.txt", title="Empty"))
        document_store.add(Document(id=5, content=None, file_path="/docs/none.txt", title="None"))

        summary = await _orchestrator(document_store, chunk_store, keyword_embedding_model).reindex_all()

        assert (summary.processed, summary.errors) == (5, 0)
        counts = chunk_store.chunk_counts_by_document()
        assert 4 not in counts and 5 not in counts

    @pytest.mark.asyncio
    async def test_reindex_is_idempotent(self, document_store, chunk_store, keyword_embedding_model):
        orchestrator = _orchestrator(document_store, chunk_store, keyword_embedding_model)

        await orchestrator.reindex_all()
        first = _texts_by_document(chunk_store)
        await orchestrator.reindex_all()
        second = _texts_by_document(chunk_store)

        assert first == second
        assert sum(chunk_store.chunk_counts_by_document().values()) == sum(len(v) for v in first.values())

    @pytest.mark.asyncio
    async def test_embedding_requests_are_batched(self, document_store, chunk_store):
        in_flight = 0
        peak = 0

        class TrackingModel:
            dimension = 2

            async def embed(self, text):
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.001)
                in_flight -= 1
                return np.ones(2, dtype=np.float32)

        document_store.add(Document(
            id=9, content=" ".join(f"w{i}" for i in range(26)), file_path="/docs/long.txt", title="Long"
        ))
        orchestrator = _orchestrator(
            document_store, chunk_store, TrackingModel(),
            chunker=ChunkingEngine(chunk_size=1, chunk_overlap=0), batch_size=10
        )

        assert await orchestrator.index_document_by_id(9) == 26
        assert peak == 10

    @pytest.mark.asyncio
    async def test_failed_batch_does_not_leave_requests_running(self):
        in_flight = 0
        peak = 0

        class FlakyModel:
            dimension = 2

            async def embed(self, text):
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                try:
                    if text == "a0":
                        raise EmbeddingError("provider unavailable")
                    await asyncio.sleep(0.05)
                    return np.ones(2, dtype=np.float32)
                finally:
                    in_flight -= 1

        document_store = InMemoryDocumentStore([
            Document(id=1, content=" ".join(f"a{i}" for i in range(10)), file_path="/docs/a.txt", title="A"),
            Document(id=2, content=" ".join(f"b{i}" for i in range(10)), file_path="/docs/b.txt", title="B"),
        ])
        chunk_store = InMemoryChunkStore(document_store)
        orchestrator = _orchestrator(
            document_store, chunk_store, FlakyModel(),
            chunker=ChunkingEngine(chunk_size=1, chunk_overlap=0), batch_size=10
        )

        summary = await orchestrator.reindex_all()

        assert (summary.processed, summary.errors) == (1, 1)
        assert peak <= 10
        assert in_flight == 0
        assert chunk_store.chunk_counts_by_document() == {2: 10}

    @pytest.mark.asyncio
    async def test_document_locks_are_released(self, document_store, chunk_store, keyword_embedding_model):
        orchestrator = _orchestrator(document_store, chunk_store, keyword_embedding_model)

        await asyncio.gather(
            orchestrator.index_document_by_id(1),
            orchestrator.index_document_by_id(1),
            orchestrator.index_document_by_id(2),
        )
        await orchestrator.delete_document(3)

        assert orchestrator._document_locks == {}

    @pytest.mark.asyncio
    async def test_document_lock_released_after_failure(self, document_store, chunk_store, failing_embedding_model):
        orchestrator = _orchestrator(document_store, chunk_store, failing_embedding_model)

        with pytest.raises(EmbeddingError):
            await orchestrator.index_document_by_id(2)

        assert orchestrator._document_locks == {}

    @pytest.mark.asyncio
    async def test_same_document_reindexes_do_not_interleave(self, document_store, chunk_store, keyword_embedding_model):
        events = []
        original_replace = chunk_store.replace_chunks

        def recording_replace(document_id, chunks):
            events.append(("replace", document_id))
            original_replace(document_id, chunks)

        original_embed = keyword_embedding_model.embed

        async def recording_embed(text):
            events.append(("embed", text))
            await asyncio.sleep(0.001)
            return await original_embed(text)

        chunk_store.replace_chunks = recording_replace
        keyword_embedding_model.embed = recording_embed
        orchestrator = _orchestrator(document_store, chunk_store, keyword_embedding_model)

        await asyncio.gather(orchestrator.index_document_by_id(1), orchestrator.index_document_by_id(1))

        replace_positions = [i for i, e in enumerate(events) if e[0] == "replace"]
        assert len(replace_positions) == 2
        # every embed of the second run happens after the first run's replace
        assert all(e[0] == "embed" for e in events[:replace_positions[0]])
        assert len(events[:replace_positions[0]]) == 3

    @pytest.mark.asyncio
    async def test_delete_document(self, document_store, chunk_store, keyword_embedding_model):
        orchestrator = _orchestrator(document_store, chunk_store, keyword_embedding_model)
        await orchestrator.reindex_all()

        await orchestrator.delete_document(1)

        assert 1 not in chunk_store.chunk_counts_by_document()

    @pytest.mark.asyncio
    async def test_document_list_failure_propagates(self, chunk_store, keyword_embedding_model):
        document_store = Mock()
        document_store.list_documents.side_effect = StorageError("db down")

        with pytest.raises(StorageError):
            await _orchestrator(document_store, chunk_store, keyword_embedding_model).reindex_all()

    def test_invalid_batch_size(self, document_store, chunk_store, keyword_embedding_model):
        with pytest.raises(ValueError):
            _orchestrator(document_store, chunk_store, keyword_embedding_model, batch_size=0)
