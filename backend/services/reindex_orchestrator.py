"""Per-document and whole-corpus (re)indexing."""
import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Dict, List, Tuple

import numpy as np

from models.chunk import Chunk, ChunkWindow
from models.document import Document
from services.chunk_store import ChunkStore
from services.chunking_engine import ChunkingEngine
from services.document_store import DocumentStore
from services.embedding_model import EmbeddingModel
from services.errors import EmbeddingError
from config import EMBED_BATCH_SIZE, EMBED_TIMEOUT

logger = logging.getLogger(__name__)


@dataclass
class ReindexSummary:
    """Outcome of a full reindex run."""
    processed: int = 0
    errors: int = 0


class ReindexOrchestrator:
    """Drives chunking, embedding and atomic chunk replacement per document.

    A document's new chunk set is built completely (every embedding
    computed) before it replaces the old one in a single store call, so a
    failure part-way leaves the previous chunks in place. Two reindexes of
    the same document never interleave.
    """

    def __init__(
        self,
        document_store: DocumentStore,
        chunk_store: ChunkStore,
        embedding_model: EmbeddingModel,
        chunking_engine: ChunkingEngine,
        batch_size: int = EMBED_BATCH_SIZE,
        embed_timeout: float = EMBED_TIMEOUT
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.document_store = document_store
        self.chunk_store = chunk_store
        self.embedding_model = embedding_model
        self.chunking_engine = chunking_engine
        self.batch_size = batch_size
        self.embed_timeout = embed_timeout
        # document id -> (lock, number of holders and waiters)
        self._document_locks: Dict[int, Tuple[asyncio.Lock, int]] = {}

    @asynccontextmanager
    async def _locked(self, document_id: int):
        """Hold the document's lock; the entry is dropped once nobody holds or waits on it."""
        lock, users = self._document_locks.get(document_id, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._document_locks[document_id] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._document_locks[document_id]
            if users == 1:
                del self._document_locks[document_id]
            else:
                self._document_locks[document_id] = (lock, users - 1)

    async def _embed_one(self, document_id: int, chunk_index: int, text: str) -> np.ndarray:
        try:
            return await asyncio.wait_for(self.embedding_model.embed(text), timeout=self.embed_timeout)
        except asyncio.TimeoutError as e:
            raise EmbeddingError(
                f"Embedding timed out after {self.embed_timeout}s",
                {"document_id": document_id, "chunk_index": chunk_index}
            ) from e

    async def _embed_batch(self, document_id: int, start: int, batch: List[ChunkWindow]) -> List[np.ndarray]:
        """Embed one batch concurrently. On the first failure the rest of the
        batch is cancelled and awaited before the error propagates, so no
        request outlives its batch."""
        tasks = [
            asyncio.ensure_future(self._embed_one(document_id, start + offset, window.text))
            for offset, window in enumerate(batch)
        ]
        try:
            return await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def build_chunks(self, document: Document) -> List[Chunk]:
        """Chunk a document and embed every chunk, `batch_size` requests at a time."""
        windows = self.chunking_engine.split(document.content or "")
        chunks: List[Chunk] = []

        for start in range(0, len(windows), self.batch_size):
            batch = windows[start:start + self.batch_size]
            embeddings = await self._embed_batch(document.id, start, batch)
            for offset, (window, embedding) in enumerate(zip(batch, embeddings)):
                chunks.append(Chunk(
                    document_id=document.id,
                    chunk_index=start + offset,
                    text=window.text,
                    start_offset=window.start_offset,
                    end_offset=window.end_offset,
                    embedding=embedding,
                    page_number=window.page_number,
                    metadata={"filePath": document.file_path, "length": len(window.text)},
                ))
        return chunks

    async def index_document(self, document: Document) -> int:
        """
        (Re)index one document and return its new chunk count.

        Raises:
            EmbeddingError: If any chunk cannot be embedded; old chunks are kept
            StorageError: If the replace fails
        """
        async with self._locked(document.id):
            chunks = await self.build_chunks(document)
            await asyncio.to_thread(self.chunk_store.replace_chunks, document.id, chunks)
            logger.info(f"Created {len(chunks)} chunks for document {document.id}")
            return len(chunks)

    async def index_document_by_id(self, document_id: int) -> int:
        document = await asyncio.to_thread(self.document_store.get_document, document_id)
        return await self.index_document(document)

    async def delete_document(self, document_id: int) -> None:
        """Drop every chunk of a document that was deleted from the document store."""
        async with self._locked(document_id):
            await asyncio.to_thread(self.chunk_store.delete_chunks_cascade, document_id)
        logger.info(f"Deleted chunks for document {document_id}")

    async def reindex_all(self) -> ReindexSummary:
        """
        Reindex every document. One document's failure is logged and
        counted; the run always continues to the end.

        Raises:
            StorageError: Only if the document list itself cannot be read
        """
        documents = await asyncio.to_thread(self.document_store.list_documents)
        summary = ReindexSummary()

        for document in documents:
            try:
                await self.index_document(document)
                summary.processed += 1
            except Exception as e:
                summary.errors += 1
                logger.error(f"Error reindexing document {document.id}: {e}", exc_info=True)

        logger.info(
            f"Reindex finished: {summary.processed} processed, {summary.errors} errors "
            f"({len(documents)} documents)"
        )
        return summary
