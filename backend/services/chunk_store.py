"""Chunk persistence: chunks + embeddings + metadata per document."""
import itertools
import json
import logging
import threading
from typing import Dict, List, Optional, Tuple, Union
import numpy as np
from supabase import create_client, Client

from models.chunk import Chunk, StoredChunk
from services.document_store import DocumentStore
from services.errors import StorageError
from config import SUPABASE_URL, SUPABASE_KEY, CHUNKS_TABLE

logger = logging.getLogger(__name__)

def encode_embedding(embedding: np.ndarray) -> bytes:
    """Serialize an embedding as little-endian float32 (4 bytes per dimension)."""
    return np.asarray(embedding, dtype="<f4").tobytes()


def decode_embedding(raw: Union[bytes, bytearray, memoryview, str, None]) -> np.ndarray:
    """Inverse of encode_embedding. Accepts raw bytes or PostgREST's ``\\x``-hex bytea form."""
    if raw is None:
        return np.zeros(0, dtype=np.float32)
    if isinstance(raw, str):
        raw = bytes.fromhex(raw[2:] if raw.startswith("\\x") else raw)
    return np.frombuffer(bytes(raw), dtype="<f4").astype(np.float32)


class ChunkStore:
    """Contract for chunk persistence.

    `replace_chunks` must be atomic from the point of view of a concurrent
    reader: `list_all_chunks_with_document_meta` sees either the old or
    the new chunk set of a document, never an empty or partial one.
    """

    def delete_chunks(self, document_id: int) -> None:
        raise NotImplementedError

    def insert_chunks(self, document_id: int, chunks: List[Chunk]) -> None:
        raise NotImplementedError

    def replace_chunks(self, document_id: int, chunks: List[Chunk]) -> None:
        raise NotImplementedError

    def list_all_chunks_with_document_meta(self) -> List[StoredChunk]:
        raise NotImplementedError

    def delete_chunks_cascade(self, document_id: int) -> None:
        """Remove every chunk of a document that is being deleted."""
        self.delete_chunks(document_id)

    def chunk_counts_by_document(self) -> Dict[int, int]:
        raise NotImplementedError


class SupabaseChunkStore(ChunkStore):
    """Chunk store backed by the `document_chunks` table in Supabase.

    Atomic replace goes through a plpgsql function so the delete and the
    insert share one transaction:

        CREATE OR REPLACE FUNCTION replace_document_chunks(
          p_document_id bigint,
          p_chunks jsonb
        )
        RETURNS void
        LANGUAGE plpgsql
        AS $$
        BEGIN
          PERFORM 1 FROM documents WHERE id = p_document_id FOR UPDATE;
          DELETE FROM document_chunks WHERE document_id = p_document_id;
          INSERT INTO document_chunks (
            document_id, chunk_index, content, page_number, paragraph_number,
            start_char, end_char, embedding, metadata
          )
          SELECT p_document_id,
                 (c->>'chunk_index')::int,
                 c->>'content',
                 (c->>'page_number')::int,
                 (c->>'paragraph_number')::int,
                 (c->>'start_char')::int,
                 (c->>'end_char')::int,
                 decode(substring(c->>'embedding' from 3), 'hex'),
                 c->>'metadata'
          FROM jsonb_array_elements(p_chunks) AS c;
        END;
        $$;

    Reads go through two SQL functions that each return a single jsonb
    value. One statement sees one snapshot, so a replace committing
    mid-read cannot mix a document's old and new chunks, and the result
    is not subject to PostgREST's row cap:

        CREATE OR REPLACE FUNCTION list_document_chunks()
        RETURNS jsonb
        LANGUAGE sql STABLE
        AS $$
          SELECT coalesce(jsonb_agg(jsonb_build_object(
                   'id', c.id,
                   'document_id', c.document_id,
                   'chunk_index', c.chunk_index,
                   'content', c.content,
                   'page_number', c.page_number,
                   'paragraph_number', c.paragraph_number,
                   'embedding', '\\x' || encode(c.embedding, 'hex'),
                   'metadata', c.metadata,
                   'documents', jsonb_build_object(
                     'file_path', d.file_path,
                     'original_name', d.original_name
                   )
                 ) ORDER BY c.id), '[]'::jsonb)
          FROM document_chunks c
          JOIN documents d ON d.id = c.document_id;
        $$;

        CREATE OR REPLACE FUNCTION count_document_chunks()
        RETURNS jsonb
        LANGUAGE sql STABLE
        AS $$
          SELECT coalesce(jsonb_object_agg(t.document_id, t.n), '{}'::jsonb)
          FROM (
            SELECT c.document_id, count(*) AS n
            FROM document_chunks c
            JOIN documents d ON d.id = c.document_id
            GROUP BY c.document_id
          ) t;
        $$;
    """

    def __init__(
        self,
        supabase_url: Optional[str] = SUPABASE_URL,
        supabase_key: Optional[str] = SUPABASE_KEY,
        table_name: str = CHUNKS_TABLE,
        client: Optional[Client] = None
    ):
        """
        Args:
            supabase_url: Supabase project URL
            supabase_key: Supabase API key
            table_name: Name of the chunk table
            client: Existing Supabase client to share with the document store

        Raises:
            ValueError: If no client is given and credentials are missing
        """
        if client is None:
            if not supabase_url or not supabase_key:
                raise ValueError("SUPABASE_URL and SUPABASE_KEY environment variables are required")
            client = create_client(supabase_url, supabase_key)

        self.client: Client = client
        self.table_name = table_name
        logger.info(f"Initialized SupabaseChunkStore with table: {table_name}")

    @staticmethod
    def _to_record(document_id: int, chunk: Chunk) -> dict:
        return {
            "document_id": document_id,
            "chunk_index": chunk.chunk_index,
            "content": chunk.text,
            "page_number": chunk.page_number,
            "paragraph_number": chunk.paragraph_number,
            "start_char": chunk.start_offset,
            "end_char": chunk.end_offset,
            "embedding": "\\x" + encode_embedding(chunk.embedding).hex(),
            "metadata": json.dumps(chunk.metadata),
        }

    @staticmethod
    def _to_stored_chunk(row: dict) -> StoredChunk:
        document = row.get("documents") or {}
        metadata = row.get("metadata") or "{}"
        return StoredChunk(
            chunk_id=row["id"],
            document_id=row["document_id"],
            chunk_index=row["chunk_index"],
            text=row["content"],
            embedding=decode_embedding(row.get("embedding")),
            title=document.get("original_name") or "",
            file_path=document.get("file_path") or "",
            page_number=row.get("page_number"),
            paragraph_number=row.get("paragraph_number"),
            metadata=json.loads(metadata) if isinstance(metadata, str) else metadata,
        )

    def _execute(self, action: str, query):
        try:
            return query.execute()
        except Exception as e:
            error_msg = f"Failed to {action}: {e}"
            logger.error(error_msg)
            raise StorageError(error_msg, {"table": self.table_name}) from e

    def delete_chunks(self, document_id: int) -> None:
        self._execute(
            f"delete chunks of document {document_id}",
            self.client.table(self.table_name).delete().eq("document_id", document_id),
        )

    def insert_chunks(self, document_id: int, chunks: List[Chunk]) -> None:
        if not chunks:
            return
        records = [self._to_record(document_id, c) for c in chunks]
        self._execute(
            f"insert chunks of document {document_id}",
            self.client.table(self.table_name).insert(records),
        )

    def replace_chunks(self, document_id: int, chunks: List[Chunk]) -> None:
        records = [self._to_record(document_id, c) for c in chunks]
        self._execute(
            f"replace chunks of document {document_id}",
            self.client.rpc(
                "replace_document_chunks",
                {"p_document_id": document_id, "p_chunks": records}
            ),
        )
        logger.debug(f"Replaced chunks of document {document_id} with {len(records)} new chunks")

    def list_all_chunks_with_document_meta(self) -> List[StoredChunk]:
        response = self._execute("list chunks", self.client.rpc("list_document_chunks", {}))
        return [self._to_stored_chunk(row) for row in response.data or []]

    def chunk_counts_by_document(self) -> Dict[int, int]:
        response = self._execute("count chunks", self.client.rpc("count_document_chunks", {}))
        return {int(document_id): count for document_id, count in (response.data or {}).items()}


class InMemoryChunkStore(ChunkStore):
    """Process-local chunk store.

    Each document's chunks live in one immutable tuple; replace swaps the
    tuple under a lock, which makes it atomic for readers. Title and path
    are joined from the document store at read time; chunks whose
    document no longer exists are not returned.
    """

    def __init__(self, document_store: DocumentStore):
        self.document_store = document_store
        self._chunks: Dict[int, Tuple[StoredChunk, ...]] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def _materialize(self, document_id: int, chunks: List[Chunk]) -> Tuple[StoredChunk, ...]:
        return tuple(
            StoredChunk(
                chunk_id=next(self._ids),
                document_id=document_id,
                chunk_index=c.chunk_index,
                text=c.text,
                embedding=np.asarray(c.embedding, dtype=np.float32),
                title="",
                file_path="",
                page_number=c.page_number,
                paragraph_number=c.paragraph_number,
                metadata=dict(c.metadata),
            )
            for c in chunks
        )

    def delete_chunks(self, document_id: int) -> None:
        with self._lock:
            self._chunks.pop(document_id, None)

    def insert_chunks(self, document_id: int, chunks: List[Chunk]) -> None:
        with self._lock:
            existing = self._chunks.get(document_id, ())
            self._chunks[document_id] = existing + self._materialize(document_id, chunks)

    def replace_chunks(self, document_id: int, chunks: List[Chunk]) -> None:
        with self._lock:
            new_set = self._materialize(document_id, chunks)
            if new_set:
                self._chunks[document_id] = new_set
            else:
                self._chunks.pop(document_id, None)

    def list_all_chunks_with_document_meta(self) -> List[StoredChunk]:
        with self._lock:
            snapshot = list(self._chunks.items())

        documents = {d.id: d for d in self.document_store.list_documents()}
        results: List[StoredChunk] = []
        for document_id, chunks in snapshot:
            document = documents.get(document_id)
            if document is None:
                continue
            for chunk in chunks:
                results.append(StoredChunk(
                    chunk_id=chunk.chunk_id,
                    document_id=document_id,
                    chunk_index=chunk.chunk_index,
                    text=chunk.text,
                    embedding=chunk.embedding,
                    title=document.title,
                    file_path=document.file_path,
                    page_number=chunk.page_number,
                    paragraph_number=chunk.paragraph_number,
                    metadata=chunk.metadata,
                ))
        results.sort(key=lambda c: c.chunk_id)
        return results

    def chunk_counts_by_document(self) -> Dict[int, int]:
        with self._lock:
            snapshot = list(self._chunks.items())

        known = {d.id for d in self.document_store.list_documents()}
        return {doc_id: len(chunks) for doc_id, chunks in snapshot if chunks and doc_id in known}
