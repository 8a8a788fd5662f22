"""Read-only access to the documents owned by the document-management app."""
import itertools
import logging
import threading
from typing import Dict, List, Optional
from supabase import create_client, Client

from models.document import Document
from services.errors import DocumentNotFoundError, StorageError
from config import SUPABASE_URL, SUPABASE_KEY, DOCUMENTS_TABLE

logger = logging.getLogger(__name__)

# PostgREST caps responses at 1000 rows by default
PAGE_SIZE = 1000


class DocumentStore:
    """Contract for the document-store collaborator."""

    def get_document(self, document_id: int) -> Document:
        raise NotImplementedError

    def list_documents(self) -> List[Document]:
        raise NotImplementedError

    def count(self) -> int:
        return len(self.list_documents())


class SupabaseDocumentStore(DocumentStore):
    """Documents table in Supabase (columns: id, content, file_path, original_name)."""

    def __init__(
        self,
        supabase_url: Optional[str] = SUPABASE_URL,
        supabase_key: Optional[str] = SUPABASE_KEY,
        table_name: str = DOCUMENTS_TABLE,
        client: Optional[Client] = None
    ):
        """
        Args:
            supabase_url: Supabase project URL
            supabase_key: Supabase API key
            table_name: Name of the documents table
            client: Existing Supabase client to share with the chunk store

        Raises:
            ValueError: If no client is given and credentials are missing
        """
        if client is None:
            if not supabase_url or not supabase_key:
                raise ValueError("SUPABASE_URL and SUPABASE_KEY environment variables are required")
            client = create_client(supabase_url, supabase_key)

        self.client: Client = client
        self.table_name = table_name

    @staticmethod
    def _to_document(row: dict) -> Document:
        return Document(
            id=row["id"],
            content=row.get("content"),
            file_path=row.get("file_path") or "",
            title=row.get("original_name") or row.get("file_path") or "",
        )

    def get_document(self, document_id: int) -> Document:
        try:
            response = (
                self.client.table(self.table_name)
                .select("id, content, file_path, original_name")
                .eq("id", document_id)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to load document {document_id}: {e}")
            raise StorageError(f"Failed to load document {document_id}", {"error": str(e)}) from e

        if not response.data:
            raise DocumentNotFoundError(document_id)
        return self._to_document(response.data[0])

    def list_documents(self) -> List[Document]:
        rows: List[dict] = []
        for offset in itertools.count(0, PAGE_SIZE):
            try:
                response = (
                    self.client.table(self.table_name)
                    .select("id, content, file_path, original_name")
                    .order("id")
                    .range(offset, offset + PAGE_SIZE - 1)
                    .execute()
                )
            except Exception as e:
                logger.error(f"Failed to list documents: {e}")
                raise StorageError("Failed to list documents", {"error": str(e)}) from e

            rows.extend(response.data)
            if len(response.data) < PAGE_SIZE:
                break

        return [self._to_document(row) for row in rows]

    def count(self) -> int:
        try:
            response = self.client.table(self.table_name).select("id", count="exact").execute()
        except Exception as e:
            logger.error(f"Failed to count documents: {e}")
            raise StorageError("Failed to count documents", {"error": str(e)}) from e
        return response.count if response.count is not None else 0


class InMemoryDocumentStore(DocumentStore):
    """Process-local document store for development and tests."""

    def __init__(self, documents: Optional[List[Document]] = None):
        self._documents: Dict[int, Document] = {}
        self._lock = threading.Lock()
        for document in documents or []:
            self.add(document)

    def add(self, document: Document) -> None:
        with self._lock:
            self._documents[document.id] = document

    def remove(self, document_id: int) -> None:
        with self._lock:
            self._documents.pop(document_id, None)

    def get_document(self, document_id: int) -> Document:
        with self._lock:
            document = self._documents.get(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        return document

    def list_documents(self) -> List[Document]:
        with self._lock:
            return [self._documents[k] for k in sorted(self._documents)]
