"""
Exception hierarchy for the knowledge-base search services.

Every error carries a human-readable message plus a details dict so the
HTTP layer can return structured error bodies and the logs keep context.
"""
from typing import Any, Dict, Optional


class RAGError(Exception):
    """Base exception for all search/indexing errors."""

    code = "RAG_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Structured form used in API error responses."""
        return {"code": self.code, "message": self.message, "details": self.details}


class ConfigurationError(RAGError):
    """Raised when static configuration is inconsistent (e.g. overlap >= chunk size)."""

    code = "CONFIGURATION_ERROR"


class QueryValidationError(RAGError):
    """Raised when a query is rejected before any provider is called."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        details = details or {}
        if field:
            details["field"] = field
        self.field = field
        super().__init__(message, details)


class ProviderError(RAGError):
    """Network, timeout or non-2xx failure from an external model provider."""

    code = "PROVIDER_ERROR"


class EmbeddingError(ProviderError):
    """Embedding provider failure."""

    code = "EMBEDDING_ERROR"


class LLMClientError(ProviderError):
    """Generative provider failure with a specific error code."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        super().__init__(message, details)


class StorageError(RAGError):
    """Chunk or document store read/write failure. Never retried automatically."""

    code = "STORAGE_ERROR"


class DocumentNotFoundError(StorageError):
    """Raised when a document id does not exist in the document store."""

    code = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_id: int):
        self.document_id = document_id
        super().__init__(f"Document not found: {document_id}", {"document_id": document_id})
