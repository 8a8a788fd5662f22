"""Main entry point for the knowledge-base search API."""
import logging
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from config import PORT, LOG_LEVEL, CORS_ORIGINS, CHUNK_STORE_BACKEND
from logger import setup_logging
from models.api import (
    QueryRequest,
    QueryResponse,
    CitationOut,
    ReindexResponse,
    IndexDocumentResponse,
    StatsResponse,
)
from services.errors import (
    QueryValidationError,
    ProviderError,
    StorageError,
    DocumentNotFoundError,
)
from services.search_service import SearchService, build_default_search_service

setup_logging(LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Document Knowledge Base Search",
    description="Hybrid search and cited answers over the document corpus",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialized on startup
search_service: SearchService = None


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    global search_service

    logger.info("Initializing knowledge-base search services...")
    try:
        search_service = build_default_search_service()
        logger.info("All services initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}", exc_info=True)
        raise


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies get the same 400 error body as out-of-bounds queries."""
    first = exc.errors()[0] if exc.errors() else {}
    loc = first.get("loc") or ()
    field = str(loc[-1]) if loc else None
    error = QueryValidationError(
        f"Invalid request: {first.get('msg', 'malformed body')}",
        field=field,
    )
    logger.warning(f"Rejected request to {request.url.path}: {error}")
    return JSONResponse(status_code=400, content={"detail": {"error": error.to_dict()}})


@app.get("/health")
async def health():
    """Detailed health check."""
    return {
        "status": "healthy",
        "service": "kb-search",
        "version": "1.0.0",
        "chunk_store": CHUNK_STORE_BACKEND,
        "embedding_configured": search_service.search_engine.embedding_model.configured,
        "generation_configured": not search_service.answer_synthesizer.degraded,
    }


def _provider_error(e: ProviderError) -> HTTPException:
    logger.error(f"Provider error: {e}")
    return HTTPException(status_code=503, detail={"error": e.to_dict()})


def _storage_error(e: StorageError) -> HTTPException:
    logger.error(f"Storage error: {e}", exc_info=True)
    return HTTPException(status_code=500, detail={"error": e.to_dict()})


@app.post("/chat/query", response_model=QueryResponse)
async def query_endpoint(request: QueryRequest) -> QueryResponse:
    """
    Ask a question against the indexed documents.

    Returns the answer with up to five citations. Validation failures
    return 400, provider failures 503 and storage failures 500.
    """
    try:
        result = await search_service.query(request.query, request.limit)
    except QueryValidationError as e:
        raise HTTPException(status_code=400, detail={"error": e.to_dict()})
    except ProviderError as e:
        raise _provider_error(e)
    except StorageError as e:
        raise _storage_error(e)

    return QueryResponse(
        query=result.query,
        answer=result.answer,
        citations=[
            CitationOut(
                documentId=c.document_id,
                chunkId=c.chunk_id,
                title=c.title,
                filePath=c.file_path,
                page=c.page_number,
                paragraph=c.paragraph_number,
                excerpt=c.excerpt,
                score=c.relevance_score,
            )
            for c in result.citations
        ],
        resultsCount=result.results_count,
    )


@app.post("/chat/reindex", response_model=ReindexResponse)
async def reindex_endpoint() -> ReindexResponse:
    """Re-index all documents (admin function)."""
    try:
        summary = await search_service.reindex_all()
    except StorageError as e:
        raise _storage_error(e)
    return ReindexResponse(processed=summary.processed, errors=summary.errors)


@app.get("/chat/stats", response_model=StatsResponse)
async def stats_endpoint() -> StatsResponse:
    """Corpus statistics."""
    try:
        stats = await search_service.stats()
    except StorageError as e:
        raise _storage_error(e)
    return StatsResponse(
        totalDocuments=stats.total_documents,
        totalChunks=stats.total_chunks,
        averageChunksPerDocument=stats.average_chunks_per_document,
    )


@app.post("/documents/{document_id}/index", response_model=IndexDocumentResponse)
async def index_document_endpoint(document_id: int) -> IndexDocumentResponse:
    """Index one document, called after upload or content change."""
    try:
        chunk_count = await search_service.index_document(document_id)
    except DocumentNotFoundError as e:
        raise HTTPException(status_code=404, detail={"error": e.to_dict()})
    except ProviderError as e:
        raise _provider_error(e)
    except StorageError as e:
        raise _storage_error(e)
    return IndexDocumentResponse(documentId=document_id, chunks=chunk_count)


@app.delete("/documents/{document_id}/chunks", status_code=204)
async def delete_document_chunks_endpoint(document_id: int) -> None:
    """Remove the chunks of a deleted document."""
    try:
        await search_service.delete_document(document_id)
    except StorageError as e:
        raise _storage_error(e)


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting knowledge-base search API on port {PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
