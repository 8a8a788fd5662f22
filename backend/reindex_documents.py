"""
Reindex script for the knowledge-base search backend.

This script:
1. Builds the search services from the environment
2. Warms up the embedding model
3. Re-chunks and re-embeds every document (or one, with --document-id)
4. Prints the processed/error summary

Usage:
    python reindex_documents.py
    python reindex_documents.py --document-id 42
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent))

from logger import setup_logging
from config import LOG_LEVEL
from services.errors import RAGError
from services.search_service import SearchService, build_default_search_service

logger = logging.getLogger(__name__)


async def run(service: SearchService, document_id=None) -> int:
    """Run the reindex and return the process exit code."""
    embedding_model = service.search_engine.embedding_model
    if embedding_model.configured:
        logger.info("Warming up embedding model (may take 15-20 seconds on first run)...")
        await embedding_model.warmup()
    else:
        logger.warning("No embedding provider configured, chunks will get zero vectors")

    if document_id is not None:
        chunk_count = await service.index_document(document_id)
        logger.info(f"Document {document_id} indexed into {chunk_count} chunks")
        return 0

    summary = await service.reindex_all()
    stats = await service.stats()
    logger.info("=" * 60)
    logger.info(f"Documents processed: {summary.processed}")
    logger.info(f"Documents failed: {summary.errors}")
    logger.info(f"Chunks in store: {stats.total_chunks}")
    logger.info("=" * 60)
    return 1 if summary.errors else 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Rebuild document chunks and embeddings")
    parser.add_argument("--document-id", type=int, default=None, help="Reindex only this document")
    args = parser.parse_args(argv)

    setup_logging(LOG_LEVEL)
    try:
        service = build_default_search_service()
        return asyncio.run(run(service, args.document_id))
    except KeyboardInterrupt:
        logger.warning("Reindex interrupted by user")
        return 1
    except RAGError as e:
        logger.error(f"Reindex failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
