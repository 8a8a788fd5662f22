"""Configuration management for the document knowledge-base search backend."""
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# API Keys (absent keys put the matching provider into degraded mode)
GROQ_API_KEY = os.getenv("GROQ_API_KEY")
HUGGINGFACE_API_KEY = os.getenv("HUGGINGFACE_API_KEY")
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")

# Server Configuration
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# CORS Configuration
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:5173"
).split(",")

# Storage Configuration
CHUNK_STORE_BACKEND = os.getenv("CHUNK_STORE_BACKEND", "supabase")  # "supabase" or "memory"
DOCUMENTS_TABLE = "documents"
CHUNKS_TABLE = "document_chunks"

# Model Configuration
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "sentence-transformers/all-mpnet-base-v2")
EMBEDDING_DIMENSION = int(os.getenv("EMBEDDING_DIMENSION", "768"))
CHAT_MODEL = os.getenv("CHAT_MODEL", "llama-3.3-70b-versatile")

# Chunking Configuration
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", "512"))  # words
CHUNK_OVERLAP = int(os.getenv("CHUNK_OVERLAP", "50"))  # words

# Indexing Configuration
EMBED_BATCH_SIZE = int(os.getenv("EMBED_BATCH_SIZE", "10"))
EMBED_TIMEOUT = float(os.getenv("EMBED_TIMEOUT", "60"))  # seconds per embedding call
LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "60"))  # seconds per generation call

# Retrieval Configuration
VECTOR_WEIGHT = 0.7
LEXICAL_WEIGHT = 0.3
DEFAULT_SEARCH_LIMIT = 10
MAX_SEARCH_LIMIT = 50
MAX_QUERY_LENGTH = 1000

# Answer Configuration
ANSWER_TOP_K = 5
EXCERPT_LENGTH = 150
