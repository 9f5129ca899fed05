"""
Configuration for the embedding subsystem.
Values come from the environment; a local .env file is honoured.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List

from dotenv import load_dotenv

load_dotenv()

# Storage configuration
EMBEDDING_DB_PATH = os.getenv("EMBEDDING_DB_PATH", "./data/embeddings.db")
VECTOR_PROVIDER = os.getenv("VECTOR_PROVIDER", "sqlite")  # sqlite|memory

# Embedding provider configuration
EMBED_PROVIDER = os.getenv("EMBED_PROVIDER", "hash")  # hash|features|sentence_transformers|ollama
EMBED_DIM = int(os.getenv("EMBED_DIM", "384"))
EMBED_MODEL_NAME = os.getenv("EMBED_MODEL_NAME", "all-MiniLM-L6-v2")
OLLAMA_HOST = os.getenv("OLLAMA_HOST", "http://127.0.0.1:11434")
OLLAMA_EMBED_MODEL = os.getenv("OLLAMA_EMBED_MODEL", "nomic-embed-text")

# Chunking and retrieval defaults
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", "500"))
SEARCH_LIMIT = int(os.getenv("SEARCH_LIMIT", "10"))
SEARCH_THRESHOLD = float(os.getenv("SEARCH_THRESHOLD", "0.5"))
CONTEXT_MAX_LENGTH = int(os.getenv("CONTEXT_MAX_LENGTH", "3000"))

DEBUG = os.getenv("DEBUG", "false").lower() == "true"

VALID_VECTOR_PROVIDERS = ["sqlite", "memory"]
VALID_EMBED_PROVIDERS = ["hash", "features", "sentence_transformers", "ollama"]


@dataclass
class Settings:
    """Resolved configuration, passed explicitly to the service facade."""

    db_path: str = EMBEDDING_DB_PATH
    vector_provider: str = VECTOR_PROVIDER
    embed_provider: str = EMBED_PROVIDER
    embed_dim: int = EMBED_DIM
    embed_model_name: str = EMBED_MODEL_NAME
    ollama_host: str = OLLAMA_HOST
    ollama_embed_model: str = OLLAMA_EMBED_MODEL
    chunk_size: int = CHUNK_SIZE
    search_limit: int = SEARCH_LIMIT
    search_threshold: float = SEARCH_THRESHOLD
    context_max_length: int = CONTEXT_MAX_LENGTH

    @classmethod
    def from_env(cls) -> "Settings":
        """Read settings from the current environment (not the import-time snapshot)."""
        return cls(
            db_path=os.getenv("EMBEDDING_DB_PATH", "./data/embeddings.db"),
            vector_provider=os.getenv("VECTOR_PROVIDER", "sqlite"),
            embed_provider=os.getenv("EMBED_PROVIDER", "hash"),
            embed_dim=int(os.getenv("EMBED_DIM", "384")),
            embed_model_name=os.getenv("EMBED_MODEL_NAME", "all-MiniLM-L6-v2"),
            ollama_host=os.getenv("OLLAMA_HOST", "http://127.0.0.1:11434"),
            ollama_embed_model=os.getenv("OLLAMA_EMBED_MODEL", "nomic-embed-text"),
            chunk_size=int(os.getenv("CHUNK_SIZE", "500")),
            search_limit=int(os.getenv("SEARCH_LIMIT", "10")),
            search_threshold=float(os.getenv("SEARCH_THRESHOLD", "0.5")),
            context_max_length=int(os.getenv("CONTEXT_MAX_LENGTH", "3000")),
        )


def get_embedding_store(settings: Settings = None):
    """Get configured embedding store implementation (not yet opened)."""
    settings = settings or Settings.from_env()

    if settings.vector_provider == "memory":
        from ..vector.index import InMemoryEmbeddingStore
        return InMemoryEmbeddingStore()

    from ..vector.store import SQLiteEmbeddingStore
    ensure_db_directory(settings.db_path)
    return SQLiteEmbeddingStore(settings.db_path)


def get_embedding_provider(settings: Settings = None):
    """Get configured embedding provider implementation."""
    settings = settings or Settings.from_env()

    if settings.embed_provider == "features":
        from ..vector.embeddings import JournalFeatureEmbedding
        return JournalFeatureEmbedding()
    elif settings.embed_provider == "sentence_transformers":
        from ..vector.embeddings import SentenceTransformerEmbedding
        return SentenceTransformerEmbedding(settings.embed_model_name)
    elif settings.embed_provider == "ollama":
        from ..vector.embeddings import OllamaEmbedding
        return OllamaEmbedding(settings.ollama_embed_model, host=settings.ollama_host)
    else:
        from ..vector.embeddings import DeterministicHashEmbedding
        return DeterministicHashEmbedding(dimension=settings.embed_dim)


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def ensure_db_directory(db_path: str = None):
    """Ensure the database directory exists."""
    Path(db_path or EMBEDDING_DB_PATH).parent.mkdir(parents=True, exist_ok=True)


def validate_config(settings: Settings = None) -> List[str]:
    """Validate configuration and return any issues."""
    settings = settings or Settings.from_env()
    issues = []

    if settings.vector_provider not in VALID_VECTOR_PROVIDERS:
        issues.append(f"Invalid VECTOR_PROVIDER: {settings.vector_provider}")

    if settings.embed_provider not in VALID_EMBED_PROVIDERS:
        issues.append(f"Invalid EMBED_PROVIDER: {settings.embed_provider}")

    if settings.embed_dim < 1:
        issues.append("EMBED_DIM must be >= 1")

    if settings.chunk_size < 1:
        issues.append("CHUNK_SIZE must be >= 1")

    if settings.search_limit < 1:
        issues.append("SEARCH_LIMIT must be >= 1")

    if not -1.0 <= settings.search_threshold <= 1.0:
        issues.append("SEARCH_THRESHOLD must be within [-1, 1]")

    if settings.context_max_length < 1:
        issues.append("CONTEXT_MAX_LENGTH must be >= 1")

    return issues
