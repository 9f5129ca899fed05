"""
Core services: lifecycle sync, similarity search, stats and configuration.
"""

from .exceptions import (
    RecallError,
    InitializationError,
    NotInitializedError,
    EmbeddingGenerationError,
    DimensionMismatchError,
    StoreIOError,
)

__all__ = [
    "RecallError",
    "InitializationError",
    "NotInitializedError",
    "EmbeddingGenerationError",
    "DimensionMismatchError",
    "StoreIOError",
]
