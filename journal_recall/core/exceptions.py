"""
Custom exceptions for the embedding subsystem.
"""


class RecallError(Exception):
    """Base exception for all embedding subsystem errors."""
    pass


class InitializationError(RecallError):
    """
    The embedding store could not be opened.

    Raised when:
    - The database file is corrupt or is not a database
    - The location is not writable
    - A disposed store is opened again
    """
    pass


class NotInitializedError(RecallError):
    """An operation was invoked before open() or after close()."""
    pass


class EmbeddingGenerationError(RecallError):
    """
    The embedding provider failed to produce a vector.

    Raised when:
    - The model or server is unavailable
    - The provider raised while encoding
    - The provider returned an empty vector
    """

    def __init__(self, message: str, provider: str = None):
        super().__init__(message)
        self.provider = provider


class DimensionMismatchError(RecallError):
    """Two vectors of different lengths were compared or stored together."""

    def __init__(self, expected: int, actual: int, record_id: str = None):
        message = f"Vector dimension mismatch: expected {expected}, got {actual}"
        if record_id:
            message += f" (record {record_id})"
        super().__init__(message)
        self.expected = expected
        self.actual = actual
        self.record_id = record_id


class StoreIOError(RecallError):
    """Persistence-layer failure on get/put/delete."""
    pass
