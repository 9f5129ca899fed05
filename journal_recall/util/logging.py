"""
Structured operation logging for the embedding subsystem.
Journal text is personal data: only truncated excerpts ever reach the log.
"""

import logging
from typing import Any, Dict, List

TEXT_PREVIEW_CHARS = 50


def preview(text: str, limit: int = TEXT_PREVIEW_CHARS) -> str:
    """Truncate text for log output."""
    if text is None:
        return ""
    return text[:limit] + "..." if len(text) > limit else text


class StructuredLogger:
    """Structured logger for embedding, lifecycle and search operations."""

    def __init__(self, name: str = "journal_recall"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        if status in ("failed", "error"):
            self.logger.warning(message)
        else:
            self.logger.info(message)

    def log_store_operation(self, operation: str, record_id: str = None, details: Dict[str, Any] = None, status: str = "success"):
        """Log an embedding store operation."""
        log_details = {}
        if record_id is not None:
            log_details["record_id"] = record_id
        if details:
            log_details.update(details)

        self.log_operation(f"store.{operation}", status, log_details)

    def log_embedding_operation(self, operation: str, document_id: str, chunk_index: int = None,
                                details: Dict[str, Any] = None, status: str = "success"):
        """Log a per-chunk embedding operation."""
        log_details = {"document_id": document_id}
        if chunk_index is not None:
            log_details["chunk_index"] = chunk_index
        if details:
            log_details.update(details)

        self.log_operation(f"embedding.{operation}", status, log_details)

    def log_lifecycle_event(self, event: str, document_id: str, details: Dict[str, Any] = None, status: str = "success"):
        """Log a document lifecycle event (store, update, delete, recover)."""
        log_details = {"document_id": document_id}
        if details:
            log_details.update(details)

        self.log_operation(f"lifecycle.{event}", status, log_details)

    def log_search(self, query: str, candidates: int, returned: int, duration_ms: float,
                   details: Dict[str, Any] = None, status: str = "success"):
        """Log a similarity search."""
        log_details = {
            "query": preview(query),
            "candidates": candidates,
            "returned": returned,
            "duration_ms": round(duration_ms, 2),
        }
        if details:
            log_details.update(details)

        self.log_operation("search.query", status, log_details)

    def log_skipped(self, operation: str, reasons: List[str]):
        """Log items skipped during a batch operation."""
        self.log_operation(operation, "skipped", {"count": len(reasons), "reasons": reasons[:5]})

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()
