"""
journal-recall: local semantic search over journal entries.
Chunking, embedding storage, lifecycle sync and cosine-similarity retrieval.
"""

__version__ = "0.1.0"
