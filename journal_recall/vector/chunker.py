"""
Chunker - Split journal text into bounded word-count segments.

Segments are the unit that gets embedded and stored. Splitting is on
whitespace, so the words of all segments joined together reproduce the
word sequence of the input.
"""

from typing import Iterator

DEFAULT_CHUNK_SIZE = 500


def chunk_text(text: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[str]:
    """
    Lazily split text into segments of up to chunk_size words.

    Args:
        text: Text content to chunk
        chunk_size: Maximum number of words per segment

    Yields:
        Non-empty segments in document order; the last may be shorter

    Raises:
        ValueError: If chunk_size is not positive
    """
    if chunk_size < 1:
        raise ValueError("chunk_size must be positive")

    return _generate_chunks(text or "", chunk_size)


def _generate_chunks(text: str, chunk_size: int) -> Iterator[str]:
    words = text.split()
    for start in range(0, len(words), chunk_size):
        segment = " ".join(words[start:start + chunk_size])
        if segment.strip():
            yield segment


class WordChunks:
    """Restartable view over the chunks of one text: every iteration starts over."""

    def __init__(self, text: str, chunk_size: int):
        self.text = text
        self.chunk_size = chunk_size

    def __iter__(self) -> Iterator[str]:
        return chunk_text(self.text, self.chunk_size)

    def __repr__(self) -> str:
        return f"WordChunks(chars={len(self.text or '')}, chunk_size={self.chunk_size})"


class Chunker:
    """
    Chunks document text into word-bounded segments.

    Example:
        >>> chunker = Chunker(chunk_size=3)
        >>> list(chunker.chunk("one two three four"))
        ['one two three', 'four']
    """

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE):
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        self.chunk_size = chunk_size

    def chunk(self, text: str) -> WordChunks:
        return WordChunks(text, self.chunk_size)
