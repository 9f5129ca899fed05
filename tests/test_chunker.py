"""
Tests for word-count chunking.
"""

import math

import pytest

from journal_recall.vector.chunker import DEFAULT_CHUNK_SIZE, Chunker, WordChunks, chunk_text


def test_short_text_is_one_chunk():
    assert list(chunk_text("Walked the dog before work.")) == ["Walked the dog before work."]


def test_last_chunk_may_be_shorter():
    chunker = Chunker(chunk_size=3)
    assert list(chunker.chunk("one two three four")) == ["one two three", "four"]


def test_chunk_count_is_ceiling_of_words_over_size():
    words = [f"w{i}" for i in range(1200)]
    chunks = list(chunk_text(" ".join(words)))

    assert len(chunks) == math.ceil(1200 / DEFAULT_CHUNK_SIZE) == 3
    assert [len(c.split()) for c in chunks] == [500, 500, 200]


def test_chunks_reproduce_word_sequence():
    """Joining the words of every chunk gives back the input's words."""
    text = "Morning run.\n\nFelt  great\tafter a long week at work, then called family."
    chunks = list(chunk_text(text, chunk_size=4))

    rejoined = [word for chunk in chunks for word in chunk.split()]
    assert rejoined == text.split()
    assert all(len(chunk.split()) <= 4 for chunk in chunks)


def test_whitespace_is_normalised_to_single_spaces():
    assert list(chunk_text("a\n\nb\t c", chunk_size=10)) == ["a b c"]


@pytest.mark.parametrize("text", ["", "   ", "\n\t\n", None])
def test_blank_text_has_no_chunks(text):
    assert list(chunk_text(text)) == []


def test_invalid_chunk_size_raises_before_iteration():
    with pytest.raises(ValueError):
        chunk_text("some text", chunk_size=0)

    with pytest.raises(ValueError):
        Chunker(chunk_size=-5)


def test_word_chunks_are_restartable():
    chunks = Chunker(chunk_size=2).chunk("alpha beta gamma delta epsilon")

    assert isinstance(chunks, WordChunks)
    first = list(chunks)
    second = list(chunks)
    assert first == second == ["alpha beta", "gamma delta", "epsilon"]


def test_chunking_is_lazy():
    """Only as many chunks as requested are produced."""
    iterator = chunk_text("one two three four five six", chunk_size=2)
    assert next(iterator) == "one two"
    assert next(iterator) == "three four"
