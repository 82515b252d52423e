"""
Tests for the boundary-aware text chunker.

Run:
  pytest -q tests/test_text_chunker.py
"""
import pytest

from core.exceptions import InvalidArgumentError
from utils.text_chunker import split_text

SAMPLE = "Sentence one. Sentence two. Sentence three."


def test_short_sentences_terminate_with_trimmed_chunks():
    chunks = split_text(SAMPLE, 20, 5)

    assert chunks == ["Sentence one.", "one. Sentence two.", "two. Sentence three", "three."]
    assert all(chunk == chunk.strip() and chunk for chunk in chunks)


def test_text_shorter_than_chunk_is_one_chunk():
    assert split_text("  Just a line.  ", 100, 10) == ["Just a line."]


def test_empty_and_whitespace_text():
    assert split_text("", 10, 2) == []
    assert split_text("     ", 3, 1) == []


def test_breaks_on_sentence_end_past_half_window():
    text = "abcdefghijklmno. pqrstuvwxyz and more words follow here"
    chunks = split_text(text, 20, 0)

    assert chunks[0] == "abcdefghijklmno."


def test_ignores_boundary_before_half_window():
    text = "Hi. abcdefghijklmnopqrstuvwxyz"
    chunks = split_text(text, 20, 0)

    assert chunks[0] == "Hi. abcdefghijklmnop"


def test_newline_counts_as_boundary():
    text = "first line is long\nsecond line keeps going on"
    chunks = split_text(text, 24, 0)

    assert chunks[0] == "first line is long"


@pytest.mark.parametrize("chunk_size,overlap", [(1, 0), (2, 1), (7, 3), (50, 49), (1000, 200)])
def test_chunks_keep_text_order(chunk_size, overlap):
    text = "The quick brown fox. Jumps over the lazy dog! Again? " * 20
    chunks = split_text(text, chunk_size, overlap)

    assert chunks
    position = 0
    for chunk in chunks:
        found = text.find(chunk, position)
        assert found >= position
        position = found


def test_step_count_is_bounded():
    text = "x" * 10_000
    chunks = split_text(text, 100, 90)

    # One window per (chunk_size - overlap) characters, plus the last one
    assert len(chunks) <= len(text) // (100 - 90) + 1


def test_no_trailing_overlap_only_window():
    chunks = split_text("a" * 30, 10, 5)

    assert chunks[-1] == "a" * 10
    assert len(chunks) == 5


@pytest.mark.parametrize("chunk_size,overlap", [(0, 0), (-5, 0), (10, -1), (10, 10), (10, 11)])
def test_invalid_parameters(chunk_size, overlap):
    with pytest.raises(InvalidArgumentError):
        split_text("some text", chunk_size, overlap)
