# utils/text_chunker.py
"""
Boundary-aware text chunker.

Slides a fixed-size window over the text. A window that stops short of the end
of the text is cut back to its last sentence end ('.', '?', '!') or newline,
but only when that boundary lies past the middle of the window; otherwise the
full window is kept so a short sentence cannot produce a run of tiny chunks.
Consecutive windows share ``overlap`` characters.
"""
from typing import List

from core.exceptions import InvalidArgumentError

_BOUNDARY_CHARS = (".", "?", "!", "\n")

# A window is only cut at a boundary located past this fraction of chunk_size
_MIN_BREAK_RATIO = 0.5


def _validate(chunk_size: int, overlap: int) -> None:
    if isinstance(chunk_size, bool) or not isinstance(chunk_size, int) or chunk_size <= 0:
        raise InvalidArgumentError("chunk_size must be a positive integer")
    if isinstance(overlap, bool) or not isinstance(overlap, int) or overlap < 0:
        raise InvalidArgumentError("overlap must be a non-negative integer")
    if overlap >= chunk_size:
        raise InvalidArgumentError("overlap must be smaller than chunk_size")


def _last_boundary(window: str) -> int:
    """Index of the last boundary character in the window, -1 if none."""
    return max(window.rfind(char) for char in _BOUNDARY_CHARS)


def split_text(text: str, chunk_size: int, overlap: int) -> List[str]:
    """
    Split text into overlapping, trimmed, non-empty chunks.

    Args:
        text: Raw text to split
        chunk_size: Maximum window length in characters (> 0)
        overlap: Characters shared by consecutive windows (0 <= overlap < chunk_size)

    Returns:
        Chunks in text order

    Raises:
        InvalidArgumentError: On invalid chunk parameters
    """
    _validate(chunk_size, overlap)
    if not text:
        return []

    chunks: List[str] = []
    text_length = len(text)
    start = 0

    while start < text_length:
        end = min(start + chunk_size, text_length)
        window = text[start:end]

        if end < text_length:
            break_point = _last_boundary(window)
            if break_point > chunk_size * _MIN_BREAK_RATIO:
                window = window[:break_point + 1]

        chunk = window.strip()
        if chunk:
            chunks.append(chunk)

        if start + len(window) >= text_length:
            break

        next_start = start + len(window) - overlap
        if next_start <= start:
            # Cut-back window no longer than the overlap: skip the overlap once
            next_start = start + len(window)
        start = next_start

    return chunks
