"""Recursive, structure-aware text chunker with overlap.

Windows are cut from the body by character offset. Each window ends at the
coarsest boundary that fits (paragraph, line, sentence, word) and only falls
back to a hard split between characters when none does. The next window
starts inside the previous one, at the latest word start (or, failing that,
character) that still leaves at least ``overlap`` shared characters.

Guarantees for every body:
  - each chunk is at most ``chunk_size`` characters;
  - consecutive chunks share at least ``overlap`` characters (the suffix of
    one is the prefix of the next), unless a whitespace run of at least
    ``chunk_size - overlap`` characters separates them;
  - chunks are whitespace-stripped substrings of the body, in order.

Output depends only on the input, so re-ingesting an unchanged note
reproduces the same chunks.
"""

from __future__ import annotations

import bisect
import re

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_OVERLAP = 200

# Coarse to fine; words come last and are matched with _WORD_RE.
_SEPARATORS: tuple[str, ...] = ("\n\n", "\n", ". ")

_WORD_RE = re.compile(r"\S+")


class RecursiveChunker:
    """Split note bodies into overlapping windows.

    Args:
        chunk_size: Maximum chunk length in characters.
        overlap: Minimum number of characters shared by consecutive chunks.
    """

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE, overlap: int = DEFAULT_OVERLAP) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if not 0 <= overlap < chunk_size:
            raise ValueError("overlap must be in [0, chunk_size)")
        self.chunk_size = chunk_size
        self.overlap = overlap

    def split(self, text: str) -> list[str]:
        """Return the ordered chunks of *text*; blank text yields no chunks."""
        words = [m.span() for m in _WORD_RE.finditer(text)]
        if not words:
            return []

        word_starts = [s for s, _ in words]
        levels = [_break_points(text, sep) for sep in _SEPARATORS]
        levels.append([e for _, e in words])
        last = words[-1][1]

        chunks: list[str] = []
        start, prev_end = word_starts[0], word_starts[0]
        while last - start > self.chunk_size:
            chunk = text[start : self._pick_end(text, start, prev_end, levels)].rstrip()
            chunks.append(chunk)
            prev_end = start + len(chunk)
            start = self._next_start(text, start, prev_end, word_starts)
        chunks.append(text[start:last])
        return chunks

    def _pick_end(
        self, text: str, start: int, prev_end: int, levels: list[list[int]]
    ) -> int:
        """End offset of the window opening at *start*.

        The window must pass *prev_end* (progress) and be longer than
        ``overlap`` so its successor can start inside it.
        """
        lo = max(start + self.overlap + 1, prev_end + 1)
        hi = start + self.chunk_size
        for points in levels:
            i = bisect.bisect_right(points, hi)
            if i and points[i - 1] >= lo:
                return points[i - 1]

        # Hard split inside a token (or a whitespace run).
        end = hi
        while end > lo and text[end - 1].isspace():
            end -= 1
        return end

    def _next_start(self, text: str, start: int, end: int, word_starts: list[int]) -> int:
        """Start offset of the window after ``text[start:end]``.

        The next window must still reach the first character past the
        whitespace that follows *end*.
        """
        nxt = end
        while text[nxt].isspace():
            nxt += 1
        if self.overlap:
            lo = max(start + 1, nxt - self.chunk_size + 1)
            hi = end - self.overlap
            if hi >= lo:
                i = bisect.bisect_right(word_starts, hi)
                if i and word_starts[i - 1] >= lo:
                    return word_starts[i - 1]
                # No word starts in range: overlap from mid-word.
                pos = hi
                while pos >= lo and text[pos].isspace():
                    pos -= 1
                if pos >= lo:
                    return pos
        return nxt


def _break_points(text: str, separator: str) -> list[int]:
    """Sorted chunk end offsets at every occurrence of *separator*.

    The offset keeps any non-whitespace part of the separator (the period of
    ". ") and drops whitespace before the break.
    """
    keep = len(separator.rstrip())
    points: set[int] = set()
    pos = text.find(separator)
    while pos != -1:
        end = pos + keep
        while end > 0 and text[end - 1].isspace():
            end -= 1
        if end > 0:
            points.add(end)
        pos = text.find(separator, pos + 1)
    return sorted(points)


def split_text(
    body: str, chunk_size: int = DEFAULT_CHUNK_SIZE, overlap: int = DEFAULT_OVERLAP
) -> list[str]:
    """Split *body* with a one-off :class:`RecursiveChunker`."""
    return RecursiveChunker(chunk_size=chunk_size, overlap=overlap).split(body)
