"""Recursive separator-based chunking with exact overlap.

Split points are searched in the window ``(start + overlap, start +
target_size]``, trying separators in priority order (paragraph break,
line break, space) and falling back to a hard character cut when ``""``
is among the separators. The next chunk starts exactly ``overlap``
characters before the previous one ended, so consecutive chunks share
their trailing/leading ``overlap`` characters and every chunk is a
verbatim slice of the source text.
"""

from typing import Optional, Sequence

from docindex.config import ChunkingConfig
from docindex.errors import ChunkingError
from docindex.models import Chunk, ExtractedContent


def _find_split(
    text: str,
    start: int,
    target_size: int,
    overlap: int,
    separators: Sequence[str],
) -> Optional[int]:
    """Return the split point for a chunk starting at start, if one fits.

    The split point lies just after a separator occurrence, strictly past
    ``start + overlap`` and at most ``start + target_size``.
    """
    limit = start + target_size
    floor = start + overlap

    for sep in separators:
        if sep == "":
            return limit
        # occurrence idx must satisfy floor < idx + len(sep) <= limit
        lo = max(start, floor - len(sep) + 1)
        idx = text.rfind(sep, lo, limit)
        if idx != -1:
            return idx + len(sep)
    return None


def _extend_oversized(
    text: str,
    start: int,
    target_size: int,
    separators: Sequence[str],
) -> int:
    """End of the unsplittable token that overflows the window."""
    ends = []
    for sep in separators:
        if not sep:
            continue
        idx = text.find(sep, start + target_size - len(sep) + 1)
        if idx != -1:
            ends.append(idx + len(sep))
    return min(ends) if ends else len(text)


def split_offsets(
    text: str,
    target_size: int,
    overlap: int,
    separators: Sequence[str],
) -> list[tuple[int, int]]:
    """Compute chunk spans over text.

    Args:
        text: Text to split
        target_size: Maximum chunk length in characters
        overlap: Characters shared by consecutive chunks
        separators: Split boundaries in priority order; ``""`` allows
            cutting at any character

    Returns:
        Ordered (start, end) spans. Only an unsplittable token longer than
        target_size produces a span longer than target_size.
    """
    if target_size <= 0 or not 0 <= overlap < target_size:
        raise ChunkingError(
            f"Invalid chunk geometry: target_size={target_size}, overlap={overlap}"
        )
    if not text or not text.strip():
        return []

    spans: list[tuple[int, int]] = []
    start = 0
    n = len(text)

    while True:
        if n - start <= target_size:
            spans.append((start, n))
            return spans

        end = _find_split(text, start, target_size, overlap, separators)
        if end is None:
            end = _extend_oversized(text, start, target_size, separators)

        spans.append((start, end))
        if end >= n:
            return spans

        next_start = end - overlap
        if next_start <= start:
            raise ChunkingError(f"Chunker made no progress at offset {start}")
        start = next_start


class RecursiveChunker:
    """Default chunking: recursive separators, exact character overlap.

    Chunks carry the header path in effect at their start offset, and
    the document's classification attributes.
    """

    def __init__(self, config: Optional[ChunkingConfig] = None):
        self.config = config or ChunkingConfig()

    def chunk(
        self,
        content: ExtractedContent,
        attributes: Optional[dict[str, str]] = None,
    ) -> list[Chunk]:
        """Split extracted content into chunks.

        Args:
            content: Extracted content of one document
            attributes: Classification attributes copied onto every chunk

        Returns:
            Chunks ordered by chunk_index with non-decreasing offsets
        """
        spans = split_offsets(
            content.text,
            self.config.target_size,
            self.config.overlap,
            self.config.separators,
        )

        chunks = []
        prev_end: Optional[int] = None
        for idx, (start, end) in enumerate(spans):
            chunks.append(
                Chunk(
                    document_id=content.document_id,
                    chunk_index=idx,
                    start_char=start,
                    end_char=end,
                    text=content.text[start:end],
                    overlap=(prev_end - start) if prev_end is not None else 0,
                    headers=content.headers_at(start),
                    attributes=dict(attributes or {}),
                )
            )
            prev_end = end
        return chunks
