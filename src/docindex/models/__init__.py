"""Data models for docindex."""

from docindex.models.document import (
    Chunk,
    Document,
    ExtractedContent,
    Heading,
    PageSpan,
    ParseMode,
    ParseStatus,
)
from docindex.models.index import RESULT_COLUMNS, IndexEntry, SearchResult

__all__ = [
    "Document",
    "ExtractedContent",
    "Heading",
    "PageSpan",
    "ParseMode",
    "ParseStatus",
    "Chunk",
    "IndexEntry",
    "SearchResult",
    "RESULT_COLUMNS",
]
