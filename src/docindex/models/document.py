"""Core data models for documents, extracted content and chunks."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class ParseStatus(str, Enum):
    """Lifecycle state of a document's parse."""

    UNPARSED = "unparsed"
    PARSED = "parsed"
    FAILED = "failed"


class ParseMode(str, Enum):
    """Extraction mode requested from a parsing backend."""

    OCR = "ocr"
    LAYOUT = "layout"


@dataclass
class Document:
    """A raw document as known to the metadata store."""

    path: str
    size_bytes: int
    url: str
    content_hash: str
    status: ParseStatus = ParseStatus.UNPARSED
    error: Optional[str] = None
    version: int = 0
    fingerprint: Optional[str] = None  # pipeline settings of the last parse

    @property
    def document_id(self) -> str:
        return self.path


@dataclass(frozen=True)
class Heading:
    """A header marker found in extracted text."""

    level: int
    title: str
    offset: int


@dataclass(frozen=True)
class PageSpan:
    """Character range of one source page within the extracted text."""

    page: int
    start: int
    end: int


@dataclass
class ExtractedContent:
    """Structured text produced by one parse of a document."""

    document_id: str
    mode: ParseMode
    text: str
    raw_text: str
    headings: list[Heading] = field(default_factory=list)
    pages: list[PageSpan] = field(default_factory=list)

    def headers_at(self, offset: int) -> dict[str, str]:
        """Return the header path in effect at a character offset.

        Keys are ``header_1`` .. ``header_6``; a new heading clears every
        deeper level.
        """
        path: dict[int, str] = {}
        for heading in self.headings:
            if heading.offset > offset:
                break
            path = {lvl: title for lvl, title in path.items() if lvl < heading.level}
            path[heading.level] = heading.title
        return {f"header_{lvl}": path[lvl] for lvl in sorted(path)}


@dataclass
class Chunk:
    """A segment of extracted text with its position and context."""

    document_id: str
    chunk_index: int
    start_char: int
    end_char: int
    text: str
    overlap: int = 0  # chars shared with the previous chunk
    headers: dict[str, str] = field(default_factory=dict)
    attributes: dict[str, str] = field(default_factory=dict)

    @property
    def chunk_id(self) -> str:
        return f"{self.document_id}#{self.chunk_index}"

    def context_text(self) -> str:
        """Text prefixed with its source path and header path.

        Used for embedding and lexical indexing; the stored text stays an
        exact slice of the extracted content.
        """
        lines = [f"{self.document_id}:"]
        for key in sorted(self.headers):
            level = key.rsplit("_", 1)[-1]
            lines.append(f"Header {level}: {self.headers[key]}")
        lines.append(self.text)
        return "\n".join(lines)
