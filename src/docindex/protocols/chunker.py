"""Protocols for text chunking strategies and attribute extraction."""

from typing import Optional, Protocol, runtime_checkable

from docindex.models import Chunk, Document, ExtractedContent


@runtime_checkable
class ChunkingStrategy(Protocol):
    """Protocol for text chunking strategies.

    Different strategies can be used for different content types.
    """

    def chunk(
        self,
        content: ExtractedContent,
        attributes: Optional[dict[str, str]] = None,
    ) -> list[Chunk]:
        """Split extracted content into ordered chunks with metadata."""
        ...


@runtime_checkable
class AttributeExtractor(Protocol):
    """Protocol for classification attributes attached to every chunk."""

    def extract(self, document: Document, content: ExtractedContent) -> dict[str, str]:
        """Return attribute name -> value for the document."""
        ...
