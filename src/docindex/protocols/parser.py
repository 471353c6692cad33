"""Protocol for document parsing backends."""

from typing import Protocol, runtime_checkable

from docindex.models import ParseMode


@runtime_checkable
class ParsingBackend(Protocol):
    """Protocol for backends that turn raw bytes into structured text.

    Structured text is markdown-like: headers are marked with ``#`` runs at
    the start of a line. Backends raise any exception on corrupt input; the
    extractor turns it into a ParseError.
    """

    @property
    def name(self) -> str:
        """Return identifier for this backend."""
        ...

    def can_handle(self, path: str) -> bool:
        """Check if this backend understands the file at path."""
        ...

    def parse(self, data: bytes, mode: ParseMode, page_split: bool = True) -> list[str]:
        """Extract text from raw bytes.

        Returns: one structured text per page (a single item when the
        format has no pages or page_split is off)
        """
        ...
