"""Exception hierarchy for docindex."""

from typing import Optional


class DocIndexError(Exception):
    """Base exception for all docindex errors."""

    def __init__(self, message: str, document_id: Optional[str] = None):
        super().__init__(message)
        self.document_id = document_id


class ConfigError(DocIndexError, ValueError):
    """Raised for invalid configuration values or identifiers."""


class LoadError(DocIndexError):
    """Raised when a document cannot be read from storage."""


class ParseError(DocIndexError):
    """Raised when a document cannot be parsed (unsupported, corrupt, timeout)."""

    def __init__(
        self,
        message: str,
        document_id: Optional[str] = None,
        retryable: bool = False,
    ):
        super().__init__(message, document_id)
        self.retryable = retryable


class ParseTimeoutError(ParseError):
    """Raised when a parse does not finish within its timeout."""

    def __init__(self, message: str, document_id: Optional[str] = None):
        super().__init__(message, document_id, retryable=True)


class ChunkingError(DocIndexError):
    """Raised when extracted content cannot be chunked."""


class IndexingError(DocIndexError):
    """Raised when the embedding backend stays unavailable after retries."""


class IndexCorruptionError(IndexingError):
    """Raised when persisted index entries disagree with the chunk table."""


class QueryError(DocIndexError, ValueError):
    """Raised for malformed search requests."""
