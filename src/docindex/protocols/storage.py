"""Protocol for blob storage collaborators."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class BlobStorage(Protocol):
    """Protocol for opaque blob stores keyed by relative path.

    Implementations wrap a local folder, an archive, memory, or a remote
    bucket. Uses structural subtyping - no inheritance required.
    """

    @property
    def source_type(self) -> str:
        """Return identifier for this storage type (e.g., 'folder', 'zip')."""
        ...

    def list(self, prefix: str = "") -> list[str]:
        """Return sorted relative paths starting with prefix."""
        ...

    def read(self, path: str) -> bytes:
        """Return the raw bytes stored at path."""
        ...

    def url(self, path: str) -> str:
        """Return a URL identifying the stored file."""
        ...
