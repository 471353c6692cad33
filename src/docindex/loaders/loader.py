"""Document loader: turns storage paths into Documents with raw bytes."""

import hashlib
import logging
import zipfile

from docindex.errors import LoadError
from docindex.models import Document
from docindex.protocols import BlobStorage

logger = logging.getLogger(__name__)


def content_hash(data: bytes) -> str:
    """Return the sha256 hex digest used for change detection."""
    return hashlib.sha256(data).hexdigest()


class DocumentLoader:
    """Reads raw files from a blob storage with stable identifiers."""

    def __init__(self, storage: BlobStorage):
        self.storage = storage

    def list(self, prefix: str = "") -> list[str]:
        """List document paths under prefix.

        Raises:
            LoadError: If the storage cannot be listed
        """
        try:
            return self.storage.list(prefix)
        except (OSError, zipfile.BadZipFile) as e:
            raise LoadError(f"Cannot list storage {self.storage.source_type}: {e}") from e

    def load(self, path: str) -> tuple[Document, bytes]:
        """Read one document.

        Args:
            path: Relative path of the document in storage

        Returns:
            The Document (unparsed) and its raw bytes

        Raises:
            LoadError: If the document is unreadable
        """
        try:
            data = self.storage.read(path)
            url = self.storage.url(path)
        except (OSError, KeyError, zipfile.BadZipFile) as e:
            raise LoadError(f"Cannot read {path}: {e}", document_id=path) from e

        document = Document(
            path=path,
            size_bytes=len(data),
            url=url,
            content_hash=content_hash(data),
        )
        logger.debug(f"Loaded {path} ({len(data)} bytes)")
        return document, data
