"""SQLite persistence for documents, chunks and index entries."""

from docindex.storage.store import DocIndexStore

__all__ = ["DocIndexStore"]
