"""SQLite-backed document metadata, chunk and index entry storage."""

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional, Sequence

import numpy as np

from docindex.config import validate_identifier
from docindex.models import (
    Chunk,
    Document,
    ExtractedContent,
    Heading,
    IndexEntry,
    PageSpan,
    ParseMode,
    ParseStatus,
)
from docindex.storage.schema import SCHEMA


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_document(row: sqlite3.Row) -> Document:
    return Document(
        path=row["path"],
        size_bytes=row["size_bytes"],
        url=row["url"],
        content_hash=row["content_hash"],
        status=ParseStatus(row["status"]),
        error=row["error"],
        version=row["version"],
        fingerprint=row["fingerprint"],
    )


def _row_to_chunk(row: sqlite3.Row) -> Chunk:
    return Chunk(
        document_id=row["document_id"],
        chunk_index=row["chunk_index"],
        start_char=row["start_char"],
        end_char=row["end_char"],
        text=row["text"],
        overlap=row["overlap"],
        headers=json.loads(row["headers"]),
        attributes=json.loads(row["attributes"]),
    )


class DocIndexStore:
    """SQLite-backed storage for documents, chunks and index entries.

    Every multi-row change for a document happens in one transaction, so
    the tables never hold a mix of two versions of the same document.
    """

    def __init__(self, path: Path | str, timeout: float = 30.0):
        self.path = Path(path)
        self.timeout = timeout

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database connections."""
        conn = sqlite3.connect(self.path, timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create schema if not exists."""
        with self.connection() as conn:
            conn.executescript(SCHEMA)

    # Documents

    def get_document(self, path: str) -> Optional[Document]:
        with self.connection() as conn:
            row = conn.execute("SELECT * FROM documents WHERE path = ?", (path,)).fetchone()
            return _row_to_document(row) if row else None

    def list_documents(self, path_prefix: str = "") -> list[Document]:
        """List documents whose path starts with prefix."""
        with self.connection() as conn:
            cursor = conn.execute(
                "SELECT * FROM documents WHERE substr(path, 1, ?) = ? ORDER BY path",
                (len(path_prefix), path_prefix),
            )
            return [_row_to_document(row) for row in cursor]

    def replace_document(
        self,
        document: Document,
        content: ExtractedContent,
        entries: Sequence[IndexEntry],
        fingerprint: Optional[str] = None,
    ) -> int:
        """Atomically replace a document's content, chunks and entries.

        Returns:
            The new document version
        """
        with self.connection() as conn:
            version = self._bump_document(
                conn, document, ParseStatus.PARSED, None, fingerprint
            )
            self._delete_derived(conn, document.path)

            conn.execute(
                """INSERT INTO extracted_content
                   (document_id, mode, text, raw_text, headings, pages)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    content.document_id,
                    content.mode.value,
                    content.text,
                    content.raw_text,
                    json.dumps([[h.level, h.title, h.offset] for h in content.headings]),
                    json.dumps([[p.page, p.start, p.end] for p in content.pages]),
                ),
            )
            self._insert_entries(conn, entries)

        document.status = ParseStatus.PARSED
        document.error = None
        document.version = version
        document.fingerprint = fingerprint
        return version

    def mark_failed(self, document: Document, error: str) -> int:
        """Record a failed parse and drop everything derived from the document."""
        with self.connection() as conn:
            version = self._bump_document(conn, document, ParseStatus.FAILED, error, None)
            self._delete_derived(conn, document.path)

        document.status = ParseStatus.FAILED
        document.error = error
        document.version = version
        return version

    def record_unparsed(self, document: Document, error: str) -> bool:
        """Record a document that has never been indexed.

        An existing row is left alone so that its last indexed state stays
        authoritative.

        Returns:
            True if a new row was written
        """
        with self.connection() as conn:
            cursor = conn.execute(
                """INSERT OR IGNORE INTO documents
                   (path, size_bytes, url, content_hash, status, error, version,
                    fingerprint, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, 0, NULL, ?)""",
                (
                    document.path,
                    document.size_bytes,
                    document.url,
                    document.content_hash,
                    ParseStatus.UNPARSED.value,
                    error,
                    _now(),
                ),
            )
            return cursor.rowcount > 0

    def delete_document(self, path: str) -> bool:
        """Delete a document and everything derived from it.

        Returns:
            True if the document existed
        """
        with self.connection() as conn:
            self._delete_derived(conn, path)
            cursor = conn.execute("DELETE FROM documents WHERE path = ?", (path,))
            return cursor.rowcount > 0

    def replace_entries(self, document_id: str, entries: Sequence[IndexEntry]) -> None:
        """Rewrite a document's chunks and entries (used by rebuilds)."""
        with self.connection() as conn:
            conn.execute("DELETE FROM index_entries WHERE document_id = ?", (document_id,))
            conn.execute("DELETE FROM chunks WHERE document_id = ?", (document_id,))
            self._insert_entries(conn, entries)

    def _bump_document(
        self,
        conn: sqlite3.Connection,
        document: Document,
        status: ParseStatus,
        error: Optional[str],
        fingerprint: Optional[str],
    ) -> int:
        row = conn.execute(
            "SELECT version FROM documents WHERE path = ?", (document.path,)
        ).fetchone()
        version = (row["version"] if row else 0) + 1
        conn.execute(
            """INSERT OR REPLACE INTO documents
               (path, size_bytes, url, content_hash, status, error, version,
                fingerprint, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                document.path,
                document.size_bytes,
                document.url,
                document.content_hash,
                status.value,
                error,
                version,
                fingerprint,
                _now(),
            ),
        )
        return version

    @staticmethod
    def _delete_derived(conn: sqlite3.Connection, document_id: str) -> None:
        conn.execute("DELETE FROM extracted_content WHERE document_id = ?", (document_id,))
        conn.execute("DELETE FROM chunks WHERE document_id = ?", (document_id,))
        conn.execute("DELETE FROM index_entries WHERE document_id = ?", (document_id,))

    @staticmethod
    def _insert_entries(conn: sqlite3.Connection, entries: Sequence[IndexEntry]) -> None:
        for entry in entries:
            chunk = entry.chunk
            conn.execute(
                """INSERT INTO chunks
                   (chunk_id, document_id, chunk_index, start_char, end_char,
                    text, overlap, headers, attributes)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    chunk.chunk_id,
                    chunk.document_id,
                    chunk.chunk_index,
                    chunk.start_char,
                    chunk.end_char,
                    chunk.text,
                    chunk.overlap,
                    json.dumps(chunk.headers, sort_keys=True),
                    json.dumps(chunk.attributes, sort_keys=True),
                ),
            )
            embedding = np.asarray(entry.embedding, dtype=np.float32)
            conn.execute(
                """INSERT INTO index_entries
                   (chunk_id, document_id, embedding, dimension, tokens)
                   VALUES (?, ?, ?, ?, ?)""",
                (
                    chunk.chunk_id,
                    chunk.document_id,
                    embedding.tobytes(),
                    int(embedding.shape[0]),
                    json.dumps(list(entry.tokens)),
                ),
            )

    # Content and chunks

    def read_content(self, path: str) -> Optional[ExtractedContent]:
        """Read a document's extracted content."""
        with self.connection() as conn:
            row = conn.execute(
                "SELECT * FROM extracted_content WHERE document_id = ?", (path,)
            ).fetchone()
            if row is None:
                return None
            return ExtractedContent(
                document_id=row["document_id"],
                mode=ParseMode(row["mode"]),
                text=row["text"],
                raw_text=row["raw_text"],
                headings=[Heading(*h) for h in json.loads(row["headings"])],
                pages=[PageSpan(*p) for p in json.loads(row["pages"])],
            )

    def load_chunks(self, document_id: Optional[str] = None) -> list[Chunk]:
        """Read chunks from the chunk table, ordered by document then index."""
        with self.connection() as conn:
            if document_id is None:
                cursor = conn.execute(
                    "SELECT * FROM chunks ORDER BY document_id, chunk_index"
                )
            else:
                cursor = conn.execute(
                    "SELECT * FROM chunks WHERE document_id = ? ORDER BY chunk_index",
                    (document_id,),
                )
            return [_row_to_chunk(row) for row in cursor]

    def load_entries(self) -> dict[str, list[IndexEntry]]:
        """Read every index entry, grouped by document.

        Chunks without an entry are left out; callers compare against
        ``load_chunks`` to detect that.
        """
        grouped: dict[str, list[IndexEntry]] = {}
        with self.connection() as conn:
            cursor = conn.execute(
                """SELECT c.*, e.embedding, e.dimension, e.tokens, d.url
                   FROM chunks c
                   JOIN index_entries e ON e.chunk_id = c.chunk_id
                   LEFT JOIN documents d ON d.path = c.document_id
                   ORDER BY c.document_id, c.chunk_index"""
            )
            for row in cursor:
                blob = row["embedding"] or b""
                if len(blob) != row["dimension"] * 4:
                    embedding = np.zeros(0, dtype=np.float32)
                else:
                    embedding = np.frombuffer(blob, dtype=np.float32)
                entry = IndexEntry(
                    chunk=_row_to_chunk(row),
                    embedding=embedding,
                    tokens=tuple(json.loads(row["tokens"])),
                    source_url=row["url"] or "",
                )
                grouped.setdefault(entry.document_id, []).append(entry)
        return grouped

    # Statistics

    def chunk_stats(self) -> list[dict]:
        """Per-document chunk count and average chunk length."""
        with self.connection() as conn:
            cursor = conn.execute(
                """SELECT document_id,
                          COUNT(*) AS num_chunks,
                          AVG(LENGTH(text)) AS avg_chunk_length
                   FROM chunks GROUP BY document_id ORDER BY document_id"""
            )
            return [dict(row) for row in cursor]

    def status_counts(self) -> dict[str, int]:
        with self.connection() as conn:
            cursor = conn.execute(
                "SELECT status, COUNT(*) AS n FROM documents GROUP BY status"
            )
            return {row["status"]: row["n"] for row in cursor}

    # Metadata

    def set_metadata(self, key: str, value: str) -> None:
        """Store a metadata key-value pair."""
        with self.connection() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
                (validate_identifier(key), value),
            )

    def get_metadata(self, key: str) -> Optional[str]:
        """Retrieve a metadata value by key."""
        with self.connection() as conn:
            row = conn.execute(
                "SELECT value FROM metadata WHERE key = ?", (validate_identifier(key),)
            ).fetchone()
            return row["value"] if row else None
