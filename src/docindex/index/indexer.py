"""Indexer: embeds chunks, persists entries, and stages index versions."""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from docindex.config import IndexConfig
from docindex.errors import IndexCorruptionError, IndexingError
from docindex.index.hybrid import HybridIndex
from docindex.index.snapshot import tokenize
from docindex.models import Chunk, Document, ExtractedContent, IndexEntry
from docindex.protocols import EmbeddingProvider
from docindex.storage import DocIndexStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexAck:
    """Acknowledgement of an accepted document version."""

    document_id: str
    version: int
    entries: int
    staleness_bound: float  # seconds until visible; 0 when visible, inf until a batch ends


class Indexer:
    """Keeps the chunk table, index entries and HybridIndex in step.

    The store is the source of truth: entries are written there in one
    transaction before the new version is staged in the index, and the
    index can always be rebuilt from the chunk table.
    """

    def __init__(
        self,
        store: DocIndexStore,
        index: HybridIndex,
        embedder: EmbeddingProvider,
        config: Optional[IndexConfig] = None,
        contextualize: bool = True,
    ):
        self.store = store
        self.hybrid = index
        self.embedder = embedder
        self.config = config or IndexConfig()
        self.contextualize = contextualize

    def text_for(self, chunk: Chunk) -> str:
        return chunk.context_text() if self.contextualize else chunk.text

    def embed_texts(self, texts: Sequence[str]) -> np.ndarray:
        """Embed texts in batches, retrying each batch with backoff.

        Raises:
            IndexingError: A batch still fails after max_retries attempts
        """
        texts = list(texts)
        if not texts:
            return np.zeros((0, 0), dtype=np.float32)

        size = self.config.embed_batch_size
        batches = [self._embed_batch(texts[i : i + size]) for i in range(0, len(texts), size)]
        return np.vstack(batches)

    def _embed_batch(self, batch: list[str]) -> np.ndarray:
        retrying = Retrying(
            stop=stop_after_attempt(self.config.max_retries),
            wait=wait_exponential(
                multiplier=self.config.retry_min_wait,
                min=self.config.retry_min_wait,
                max=self.config.retry_max_wait,
            ),
            retry=retry_if_exception_type(Exception),
            before_sleep=lambda state: logger.warning(
                f"Embedding backend failed ({state.outcome.exception()}), "
                f"retry {state.attempt_number}/{self.config.max_retries}"
            ),
        )
        try:
            vectors = retrying(self.embedder.embed, batch)
        except RetryError as e:
            cause = e.last_attempt.exception()
            raise IndexingError(
                f"Embedding backend unavailable after {self.config.max_retries} attempts: {cause}"
            ) from cause

        vectors = np.asarray(vectors, dtype=np.float32)
        if vectors.ndim != 2 or vectors.shape[0] != len(batch):
            raise IndexingError(
                f"Embedding backend returned shape {vectors.shape} for {len(batch)} texts"
            )
        return vectors

    def build_entries(
        self,
        chunks: Sequence[Chunk],
        source_url: str = "",
        check_dimension: bool = True,
    ) -> list[IndexEntry]:
        """Embed and tokenize chunks into index entries."""
        texts = [self.text_for(c) for c in chunks]
        embeddings = self.embed_texts(texts)

        dimension = self.hybrid.snapshot().dimension
        mismatch = dimension is not None and embeddings.shape[1] != dimension
        if check_dimension and chunks and mismatch:
            raise IndexingError(
                f"Embedding dimension {embeddings.shape[1]} does not match index ({dimension})"
            )

        return [
            IndexEntry(
                chunk=chunk,
                embedding=embedding,
                tokens=tuple(tokenize(text)),
                source_url=source_url,
            )
            for chunk, text, embedding in zip(chunks, texts, embeddings)
        ]

    def index(
        self,
        document: Document,
        content: ExtractedContent,
        chunks: Sequence[Chunk],
        fingerprint: Optional[str] = None,
    ) -> IndexAck:
        """Replace a document's chunk set as one unit.

        Args:
            document: The parsed document
            content: Its extracted content
            chunks: Its complete new chunk sequence
            fingerprint: Pipeline settings that produced the chunks

        Returns:
            Acknowledgement with the new version and its staleness bound

        Raises:
            IndexingError: Embedding failed; store and index are untouched
        """
        for chunk in chunks:
            if chunk.document_id != document.path:
                raise IndexingError(
                    f"Chunk {chunk.chunk_id} does not belong to {document.path}",
                    document_id=document.path,
                )

        try:
            entries = self.build_entries(chunks, source_url=document.url)
        except IndexingError as e:
            e.document_id = document.path
            raise

        version = self.store.replace_document(document, content, entries, fingerprint)
        bound = self.hybrid.stage(document.path, version, entries)
        return IndexAck(
            document_id=document.path,
            version=version,
            entries=len(entries),
            staleness_bound=bound,
        )

    def retire(self, document_id: str) -> None:
        """Remove a document from the index (the store is updated by the caller)."""
        self.hybrid.retire(document_id)

    def load(self) -> int:
        """Load the index from persisted entries, rebuilding if they are corrupt.

        Returns:
            Number of entries loaded
        """
        try:
            entries = self._verified_entries()
        except IndexCorruptionError as e:
            logger.warning(f"Index entries are corrupt ({e}); rebuilding from chunks")
            return self.rebuild()

        versions = {d.path: d.version for d in self.store.list_documents()}
        self.hybrid.load(entries, versions)
        return sum(len(v) for v in entries.values())

    def _verified_entries(self) -> dict[str, list[IndexEntry]]:
        entries = self.store.load_entries()
        chunk_ids = {c.chunk_id for c in self.store.load_chunks()}
        entry_ids = {e.chunk_id for group in entries.values() for e in group}

        missing = chunk_ids - entry_ids
        if missing:
            raise IndexCorruptionError(f"{len(missing)} chunks have no index entry")

        dims = {int(e.embedding.shape[0]) for group in entries.values() for e in group}
        if len(dims) > 1 or 0 in dims:
            raise IndexCorruptionError(f"Inconsistent embedding dimensions: {sorted(dims)}")
        return entries

    def rebuild(self) -> int:
        """Re-embed every chunk in the chunk table and swap in a fresh index.

        Returns:
            Number of entries rebuilt
        """
        documents = {d.path: d for d in self.store.list_documents()}
        by_document: dict[str, list[Chunk]] = {}
        for chunk in self.store.load_chunks():
            by_document.setdefault(chunk.document_id, []).append(chunk)

        rebuilt: dict[str, list[IndexEntry]] = {}
        for document_id, chunks in by_document.items():
            doc = documents.get(document_id)
            entries = self.build_entries(
                chunks, source_url=doc.url if doc else "", check_dimension=False
            )
            self.store.replace_entries(document_id, entries)
            rebuilt[document_id] = entries

        versions = {path: d.version for path, d in documents.items()}
        self.hybrid.load(rebuilt, versions)
        total = sum(len(v) for v in rebuilt.values())
        logger.info(f"Rebuilt index: {len(rebuilt)} documents, {total} entries")
        return total
