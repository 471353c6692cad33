"""Ingestion pipeline: load -> parse -> chunk -> index, per document."""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from docindex.chunkers import RecursiveChunker
from docindex.config import PipelineConfig
from docindex.errors import ChunkingError, IndexingError, LoadError, ParseError
from docindex.index import Indexer
from docindex.loaders import DocumentLoader
from docindex.models import Document, ParseStatus
from docindex.parsers import Extractor
from docindex.protocols import AttributeExtractor, ChunkingStrategy
from docindex.utils import KeyedLock

logger = logging.getLogger(__name__)


class OutcomeStatus(str, Enum):
    INDEXED = "indexed"
    SKIPPED = "skipped"
    FAILED = "failed"
    DEGRADED = "degraded"
    REMOVED = "removed"


@dataclass
class DocumentOutcome:
    """Result of ingesting one document."""

    path: str
    status: OutcomeStatus
    chunks: int = 0
    version: Optional[int] = None
    error: Optional[str] = None


@dataclass
class IngestReport:
    """Summary of an ingestion run."""

    outcomes: list[DocumentOutcome] = field(default_factory=list)
    elapsed: float = 0.0

    def count(self, status: OutcomeStatus) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def chunks(self) -> int:
        return sum(o.chunks for o in self.outcomes if o.status == OutcomeStatus.INDEXED)

    def summary(self) -> str:
        counts = ", ".join(f"{s.value}={self.count(s)}" for s in OutcomeStatus)
        return f"{len(self.outcomes)} documents ({counts}), {self.chunks} chunks in {self.elapsed:.1f}s"


class IngestionPipeline:
    """Batch ingestion over a document loader.

    Documents are independent: each runs on a bounded worker pool, and a
    failure in one never aborts the others. Work on the same document id
    is serialized by a per-document lock.
    """

    def __init__(
        self,
        loader: DocumentLoader,
        extractor: Extractor,
        indexer: Indexer,
        chunker: Optional[ChunkingStrategy] = None,
        config: Optional[PipelineConfig] = None,
        attribute_extractors: Iterable[AttributeExtractor] = (),
    ):
        self.loader = loader
        self.extractor = extractor
        self.indexer = indexer
        self.config = config or PipelineConfig()
        self.chunker = chunker or RecursiveChunker(self.config.chunking)
        self.attribute_extractors = list(attribute_extractors)
        self.fingerprint = self.config.fingerprint()
        self._locks = KeyedLock()

    def run(self, prefix: str = "") -> IngestReport:
        """Ingest every document under prefix.

        Documents previously ingested under prefix that are no longer in
        storage are removed from the store and the index.

        Returns:
            Per-document outcomes; the index is refreshed before returning
        """
        started = time.monotonic()
        paths = self.loader.list(prefix)
        logger.info(f"Ingesting {len(paths)} documents with {self.config.max_workers} workers")

        with self.indexer.hybrid.deferred():
            with ThreadPoolExecutor(
                max_workers=self.config.max_workers,
                thread_name_prefix="docindex-ingest",
            ) as pool:
                outcomes = list(pool.map(self._ingest_isolated, paths))
            outcomes.extend(self._remove_vanished(prefix, paths))

        report = IngestReport(outcomes=outcomes, elapsed=time.monotonic() - started)
        logger.info(f"Ingest complete: {report.summary()}")
        return report

    def _ingest_isolated(self, path: str) -> DocumentOutcome:
        try:
            return self.ingest_document(path)
        except Exception as e:
            logger.exception(f"Unexpected error ingesting {path}")
            return DocumentOutcome(path, OutcomeStatus.FAILED, error=f"{type(e).__name__}: {e}")

    def _remove_vanished(self, prefix: str, paths: list[str]) -> list[DocumentOutcome]:
        listed = set(paths)
        outcomes = []
        for document in self.indexer.store.list_documents(prefix):
            if document.path in listed:
                continue
            with self._locks.hold(document.path):
                self.indexer.store.delete_document(document.path)
                self.indexer.retire(document.path)
            logger.info(f"  {document.path}: removed from storage")
            outcomes.append(
                DocumentOutcome(document.path, OutcomeStatus.REMOVED, version=document.version)
            )
        return outcomes

    def ingest_document(self, path: str) -> DocumentOutcome:
        """Ingest one document, isolating its failures."""
        with self._locks.hold(path):
            try:
                document, data = self.loader.load(path)
            except LoadError as e:
                logger.warning(f"Skipping {path}: {e}")
                return DocumentOutcome(path, OutcomeStatus.FAILED, error=str(e))

            existing = self.indexer.store.get_document(path)
            if self._unchanged(existing, document):
                logger.debug(f"Unchanged: {path}")
                return DocumentOutcome(path, OutcomeStatus.SKIPPED, version=existing.version)

            try:
                content = self.extractor.parse(document, data)
                attributes: dict[str, str] = {}
                for extractor in self.attribute_extractors:
                    attributes.update(extractor.extract(document, content))
                chunks = self.chunker.chunk(content, attributes)
            except (ParseError, ChunkingError) as e:
                return self._fail(document, e)

            try:
                ack = self.indexer.index(document, content, chunks, self.fingerprint)
            except IndexingError as e:
                logger.warning(f"Degraded ingest of {path}, serving previous state: {e}")
                self.indexer.store.record_unparsed(document, str(e))
                return DocumentOutcome(path, OutcomeStatus.DEGRADED, error=str(e))

            logger.info(f"  {path}: {ack.entries} chunks (v{ack.version})")
            return DocumentOutcome(
                path, OutcomeStatus.INDEXED, chunks=ack.entries, version=ack.version
            )

    def _unchanged(self, existing: Optional[Document], document: Document) -> bool:
        return (
            existing is not None
            and existing.status == ParseStatus.PARSED
            and existing.content_hash == document.content_hash
            and existing.fingerprint == self.fingerprint
        )

    def _fail(self, document: Document, error: Exception) -> DocumentOutcome:
        logger.warning(f"Failed {document.path}: {error}")
        version = self.indexer.store.mark_failed(document, str(error))
        self.indexer.retire(document.path)
        return DocumentOutcome(
            document.path, OutcomeStatus.FAILED, version=version, error=str(error)
        )
