"""Wiring of store, index, indexer and search engine around one store file."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from docindex.attributes import PathCategoryExtractor
from docindex.config import PipelineConfig
from docindex.index import HybridIndex, Indexer
from docindex.loaders import DocumentLoader
from docindex.models import SearchResult
from docindex.parsers import Extractor
from docindex.pipeline import IngestionPipeline, IngestReport
from docindex.protocols import AttributeExtractor, BlobStorage, EmbeddingProvider, ParsingBackend
from docindex.search import SearchEngine
from docindex.storage import DocIndexStore

logger = logging.getLogger(__name__)


class DocIndex:
    """A document index backed by one SQLite store file.

    Design: 1 store = 1 index. The in-memory HybridIndex is loaded from
    the store on open and kept in step by every ingest.
    """

    def __init__(
        self,
        path: Path | str,
        embedder: Optional[EmbeddingProvider] = None,
        config: Optional[PipelineConfig] = None,
        load: bool = True,
    ):
        self.config = config or PipelineConfig()
        if embedder is None:
            from docindex.embedders import SentenceTransformerEmbedder

            embedder = SentenceTransformerEmbedder()
        self.embedder = embedder

        self.store = DocIndexStore(path)
        self.store.initialize()
        self.index = HybridIndex(self.config.index)
        self.indexer = Indexer(
            self.store,
            self.index,
            embedder,
            self.config.index,
            contextualize=self.config.chunking.contextualize,
        )
        self.engine = SearchEngine(self.index, embedder, self.config.search)

        self._check_model()
        if load:
            self.indexer.load()
        self.index.start_refresher()

    def _check_model(self) -> None:
        stored = self.store.get_metadata("embedding_model")
        if stored is None:
            self.store.set_metadata("embedding_model", self.embedder.model_name)
            self.store.set_metadata("created_at", datetime.now().isoformat())
        elif stored != self.embedder.model_name:
            logger.warning(
                f"Store was embedded with {stored}, now using {self.embedder.model_name}; "
                f"run rebuild to re-embed"
            )

    def pipeline(
        self,
        storage: BlobStorage,
        backends: Optional[Iterable[ParsingBackend]] = None,
        attribute_extractors: Optional[Iterable[AttributeExtractor]] = None,
    ) -> IngestionPipeline:
        """Build an ingestion pipeline reading from storage."""
        if attribute_extractors is None:
            attribute_extractors = [PathCategoryExtractor()]
        return IngestionPipeline(
            loader=DocumentLoader(storage),
            extractor=Extractor(backends, self.config.parse),
            indexer=self.indexer,
            config=self.config,
            attribute_extractors=attribute_extractors,
        )

    def ingest(self, storage: BlobStorage, prefix: str = "", **kwargs: Any) -> IngestReport:
        """Ingest every document under prefix from storage."""
        report = self.pipeline(storage, **kwargs).run(prefix)
        self.store.set_metadata("source_type", storage.source_type)
        self.store.set_metadata("last_ingest_at", datetime.now().isoformat())
        return report

    def search(
        self,
        query: str,
        filters: Optional[Mapping[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> list[SearchResult]:
        return self.engine.search(query, filters, limit)

    def rebuild(self) -> int:
        count = self.indexer.rebuild()
        self.store.set_metadata("embedding_model", self.embedder.model_name)
        return count

    def close(self) -> None:
        """Stop the refresher thread and publish pending updates."""
        self.index.stop()

    def __enter__(self) -> "DocIndex":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
