"""Hybrid index with per-document versioned swaps and bounded staleness."""

import logging
import math
import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Mapping, Optional, Sequence

from docindex.config import IndexConfig
from docindex.index.snapshot import DocumentVersion, IndexSnapshot
from docindex.models import IndexEntry

logger = logging.getLogger(__name__)


class HybridIndex:
    """Holds the current IndexSnapshot and publishes staged updates.

    Writers stage a complete new version of a document (or its removal).
    Staged updates are published together by building a new snapshot and
    swapping the reference, so a reader sees each document either before
    or after an update, never in between.

    Publication happens when ``batch_size`` documents are pending, when
    the oldest pending update reaches ``target_lag`` seconds, or on
    ``refresh()``. With ``target_lag == 0`` every stage publishes at once,
    except inside ``deferred()``, where a batch run holds updates back
    until ``batch_size`` are pending or the run ends.
    """

    def __init__(
        self,
        config: Optional[IndexConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or IndexConfig()
        self._clock = clock
        self._lock = threading.Lock()
        self._snapshot = IndexSnapshot()
        self._pending: dict[str, Optional[DocumentVersion]] = {}
        self._pending_since: Optional[float] = None
        self._deferring = 0
        self._stop = threading.Event()
        self._refresher: Optional[threading.Thread] = None

    def snapshot(self) -> IndexSnapshot:
        """Return the current published snapshot."""
        return self._snapshot

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def stage(self, document_id: str, version: int, entries: Sequence[IndexEntry]) -> float:
        """Stage a new version of a document.

        Args:
            document_id: Document being replaced
            version: Store version of the new chunk set
            entries: Every entry of the new version

        Returns:
            Seconds until the update is guaranteed visible (0 if published)
        """
        with self._lock:
            current = self._known_version(document_id)
            if current is not None and version < current:
                logger.debug(
                    f"Ignoring stale version {version} of {document_id} (have {current})"
                )
                return 0.0
            self._pending[document_id] = DocumentVersion(version, tuple(entries))
            return self._after_stage_locked()

    def retire(self, document_id: str) -> float:
        """Stage removal of every entry of a document."""
        with self._lock:
            if document_id not in self._snapshot.documents and document_id not in self._pending:
                return 0.0
            self._pending[document_id] = None
            return self._after_stage_locked()

    def refresh(self) -> bool:
        """Publish all pending updates now.

        Returns:
            True if a new snapshot was published
        """
        with self._lock:
            return self._publish_locked()

    @contextmanager
    def deferred(self) -> Iterator[None]:
        """Batch the stages made inside the block.

        Rebuilding a snapshot costs time proportional to the whole index,
        so a batch publishes every ``batch_size`` documents instead of
        after each one. Whatever is still pending is published on exit.
        """
        with self._lock:
            self._deferring += 1
        try:
            yield
        finally:
            with self._lock:
                self._deferring -= 1
                self._publish_locked()

    def load(
        self,
        entries_by_document: Mapping[str, Sequence[IndexEntry]],
        versions: Optional[Mapping[str, int]] = None,
    ) -> None:
        """Replace the whole index in one swap, dropping pending updates."""
        versions = versions or {}
        documents = {
            doc_id: DocumentVersion(versions.get(doc_id, 0), tuple(entries))
            for doc_id, entries in entries_by_document.items()
            if entries
        }
        snapshot = IndexSnapshot(documents)
        with self._lock:
            self._snapshot = snapshot
            self._pending.clear()
            self._pending_since = None
        logger.info(f"Loaded index: {len(documents)} documents, {len(snapshot)} entries")

    def _known_version(self, document_id: str) -> Optional[int]:
        if document_id in self._pending:
            pending = self._pending[document_id]
            return pending.version if pending is not None else None
        return self._snapshot.version_of(document_id)

    def _after_stage_locked(self) -> float:
        now = self._clock()
        if self._pending_since is None:
            self._pending_since = now

        lag = self.config.target_lag
        age = now - self._pending_since
        if lag == 0 and not self._deferring:
            self._publish_locked()
            return 0.0
        if (lag and age >= lag) or len(self._pending) >= self.config.batch_size:
            self._publish_locked()
            return 0.0
        # no lag bound inside a batch: visible when the batch ends
        return lag - age if lag else math.inf

    def _publish_locked(self) -> bool:
        if not self._pending:
            return False

        documents = dict(self._snapshot.documents)
        for document_id, version in self._pending.items():
            if version is None or not version.entries:
                documents.pop(document_id, None)
            else:
                documents[document_id] = version

        self._snapshot = IndexSnapshot(documents)
        logger.debug(
            f"Published {len(self._pending)} document updates "
            f"({len(self._snapshot)} entries)"
        )
        self._pending.clear()
        self._pending_since = None
        return True

    def publish_due(self) -> bool:
        """Publish if the oldest pending update has reached the target lag."""
        with self._lock:
            if self._pending_since is None:
                return False
            if self._clock() - self._pending_since < self.config.target_lag:
                return False
            return self._publish_locked()

    def start_refresher(self) -> None:
        """Start a background thread that enforces the target lag."""
        if self._refresher is not None or self.config.target_lag == 0:
            return
        period = min(self.config.target_lag / 2, 1.0)
        self._stop.clear()

        def loop() -> None:
            while not self._stop.wait(period):
                self.publish_due()

        self._refresher = threading.Thread(target=loop, name="docindex-refresher", daemon=True)
        self._refresher.start()

    def stop(self) -> None:
        """Stop the refresher and publish whatever is pending."""
        self._stop.set()
        if self._refresher is not None:
            self._refresher.join()
            self._refresher = None
        self.refresh()
