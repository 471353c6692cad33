"""Pytest configuration and fixtures."""

import threading
import time

import numpy as np
import pytest

from docindex.config import ChunkingConfig, IndexConfig, PipelineConfig
from docindex.index import tokenize
from docindex.loaders import MemoryStorage
from docindex.models import Chunk, IndexEntry, ParseMode
from docindex.service import DocIndex


class FakeEmbedder:
    """Deterministic bag-of-words embedder.

    Each new token gets the next free dimension, so distinct tokens never
    collide until the vocabulary outgrows the dimension.
    """

    model_name = "fake-bow"

    def __init__(self, dimension: int = 512):
        self._dimension = dimension
        self._vocab: dict[str, int] = {}
        self._lock = threading.Lock()
        self.calls = 0

    @property
    def dimension(self) -> int:
        return self._dimension

    def vector(self, text: str) -> np.ndarray:
        vec = np.zeros(self._dimension, dtype=np.float32)
        for token in tokenize(text):
            with self._lock:
                slot = self._vocab.setdefault(token, len(self._vocab))
            vec[slot % self._dimension] += 1.0
        norm = np.linalg.norm(vec)
        return vec / norm if norm else vec

    def embed(self, texts: list[str]) -> np.ndarray:
        self.calls += 1
        if not texts:
            return np.zeros((0, self._dimension), dtype=np.float32)
        return np.vstack([self.vector(t) for t in texts])


class FailingEmbedder(FakeEmbedder):
    """Embedding backend that is always down."""

    def embed(self, texts: list[str]) -> np.ndarray:
        self.calls += 1
        raise ConnectionError("embedding backend unreachable")


class FlakyEmbedder(FakeEmbedder):
    """Fails the first ``failures`` calls, then recovers."""

    def __init__(self, failures: int, dimension: int = 512):
        super().__init__(dimension)
        self.failures = failures

    def embed(self, texts: list[str]) -> np.ndarray:
        if self.failures > 0:
            self.failures -= 1
            self.calls += 1
            raise TimeoutError("embedding backend timed out")
        return super().embed(texts)


class SlowBackend:
    """Parsing backend that never finishes within a short timeout."""

    name = "slow"

    def __init__(self, delay: float = 0.5):
        self.delay = delay
        self.calls = 0

    def can_handle(self, path: str) -> bool:
        return path.endswith(".slow")

    def parse(self, data: bytes, mode: ParseMode, page_split: bool = True) -> list[str]:
        self.calls += 1
        time.sleep(self.delay)
        return [data.decode("utf-8")]


def make_chunk(document_id: str, index: int, text: str, **attributes: str) -> Chunk:
    return Chunk(
        document_id=document_id,
        chunk_index=index,
        start_char=0,
        end_char=len(text),
        text=text,
        attributes=dict(attributes),
    )


def make_entry(
    embedder: FakeEmbedder,
    document_id: str,
    index: int,
    text: str,
    **attributes: str,
) -> IndexEntry:
    chunk = make_chunk(document_id, index, text, **attributes)
    return IndexEntry(
        chunk=chunk,
        embedding=embedder.vector(text),
        tokens=tuple(tokenize(text)),
        source_url=f"memory://{document_id}",
    )


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def fast_index_config():
    """Index config without retry waits."""
    return IndexConfig(max_retries=3, retry_min_wait=0.0, retry_max_wait=0.0)


@pytest.fixture
def pipeline_config(fast_index_config):
    return PipelineConfig(
        max_workers=2,
        chunking=ChunkingConfig(target_size=200, overlap=20),
        index=fast_index_config,
    )


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "test.docindex"


@pytest.fixture
def docindex(store_path, embedder, pipeline_config):
    """An open DocIndex over a fresh store."""
    index = DocIndex(store_path, embedder, pipeline_config)
    yield index
    index.close()


@pytest.fixture
def storage():
    return MemoryStorage(
        {
            "contracts/acme.txt": (
                b"# Master Services Agreement\n\n"
                b"Acme Corp agrees to pay the invoice within thirty days.\n\n"
                b"## Termination\n\n"
                b"Either party may terminate with written notice."
            ),
            "contracts/beam.txt": (
                b"Beam Industries supply contract. Deliveries ship monthly "
                b"and payment is due on receipt."
            ),
            "memos/offsite.md": (
                b"# Team offsite\n\nThe offsite is planned for the lakeside lodge in June."
            ),
        }
    )
