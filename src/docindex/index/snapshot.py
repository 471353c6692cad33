"""Immutable index snapshots: BM25 lexical index plus a dense matrix."""

import re
from dataclasses import dataclass
from typing import Mapping, Optional

import numpy as np
from rank_bm25 import BM25Okapi

from docindex.errors import IndexCorruptionError
from docindex.models import IndexEntry

_TOKEN_PATTERN = re.compile(r"\w+", re.UNICODE)


def tokenize(text: str) -> list[str]:
    """
    Lexical tokenization shared by indexing and querying.

    Lowercased word tokens; underscores split words.
    """
    return [t for t in _TOKEN_PATTERN.findall(text.lower().replace("_", " ")) if t]


@dataclass(frozen=True)
class DocumentVersion:
    """All index entries of one document at one version."""

    version: int
    entries: tuple[IndexEntry, ...]


class IndexSnapshot:
    """
    A read-only view of the whole index.

    Built once from per-document versions and never mutated afterwards,
    so queries can use it without locking.
    """

    def __init__(self, documents: Optional[Mapping[str, DocumentVersion]] = None):
        self.documents: dict[str, DocumentVersion] = dict(documents or {})

        entries: list[IndexEntry] = []
        for document_id in sorted(self.documents):
            entries.extend(self.documents[document_id].entries)
        self.entries: tuple[IndexEntry, ...] = tuple(entries)

        self.token_sets = [frozenset(e.tokens) for e in self.entries]
        self._bm25 = self._build_bm25()
        self._matrix = self._build_matrix()

    def _build_bm25(self) -> Optional[BM25Okapi]:
        corpus = [list(e.tokens) for e in self.entries]
        if not any(corpus):
            return None
        return BM25Okapi(corpus)

    def _build_matrix(self) -> Optional[np.ndarray]:
        if not self.entries:
            return None

        dims = {int(np.asarray(e.embedding).shape[0]) for e in self.entries}
        if len(dims) != 1 or 0 in dims:
            raise IndexCorruptionError(f"Inconsistent embedding dimensions: {sorted(dims)}")

        matrix = np.vstack([np.asarray(e.embedding, dtype=np.float32) for e in self.entries])
        norms = np.linalg.norm(matrix, axis=1, keepdims=True)
        norms[norms == 0] = 1.0
        return matrix / norms

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def dimension(self) -> Optional[int]:
        return None if self._matrix is None else int(self._matrix.shape[1])

    def version_of(self, document_id: str) -> Optional[int]:
        doc = self.documents.get(document_id)
        return doc.version if doc else None

    def lexical_scores(self, query_tokens: list[str]) -> np.ndarray:
        """BM25 score of every entry for the query tokens."""
        if self._bm25 is None or not query_tokens:
            return np.zeros(len(self.entries))
        return np.asarray(self._bm25.get_scores(query_tokens), dtype=np.float64)

    def semantic_scores(self, query_embedding: np.ndarray) -> np.ndarray:
        """Cosine similarity of every entry to the query embedding."""
        if self._matrix is None:
            return np.zeros(len(self.entries))

        query = np.asarray(query_embedding, dtype=np.float32).reshape(-1)
        if query.shape[0] != self._matrix.shape[1]:
            raise ValueError(
                f"Query embedding has dimension {query.shape[0]}, "
                f"index has {self._matrix.shape[1]}"
            )
        norm = np.linalg.norm(query)
        if norm == 0:
            return np.zeros(len(self.entries))
        return self._matrix @ (query / norm)
