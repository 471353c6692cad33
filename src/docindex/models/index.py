"""Index-side models: entries held by the index and search results."""

from dataclasses import dataclass
from typing import Any, Optional, Sequence

import numpy as np

from docindex.models.document import Chunk

# Columns a result can be projected to, besides chunk attributes
RESULT_COLUMNS = (
    "chunkId",
    "documentId",
    "chunkIndex",
    "score",
    "rank",
    "text",
    "sourceUrl",
    "startChar",
    "endChar",
    "headers",
)


@dataclass(frozen=True)
class IndexEntry:
    """One indexed chunk: its dense embedding and lexical tokens."""

    chunk: Chunk
    embedding: np.ndarray
    tokens: tuple[str, ...]
    source_url: str = ""

    @property
    def chunk_id(self) -> str:
        return self.chunk.chunk_id

    @property
    def document_id(self) -> str:
        return self.chunk.document_id


@dataclass(frozen=True)
class SearchResult:
    """A ranked hit. Ephemeral, never persisted."""

    chunk: Chunk
    score: float
    rank: int
    source_url: str = ""

    def to_dict(self, columns: Optional[Sequence[str]] = None) -> dict[str, Any]:
        """Serialize for the query surface, optionally projected to columns."""
        full: dict[str, Any] = {
            "chunkId": self.chunk.chunk_id,
            "documentId": self.chunk.document_id,
            "chunkIndex": self.chunk.chunk_index,
            "score": self.score,
            "rank": self.rank,
            "text": self.chunk.text,
            "sourceUrl": self.source_url,
            "startChar": self.chunk.start_char,
            "endChar": self.chunk.end_char,
            "headers": dict(self.chunk.headers),
        }
        for key, value in self.chunk.attributes.items():
            full.setdefault(key, value)

        if not columns:
            return full
        return {col: full.get(col) for col in columns}
