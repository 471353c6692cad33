"""Hybrid lexical + dense index and the indexer feeding it."""

from docindex.index.hybrid import HybridIndex
from docindex.index.indexer import IndexAck, Indexer
from docindex.index.snapshot import DocumentVersion, IndexSnapshot, tokenize

__all__ = [
    "HybridIndex",
    "IndexSnapshot",
    "DocumentVersion",
    "Indexer",
    "IndexAck",
    "tokenize",
]
