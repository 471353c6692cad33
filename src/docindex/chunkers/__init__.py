"""Chunking strategies."""

from docindex.chunkers.recursive_chunker import RecursiveChunker, split_offsets

__all__ = ["RecursiveChunker", "split_offsets"]
