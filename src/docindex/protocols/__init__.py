"""Protocol definitions for extensible components."""

from docindex.protocols.chunker import AttributeExtractor, ChunkingStrategy
from docindex.protocols.embedder import EmbeddingProvider
from docindex.protocols.parser import ParsingBackend
from docindex.protocols.storage import BlobStorage

__all__ = [
    "BlobStorage",
    "ParsingBackend",
    "EmbeddingProvider",
    "ChunkingStrategy",
    "AttributeExtractor",
]
