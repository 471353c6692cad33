"""docindex - document ingestion and hybrid lexical + semantic search."""

__version__ = "0.1.0"
