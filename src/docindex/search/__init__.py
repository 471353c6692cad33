"""Hybrid search over the index."""

from docindex.search.engine import SearchEngine
from docindex.search.filters import compile_filter
from docindex.search.request import QueryRequest

__all__ = ["SearchEngine", "QueryRequest", "compile_filter"]
