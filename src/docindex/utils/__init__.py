"""Utility functions for docindex."""

from docindex.utils.binary import is_binary_content
from docindex.utils.locks import KeyedLock

__all__ = ["is_binary_content", "KeyedLock"]
