"""Attribute extractors for chunk classification fields."""

from docindex.attributes.extractors import PathCategoryExtractor, RegexAttributeExtractor

__all__ = ["PathCategoryExtractor", "RegexAttributeExtractor"]
