"""Classification attributes attached to every chunk of a document.

Attributes become filterable fields at query time (e.g. restrict a search
to ``category == "contracts"``).
"""

import re
from pathlib import PurePosixPath
from typing import Mapping

from docindex.config import validate_identifier
from docindex.models import Document, ExtractedContent


class PathCategoryExtractor:
    """Sets ``category`` to the first directory of the document path.

    Documents at the storage root get no category.
    """

    def __init__(self, field: str = "category"):
        self.field = validate_identifier(field)

    def extract(self, document: Document, content: ExtractedContent) -> dict[str, str]:
        parts = PurePosixPath(document.path).parts
        if len(parts) < 2:
            return {}
        return {self.field: parts[0]}


class RegexAttributeExtractor:
    """Extracts named fields from the raw text with regular expressions.

    Each pattern's first capture group (or whole match when it has no
    groups) becomes the field value. Fields with no match are omitted.
    """

    def __init__(self, fields: Mapping[str, str], flags: int = re.IGNORECASE):
        self.patterns = {
            validate_identifier(name): re.compile(pattern, flags)
            for name, pattern in fields.items()
        }

    def extract(self, document: Document, content: ExtractedContent) -> dict[str, str]:
        values = {}
        for name, pattern in self.patterns.items():
            match = pattern.search(content.raw_text)
            if match is None:
                continue
            value = match.group(1) if pattern.groups else match.group(0)
            values[name] = " ".join(value.split())
        return values
