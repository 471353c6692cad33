"""Parsing backends and the extractor."""

from typing import Optional

from docindex.config import ParseConfig
from docindex.parsers.extractor import Extractor, build_content
from docindex.parsers.pdf_backend import PdfPlumberBackend
from docindex.parsers.text_backend import PlainTextBackend
from docindex.protocols import ParsingBackend


def default_backends(config: Optional[ParseConfig] = None) -> list[ParsingBackend]:
    """Return the built-in backends, PDF first."""
    config = config or ParseConfig()
    return [
        PdfPlumberBackend(ocr_resolution=config.ocr_resolution, timeout=config.timeout),
        PlainTextBackend(),
    ]


__all__ = [
    "Extractor",
    "build_content",
    "default_backends",
    "PdfPlumberBackend",
    "PlainTextBackend",
]
