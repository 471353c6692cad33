"""Parsing backend for plain text and markdown formats."""

from pathlib import Path

from docindex.models import ParseMode
from docindex.utils.binary import is_binary_content

TEXT_EXTENSIONS = {
    ".txt", ".text", ".md", ".markdown", ".rst", ".csv", ".tsv",
    ".json", ".jsonl", ".yaml", ".yml", ".xml", ".html", ".htm", ".log",
}


class PlainTextBackend:
    """Decodes UTF-8 text; markdown headers pass through as structure.

    Text has no pages and no scan layer, so the mode is ignored.
    """

    name = "text"

    def can_handle(self, path: str) -> bool:
        return Path(path).suffix.lower() in TEXT_EXTENSIONS

    def parse(self, data: bytes, mode: ParseMode, page_split: bool = True) -> list[str]:
        if is_binary_content(data):
            raise ValueError("content is binary, not text")
        text = data.decode("utf-8-sig")
        return [text.replace("\r\n", "\n")]
