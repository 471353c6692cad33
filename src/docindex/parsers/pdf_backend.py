"""
PDF parsing backend built on pdfplumber.

LAYOUT mode recovers structure from word positions and font sizes:
lines whose font stands out from the body become ``#``/``##`` headings,
vertically adjacent lines merge into paragraphs, and detected tables are
rendered as markdown tables in reading order.

OCR mode rasterizes each page and runs Tesseract over the image. It
recovers text from scans but gives no structural guarantees. Tesseract
runs as a subprocess bounded by the remaining parse timeout, so an OCR
parse stops itself once the timeout passes. LAYOUT parsing runs in
process and cannot be interrupted.
"""

import io
import re
import statistics
import time
from pathlib import Path
from typing import Optional

import pdfplumber
import pytesseract

from docindex.errors import ParseTimeoutError
from docindex.models import ParseMode

# Font size ratios (line size / body size) for heading levels
H1_RATIO = 1.5
H2_RATIO = 1.2

# Vertical gap, in multiples of the line's font size, that starts a paragraph
PARAGRAPH_GAP = 0.8


def _group_lines(words: list[dict], y_tolerance: float = 3.0) -> list[list[dict]]:
    """Group words into lines by their top coordinate."""
    lines: list[list[dict]] = []
    current: list[dict] = []
    current_top: Optional[float] = None

    for word in sorted(words, key=lambda w: (round(w["top"]), w["x0"])):
        if current_top is None or abs(word["top"] - current_top) <= y_tolerance:
            if current_top is None:
                current_top = word["top"]
            current.append(word)
        else:
            lines.append(current)
            current = [word]
            current_top = word["top"]

    if current:
        lines.append(current)
    return lines


def _line_block(line_words: list[dict]) -> dict:
    line_words = sorted(line_words, key=lambda w: w["x0"])
    sizes = [w.get("size", 10.0) for w in line_words]
    return {
        "kind": "line",
        "text": " ".join(w["text"] for w in line_words).strip(),
        "top": min(w["top"] for w in line_words),
        "bottom": max(w["bottom"] for w in line_words),
        "size": sum(sizes) / len(sizes),
    }


def _inside(word: dict, bbox: tuple[float, float, float, float]) -> bool:
    x0, top, x1, bottom = bbox
    cx = (word["x0"] + word["x1"]) / 2
    cy = (word["top"] + word["bottom"]) / 2
    return x0 <= cx <= x1 and top <= cy <= bottom


def render_table(rows: list[list[Optional[str]]]) -> str:
    """Render extracted table rows as a markdown table."""
    cleaned = [
        [re.sub(r"\s+", " ", cell or "").strip().replace("|", "\\|") for cell in row]
        for row in rows
        if row and any(cell for cell in row)
    ]
    if not cleaned:
        return ""

    width = max(len(row) for row in cleaned)
    cleaned = [row + [""] * (width - len(row)) for row in cleaned]

    lines = ["| " + " | ".join(cleaned[0]) + " |"]
    lines.append("|" + "---|" * width)
    for row in cleaned[1:]:
        lines.append("| " + " | ".join(row) + " |")
    return "\n".join(lines)


class PdfPlumberBackend:
    """Parsing backend for PDF documents."""

    name = "pdfplumber"

    def __init__(
        self,
        ocr_resolution: int = 300,
        ocr_language: str = "eng",
        timeout: Optional[float] = None,
    ):
        self.ocr_resolution = ocr_resolution
        self.ocr_language = ocr_language
        self.timeout = timeout

    def can_handle(self, path: str) -> bool:
        return Path(path).suffix.lower() == ".pdf"

    def parse(self, data: bytes, mode: ParseMode, page_split: bool = True) -> list[str]:
        """Extract structured text from PDF bytes, one string per page.

        Raises whatever pdfplumber raises on corrupt input, and
        ParseTimeoutError when OCR runs past the timeout.
        """
        deadline = time.monotonic() + self.timeout if self.timeout else None
        pages: list[str] = []
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            for page in pdf.pages:
                if mode == ParseMode.OCR:
                    pages.append(self._ocr_page(page, deadline))
                else:
                    pages.append(self._layout_page(page))

        if not page_split:
            return ["\n\n".join(p for p in pages if p)]
        return pages

    def _ocr_page(self, page, deadline: Optional[float] = None) -> str:
        remaining = 0.0
        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ParseTimeoutError(f"OCR timed out before page {page.page_number}")

        image = page.to_image(resolution=self.ocr_resolution).original
        try:
            # timeout=0 means no limit; otherwise Tesseract is killed when it expires
            text = pytesseract.image_to_string(
                image, lang=self.ocr_language, timeout=remaining
            )
        except RuntimeError as e:
            if "timeout" not in str(e).lower():
                raise
            raise ParseTimeoutError(f"OCR timed out on page {page.page_number}") from e
        return re.sub(r"\n{3,}", "\n\n", text).strip()

    def _layout_page(self, page) -> str:
        tables = page.find_tables()
        table_boxes = [t.bbox for t in tables]

        words = page.extract_words(
            keep_blank_chars=False,
            x_tolerance=3,
            y_tolerance=3,
            extra_attrs=["size"],
        )
        words = [w for w in words if not any(_inside(w, box) for box in table_boxes)]

        blocks = [_line_block(line) for line in _group_lines(words)]
        blocks = [b for b in blocks if b["text"]]

        for table in tables:
            rendered = render_table(table.extract())
            if rendered:
                blocks.append({"kind": "table", "text": rendered, "top": table.bbox[1]})

        if not blocks:
            return ""

        body_sizes = [b["size"] for b in blocks if b["kind"] == "line"]
        body_size = statistics.median(body_sizes) if body_sizes else 10.0

        return self._render_blocks(sorted(blocks, key=lambda b: b["top"]), body_size)

    def _render_blocks(self, blocks: list[dict], body_size: float) -> str:
        """Merge line blocks into paragraphs and emit markdown."""
        parts: list[str] = []
        paragraph: list[str] = []
        last_bottom: Optional[float] = None

        def flush() -> None:
            if paragraph:
                parts.append(" ".join(paragraph))
                paragraph.clear()

        for block in blocks:
            if block["kind"] == "table":
                flush()
                parts.append(block["text"])
                last_bottom = None
                continue

            ratio = block["size"] / body_size if body_size else 1.0
            if ratio >= H2_RATIO:
                flush()
                marker = "#" if ratio >= H1_RATIO else "##"
                parts.append(f"{marker} {block['text']}")
                last_bottom = None
                continue

            gap = block["top"] - last_bottom if last_bottom is not None else 0.0
            if last_bottom is not None and gap > block["size"] * PARAGRAPH_GAP:
                flush()
            paragraph.append(block["text"])
            last_bottom = block["bottom"]

        flush()
        return "\n\n".join(parts)
