"""Parser/extractor: selects a backend and produces ExtractedContent."""

import logging
import re
import threading
from typing import Any, Iterable, Optional

from docindex.config import ParseConfig
from docindex.errors import ParseError, ParseTimeoutError
from docindex.models import Document, ExtractedContent, Heading, PageSpan, ParseMode
from docindex.protocols import ParsingBackend

logger = logging.getLogger(__name__)

HEADING_PATTERN = re.compile(r"^(#{1,6})[ \t]+(.+?)[ \t#]*$", re.MULTILINE)
HEADING_MARKER = re.compile(r"^#{1,6}[ \t]+", re.MULTILINE)

PAGE_SEPARATOR = "\n\n"


def build_content(document_id: str, mode: ParseMode, pages: list[str]) -> ExtractedContent:
    """Assemble per-page structured text into one ExtractedContent.

    Args:
        document_id: Owning document
        mode: Mode the pages were parsed with
        pages: Structured text per page

    Returns:
        Content with page spans, headings, and a marker-free raw text
    """
    parts: list[str] = []
    spans: list[PageSpan] = []
    offset = 0

    for number, page_text in enumerate(pages, 1):
        page_text = page_text.strip()
        if page_text and parts:
            parts.append(PAGE_SEPARATOR)
            offset += len(PAGE_SEPARATOR)
        spans.append(PageSpan(page=number, start=offset, end=offset + len(page_text)))
        parts.append(page_text)
        offset += len(page_text)

    text = "".join(parts)
    headings = [
        Heading(level=len(m.group(1)), title=m.group(2).strip(), offset=m.start())
        for m in HEADING_PATTERN.finditer(text)
    ]

    return ExtractedContent(
        document_id=document_id,
        mode=mode,
        text=text,
        raw_text=HEADING_MARKER.sub("", text),
        headings=headings,
        pages=spans,
    )


class Extractor:
    """Turns raw document bytes into structured text.

    Backends are tried in order; the first whose ``can_handle`` accepts
    the document path wins. Backend errors become per-document
    ParseErrors. Timeouts are retried ``config.retries`` times.
    """

    def __init__(
        self,
        backends: Optional[Iterable[ParsingBackend]] = None,
        config: Optional[ParseConfig] = None,
    ):
        self.config = config or ParseConfig()
        if backends is None:
            from docindex.parsers import default_backends

            backends = default_backends(self.config)
        self.backends = list(backends)

    def backend_for(self, path: str) -> Optional[ParsingBackend]:
        for backend in self.backends:
            if backend.can_handle(path):
                return backend
        return None

    def parse(
        self,
        document: Document,
        data: bytes,
        mode: Optional[ParseMode] = None,
    ) -> ExtractedContent:
        """Parse one document.

        Args:
            document: The document being parsed
            data: Its raw bytes
            mode: Override for the configured parse mode

        Returns:
            The extracted content

        Raises:
            ParseError: Unsupported or corrupt input
            ParseTimeoutError: Every attempt timed out
        """
        mode = mode or self.config.mode
        backend = self.backend_for(document.path)
        if backend is None:
            raise ParseError(
                f"Unsupported format: {document.path}", document_id=document.path
            )

        attempts = 1 + self.config.retries
        for attempt in range(1, attempts + 1):
            pages = self._run_with_timeout(backend, document, data, mode)
            if pages is not None:
                return build_content(document.path, mode, pages)
            logger.warning(
                f"Parse of {document.path} timed out after {self.config.timeout}s "
                f"(attempt {attempt}/{attempts})"
            )

        raise ParseTimeoutError(
            f"Parse of {document.path} timed out {attempts} times",
            document_id=document.path,
        )

    def _run_with_timeout(
        self,
        backend: ParsingBackend,
        document: Document,
        data: bytes,
        mode: ParseMode,
    ) -> Optional[list[str]]:
        """Run one backend attempt; None on timeout.

        The attempt runs on a daemon thread. Backends that can stop
        themselves (OCR kills Tesseract) raise ParseTimeoutError, which
        counts as a timeout. Any other attempt still running at the
        deadline is abandoned: its result is discarded and its thread
        never holds up interpreter exit.
        """
        outcome: dict[str, Any] = {}

        def attempt() -> None:
            try:
                outcome["pages"] = list(backend.parse(data, mode, self.config.page_split))
            except Exception as e:
                outcome["error"] = e

        worker = threading.Thread(target=attempt, name="docindex-parse", daemon=True)
        worker.start()
        worker.join(self.config.timeout)
        if worker.is_alive():
            return None

        error = outcome.get("error")
        if isinstance(error, ParseTimeoutError):
            return None
        if isinstance(error, ParseError):
            error.document_id = error.document_id or document.path
            raise error
        if error is not None:
            raise ParseError(
                f"Cannot parse {document.path} with {backend.name}: {error}",
                document_id=document.path,
            ) from error
        return outcome["pages"]
