"""Tests for recursive chunking with exact overlap."""

import pytest

from docindex.chunkers import RecursiveChunker, split_offsets
from docindex.config import ChunkingConfig
from docindex.errors import ChunkingError, ConfigError
from docindex.models import ParseMode
from docindex.parsers import build_content

PROSE = " ".join(
    f"Sentence number {i} talks about invoices, deliveries and payment terms."
    for i in range(120)
)


def content_for(text: str, document_id: str = "doc.txt"):
    return build_content(document_id, ParseMode.LAYOUT, [text])


class TestSplitOffsets:
    """Span computation over raw text."""

    def test_hard_cut_scenario(self):
        """3000 chars, no separators, target 1000, overlap 100 -> 4 chunks."""
        text = "abcdefghij" * 300
        spans = split_offsets(text, 1000, 100, ("\n\n", "\n", " ", ""))
        assert spans == [(0, 1000), (900, 1900), (1800, 2800), (2700, 3000)]

    def test_short_text_single_span(self):
        assert split_offsets("hello world", 100, 10, (" ", "")) == [(0, 11)]

    def test_blank_text_has_no_spans(self):
        assert split_offsets("", 100, 10, (" ", "")) == []
        assert split_offsets("  \n\n  ", 100, 10, (" ", "")) == []

    def test_prefers_paragraph_break(self):
        text = "a" * 40 + "\n\n" + "b" * 40 + " " + "c" * 30
        spans = split_offsets(text, 90, 0, ("\n\n", "\n", " ", ""))
        assert spans[0] == (0, 42)

    def test_invalid_geometry(self):
        with pytest.raises(ChunkingError):
            split_offsets("text", 10, 10, (" ", ""))
        with pytest.raises(ChunkingError):
            split_offsets("text", 0, 0, (" ", ""))

    def test_oversized_token_without_hard_cut(self):
        """An unsplittable token larger than the target stays whole."""
        text = "short " + "x" * 50 + " tail"
        spans = split_offsets(text, 20, 5, ("\n\n", "\n", " "))

        pieces = [text[s:e] for s, e in spans]
        assert any("x" * 50 in p for p in pieces)
        for piece in pieces:
            if "x" * 50 not in piece:
                assert len(piece) <= 20
        assert spans[-1][1] == len(text)


class TestRecursiveChunker:
    """Chunk objects produced from extracted content."""

    def test_deterministic(self):
        chunker = RecursiveChunker(ChunkingConfig(target_size=300, overlap=40))
        content = content_for(PROSE)
        first = chunker.chunk(content)
        second = chunker.chunk(content)
        assert [(c.start_char, c.end_char, c.text) for c in first] == [
            (c.start_char, c.end_char, c.text) for c in second
        ]

    def test_exact_overlap(self):
        overlap = 40
        chunker = RecursiveChunker(ChunkingConfig(target_size=300, overlap=overlap))
        chunks = chunker.chunk(content_for(PROSE))

        assert len(chunks) > 3
        assert chunks[0].overlap == 0
        for prev, cur in zip(chunks, chunks[1:]):
            assert cur.overlap == overlap
            assert cur.start_char == prev.end_char - overlap
            assert prev.text[-overlap:] == cur.text[:overlap]

    def test_chunks_are_verbatim_slices_within_bounds(self):
        content = content_for(PROSE)
        chunks = RecursiveChunker(ChunkingConfig(target_size=300, overlap=40)).chunk(content)

        for i, chunk in enumerate(chunks):
            assert chunk.chunk_index == i
            assert chunk.text == content.text[chunk.start_char : chunk.end_char]
            assert 0 <= chunk.start_char < chunk.end_char <= len(content.text)
            assert len(chunk.text) <= 300
        assert chunks[-1].end_char == len(content.text)
        starts = [c.start_char for c in chunks]
        assert starts == sorted(starts)

    def test_reassembles_source(self):
        content = content_for(PROSE)
        chunks = RecursiveChunker(ChunkingConfig(target_size=250, overlap=30)).chunk(content)
        rebuilt = chunks[0].text + "".join(c.text[c.overlap :] for c in chunks[1:])
        assert rebuilt == content.text

    def test_empty_content_yields_no_chunks(self):
        assert RecursiveChunker().chunk(content_for("   ")) == []

    def test_headers_and_attributes(self):
        text = (
            "# Agreement\n\n" + "Intro text here. " * 10 + "\n\n## Payment\n\n" + "Pay now. " * 30
        )
        chunker = RecursiveChunker(ChunkingConfig(target_size=120, overlap=10))
        chunks = chunker.chunk(content_for(text), {"category": "contracts"})

        assert chunks[0].headers == {"header_1": "Agreement"}
        assert chunks[-1].headers == {"header_1": "Agreement", "header_2": "Payment"}
        assert all(c.attributes == {"category": "contracts"} for c in chunks)

    def test_context_text(self):
        chunker = RecursiveChunker(ChunkingConfig(target_size=200, overlap=10))
        chunk = chunker.chunk(content_for("# Title\n\nBody text.", "docs/a.md"))[0]
        assert chunk.context_text() == "docs/a.md:\nHeader 1: Title\n# Title\n\nBody text."


class TestChunkingConfig:
    def test_overlap_must_be_smaller_than_target(self):
        with pytest.raises(ConfigError):
            ChunkingConfig(target_size=100, overlap=100)

    def test_negative_overlap(self):
        with pytest.raises(ConfigError):
            ChunkingConfig(target_size=100, overlap=-1)

    def test_separators_required(self):
        with pytest.raises(ConfigError):
            ChunkingConfig(separators=())
