"""End-to-end tests for the ingestion pipeline."""

import pytest

from conftest import FailingEmbedder

from docindex.attributes import PathCategoryExtractor, RegexAttributeExtractor
from docindex.config import ChunkingConfig, PipelineConfig
from docindex.index import hybrid as hybrid_module
from docindex.loaders import MemoryStorage
from docindex.models import ParseStatus
from docindex.pipeline import OutcomeStatus
from docindex.service import DocIndex


def outcomes_by_path(report):
    return {o.path: o for o in report.outcomes}


class TestIngestion:
    """Batch ingestion over a storage."""

    def test_ingests_every_document(self, docindex, storage):
        report = docindex.ingest(storage)

        assert report.count(OutcomeStatus.INDEXED) == 3
        assert report.chunks == len(docindex.index.snapshot())
        for document in docindex.store.list_documents():
            assert document.status == ParseStatus.PARSED
            assert document.version == 1
            assert document.url == f"memory://{document.path}"

    def test_prefix(self, docindex, storage):
        report = docindex.ingest(storage, prefix="contracts/")
        assert sorted(o.path for o in report.outcomes) == [
            "contracts/acme.txt",
            "contracts/beam.txt",
        ]

    def test_searchable_after_ingest(self, docindex, storage):
        docindex.ingest(storage)
        results = docindex.search("lakeside lodge")
        assert results[0].chunk.document_id == "memos/offsite.md"
        assert results[0].source_url == "memory://memos/offsite.md"

    def test_chunks_carry_attributes_and_headers(self, docindex, storage):
        docindex.ingest(storage)
        chunks = docindex.store.load_chunks("contracts/acme.txt")

        assert all(c.attributes == {"category": "contracts"} for c in chunks)
        assert chunks[0].headers == {"header_1": "Master Services Agreement"}
        results = docindex.search("invoice", filters={"category": "memos"})
        assert results == []

    def test_regex_attributes(self, docindex, storage):
        extractors = [
            PathCategoryExtractor(),
            RegexAttributeExtractor({"company_name": r"^(\w+ (?:Corp|Industries))"}),
        ]
        docindex.ingest(storage, attribute_extractors=extractors)
        results = docindex.search("payment", filters={"company_name": "Beam Industries"})
        assert [r.chunk.document_id for r in results] == ["contracts/beam.txt"]

    def test_metadata_recorded(self, docindex, storage):
        docindex.ingest(storage)
        assert docindex.store.get_metadata("source_type") == "memory"
        assert docindex.store.get_metadata("last_ingest_at")


class TestFailureIsolation:
    """A bad document never affects its siblings."""

    def test_corrupt_document(self, docindex, storage):
        storage.put("contracts/broken.txt", b"\x00\x01\x02\x03 garbage")
        report = docindex.ingest(storage)
        outcomes = outcomes_by_path(report)

        assert outcomes["contracts/broken.txt"].status == OutcomeStatus.FAILED
        assert report.count(OutcomeStatus.INDEXED) == 3

        broken = docindex.store.get_document("contracts/broken.txt")
        assert broken.status == ParseStatus.FAILED
        assert broken.error
        assert docindex.store.load_chunks("contracts/broken.txt") == []
        assert "contracts/broken.txt" not in docindex.store.load_entries()
        assert docindex.store.read_content("contracts/broken.txt") is None
        assert all(
            r.chunk.document_id != "contracts/broken.txt" for r in docindex.search("garbage")
        )

    def test_unsupported_format(self, docindex, storage):
        storage.put("images/photo.png", b"\x89PNG")
        outcomes = outcomes_by_path(docindex.ingest(storage))
        assert outcomes["images/photo.png"].status == OutcomeStatus.FAILED
        assert "Unsupported format" in outcomes["images/photo.png"].error

    def test_document_turning_corrupt_is_retired(self, docindex, storage):
        docindex.ingest(storage)
        assert docindex.search("lakeside")

        storage.put("memos/offsite.md", b"\x00\x00 not text anymore")
        outcomes = outcomes_by_path(docindex.ingest(storage))

        assert outcomes["memos/offsite.md"].status == OutcomeStatus.FAILED
        assert docindex.search("lakeside") == []
        assert docindex.store.load_chunks("memos/offsite.md") == []
        assert docindex.store.get_document("memos/offsite.md").version == 2

    def test_embedding_outage_keeps_previous_state(self, docindex, storage):
        docindex.ingest(storage)
        before = docindex.store.load_chunks("memos/offsite.md")

        docindex.indexer.embedder = FailingEmbedder()
        storage.put("memos/offsite.md", b"# Team offsite\n\nMoved to the mountain cabin.")
        outcomes = outcomes_by_path(docindex.ingest(storage))

        assert outcomes["memos/offsite.md"].status == OutcomeStatus.DEGRADED
        assert docindex.store.load_chunks("memos/offsite.md") == before
        assert docindex.store.get_document("memos/offsite.md").version == 1
        assert docindex.search("lakeside")[0].chunk.document_id == "memos/offsite.md"


class TestIncrementalIngestion:
    """Change detection and versioned replacement."""

    def test_unchanged_documents_skipped(self, docindex, storage, embedder):
        docindex.ingest(storage)
        calls = embedder.calls

        report = docindex.ingest(storage)
        assert report.count(OutcomeStatus.SKIPPED) == 3
        assert embedder.calls == calls
        assert all(o.version == 1 for o in report.outcomes)

    def test_changed_document_replaced(self, docindex, storage):
        docindex.ingest(storage)
        storage.put("memos/offsite.md", b"# Team offsite\n\nMoved to the mountain cabin.")

        outcomes = outcomes_by_path(docindex.ingest(storage))
        assert outcomes["memos/offsite.md"].status == OutcomeStatus.INDEXED
        assert outcomes["memos/offsite.md"].version == 2
        assert outcomes["contracts/acme.txt"].status == OutcomeStatus.SKIPPED

        assert docindex.search("lakeside") == []
        assert docindex.search("mountain cabin")[0].chunk.document_id == "memos/offsite.md"
        texts = [c.text for c in docindex.store.load_chunks("memos/offsite.md")]
        assert all("lakeside" not in t for t in texts)

    def test_changed_settings_reingest(self, store_path, embedder, pipeline_config, storage):
        with DocIndex(store_path, embedder, pipeline_config) as docindex:
            docindex.ingest(storage)

        smaller = PipelineConfig(
            max_workers=1,
            chunking=ChunkingConfig(target_size=40, overlap=5),
            index=pipeline_config.index,
        )
        with DocIndex(store_path, embedder, smaller) as docindex:
            report = docindex.ingest(storage)
            assert report.count(OutcomeStatus.INDEXED) == 3
            assert len(docindex.store.load_chunks("contracts/acme.txt")) > 1

    def test_reopen_serves_persisted_index(self, store_path, embedder, pipeline_config, storage):
        with DocIndex(store_path, embedder, pipeline_config) as docindex:
            docindex.ingest(storage)
            expected = [r.chunk.chunk_id for r in docindex.search("invoice")]

        with DocIndex(store_path, embedder, pipeline_config) as reopened:
            assert [r.chunk.chunk_id for r in reopened.search("invoice")] == expected


class TestConcurrency:
    def test_many_documents_parallel(self, docindex):
        storage = MemoryStorage(
            {
                f"batch/doc{i:02d}.txt": f"Document {i} mentions widget{i}.".encode()
                for i in range(20)
            }
        )
        report = docindex.ingest(storage)
        assert report.count(OutcomeStatus.INDEXED) == 20
        assert docindex.search("widget7")[0].chunk.document_id == "batch/doc07.txt"

    def test_repeated_document_skipped(self, docindex, storage):
        pipeline = docindex.pipeline(storage)
        outcomes = [pipeline.ingest_document("memos/offsite.md") for _ in range(2)]
        assert [o.status for o in outcomes] == [OutcomeStatus.INDEXED, OutcomeStatus.SKIPPED]


@pytest.mark.parametrize("workers", [1, 4])
def test_report_summary(docindex, storage, workers):
    docindex.config = PipelineConfig(max_workers=workers, index=docindex.config.index)
    report = docindex.ingest(storage)
    assert "indexed=3" in report.summary()


class TestRemovedDocuments:
    """Documents deleted from storage leave the store and the index."""

    def test_vanished_document_removed(self, docindex, storage):
        docindex.ingest(storage)
        assert docindex.search("lakeside")

        storage.delete("memos/offsite.md")
        outcomes = outcomes_by_path(docindex.ingest(storage))

        assert outcomes["memos/offsite.md"].status == OutcomeStatus.REMOVED
        assert outcomes["contracts/acme.txt"].status == OutcomeStatus.SKIPPED
        assert docindex.search("lakeside") == []
        assert docindex.store.get_document("memos/offsite.md") is None
        assert docindex.store.load_chunks("memos/offsite.md") == []
        assert "memos/offsite.md" not in docindex.store.load_entries()

    def test_removal_limited_to_prefix(self, docindex, storage):
        docindex.ingest(storage)
        storage.delete("memos/offsite.md")

        report = docindex.ingest(storage, prefix="contracts/")
        assert report.count(OutcomeStatus.REMOVED) == 0
        assert docindex.search("lakeside")[0].chunk.document_id == "memos/offsite.md"

    def test_removed_failed_document(self, docindex, storage):
        storage.put("contracts/broken.txt", b"\x00\x01\x02\x03 garbage")
        docindex.ingest(storage)

        storage.delete("contracts/broken.txt")
        outcomes = outcomes_by_path(docindex.ingest(storage))
        assert outcomes["contracts/broken.txt"].status == OutcomeStatus.REMOVED
        assert docindex.store.get_document("contracts/broken.txt") is None

    def test_removed_survives_reopen(self, store_path, embedder, pipeline_config, storage):
        with DocIndex(store_path, embedder, pipeline_config) as docindex:
            docindex.ingest(storage)
            storage.delete("memos/offsite.md")
            docindex.ingest(storage)

        with DocIndex(store_path, embedder, pipeline_config) as reopened:
            assert reopened.search("lakeside") == []
            assert len(reopened.store.list_documents()) == 2


class TestParseFailures:
    def test_corrupt_pdf(self, docindex, storage):
        storage.put("reports/q1.pdf", b"%PDF-1.4 garbage")
        report = docindex.ingest(storage)
        outcome = outcomes_by_path(report)["reports/q1.pdf"]

        assert outcome.status == OutcomeStatus.FAILED
        assert "pdfplumber" in outcome.error
        assert report.count(OutcomeStatus.INDEXED) == 3
        assert docindex.store.get_document("reports/q1.pdf").status == ParseStatus.FAILED
        assert docindex.store.load_chunks("reports/q1.pdf") == []
        assert docindex.store.read_content("reports/q1.pdf") is None

    def test_unexpected_error_isolated(self, docindex, storage):
        class Exploding:
            def extract(self, document, content):
                if document.path.startswith("memos/"):
                    raise KeyError("missing field")
                return {}

        report = docindex.ingest(storage, attribute_extractors=[Exploding()])
        outcomes = outcomes_by_path(report)

        assert outcomes["memos/offsite.md"].status == OutcomeStatus.FAILED
        assert "KeyError" in outcomes["memos/offsite.md"].error
        assert report.count(OutcomeStatus.INDEXED) == 2


class TestDegradedFirstIngest:
    def test_recorded_as_unparsed(self, docindex, storage, embedder):
        docindex.indexer.embedder = FailingEmbedder()
        report = docindex.ingest(storage)

        assert report.count(OutcomeStatus.DEGRADED) == 3
        assert docindex.store.status_counts() == {"unparsed": 3}
        assert docindex.store.load_chunks() == []

        docindex.indexer.embedder = embedder
        report = docindex.ingest(storage)
        assert report.count(OutcomeStatus.INDEXED) == 3
        assert docindex.store.get_document("memos/offsite.md").version == 1
        assert docindex.store.status_counts() == {"parsed": 3}


def test_batch_publishes_once(docindex, storage, monkeypatch):
    built = []
    original = hybrid_module.IndexSnapshot

    def counting(*args, **kwargs):
        built.append(args)
        return original(*args, **kwargs)

    monkeypatch.setattr(hybrid_module, "IndexSnapshot", counting)
    docindex.ingest(storage)

    assert len(built) == 1
    assert len(docindex.index.snapshot()) == sum(
        s["num_chunks"] for s in docindex.store.chunk_stats()
    )
