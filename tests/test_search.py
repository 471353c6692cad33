"""Tests for hybrid search, filters and request validation."""

import json

import pytest

from conftest import FailingEmbedder, make_entry

from docindex.config import SearchConfig
from docindex.errors import QueryError
from docindex.index import HybridIndex
from docindex.search import QueryRequest, SearchEngine, compile_filter


@pytest.fixture
def engine(embedder):
    acme = {"category": "contracts", "company": "Acme Corp"}
    beam = {"category": "contracts", "company": "Beam Industries"}
    index = HybridIndex()
    index.stage(
        "contracts/acme.txt",
        1,
        [
            make_entry(embedder, "contracts/acme.txt", 0, "Acme pays the invoice in thirty days", **acme),
            make_entry(embedder, "contracts/acme.txt", 1, "Termination requires written notice", **acme),
        ],
    )
    index.stage(
        "contracts/beam.txt",
        1,
        [make_entry(embedder, "contracts/beam.txt", 0, "Beam payment is due on receipt of the invoice", **beam)],
    )
    index.stage(
        "memos/offsite.md",
        1,
        [make_entry(embedder, "memos/offsite.md", 0, "The offsite is at the lakeside lodge", category="memos")],
    )
    return SearchEngine(index, embedder, SearchConfig())


class TestSearchEngine:
    """Ranking and result shape."""

    def test_finds_verbatim_phrase(self, engine):
        results = engine.search("written notice")
        assert results[0].chunk.chunk_id == "contracts/acme.txt#1"
        assert "written notice" in results[0].chunk.text

    def test_ranks_and_scores(self, engine):
        results = engine.search("invoice")
        assert [r.rank for r in results] == list(range(1, len(results) + 1))
        assert all(a.score >= b.score for a, b in zip(results, results[1:]))
        assert {r.chunk.document_id for r in results} >= {"contracts/acme.txt", "contracts/beam.txt"}

    def test_limit_is_exact(self, engine):
        assert len(engine.search("invoice", limit=1)) == 1

    def test_no_match_returns_empty(self, engine):
        assert engine.search("xylophone") == []

    def test_empty_index_returns_empty(self, embedder):
        assert SearchEngine(HybridIndex(), embedder).search("anything") == []

    def test_source_url_attached(self, engine):
        result = engine.search("lakeside")[0]
        assert result.source_url == "memory://memos/offsite.md"

    def test_ties_broken_by_document_then_chunk(self, embedder):
        index = HybridIndex()
        for doc in ("b.txt", "a.txt", "c.txt"):
            index.stage(doc, 1, [make_entry(embedder, doc, 0, "identical text")])
        results = SearchEngine(index, embedder).search("identical")
        assert [r.chunk.document_id for r in results] == ["a.txt", "b.txt", "c.txt"]
        assert results[0].score == results[1].score == results[2].score

    def test_lexical_only_when_embedding_fails(self, engine):
        engine.embedder = FailingEmbedder()
        results = engine.search("written notice")
        assert results[0].chunk.chunk_id == "contracts/acme.txt#1"

    def test_semantic_only(self, engine):
        engine.config = SearchConfig(lexical_weight=0.0)
        results = engine.search("lakeside lodge offsite")
        assert results[0].chunk.document_id == "memos/offsite.md"

    def test_rrf_score(self, engine):
        k = engine.config.rrf_k
        result = engine.search("written notice")[0]
        assert result.score == pytest.approx(2.0 / (k + 1))


class TestFilters:
    """Attribute filters."""

    def test_equality(self, engine):
        results = engine.search("invoice", filters={"company": "Beam Industries"})
        assert [r.chunk.document_id for r in results] == ["contracts/beam.txt"]

    def test_any_of(self, engine):
        results = engine.search("the", filters={"category": ["memos", "other"]})
        assert {r.chunk.document_id for r in results} == {"memos/offsite.md"}

    def test_operators(self, engine):
        results = engine.search(
            "invoice",
            filters={
                "@and": [
                    {"@eq": {"category": "contracts"}},
                    {"@not": {"@contains": {"company": "acme"}}},
                ]
            },
        )
        assert [r.chunk.document_id for r in results] == ["contracts/beam.txt"]

    def test_or(self, engine):
        predicate = compile_filter({"@or": [{"category": "memos"}, {"company": "Acme Corp"}]})
        entries = engine.index.snapshot().entries
        assert [e.chunk_id for e in entries if predicate(e.chunk)] == [
            "contracts/acme.txt#0",
            "contracts/acme.txt#1",
            "memos/offsite.md#0",
        ]

    def test_document_id_field(self, engine):
        results = engine.search("invoice", filters={"document_id": "contracts/acme.txt"})
        assert {r.chunk.document_id for r in results} == {"contracts/acme.txt"}

    def test_filter_matching_nothing(self, engine):
        assert engine.search("invoice", filters={"category": "missing"}) == []

    @pytest.mark.parametrize(
        "filters",
        [
            {"bad-field": "x"},
            {"@xor": [{"a": "b"}]},
            {"@and": []},
            {"@and": [{"a": "b"}], "other": "c"},
            {"category": {"nested": "x"}},
            {"category": []},
            ["category"],
        ],
    )
    def test_malformed_filters(self, filters):
        with pytest.raises(QueryError):
            compile_filter(filters)

    def test_no_filter_matches_everything(self, engine):
        predicate = compile_filter(None)
        assert all(predicate(e.chunk) for e in engine.index.snapshot().entries)


class TestQueryRequest:
    """Request parsing and validation."""

    @pytest.mark.parametrize(
        "payload",
        [
            {"query": ""},
            {"query": "   "},
            {"query": 42},
            {"limit": 5},
            {"query": "x", "limit": 0},
            {"query": "x", "limit": 1001},
            {"query": "x", "limit": "5"},
            {"query": "x", "limit": True},
            {"query": "x", "unknown": 1},
            {"query": "x", "filters": "category=contracts"},
            {"query": "x", "filters": {}, "filter": {}},
            {"query": "x", "columns": "text"},
            {"query": "x", "columns": ["not a column"]},
        ],
    )
    def test_invalid_requests(self, payload):
        with pytest.raises(QueryError):
            QueryRequest.from_dict(payload)

    def test_invalid_json(self):
        with pytest.raises(QueryError):
            QueryRequest.from_dict("{not json")

    def test_search_rejects_bad_limit(self, engine):
        with pytest.raises(QueryError):
            engine.search("invoice", limit=-1)

    def test_defaults(self):
        request = QueryRequest.from_dict({"query": "invoice"}, SearchConfig(default_limit=7))
        assert request.limit == 7
        assert request.filters is None
        assert request.columns is None

    def test_filter_alias(self):
        request = QueryRequest.from_dict({"query": "x", "filter": {"category": "memos"}})
        assert request.filters == {"category": "memos"}


class TestPreview:
    """Preview over a JSON request."""

    def test_json_request(self, engine):
        payload = engine.preview(
            json.dumps({"query": "invoice", "filter": {"category": "contracts"}, "limit": 2})
        )
        assert len(payload["results"]) == 2
        first = payload["results"][0]
        assert first["rank"] == 1
        assert first["category"] == "contracts"
        assert first["sourceUrl"].startswith("memory://contracts/")

    def test_columns_projection(self, engine):
        payload = engine.preview(
            {"query": "lakeside", "columns": ["documentId", "score", "category"]}
        )
        assert list(payload["results"][0]) == ["documentId", "score", "category"]
        assert payload["results"][0]["documentId"] == "memos/offsite.md"

    def test_does_not_mutate_index(self, engine):
        snapshot = engine.index.snapshot()
        engine.preview({"query": "invoice"})
        assert engine.index.snapshot() is snapshot
        assert engine.index.pending_count == 0
