"""Tests for response processing."""

import pytest

from chunk_retrieval.domain import RawResponse, RetrievalRequest
from chunk_retrieval.repositories import InMemoryContentStore
from chunk_retrieval.services.response_processor import (
    ResponseProcessor,
    strip_html,
    trim_words,
    truncate_chars,
)
from tests.conftest import make_doc, similarity_body


@pytest.fixture
def request_params():
    return RetrievalRequest(
        section_id="section-abc",
        query="What is the refund policy for annual plans?",
    )


@pytest.fixture
def processor():
    store = InMemoryContentStore(
        permalinks={42: "https://example.com/refunds"},
        authors={7: "Dana Billing"},
        categories={42: ["Billing", "Policies"]},
    )
    return ResponseProcessor(store)


class TestTextHelpers:
    def test_strip_html_removes_script_and_style(self):
        html = "<p>Refunds <b>allowed</b></p><script>alert(1)</script><style>p{}</style>"
        assert strip_html(html) == "Refunds allowed"

    def test_strip_html_collapses_whitespace(self):
        assert strip_html("  a \n\n b\t c ") == "a b c"

    def test_truncate_chars(self):
        assert truncate_chars("short", 10) == "short"
        truncated = truncate_chars("x" * 600, 500)
        assert len(truncated) == 500
        assert truncated.endswith("...")

    def test_trim_words(self):
        assert trim_words("one two three", 5) == "one two three"
        assert trim_words("one two three four", 2) == "one two..."


class TestFormatChunk:
    """Test per-document conversion."""

    def test_text_is_title_excerpt_and_body(self, processor):
        chunk = processor.format_chunk(
            make_doc(
                1,
                0.9,
                post_title="<h1>Refunds</h1>",
                post_excerpt="Short summary",
                post_content="<p>Body text</p>",
            )
        )
        assert chunk.text == "Refunds Short summary Body text"

    def test_body_truncated_to_500_chars(self, processor):
        chunk = processor.format_chunk(make_doc(1, 0.9, post_title="", post_content="word " * 300))
        assert len(chunk.text) == 500
        assert chunk.text.endswith("...")

    def test_chunk_id_is_sanitized(self, processor):
        chunk = processor.format_chunk(make_doc("Doc 42/A", 0.9))
        assert chunk.id == "chunk-doc42a"

    @pytest.mark.parametrize(
        "doc",
        [
            {"score": 0.9, "data": {"post_title": "x"}},
            {"id": "1", "data": {"post_title": "x"}},
            {"id": "1", "score": 0.9},
            {"id": "1", "score": 0.9, "data": "not a mapping"},
            {"id": "1", "score": 0.9, "data": {"post_type": "post"}},
            "not a doc",
        ],
    )
    def test_unusable_docs_skipped(self, processor, doc):
        assert processor.format_chunk(doc) is None

    def test_metadata_from_content_store(self, processor):
        chunk = processor.format_chunk(
            make_doc(
                1,
                0.9,
                post_id=42,
                post_author=7,
                metadata={"source_url": "https://fallback.example.com", "license": "CC-BY"},
            )
        )
        meta = chunk.metadata
        assert meta.source_url == "https://example.com/refunds"
        assert meta.author == "Dana Billing"
        assert meta.categories == ["Billing", "Policies"]
        assert meta.post_id == 42
        assert meta.license == "CC-BY"

    def test_metadata_falls_back_to_document(self, processor):
        chunk = processor.format_chunk(
            make_doc(
                1,
                0.9,
                post_id=99,
                metadata={
                    "source_url": "https://fallback.example.com",
                    "author": "Guest Writer",
                    "categories": ["FAQ"],
                    "tags": ["refund", ""],
                    "language": "FR",
                },
            )
        )
        meta = chunk.metadata
        assert meta.source_url == "https://fallback.example.com"
        assert meta.author == "Guest Writer"
        assert meta.categories == ["FAQ"]
        assert meta.tags == ["refund"]
        assert meta.language == "fr"

    def test_non_finite_ids_ignored(self, processor):
        meta = processor.format_chunk(
            make_doc(1, 0.9, post_id=float("inf"), post_author=float("inf"))
        ).metadata
        assert meta.post_id is None
        assert meta.author is None

    def test_metadata_defaults(self, processor):
        meta = processor.format_chunk(make_doc(1, 0.9)).metadata
        assert meta.license == "unknown"
        assert meta.language == "en"
        assert meta.type == "article"
        assert meta.date == "2024-03-15 10:00:00"
        assert meta.word_count == 19

    def test_excerpt_prefers_post_excerpt(self, processor):
        meta = processor.format_chunk(make_doc(1, 0.9, post_excerpt="e" * 300)).metadata
        assert len(meta.excerpt) == 200

    def test_excerpt_from_first_words_of_body(self, processor):
        meta = processor.format_chunk(
            make_doc(1, 0.9, post_content=" ".join(f"w{i}" for i in range(50)))
        ).metadata
        assert meta.excerpt == " ".join(f"w{i}" for i in range(30)) + "..."

    @pytest.mark.parametrize(
        "post_type,expected",
        [
            ("post", "article"),
            ("attachment", "media"),
            ("nav_menu_item", "menu_item"),
            ("Recipe", "recipe"),
            (None, "unknown"),
        ],
    )
    def test_content_type(self, post_type, expected):
        assert ResponseProcessor.determine_content_type({"post_type": post_type}) == expected


class TestProcess:
    def test_processes_all_docs_in_order(self, processor, request_params):
        response = RawResponse(
            status_code=200,
            payload=similarity_body([make_doc(1, 0.9), make_doc(2, 0.8)]),
        )
        chunks = processor.process(response, request_params)
        assert [c.id for c in chunks] == ["chunk-1", "chunk-2"]

    def test_bad_doc_does_not_fail_the_batch(self, processor, request_params):
        bad = make_doc(2, "not a score")
        response = RawResponse(
            status_code=200,
            payload=similarity_body([make_doc(1, 0.9), bad, make_doc(3, 0.7)]),
        )
        chunks = processor.process(response, request_params)
        assert [c.id for c in chunks] == ["chunk-1", "chunk-3"]

    @pytest.mark.parametrize(
        "payload",
        [{}, {"data": None}, {"data": {"similarity": {"docs": "nope"}}}, similarity_body([])],
    )
    def test_empty_responses(self, processor, request_params, payload):
        assert processor.process(RawResponse(status_code=200, payload=payload), request_params) == []
