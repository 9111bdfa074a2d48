"""Converts raw similarity documents into normalized chunks."""

import re
from typing import Any, Optional

from bs4 import BeautifulSoup
from loguru import logger

from chunk_retrieval.domain import Chunk, ChunkMetadata, RawResponse, RetrievalRequest
from chunk_retrieval.repositories import ContentStore, InMemoryContentStore

MAX_BODY_CHARS = 500
MAX_EXCERPT_CHARS = 200
EXCERPT_WORDS = 30
ELLIPSIS = "..."

CONTENT_TYPE_MAP = {
    "post": "article",
    "page": "page",
    "product": "product",
    "attachment": "media",
    "revision": "revision",
    "nav_menu_item": "menu_item",
}

WHITESPACE = re.compile(r"\s+")
ID_CHARS = re.compile(r"[^a-z0-9_-]")


def strip_html(value: Any) -> str:
    """Remove markup (including script and style bodies) and collapse whitespace."""
    text = str(value)
    if "<" in text:
        soup = BeautifulSoup(text, "html.parser")
        for element in soup(["script", "style"]):
            element.decompose()
        text = soup.get_text(separator=" ")
    return WHITESPACE.sub(" ", text).strip()


def truncate_chars(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - len(ELLIPSIS)] + ELLIPSIS


def trim_words(text: str, limit: int) -> str:
    words = text.split()
    if len(words) <= limit:
        return " ".join(words)
    return " ".join(words[:limit]) + ELLIPSIS


def _positive_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        number = abs(int(value))
    except (TypeError, ValueError, OverflowError):
        return None
    return number or None


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [strip_html(v) for v in value if v not in (None, "")]


class ResponseProcessor:
    """Builds chunks from remote documents.

    Each document is processed independently. A document that fails is logged
    and skipped so one bad record never fails the whole retrieval.
    """

    def __init__(self, content_store: Optional[ContentStore] = None) -> None:
        """Initialize response processor."""
        self.content_store = content_store or InMemoryContentStore()

    def process(self, response: RawResponse, request: RetrievalRequest) -> list[Chunk]:
        docs = response.docs
        if not docs:
            logger.debug(f"No documents in similarity response for {request.section_id}")
            return []

        chunks = []
        for doc in docs:
            try:
                chunk = self.format_chunk(doc)
            except Exception as e:
                doc_id = doc.get("id") if isinstance(doc, dict) else None
                logger.warning(f"Failed to process document {doc_id}: {e}")
                continue
            if chunk is not None:
                chunks.append(chunk)

        logger.debug(f"Processed {len(chunks)}/{len(docs)} documents into chunks")
        return chunks

    def format_chunk(self, doc: Any) -> Optional[Chunk]:
        """Build one chunk, or None when the document has no usable content."""
        if not isinstance(doc, dict) or any(
            doc.get(field) is None for field in ("id", "score", "data")
        ):
            return None

        data = doc["data"]
        if not isinstance(data, dict):
            return None
        metadata = doc.get("metadata") if isinstance(doc.get("metadata"), dict) else {}

        text = self.extract_text(data)
        if not text:
            return None

        return Chunk(
            id="chunk-" + ID_CHARS.sub("", str(doc["id"]).lower()),
            text=text,
            score=float(doc["score"]),
            metadata=self.build_metadata(data, metadata),
        )

    def extract_text(self, data: dict[str, Any]) -> str:
        """Title, excerpt and truncated body, space-joined."""
        parts = []
        if data.get("post_title"):
            parts.append(strip_html(data["post_title"]))
        if data.get("post_excerpt"):
            parts.append(strip_html(data["post_excerpt"]))
        if data.get("post_content"):
            parts.append(truncate_chars(strip_html(data["post_content"]), MAX_BODY_CHARS))
        return " ".join(part for part in parts if part)

    def build_metadata(self, data: dict[str, Any], metadata: dict[str, Any]) -> ChunkMetadata:
        post_id = _positive_int(data.get("post_id"))
        body = strip_html(data["post_content"]) if data.get("post_content") else ""

        source_url = None
        categories: list[str] = []
        if post_id:
            source_url = self.content_store.get_permalink(post_id)
            categories = self.content_store.get_categories(post_id)
        if not source_url and metadata.get("source_url"):
            source_url = str(metadata["source_url"]).strip()
        if not categories:
            categories = _string_list(metadata.get("categories"))

        author = None
        author_id = _positive_int(data.get("post_author"))
        if author_id:
            author = self.content_store.get_author_name(author_id)
        if not author and metadata.get("author"):
            author = strip_html(metadata["author"])

        if data.get("post_excerpt"):
            excerpt = truncate_chars(strip_html(data["post_excerpt"]), MAX_EXCERPT_CHARS)
        elif body:
            excerpt = trim_words(body, EXCERPT_WORDS)
        else:
            excerpt = None

        return ChunkMetadata(
            source_url=source_url,
            post_id=post_id,
            type=self.determine_content_type(data),
            date=str(data["post_date"]).strip() if data.get("post_date") else None,
            license=str(metadata.get("license") or "unknown").strip(),
            language=str(metadata.get("language") or "en").strip().lower(),
            author=author,
            categories=categories,
            word_count=len(body.split()) if body else None,
            excerpt=excerpt,
            tags=_string_list(metadata.get("tags")),
        )

    @staticmethod
    def determine_content_type(data: dict[str, Any]) -> str:
        post_type = data.get("post_type")
        if not post_type:
            return "unknown"
        post_type = ID_CHARS.sub("", str(post_type).lower())
        return CONTENT_TYPE_MAP.get(post_type, post_type)
