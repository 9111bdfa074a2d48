"""Test configuration and fixtures."""

from typing import Any, Optional, Union
from unittest.mock import AsyncMock

import httpx
import pytest

from chunk_retrieval.core.config import Settings
from chunk_retrieval.services.cache_service import (
    CacheService,
    MemoryCacheBackend,
    ResultCache,
)
from chunk_retrieval.services.retrieval_service import RetrievalService
from chunk_retrieval.services.search_client import SearchClient

SENTENCES = [
    "Annual plans can be refunded within thirty days of purchase when no premium features were used during that period.",
    "Monthly subscribers may cancel at any time and keep access until the current billing cycle ends for their account.",
    "Enterprise customers negotiate refund terms directly with their account manager as part of the signed agreement.",
    "Refund requests are reviewed by the billing team and usually processed within five business days after approval.",
    "Partial refunds for unused months are available only when a plan is downgraded by the support staff on request.",
    "Gift cards and promotional credits cannot be exchanged for cash and expire twelve months after they were issued.",
]


class FakeSearchService:
    """Callable handler for httpx.MockTransport replaying canned responses."""

    def __init__(self, responses: list[tuple[int, Union[dict, str]]]) -> None:
        self.responses = responses
        self.requests: list[httpx.Request] = []

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self.responses[min(len(self.requests), len(self.responses)) - 1]
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)


def make_doc(doc_id: Any, score: float, **data: Any) -> dict[str, Any]:
    """Remote similarity document with realistic content."""
    index = int(doc_id) if str(doc_id).isdigit() else 0
    metadata = data.pop("metadata", {})
    doc_data = {
        "post_title": f"Billing help article {doc_id}",
        "post_content": SENTENCES[index % len(SENTENCES)],
        "post_type": "post",
        "post_date": "2024-03-15 10:00:00",
    }
    doc_data.update(data)
    return {"id": str(doc_id), "score": score, "data": doc_data, "metadata": metadata}


def similarity_body(docs: list[dict[str, Any]], total: Optional[int] = None) -> dict[str, Any]:
    return {"data": {"similarity": {"total": len(docs) if total is None else total, "docs": docs}}}


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        mvdb_endpoint="https://search.example.com/graphql",
        mvdb_access_token="test-token",
        mvdb_timeout_seconds=5,
        mvdb_retry_attempts=2,
        mvdb_cache_ttl=3600,
    )


@pytest.fixture
def fake_sleep() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def make_client(settings, fake_sleep):
    """Build a SearchClient wired to a FakeSearchService."""

    def _make(service: FakeSearchService, client_settings: Optional[Settings] = None) -> SearchClient:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(service))
        return SearchClient(client_settings or settings, http_client=http_client, sleep=fake_sleep)

    return _make


@pytest.fixture
def cache_service() -> CacheService:
    return CacheService(memory=MemoryCacheBackend(), durable=MemoryCacheBackend(), ttl=3600)


@pytest.fixture
def make_service(settings, make_client, cache_service):
    """Build a RetrievalService around a FakeSearchService."""

    def _make(service: FakeSearchService) -> RetrievalService:
        return RetrievalService(
            settings=settings,
            search_client=make_client(service),
            result_cache=ResultCache(cache_service, settings.config_hash()),
        )

    return _make
