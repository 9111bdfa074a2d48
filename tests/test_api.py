"""Tests for the HTTP API."""

import json

import pytest
from fastapi.testclient import TestClient

from chunk_retrieval.core.dependencies import get_retrieval_service
from chunk_retrieval.main import app
from tests.conftest import FakeSearchService, make_doc, similarity_body

URL = "/api/v1/retrieval"
PARAMS = {
    "sectionId": "section-abc",
    "query": "What is the refund policy for annual plans?",
    "k": 5,
    "min_score": 0.6,
}


@pytest.fixture
def api(make_service):
    """TestClient whose retrieval service talks to a given fake."""

    def _make(fake: FakeSearchService) -> TestClient:
        service = make_service(fake)
        app.dependency_overrides[get_retrieval_service] = lambda: service
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()


@pytest.fixture
def fake():
    docs = [make_doc(i + 1, s) for i, s in enumerate([0.95, 0.85, 0.7, 0.5, 0.3])]
    return FakeSearchService([(200, similarity_body(docs))])


def test_health(api, fake):
    with api(fake) as client:
        response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_retrieve(api, fake):
    with api(fake) as client:
        response = client.post(f"{URL}/retrieve", json=PARAMS)

    assert response.status_code == 200
    body = response.json()
    assert [c["score"] for c in body["chunks"]] == [0.95, 0.85, 0.7]
    assert body["recall_score"] == 0.6
    assert body["warnings"][0]["type"] == "low_recall"


def test_validation_error_is_422(api, fake):
    with api(fake) as client:
        response = client.post(f"{URL}/retrieve", json={**PARAMS, "query": "short"})

    assert response.status_code == 422
    assert response.json()["detail"]["field"] == "query"
    assert fake.call_count == 0


def test_rate_limit_is_503_with_retry_after(api):
    with api(FakeSearchService([(429, {})])) as client:
        response = client.post(f"{URL}/retrieve", json=PARAMS)

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "60"
    assert response.json()["detail"]["attempts"] == 3


@pytest.mark.parametrize("status", [401, 500])
def test_upstream_failures_are_502(api, status):
    with api(FakeSearchService([(status, {})])) as client:
        response = client.post(f"{URL}/retrieve", json=PARAMS)
    assert response.status_code == 502


def test_cache_endpoints(api, fake):
    with api(fake) as client:
        client.post(f"{URL}/retrieve", json=PARAMS)
        client.post(f"{URL}/retrieve", json=PARAMS)

        stats = client.get(f"{URL}/cache/stats").json()
        assert stats["hits"] == 1
        assert fake.call_count == 1

        assert client.post(f"{URL}/cache/flush").json() == {"flushed": True}
        maintenance = client.post(f"{URL}/cache/maintenance").json()
        assert maintenance["expired_cleaned"] == 0


def test_error_endpoints(api, fake):
    with api(fake) as client:
        client.post(f"{URL}/retrieve", json={**PARAMS, "sectionId": "bad"})

        logs = client.get(f"{URL}/errors", params={"category": "VALIDATION"}).json()
        assert len(logs) == 1
        assert logs[0]["severity"] == "WARNING"

        stats = client.get(f"{URL}/errors/stats", params={"timeframe": "hour"}).json()
        assert stats["total_errors"] == 1

        assert client.delete(f"{URL}/errors").json() == {"removed": 1}
        assert client.get(f"{URL}/errors").json() == []


def test_infinite_k_falls_back_to_default(api, fake):
    body = (
        '{"sectionId": "section-abc", '
        '"query": "What is the refund policy for annual plans?", '
        '"k": Infinity, "filters": {"author": [Infinity, 3]}}'
    )
    with api(fake) as client:
        response = client.post(
            f"{URL}/retrieve", content=body, headers={"Content-Type": "application/json"}
        )

    assert response.status_code == 200
    sent = json.loads(fake.requests[0].content)["variables"]
    assert sent["limit"] == 10
    assert sent["filter"] == "(post_author:3)"
