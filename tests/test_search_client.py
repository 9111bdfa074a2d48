"""Tests for the remote query executor."""

import asyncio
import json
from unittest.mock import call

import httpx
import pytest

from chunk_retrieval.core.config import Settings
from chunk_retrieval.core.exceptions import (
    AuthError,
    ConfigurationError,
    MalformedResponseError,
    RateLimitError,
    TransportError,
)
from chunk_retrieval.domain import RemoteQuery
from chunk_retrieval.services.search_client import SearchClient
from tests.conftest import FakeSearchService, make_doc, similarity_body


@pytest.fixture
def query():
    return RemoteQuery(
        query="What is the refund policy for annual plans?",
        fields=(),
        limit=5,
        min_score=0.6,
        namespaces=("content",),
    )


class TestSuccess:
    """Test successful requests."""

    @pytest.mark.asyncio
    async def test_returns_docs(self, make_client, query):
        service = FakeSearchService([(200, similarity_body([make_doc(1, 0.9)], total=12))])
        response = await make_client(service).execute(query)

        assert response.status_code == 200
        assert response.total == 12
        assert response.docs[0]["id"] == "1"
        assert [a.outcome for a in response.attempts] == ["success"]

    @pytest.mark.asyncio
    async def test_request_shape(self, make_client, query):
        service = FakeSearchService([(200, similarity_body([]))])
        await make_client(service).execute(query)

        request = service.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://search.example.com/graphql"
        assert request.headers["Authorization"] == "Bearer test-token"
        assert request.headers["Content-Type"] == "application/json"

        body = json.loads(request.content)
        assert "similarity(" in body["query"]
        assert body["variables"]["limit"] == 5
        assert body["variables"]["minScore"] == 0.6

    @pytest.mark.asyncio
    async def test_attempts_are_local_to_each_call(self, make_client, query):
        service = FakeSearchService([(500, {}), (200, similarity_body([]))])
        client = make_client(service)

        first = await client.execute(query)
        second = await client.execute(query)

        assert len(first.attempts) == 2
        assert len(second.attempts) == 1


class TestRetry:
    """Test retry and backoff."""

    @pytest.mark.asyncio
    async def test_persistent_rate_limit_stops_after_ceiling(self, make_client, fake_sleep, query):
        service = FakeSearchService([(429, {})])

        with pytest.raises(RateLimitError) as exc_info:
            await make_client(service).execute(query)

        assert service.call_count == 3
        assert exc_info.value.attempt_count == 3
        assert "after 3 attempts" in exc_info.value.message
        # Exponential: 1s then 2s
        assert fake_sleep.await_args_list == [call(1.0), call(2.0)]

    @pytest.mark.asyncio
    async def test_server_error_then_success(self, make_client, fake_sleep, query):
        service = FakeSearchService([(500, {"error": {"message": "boom"}}), (200, similarity_body([]))])

        response = await make_client(service).execute(query)

        assert service.call_count == 2
        assert [a.outcome for a in response.attempts] == ["http_error", "success"]
        assert response.attempts[0].error == "boom"
        assert fake_sleep.await_args_list == [call(1.0)]

    @pytest.mark.asyncio
    async def test_server_error_backoff_is_linear(self, make_client, fake_sleep, query):
        service = FakeSearchService([(503, {})])

        with pytest.raises(TransportError) as exc_info:
            await make_client(service).execute(query)

        assert exc_info.value.status_code == 503
        assert exc_info.value.category == "API_RESPONSE"
        assert fake_sleep.await_args_list == [call(1.0), call(2.0)]

    @pytest.mark.asyncio
    async def test_zero_retries_means_single_attempt(self, make_client, settings, query):
        service = FakeSearchService([(429, {})])
        no_retry = settings.model_copy(update={"mvdb_retry_attempts": 0})

        with pytest.raises(RateLimitError) as exc_info:
            await make_client(service, no_retry).execute(query)

        assert service.call_count == 1
        assert "after" not in exc_info.value.message

    @pytest.mark.asyncio
    async def test_network_error_is_retried(self, settings, fake_sleep, query):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json=similarity_body([]))

        client = SearchClient(
            settings,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            sleep=fake_sleep,
        )
        response = await client.execute(query)

        assert len(calls) == 2
        assert response.attempts[0].outcome == "transport_error"

    @pytest.mark.asyncio
    async def test_timeout_is_classified(self, settings, fake_sleep, query):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client = SearchClient(
            settings,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            sleep=fake_sleep,
        )
        with pytest.raises(TransportError) as exc_info:
            await client.execute(query)

        assert "timed out" in exc_info.value.message
        assert [a.outcome for a in exc_info.value.attempts] == ["timeout"] * 3

    @pytest.mark.asyncio
    async def test_cancel_during_backoff_skips_remaining_retries(self, settings, query):
        service = FakeSearchService([(429, {})])
        backing_off = asyncio.Event()

        async def blocking_sleep(seconds: float) -> None:
            backing_off.set()
            await asyncio.Event().wait()

        client = SearchClient(
            settings,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(service)),
            sleep=blocking_sleep,
        )
        task = asyncio.create_task(client.execute(query))
        await backing_off.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert service.call_count == 1


class TestNonRetryable:
    """Test errors that surface on the first attempt."""

    @pytest.mark.asyncio
    async def test_auth_error(self, make_client, fake_sleep, query):
        service = FakeSearchService([(401, {})])

        with pytest.raises(AuthError) as exc_info:
            await make_client(service).execute(query)

        assert service.call_count == 1
        assert exc_info.value.attempt_count == 1
        fake_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_graphql_errors(self, make_client, query):
        service = FakeSearchService([(200, {"errors": [{"message": "Unknown field"}]})])

        with pytest.raises(MalformedResponseError) as exc_info:
            await make_client(service).execute(query)

        assert service.call_count == 1
        assert "Unknown field" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_invalid_json(self, make_client, query):
        service = FakeSearchService([(200, "<html>gateway</html>")])

        with pytest.raises(MalformedResponseError):
            await make_client(service).execute(query)
        assert service.call_count == 1

    @pytest.mark.asyncio
    async def test_non_object_body(self, make_client, query):
        service = FakeSearchService([(200, "[1, 2, 3]")])

        with pytest.raises(MalformedResponseError):
            await make_client(service).execute(query)


@pytest.mark.parametrize(
    "endpoint,token",
    [("", "token"), ("https://search.example.com/graphql", ""), ("", "")],
)
def test_missing_configuration(endpoint, token):
    settings = Settings(_env_file=None, mvdb_endpoint=endpoint, mvdb_access_token=token)
    with pytest.raises(ConfigurationError):
        SearchClient(settings)
