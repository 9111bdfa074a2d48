"""HTTP client for the remote vector-similarity service."""

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional

import httpx
from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
)

from chunk_retrieval.core.config import Settings
from chunk_retrieval.core.exceptions import (
    AuthError,
    ConfigurationError,
    MalformedResponseError,
    RateLimitError,
    RetrievalError,
    TransportError,
)
from chunk_retrieval.domain import AttemptRecord, RawResponse, RemoteQuery

MAX_RATE_LIMIT_WAIT = 10
MAX_TRANSPORT_WAIT = 5


def backoff_wait(retry_state: RetryCallState) -> float:
    """Exponential backoff for throttling, linear for other transient errors."""
    attempt = retry_state.attempt_number
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    if isinstance(exc, RateLimitError):
        return float(min(2 ** (attempt - 1), MAX_RATE_LIMIT_WAIT))
    return float(min(attempt, MAX_TRANSPORT_WAIT))


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return "Unknown API error"
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return str(body["error"].get("message", "Unknown API error"))
    return "Unknown API error"


class SearchClient:
    """Executes similarity queries with retry and error classification.

    Retries apply only to ``RateLimitError`` and ``TransportError``. Auth
    failures and malformed responses surface on the first attempt. The attempt
    log is local to each ``execute`` call.
    """

    def __init__(
        self,
        settings: Settings,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize search client."""
        if not settings.mvdb_endpoint or not settings.mvdb_access_token:
            raise ConfigurationError("Vector search endpoint or access token not configured")

        self.endpoint = settings.mvdb_endpoint
        self.timeout = settings.mvdb_timeout_seconds
        self.retry_attempts = max(0, settings.mvdb_retry_attempts)
        self.sleep = sleep
        self.headers = {
            "Authorization": f"Bearer {settings.mvdb_access_token}",
            "Content-Type": "application/json",
            "User-Agent": f"chunk-retrieval/{settings.app_version}",
        }
        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(timeout=self.timeout)
        logger.info(
            f"Initialized SearchClient for {self.endpoint} "
            f"(timeout={self.timeout}s, retries={self.retry_attempts})"
        )

    async def execute(self, query: RemoteQuery) -> RawResponse:
        """Send the query, retrying transient failures."""
        attempts: list[AttemptRecord] = []
        payload = query.to_payload()

        retrying = AsyncRetrying(
            sleep=self.sleep,
            stop=stop_after_attempt(self.retry_attempts + 1),
            wait=backoff_wait,
            retry=retry_if_exception_type((RateLimitError, TransportError)),
            before_sleep=self._log_retry,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    response = await self._send(payload, attempts)
        except (RateLimitError, TransportError) as e:
            e.attempts = attempts
            if len(attempts) > 1:
                e.message = f"{e.message} (after {len(attempts)} attempts)"
                e.args = (e.message,)
            logger.error(f"Similarity request failed: {e.message}")
            raise
        except RetrievalError as e:
            e.attempts = attempts
            logger.error(f"Similarity request failed: {e.message}")
            raise

        response.attempts = attempts
        return response

    async def _send(
        self, payload: dict[str, Any], attempts: list[AttemptRecord]
    ) -> RawResponse:
        number = len(attempts) + 1
        started = time.perf_counter()

        def record(outcome: str, status: Optional[int] = None, error: Optional[str] = None) -> None:
            attempts.append(
                AttemptRecord(
                    attempt=number,
                    outcome=outcome,
                    status_code=status,
                    error=error,
                    elapsed_ms=round((time.perf_counter() - started) * 1000, 2),
                )
            )

        logger.debug(
            f"Executing similarity request attempt {number}: "
            f"{payload['variables']}"
        )
        try:
            response = await self.client.post(
                self.endpoint,
                json=payload,
                headers=self.headers,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            record("timeout", error=str(e))
            raise TransportError(f"Request timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            record("transport_error", error=str(e))
            raise TransportError(f"Request failed: {e}") from e

        status = response.status_code
        if status == 401:
            record("auth_error", status)
            raise AuthError("Vector search authentication failed. Check the access token.")
        if status == 429:
            record("rate_limited", status)
            raise RateLimitError("Vector search rate limit exceeded")
        if not 200 <= status < 300:
            message = _error_message(response)
            record("http_error", status, message)
            raise TransportError(f"Vector search API error ({status}): {message}", status)

        try:
            body = response.json()
        except ValueError as e:
            record("malformed", status, str(e))
            raise MalformedResponseError(f"Invalid JSON response: {e}") from e

        if not isinstance(body, dict):
            record("malformed", status, "body is not an object")
            raise MalformedResponseError("Response body is not a JSON object")

        if body.get("errors"):
            errors = body["errors"] if isinstance(body["errors"], list) else [body["errors"]]
            messages = [
                e.get("message", "Unknown GraphQL error") if isinstance(e, dict) else str(e)
                for e in errors
            ]
            record("malformed", status, "; ".join(messages))
            raise MalformedResponseError("GraphQL errors: " + ", ".join(messages))

        record("success", status)
        raw = RawResponse(status_code=status, payload=body)
        logger.debug(f"Similarity request succeeded: total={raw.total}, docs={len(raw.docs)}")
        return raw

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        wait = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            f"Attempt {retry_state.attempt_number} failed ({exc}); retrying in {wait}s"
        )

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()
