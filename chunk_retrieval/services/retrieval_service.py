"""Retrieval pipeline orchestration."""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from loguru import logger

from chunk_retrieval.core.config import Settings
from chunk_retrieval.core.exceptions import RetrievalError
from chunk_retrieval.domain import RetrievalRequest, RetrievalResult
from chunk_retrieval.services.cache_service import ResultCache
from chunk_retrieval.services.error_tracker import ErrorTracker
from chunk_retrieval.services.metrics_calculator import MetricsCalculator
from chunk_retrieval.services.parameter_validator import ParameterValidator
from chunk_retrieval.services.quality_filters import QualityFilterPipeline
from chunk_retrieval.services.query_builder import QueryBuilder
from chunk_retrieval.services.response_processor import ResponseProcessor
from chunk_retrieval.services.search_client import SearchClient


class RetrievalService:
    """Validates, fetches, filters, scores and caches retrieval results.

    Concurrent calls for the same cache key are serialized so only the first
    one reaches the remote service; the rest are answered from cache.
    """

    def __init__(
        self,
        settings: Settings,
        search_client: SearchClient,
        result_cache: ResultCache,
        response_processor: Optional[ResponseProcessor] = None,
        validator: Optional[ParameterValidator] = None,
        query_builder: Optional[QueryBuilder] = None,
        filter_pipeline: Optional[QualityFilterPipeline] = None,
        metrics_calculator: Optional[MetricsCalculator] = None,
        error_tracker: Optional[ErrorTracker] = None,
    ) -> None:
        """Initialize retrieval service."""
        self.settings = settings
        self.search_client = search_client
        self.result_cache = result_cache
        self.response_processor = response_processor or ResponseProcessor()
        self.validator = validator or ParameterValidator(settings)
        self.query_builder = query_builder or QueryBuilder()
        self.filter_pipeline = filter_pipeline or QualityFilterPipeline()
        self.metrics_calculator = metrics_calculator or MetricsCalculator()
        self.error_tracker = error_tracker or ErrorTracker()
        self._inflight: dict[str, list[Any]] = {}
        logger.info("Initialized RetrievalService")

    @asynccontextmanager
    async def _single_flight(self, key: str) -> AsyncIterator[None]:
        slot = self._inflight.setdefault(key, [asyncio.Lock(), 0])
        slot[1] += 1
        try:
            async with slot[0]:
                yield
        finally:
            slot[1] -= 1
            if slot[1] == 0:
                self._inflight.pop(key, None)

    async def retrieve(self, params: dict[str, Any]) -> RetrievalResult:
        """Run the full retrieval pipeline for raw request parameters."""
        started = time.perf_counter()
        try:
            request = self.validator.validate(params)
            key = self.result_cache.key_for(request)

            async with self._single_flight(key):
                cached = await self.result_cache.get_result(key)
                if cached is not None:
                    logger.info(f"Serving {request.section_id} from cache")
                    return cached

                result = await self._retrieve_uncached(request, started)
                await self.result_cache.set_result(key, result)
                return result

        except RetrievalError as e:
            self.error_tracker.record(
                e,
                {
                    "section_id": params.get("sectionId", params.get("section_id"))
                    if isinstance(params, dict)
                    else None,
                    "error_field": getattr(e, "field", None),
                },
            )
            raise

    async def _retrieve_uncached(
        self, request: RetrievalRequest, started: float
    ) -> RetrievalResult:
        remote_query = self.query_builder.build(request)
        response = await self.search_client.execute(remote_query)

        chunks = self.response_processor.process(response, request)
        outcome = self.filter_pipeline.apply(chunks, request)

        elapsed_ms = (time.perf_counter() - started) * 1000
        result = self.metrics_calculator.calculate(
            outcome.chunks,
            request,
            elapsed_ms,
            remote_total=response.total,
            stages_passed=outcome.stages_passed,
        )
        logger.info(
            f"Retrieved {result.total_retrieved} chunks for {request.section_id} "
            f"in {result.processing_time_ms}ms ({len(response.attempts)} attempt(s))"
        )
        return result

    async def warm_cache(self, requests: list[dict[str, Any]]) -> dict[str, int]:
        """Populate the cache for requests that are not cached yet."""
        results = {"total_queries": len(requests), "warmed": 0, "skipped": 0, "errors": 0}

        for params in requests:
            try:
                result = await self.retrieve(params)
                if result.cached:
                    results["skipped"] += 1
                else:
                    results["warmed"] += 1
            except RetrievalError as e:
                logger.warning(f"Cache warming error: {e}")
                results["errors"] += 1

        return results

    def get_cache_stats(self) -> dict[str, Any]:
        stats = self.result_cache.cache.get_stats()
        stats["recommendations"] = self.result_cache.cache.get_recommendations()
        return stats

    async def flush_cache(self) -> bool:
        return await self.result_cache.cache.clear_all()

    async def perform_cache_maintenance(self) -> dict[str, Any]:
        results = await self.result_cache.cache.perform_maintenance()
        results["errors_cleaned"] = self.error_tracker.cleanup()
        return results

    def get_error_statistics(self, timeframe: str = "day") -> dict[str, Any]:
        return self.error_tracker.get_statistics(timeframe)

    def get_error_logs(self, **filters: Any) -> list[dict[str, Any]]:
        return [record.to_dict() for record in self.error_tracker.get_logs(**filters)]

    def clear_error_logs(
        self, severity: Optional[str] = None, category: Optional[str] = None
    ) -> int:
        return self.error_tracker.clear(severity=severity, category=category)

    async def close(self) -> None:
        await self.search_client.close()
        await self.result_cache.cache.close()
