"""Services layer initialization."""

from chunk_retrieval.services.cache_service import (
    CacheBackend,
    CacheService,
    MemoryCacheBackend,
    RedisCacheBackend,
    ResultCache,
)
from chunk_retrieval.services.error_tracker import ErrorTracker
from chunk_retrieval.services.metrics_calculator import MetricsCalculator
from chunk_retrieval.services.parameter_validator import ParameterValidator
from chunk_retrieval.services.quality_filters import QualityFilterPipeline
from chunk_retrieval.services.query_builder import QueryBuilder
from chunk_retrieval.services.response_processor import ResponseProcessor
from chunk_retrieval.services.retrieval_service import RetrievalService
from chunk_retrieval.services.search_client import SearchClient

__all__ = [
    "CacheBackend",
    "CacheService",
    "MemoryCacheBackend",
    "RedisCacheBackend",
    "ResultCache",
    "ErrorTracker",
    "MetricsCalculator",
    "ParameterValidator",
    "QualityFilterPipeline",
    "QueryBuilder",
    "ResponseProcessor",
    "RetrievalService",
    "SearchClient",
]
