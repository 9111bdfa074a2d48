"""Core dependency injection for FastAPI."""

from functools import lru_cache

from chunk_retrieval.core.config import get_settings
from chunk_retrieval.repositories import ContentStore, InMemoryContentStore
from chunk_retrieval.services.cache_service import (
    CacheService,
    MemoryCacheBackend,
    RedisCacheBackend,
    ResultCache,
)
from chunk_retrieval.services.response_processor import ResponseProcessor
from chunk_retrieval.services.retrieval_service import RetrievalService
from chunk_retrieval.services.search_client import SearchClient


@lru_cache
def get_content_store() -> ContentStore:
    """Get content store instance."""
    return InMemoryContentStore()


@lru_cache
def get_cache_service() -> CacheService:
    """Get the shared two-tier cache."""
    settings = get_settings()
    durable = RedisCacheBackend(redis_url=settings.redis_url) if settings.redis_url else None
    return CacheService(
        memory=MemoryCacheBackend(max_items=settings.memory_cache_max_items),
        durable=durable,
        ttl=settings.mvdb_cache_ttl,
    )


@lru_cache
def get_search_client() -> SearchClient:
    """Get search client instance."""
    return SearchClient(settings=get_settings())


@lru_cache
def get_retrieval_service() -> RetrievalService:
    """Get the shared retrieval service."""
    settings = get_settings()
    return RetrievalService(
        settings=settings,
        search_client=get_search_client(),
        result_cache=ResultCache(get_cache_service(), settings.config_hash()),
        response_processor=ResponseProcessor(get_content_store()),
    )
