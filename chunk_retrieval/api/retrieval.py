"""API endpoints for content retrieval and cache administration."""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from loguru import logger

from chunk_retrieval.core.dependencies import get_retrieval_service
from chunk_retrieval.core.exceptions import (
    AuthError,
    ConfigurationError,
    MalformedResponseError,
    RateLimitError,
    RetrievalError,
    TransportError,
    ValidationError,
)
from chunk_retrieval.domain import RetrievalResult
from chunk_retrieval.services import RetrievalService

router = APIRouter(prefix="/retrieval", tags=["retrieval"])

RATE_LIMIT_RETRY_AFTER = "60"


def to_http_error(error: RetrievalError) -> HTTPException:
    """Map a retrieval failure onto an HTTP error response."""
    if isinstance(error, ValidationError):
        return HTTPException(
            status_code=422,
            detail={"field": error.field, "message": error.message},
        )
    if isinstance(error, RateLimitError):
        return HTTPException(
            status_code=503,
            detail={"message": error.message, "attempts": error.attempt_count},
            headers={"Retry-After": RATE_LIMIT_RETRY_AFTER},
        )
    if isinstance(error, (AuthError, TransportError, MalformedResponseError)):
        return HTTPException(
            status_code=502,
            detail={"message": error.message, "category": error.category},
        )
    if isinstance(error, ConfigurationError):
        return HTTPException(status_code=500, detail={"message": error.message})
    return HTTPException(status_code=500, detail={"message": str(error)})


@router.post("/retrieve", response_model=RetrievalResult)
async def retrieve(
    params: dict[str, Any] = Body(...),
    service: RetrievalService = Depends(get_retrieval_service),
) -> RetrievalResult:
    """Retrieve, filter and score content chunks for a section."""
    try:
        return await service.retrieve(params)
    except RetrievalError as e:
        logger.error(f"Retrieval failed: {e}")
        raise to_http_error(e)


@router.get("/cache/stats")
async def cache_stats(
    service: RetrievalService = Depends(get_retrieval_service),
) -> dict[str, Any]:
    """Cache hit/miss statistics and tuning recommendations."""
    return service.get_cache_stats()


@router.post("/cache/flush")
async def flush_cache(
    service: RetrievalService = Depends(get_retrieval_service),
) -> dict[str, bool]:
    """Remove every cached result."""
    return {"flushed": await service.flush_cache()}


@router.post("/cache/maintenance")
async def cache_maintenance(
    service: RetrievalService = Depends(get_retrieval_service),
) -> dict[str, Any]:
    """Sweep expired cache entries and old error records."""
    return await service.perform_cache_maintenance()


@router.get("/errors")
async def error_logs(
    severity: Optional[str] = None,
    category: Optional[str] = None,
    limit: int = 100,
    service: RetrievalService = Depends(get_retrieval_service),
) -> list[dict[str, Any]]:
    """Recent retrieval errors, newest first."""
    return service.get_error_logs(severity=severity, category=category, limit=limit)


@router.get("/errors/stats")
async def error_statistics(
    timeframe: str = "day",
    service: RetrievalService = Depends(get_retrieval_service),
) -> dict[str, Any]:
    """Error counts by severity and category for a timeframe."""
    return service.get_error_statistics(timeframe)


@router.delete("/errors")
async def clear_errors(
    severity: Optional[str] = None,
    category: Optional[str] = None,
    service: RetrievalService = Depends(get_retrieval_service),
) -> dict[str, int]:
    """Clear matching error records."""
    return {"removed": service.clear_error_logs(severity=severity, category=category)}
