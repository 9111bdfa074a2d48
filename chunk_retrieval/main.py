"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from chunk_retrieval.api import api_router
from chunk_retrieval.api.retrieval import to_http_error
from chunk_retrieval.core import get_settings, setup_logging
from chunk_retrieval.core.dependencies import get_retrieval_service
from chunk_retrieval.core.exceptions import RetrievalError


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan events."""
    # Startup
    setup_logging()
    logger.info("Starting chunk retrieval service")

    yield

    # Shutdown - release HTTP and Redis connections if the service was built
    logger.info("Shutting down chunk retrieval service")
    if get_retrieval_service.cache_info().currsize:
        await get_retrieval_service().close()


# Create FastAPI app
app = FastAPI(
    title="Chunk Retrieval",
    description="Vector-similarity content retrieval with quality filtering and caching",
    version="0.1.0",
    lifespan=lifespan,
)

# Get settings
settings = get_settings()

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router, prefix=settings.api_v1_prefix)


@app.exception_handler(RetrievalError)
async def retrieval_error_handler(request: Request, exc: RetrievalError) -> JSONResponse:
    """Errors raised while building dependencies (e.g. missing credentials)."""
    http_error = to_http_error(exc)
    return JSONResponse(
        status_code=http_error.status_code,
        content={"detail": http_error.detail},
        headers=http_error.headers,
    )


@app.get("/")
async def root():
    """Service information."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "running",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "chunk_retrieval.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.app_debug,
        log_level=settings.log_level.lower(),
    )
