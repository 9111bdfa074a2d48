"""Domain models initialization."""

from chunk_retrieval.domain.models import (
    ALLOWED_LICENSES,
    ALLOWED_NAMESPACES,
    DEFAULT_K,
    DEFAULT_MIN_SCORE,
    DEFAULT_NAMESPACE,
    Chunk,
    ChunkMetadata,
    DateRange,
    DiversityMetrics,
    FilterSet,
    FiltersApplied,
    QualityWarning,
    ResultMetadata,
    RetrievalRequest,
    RetrievalResult,
    ScoreDistribution,
    ScoreRange,
)
from chunk_retrieval.domain.query import (
    AllOf,
    AnyOf,
    AttemptRecord,
    FieldBoost,
    FilterNode,
    Not,
    RawResponse,
    RemoteQuery,
    Term,
)

__all__ = [
    # Constants
    "ALLOWED_LICENSES",
    "ALLOWED_NAMESPACES",
    "DEFAULT_K",
    "DEFAULT_MIN_SCORE",
    "DEFAULT_NAMESPACE",
    # Models
    "Chunk",
    "ChunkMetadata",
    "DateRange",
    "DiversityMetrics",
    "FilterSet",
    "FiltersApplied",
    "QualityWarning",
    "ResultMetadata",
    "RetrievalRequest",
    "RetrievalResult",
    "ScoreDistribution",
    "ScoreRange",
    # Query
    "AllOf",
    "AnyOf",
    "AttemptRecord",
    "FieldBoost",
    "FilterNode",
    "Not",
    "RawResponse",
    "RemoteQuery",
    "Term",
]
