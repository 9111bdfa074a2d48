"""Domain models for retrieval requests, chunks and results."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

DEFAULT_NAMESPACE = "content"
ALLOWED_NAMESPACES = ("content", "products", "docs", "knowledge")
ALLOWED_LICENSES = (
    "CC-BY",
    "CC-BY-SA",
    "CC-BY-NC",
    "public-domain",
    "fair-use",
    "commercial",
)
DEFAULT_K = 10
DEFAULT_MIN_SCORE = 0.5


class DateRange(BaseModel):
    """Inclusive publication date bounds in ``YYYY-MM-DD`` form."""

    start: Optional[str] = None
    end: Optional[str] = None


class FilterSet(BaseModel):
    """Optional constraints on retrieved content."""

    post_type: list[str] = Field(default_factory=list)
    date_range: Optional[DateRange] = None
    language: Optional[str] = None
    license: list[str] = Field(default_factory=list)
    author: list[int] = Field(default_factory=list)
    exclude_ids: list[int] = Field(default_factory=list)

    def is_empty(self) -> bool:
        """Return True when no sub-filter is present."""
        return not (
            self.post_type
            or self.date_range
            or self.language
            or self.license
            or self.author
            or self.exclude_ids
        )


class RetrievalRequest(BaseModel):
    """Normalized retrieval parameters."""

    section_id: str
    query: str
    namespaces: list[str] = Field(default_factory=lambda: [DEFAULT_NAMESPACE])
    k: int = DEFAULT_K
    min_score: float = DEFAULT_MIN_SCORE
    filters: FilterSet = Field(default_factory=FilterSet)


class ChunkMetadata(BaseModel):
    """Metadata attached to a retrieved chunk."""

    source_url: Optional[str] = None
    post_id: Optional[int] = None
    type: str = "unknown"
    date: Optional[str] = None
    license: str = "unknown"
    language: str = "en"
    author: Optional[str] = None
    categories: list[str] = Field(default_factory=list)
    word_count: Optional[int] = None
    excerpt: Optional[str] = None
    tags: list[str] = Field(default_factory=list)


class Chunk(BaseModel):
    """One scored unit of retrieved content."""

    id: str
    text: str
    score: float
    metadata: ChunkMetadata = Field(default_factory=ChunkMetadata)


class ScoreRange(BaseModel):
    min: float = 0.0
    max: float = 0.0


class ScoreDistribution(BaseModel):
    """Counts of chunks per score band."""

    high_quality: int = 0
    medium_quality: int = 0
    low_quality: int = 0
    score_range: ScoreRange = Field(default_factory=ScoreRange)


class DiversityMetrics(BaseModel):
    """Ratios of distinct values to total chunks."""

    content_type_diversity: float = 0.0
    source_diversity: float = 0.0
    temporal_diversity: float = 0.0


class QualityWarning(BaseModel):
    """Non-fatal advisory attached to a result."""

    type: str
    message: str
    suggestion: str


class FiltersApplied(BaseModel):
    """Which request-level filters were in effect."""

    post_type_filter: bool = False
    date_range_filter: bool = False
    language_filter: bool = False
    license_filter: bool = False
    author_filter: bool = False
    exclude_ids_filter: bool = False
    min_score_filter: bool = False
    namespace_filter: bool = False


class ResultMetadata(BaseModel):
    api_version: str = "1.0"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    section_id: str
    namespaces_used: list[str] = Field(default_factory=list)
    min_score_threshold: float
    remote_total: Optional[int] = None
    filter_stages_passed: list[str] = Field(default_factory=list)


class RetrievalResult(BaseModel):
    """Filtered, scored chunks plus quality metrics."""

    chunks: list[Chunk] = Field(default_factory=list)
    total_retrieved: int = 0
    total_available: int = 0
    recall_score: float = 0.0
    average_score: float = 0.0
    score_distribution: ScoreDistribution = Field(default_factory=ScoreDistribution)
    diversity_metrics: DiversityMetrics = Field(default_factory=DiversityMetrics)
    query_hash: str
    processing_time_ms: float = 0.0
    warnings: list[QualityWarning] = Field(default_factory=list)
    filters_applied: FiltersApplied = Field(default_factory=FiltersApplied)
    metadata: ResultMetadata

    # Set only when served from cache
    cached: bool = False
    cache_age_seconds: Optional[int] = None
    cache_ttl: Optional[int] = None

    def warning_types(self) -> list[str]:
        return [warning.type for warning in self.warnings]
