"""Recall, score and diversity metrics for retrieval results."""

import hashlib
from typing import Optional

import numpy as np
from loguru import logger

from chunk_retrieval.domain import (
    ALLOWED_NAMESPACES,
    Chunk,
    DiversityMetrics,
    FiltersApplied,
    QualityWarning,
    ResultMetadata,
    RetrievalRequest,
    RetrievalResult,
    ScoreDistribution,
    ScoreRange,
)

HIGH_SCORE = 0.8
MEDIUM_SCORE = 0.6
RECALL_THRESHOLD = 0.8
AVERAGE_SCORE_THRESHOLD = 0.7
DIVERSITY_THRESHOLD = 0.3
DIVERSITY_MIN_CHUNKS = 3
FILTERING_RATIO = 0.5
TOTAL_AVAILABLE_MULTIPLIER = 1.5


class MetricsCalculator:
    """Builds a RetrievalResult from filtered chunks."""

    def calculate(
        self,
        chunks: list[Chunk],
        request: RetrievalRequest,
        processing_time_ms: float,
        remote_total: Optional[int] = None,
        stages_passed: Optional[list[str]] = None,
    ) -> RetrievalResult:
        total = len(chunks)
        recall = self.recall_score(total, request.k)
        average = self.average_score(chunks)
        diversity = self.diversity_metrics(chunks)

        result = RetrievalResult(
            chunks=chunks,
            total_retrieved=total,
            total_available=self.estimate_total_available(total, request.k),
            recall_score=round(recall, 3),
            average_score=round(average, 3),
            score_distribution=self.score_distribution(chunks),
            diversity_metrics=diversity,
            query_hash=hashlib.sha256(request.query.encode()).hexdigest(),
            processing_time_ms=round(processing_time_ms, 2),
            warnings=self.generate_warnings(chunks, request, recall, average, diversity),
            filters_applied=self.filters_applied(request),
            metadata=ResultMetadata(
                section_id=request.section_id,
                namespaces_used=list(request.namespaces),
                min_score_threshold=request.min_score,
                remote_total=remote_total,
                filter_stages_passed=list(stages_passed or []),
            ),
        )
        logger.debug(
            f"Metrics for {request.section_id}: recall={result.recall_score}, "
            f"avg={result.average_score}, warnings={result.warning_types()}"
        )
        return result

    @staticmethod
    def recall_score(retrieved: int, k: int) -> float:
        if k <= 0:
            return 0.0
        return min(retrieved / k, 1.0)

    @staticmethod
    def average_score(chunks: list[Chunk]) -> float:
        if not chunks:
            return 0.0
        return float(np.mean([c.score for c in chunks]))

    @staticmethod
    def score_distribution(chunks: list[Chunk]) -> ScoreDistribution:
        if not chunks:
            return ScoreDistribution()

        scores = np.array([c.score for c in chunks])
        high = int(np.sum(scores >= HIGH_SCORE))
        medium = int(np.sum((scores >= MEDIUM_SCORE) & (scores < HIGH_SCORE)))
        return ScoreDistribution(
            high_quality=high,
            medium_quality=medium,
            low_quality=len(chunks) - high - medium,
            score_range=ScoreRange(
                min=round(float(scores.min()), 3),
                max=round(float(scores.max()), 3),
            ),
        )

    @staticmethod
    def diversity_metrics(chunks: list[Chunk]) -> DiversityMetrics:
        if not chunks:
            return DiversityMetrics()

        total = len(chunks)
        content_types = {c.metadata.type or "unknown" for c in chunks}
        sources = {
            c.metadata.post_id or c.metadata.source_url or "unknown" for c in chunks
        }
        months = {c.metadata.date[:7] for c in chunks if c.metadata.date}

        return DiversityMetrics(
            content_type_diversity=round(len(content_types) / total, 3),
            source_diversity=round(len(sources) / total, 3),
            temporal_diversity=round(len(months) / total, 3) if months else 0.0,
        )

    @staticmethod
    def generate_warnings(
        chunks: list[Chunk],
        request: RetrievalRequest,
        recall: float,
        average: float,
        diversity: DiversityMetrics,
    ) -> list[QualityWarning]:
        warnings = []

        if recall < RECALL_THRESHOLD:
            warnings.append(
                QualityWarning(
                    type="low_recall",
                    message=f"Recall score below threshold ({recall:.3f} < {RECALL_THRESHOLD})",
                    suggestion="Consider broadening search terms or lowering min_score",
                )
            )

        if average < AVERAGE_SCORE_THRESHOLD:
            warnings.append(
                QualityWarning(
                    type="low_average_score",
                    message=f"Average relevance score is low ({average:.3f})",
                    suggestion="Try refining your search query for better relevance",
                )
            )

        if not chunks:
            warnings.append(
                QualityWarning(
                    type="no_results",
                    message="No relevant content found",
                    suggestion="Try broader search terms or check the search service configuration",
                )
            )

        if (
            diversity.content_type_diversity < DIVERSITY_THRESHOLD
            and len(chunks) > DIVERSITY_MIN_CHUNKS
        ):
            warnings.append(
                QualityWarning(
                    type="low_diversity",
                    message="Results show limited content diversity",
                    suggestion="Consider expanding namespaces or adjusting filters",
                )
            )

        if not request.filters.is_empty() and len(chunks) < request.k * FILTERING_RATIO:
            warnings.append(
                QualityWarning(
                    type="excessive_filtering",
                    message="Many results were filtered out",
                    suggestion="Consider relaxing filter criteria",
                )
            )

        return warnings

    @staticmethod
    def filters_applied(request: RetrievalRequest) -> FiltersApplied:
        filters = request.filters
        return FiltersApplied(
            post_type_filter=bool(filters.post_type),
            date_range_filter=filters.date_range is not None,
            language_filter=bool(filters.language),
            license_filter=bool(filters.license),
            author_filter=bool(filters.author),
            exclude_ids_filter=bool(filters.exclude_ids),
            min_score_filter=request.min_score > 0.0,
            namespace_filter=len(request.namespaces) < len(ALLOWED_NAMESPACES),
        )

    @staticmethod
    def estimate_total_available(retrieved: int, k: int) -> int:
        """Heuristic estimate; the service's own total is in metadata.remote_total."""
        if retrieved < k:
            return retrieved
        return int(retrieved * TOTAL_AVAILABLE_MULTIPLIER)
