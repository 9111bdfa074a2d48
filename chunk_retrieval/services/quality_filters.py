"""Quality filter pipeline applied to processed chunks."""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, time
from typing import Callable, Optional

from loguru import logger

from chunk_retrieval.domain import Chunk, RetrievalRequest
from chunk_retrieval.services.response_processor import trim_words

MIN_TEXT_LENGTH = 50
MIN_WORD_COUNT = 10
MAX_TEXT_LENGTH = 2000
MAX_WORD_COUNT = 400
TRUNCATED_WORD_COUNT = 350
MAX_REPETITION_RATIO = 0.3

LOW_QUALITY_INDICATORS = (
    "lorem ipsum",
    "placeholder",
    "coming soon",
    "under construction",
    "test content",
)

# A stage returns the (possibly rewritten) chunk to accept it, or None to reject.
FilterStage = Callable[[Chunk, RetrievalRequest], Optional[Chunk]]


def parse_date(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-like date, returning None when it cannot be read."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed.replace(tzinfo=None)


def min_score_filter(chunk: Chunk, request: RetrievalRequest) -> Optional[Chunk]:
    return chunk if chunk.score >= request.min_score else None


def content_quality_filter(chunk: Chunk, request: RetrievalRequest) -> Optional[Chunk]:
    text = chunk.text
    if len(text) < MIN_TEXT_LENGTH:
        return None

    lowered = text.lower()
    if any(indicator in lowered for indicator in LOW_QUALITY_INDICATORS):
        return None

    words = text.split()
    if words:
        most_common = Counter(words).most_common(1)[0][1]
        if most_common / len(words) > MAX_REPETITION_RATIO:
            return None
    return chunk


def license_filter(chunk: Chunk, request: RetrievalRequest) -> Optional[Chunk]:
    allowed = request.filters.license
    if not allowed:
        return chunk
    chunk_license = chunk.metadata.license or "unknown"
    if chunk_license == "unknown" and "commercial" in allowed:
        return chunk
    return chunk if chunk_license in allowed else None


def date_range_filter(chunk: Chunk, request: RetrievalRequest) -> Optional[Chunk]:
    date_range = request.filters.date_range
    if date_range is None:
        return chunk

    chunk_date = parse_date(chunk.metadata.date)
    if chunk_date is None:
        return chunk

    start = parse_date(date_range.start)
    if start is not None and chunk_date < start:
        return None

    end = parse_date(date_range.end)
    if end is not None and chunk_date > datetime.combine(end.date(), time(23, 59, 59)):
        return None
    return chunk


def language_filter(chunk: Chunk, request: RetrievalRequest) -> Optional[Chunk]:
    language = request.filters.language
    if not language:
        return chunk
    return chunk if (chunk.metadata.language or "en") == language else None


def length_filter(chunk: Chunk, request: RetrievalRequest) -> Optional[Chunk]:
    text = chunk.text
    word_count = len(text.split())
    if len(text) < MIN_TEXT_LENGTH or word_count < MIN_WORD_COUNT:
        return None
    if len(text) > MAX_TEXT_LENGTH or word_count > MAX_WORD_COUNT:
        return chunk.model_copy(update={"text": trim_words(text, TRUNCATED_WORD_COUNT)})
    return chunk


DEFAULT_STAGES: tuple[tuple[str, FilterStage], ...] = (
    ("min_score_filter", min_score_filter),
    ("content_quality_filter", content_quality_filter),
    ("license_filter", license_filter),
    ("date_range_filter", date_range_filter),
    ("language_filter", language_filter),
    ("length_filter", length_filter),
)


@dataclass
class FilterOutcome:
    """Chunks that survived the pipeline plus per-stage bookkeeping."""

    chunks: list[Chunk]
    stages_passed: list[str] = field(default_factory=list)
    rejected: dict[str, int] = field(default_factory=dict)


class QualityFilterPipeline:
    """Applies the filter stages in order and sorts survivors by score."""

    def __init__(self, stages: tuple[tuple[str, FilterStage], ...] = DEFAULT_STAGES) -> None:
        self.stages = stages

    def apply(self, chunks: list[Chunk], request: RetrievalRequest) -> FilterOutcome:
        passed: dict[str, bool] = {}
        rejected = {name: 0 for name, _ in self.stages}
        survivors = []

        for chunk in chunks:
            current: Optional[Chunk] = chunk
            for name, stage in self.stages:
                current = stage(current, request)
                if current is None:
                    rejected[name] += 1
                    break
                passed[name] = True
            if current is not None:
                survivors.append(current)

        survivors.sort(key=lambda c: c.score, reverse=True)

        nonzero = {name: count for name, count in rejected.items() if count}
        logger.debug(
            f"Quality filters kept {len(survivors)}/{len(chunks)} chunks; rejected={nonzero}"
        )
        return FilterOutcome(
            chunks=survivors,
            stages_passed=[name for name, _ in self.stages if passed.get(name)],
            rejected=rejected,
        )
