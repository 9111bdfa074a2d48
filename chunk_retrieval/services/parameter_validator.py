"""Normalization and bounds checking of raw retrieval parameters."""

import math
import re
from datetime import datetime
from typing import Any, Iterable, Optional

from loguru import logger

from chunk_retrieval.core.config import Settings
from chunk_retrieval.core.exceptions import ValidationError
from chunk_retrieval.domain import (
    ALLOWED_LICENSES,
    ALLOWED_NAMESPACES,
    DEFAULT_K,
    DEFAULT_MIN_SCORE,
    DEFAULT_NAMESPACE,
    DateRange,
    FilterSet,
    RetrievalRequest,
)

SECTION_ID_PATTERN = re.compile(r"^section-[a-zA-Z0-9_-]+$")
LANGUAGE_PATTERN = re.compile(r"^[a-z]{2}$")
KEY_CHARS_PATTERN = re.compile(r"[^a-z0-9_-]")

MIN_QUERY_LENGTH = 10
MAX_QUERY_LENGTH = 500
MIN_K = 1
MAX_K = 50


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


def _sanitize_key(value: Any) -> str:
    """Lowercase and keep only characters valid in an identifier key."""
    return KEY_CHARS_PATTERN.sub("", str(value).lower())


def _positive_ids(values: Iterable[Any]) -> list[int]:
    ids = []
    for value in values:
        if isinstance(value, bool):
            continue
        try:
            number = abs(int(value))
        except (TypeError, ValueError, OverflowError):
            continue
        if number and number not in ids:
            ids.append(number)
    return ids


def is_valid_date(value: Any) -> bool:
    """Strict ``YYYY-MM-DD`` check that rejects dates like 2024-02-30."""
    if not isinstance(value, str):
        return False
    try:
        return datetime.strptime(value, "%Y-%m-%d").strftime("%Y-%m-%d") == value
    except ValueError:
        return False


class ParameterValidator:
    """Turns a raw request mapping into a normalized RetrievalRequest.

    Required fields (section id and query) raise ``ValidationError``. Every
    optional value that is out of range or malformed is silently replaced by
    its default or dropped.
    """

    def __init__(self, settings: Settings) -> None:
        self.allowed_post_types = [_sanitize_key(t) for t in settings.allowed_post_types]

    def validate(self, params: dict[str, Any]) -> RetrievalRequest:
        if not isinstance(params, dict):
            raise ValidationError("params", "Retrieval parameters must be a mapping")

        section_id = self._validate_section_id(
            params.get("sectionId", params.get("section_id"))
        )
        query = self._validate_query(params.get("query"))

        request = RetrievalRequest(
            section_id=section_id,
            query=query,
            namespaces=self._validate_namespaces(params.get("namespaces")),
            k=self._validate_k(params.get("k")),
            min_score=self._validate_min_score(params.get("min_score")),
            filters=self.validate_filters(params.get("filters")),
        )
        logger.debug(
            f"Validated request {request.section_id}: k={request.k}, "
            f"min_score={request.min_score}, namespaces={request.namespaces}"
        )
        return request

    def _validate_section_id(self, section_id: Any) -> str:
        if not isinstance(section_id, str) or not SECTION_ID_PATTERN.match(section_id):
            raise ValidationError("section_id", "Invalid section ID format")
        return section_id

    def _validate_query(self, query: Any) -> str:
        if not isinstance(query, str):
            raise ValidationError("query", "Query is required")
        query = query.strip()
        if not MIN_QUERY_LENGTH <= len(query) <= MAX_QUERY_LENGTH:
            raise ValidationError(
                "query",
                f"Query must be between {MIN_QUERY_LENGTH} and "
                f"{MAX_QUERY_LENGTH} characters",
            )
        return query

    def _validate_namespaces(self, namespaces: Any) -> list[str]:
        validated = []
        for namespace in _as_list(namespaces):
            clean = _sanitize_key(namespace)
            if clean in ALLOWED_NAMESPACES and clean not in validated:
                validated.append(clean)
        return validated or [DEFAULT_NAMESPACE]

    def _validate_k(self, k: Any) -> int:
        if k is None or isinstance(k, bool):
            return DEFAULT_K
        try:
            k = int(k)
        except (TypeError, ValueError, OverflowError):
            return DEFAULT_K
        if not MIN_K <= k <= MAX_K:
            return DEFAULT_K
        return k

    def _validate_min_score(self, min_score: Any) -> float:
        if min_score is None or isinstance(min_score, bool):
            return DEFAULT_MIN_SCORE
        try:
            min_score = float(min_score)
        except (TypeError, ValueError):
            return DEFAULT_MIN_SCORE
        if math.isnan(min_score) or not 0.0 <= min_score <= 1.0:
            return DEFAULT_MIN_SCORE
        return min_score

    def validate_filters(self, filters: Any) -> FilterSet:
        """Validate each sub-filter independently, dropping malformed ones."""
        if not isinstance(filters, dict):
            return FilterSet()

        post_types = [
            clean
            for clean in (_sanitize_key(t) for t in _as_list(filters.get("post_type")))
            if clean in self.allowed_post_types
        ]

        licenses = []
        for license_name in _as_list(filters.get("license")):
            clean = str(license_name).strip()
            if clean in ALLOWED_LICENSES and clean not in licenses:
                licenses.append(clean)

        return FilterSet(
            post_type=list(dict.fromkeys(post_types)),
            date_range=self._validate_date_range(filters.get("date_range")),
            language=self._validate_language(filters.get("language")),
            license=licenses,
            author=_positive_ids(_as_list(filters.get("author"))),
            exclude_ids=_positive_ids(_as_list(filters.get("exclude_ids"))),
        )

    def _validate_date_range(self, date_range: Any) -> Optional[DateRange]:
        if not isinstance(date_range, dict):
            return None
        start = date_range.get("start")
        end = date_range.get("end")
        start = start.strip() if is_valid_date(start) else None
        end = end.strip() if is_valid_date(end) else None
        if start is None and end is None:
            return None
        return DateRange(start=start, end=end)

    def _validate_language(self, language: Any) -> Optional[str]:
        if not isinstance(language, str):
            return None
        clean = _sanitize_key(language)
        return clean if LANGUAGE_PATTERN.match(clean) else None
