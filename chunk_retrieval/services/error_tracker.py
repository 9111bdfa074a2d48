"""Structured error log for retrieval failures."""

from collections import Counter, deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from uuid import uuid4

from loguru import logger

from chunk_retrieval.core.exceptions import RetrievalError

SEVERITIES = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")
CATEGORIES = (
    "AUTHENTICATION",
    "NETWORK",
    "VALIDATION",
    "API_RESPONSE",
    "CACHE",
    "CONFIGURATION",
    "RATE_LIMIT",
    "TIMEOUT",
    "UNKNOWN",
)
TIMEFRAMES = {
    "hour": timedelta(hours=1),
    "day": timedelta(days=1),
    "week": timedelta(weeks=1),
    "month": timedelta(days=30),
}
SENSITIVE_KEYS = ("password", "token", "key", "secret", "authorization")


def sanitize_context(context: Any) -> Any:
    """Redact secrets from a nested context mapping."""
    if isinstance(context, dict):
        clean = {}
        for key, value in context.items():
            if isinstance(value, str) and str(key).lower() in SENSITIVE_KEYS:
                clean[key] = "[REDACTED]"
            else:
                clean[key] = sanitize_context(value)
        return clean
    if isinstance(context, (list, tuple)):
        return [sanitize_context(v) for v in context]
    return context


@dataclass
class ErrorRecord:
    id: str
    message: str
    severity: str
    category: str
    error_type: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    attempts: int = 0
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


class ErrorTracker:
    """Keeps the most recent retrieval errors for diagnostics."""

    def __init__(self, max_entries: int = 1000) -> None:
        self.max_entries = max_entries
        self._records: deque[ErrorRecord] = deque(maxlen=max_entries)

    def record(
        self, error: Exception, context: Optional[dict[str, Any]] = None
    ) -> ErrorRecord:
        """Store an error and log it at a level matching its severity."""
        if isinstance(error, RetrievalError):
            severity, category = error.severity, error.category
            attempts = error.attempt_count
        else:
            severity, category, attempts = "ERROR", "UNKNOWN", 0

        if category == "NETWORK" and "timed out" in str(error).lower():
            category = "TIMEOUT"

        entry = ErrorRecord(
            id=f"mvdb_{uuid4().hex[:12]}",
            message=str(error),
            severity=severity,
            category=category,
            error_type=type(error).__name__,
            attempts=attempts,
            context=sanitize_context(context or {}),
        )
        self._records.appendleft(entry)

        level = {"CRITICAL": "CRITICAL", "ERROR": "ERROR"}.get(severity, "WARNING")
        logger.log(level, f"[{entry.id}] {category}: {entry.message}")
        return entry

    def get_logs(
        self,
        severity: Optional[str] = None,
        category: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: int = 100,
    ) -> list[ErrorRecord]:
        logs = [
            r
            for r in self._records
            if (severity is None or r.severity == severity)
            and (category is None or r.category == category)
            and (since is None or r.timestamp >= since)
        ]
        return logs[:limit]

    def get_statistics(self, timeframe: str = "day") -> dict[str, Any]:
        window = TIMEFRAMES.get(timeframe, TIMEFRAMES["day"])
        since = datetime.now(timezone.utc) - window
        recent = self.get_logs(since=since, limit=self.max_entries)
        hours = window.total_seconds() / 3600

        return {
            "timeframe": timeframe,
            "total_errors": len(recent),
            "by_severity": {s: sum(r.severity == s for r in recent) for s in SEVERITIES},
            "by_category": {c: sum(r.category == c for r in recent) for c in CATEGORIES},
            "error_rate": round(len(recent) / hours, 2),
            "most_common_errors": dict(Counter(r.message for r in recent).most_common(5)),
        }

    def clear(self, severity: Optional[str] = None, category: Optional[str] = None) -> int:
        """Remove matching records (all when no filter is given)."""
        before = len(self._records)
        keep = [
            r
            for r in self._records
            if not (
                (severity is None or r.severity == severity)
                and (category is None or r.category == category)
            )
        ]
        self._records = deque(keep, maxlen=self.max_entries)
        return before - len(self._records)

    def cleanup(self, max_age: timedelta = timedelta(days=7)) -> int:
        """Drop records older than ``max_age``."""
        cutoff = datetime.now(timezone.utc) - max_age
        before = len(self._records)
        self._records = deque(
            (r for r in self._records if r.timestamp > cutoff), maxlen=self.max_entries
        )
        removed = before - len(self._records)
        if removed:
            logger.info(f"Cleaned up {removed} old error log entries")
        return removed
