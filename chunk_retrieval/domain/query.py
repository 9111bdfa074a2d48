"""Remote similarity query, filter expression tree and raw response."""

from dataclasses import dataclass, field
from typing import Any, Optional, Union

SIMILARITY_QUERY = """
query GetSimilarContent($query: String!, $fields: [FieldInput!]!, $limit: Int!, $offset: Int!, $filter: String, $minScore: Float, $namespaces: [String!]) {
    similarity(
        input: {
            nearest: {
                text: $query,
                fields: $fields
            },
            filter: $filter,
            namespaces: $namespaces
        },
        limit: $limit,
        offset: $offset,
        minScore: $minScore
    ) {
        total
        docs {
            id
            score
            data
            metadata
        }
    }
}
"""


@dataclass(frozen=True)
class Term:
    """Single ``field:value`` clause, optionally with a comparison operator."""

    field: str
    value: Any
    operator: str = ""

    def render(self) -> str:
        return f"{self.field}:{self.operator}{self.value}"


@dataclass(frozen=True)
class Not:
    operand: "FilterNode"

    def render(self) -> str:
        return f"NOT {self.operand.render()}"


@dataclass(frozen=True)
class AnyOf:
    """OR group, always parenthesised."""

    operands: tuple["FilterNode", ...]

    def render(self) -> str:
        return "(" + " OR ".join(op.render() for op in self.operands) + ")"


@dataclass(frozen=True)
class AllOf:
    """AND group. The top-level expression is rendered without parentheses."""

    operands: tuple["FilterNode", ...]
    grouped: bool = True

    def render(self) -> str:
        joined = " AND ".join(op.render() for op in self.operands)
        return f"({joined})" if self.grouped else joined


FilterNode = Union[Term, Not, AnyOf, AllOf]


@dataclass(frozen=True)
class FieldBoost:
    name: str
    boost: float


@dataclass(frozen=True)
class RemoteQuery:
    """Query object sent to the similarity endpoint."""

    query: str
    fields: tuple[FieldBoost, ...]
    limit: int
    min_score: float
    namespaces: tuple[str, ...]
    filter: Optional[FilterNode] = None
    offset: int = 0

    def filter_string(self) -> Optional[str]:
        return self.filter.render() if self.filter is not None else None

    def to_variables(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "fields": [{"name": f.name, "boost": f.boost} for f in self.fields],
            "limit": self.limit,
            "offset": self.offset,
            "minScore": self.min_score,
            "namespaces": list(self.namespaces),
            "filter": self.filter_string(),
        }

    def to_payload(self) -> dict[str, Any]:
        """Render the GraphQL request body."""
        return {"query": SIMILARITY_QUERY, "variables": self.to_variables()}


@dataclass
class AttemptRecord:
    """Diagnostic record of one HTTP attempt."""

    attempt: int
    outcome: str
    status_code: Optional[int] = None
    error: Optional[str] = None
    elapsed_ms: float = 0.0


@dataclass
class RawResponse:
    """Decoded similarity response plus the attempts that produced it."""

    status_code: int
    payload: dict[str, Any]
    attempts: list[AttemptRecord] = field(default_factory=list)

    @property
    def similarity(self) -> dict[str, Any]:
        data = self.payload.get("data") or {}
        similarity = data.get("similarity") if isinstance(data, dict) else None
        return similarity if isinstance(similarity, dict) else {}

    @property
    def docs(self) -> list[Any]:
        docs = self.similarity.get("docs")
        return docs if isinstance(docs, list) else []

    @property
    def total(self) -> Optional[int]:
        total = self.similarity.get("total")
        return total if isinstance(total, int) else None
