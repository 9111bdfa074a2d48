"""Builds remote similarity queries from validated requests."""

from typing import Optional

from chunk_retrieval.domain import (
    AllOf,
    AnyOf,
    FieldBoost,
    FilterNode,
    FilterSet,
    Not,
    RemoteQuery,
    RetrievalRequest,
    Term,
)

SEARCH_FIELDS = (
    FieldBoost(name="post_content", boost=1.0),
    FieldBoost(name="post_title", boost=1.2),
    FieldBoost(name="post_excerpt", boost=0.8),
)


def build_filter(filters: FilterSet) -> Optional[FilterNode]:
    """Build the AND-joined filter expression, or None when no filter is set."""
    clauses: list[FilterNode] = []

    if filters.post_type:
        clauses.append(AnyOf(tuple(Term("post_type", t) for t in filters.post_type)))

    if filters.exclude_ids:
        clauses.append(AllOf(tuple(Not(Term("ID", i)) for i in filters.exclude_ids)))

    if filters.date_range is not None:
        bounds = []
        if filters.date_range.start:
            bounds.append(Term("post_date", filters.date_range.start, ">="))
        if filters.date_range.end:
            bounds.append(Term("post_date", filters.date_range.end, "<="))
        if bounds:
            clauses.append(AllOf(tuple(bounds)))

    if filters.language:
        clauses.append(Term("language", filters.language))

    if filters.license:
        clauses.append(AnyOf(tuple(Term("license", lic) for lic in filters.license)))

    if filters.author:
        clauses.append(AnyOf(tuple(Term("post_author", a) for a in filters.author)))

    if not clauses:
        return None
    return AllOf(tuple(clauses), grouped=False)


class QueryBuilder:
    """Turns a RetrievalRequest into a RemoteQuery."""

    def build(self, request: RetrievalRequest) -> RemoteQuery:
        return RemoteQuery(
            query=request.query,
            fields=SEARCH_FIELDS,
            limit=request.k,
            offset=0,
            min_score=request.min_score,
            namespaces=tuple(request.namespaces),
            filter=build_filter(request.filters),
        )
