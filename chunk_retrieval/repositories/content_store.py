"""Content store lookups used to enrich chunk metadata."""

from abc import ABC, abstractmethod
from typing import Optional

from loguru import logger


class ContentStore(ABC):
    """Resolves content identifiers to canonical URLs, authors and categories."""

    @abstractmethod
    def get_permalink(self, post_id: int) -> Optional[str]:
        ...

    @abstractmethod
    def get_author_name(self, author_id: int) -> Optional[str]:
        ...

    @abstractmethod
    def get_categories(self, post_id: int) -> list[str]:
        ...


class InMemoryContentStore(ContentStore):
    """Dictionary-backed content store."""

    def __init__(
        self,
        permalinks: Optional[dict[int, str]] = None,
        authors: Optional[dict[int, str]] = None,
        categories: Optional[dict[int, list[str]]] = None,
    ) -> None:
        self.permalinks = dict(permalinks or {})
        self.authors = dict(authors or {})
        self.categories = {k: list(v) for k, v in (categories or {}).items()}
        logger.debug(
            f"Initialized InMemoryContentStore with {len(self.permalinks)} permalinks"
        )

    def get_permalink(self, post_id: int) -> Optional[str]:
        return self.permalinks.get(post_id)

    def get_author_name(self, author_id: int) -> Optional[str]:
        return self.authors.get(author_id)

    def get_categories(self, post_id: int) -> list[str]:
        return list(self.categories.get(post_id, []))
