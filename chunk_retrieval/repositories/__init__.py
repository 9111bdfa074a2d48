"""Repositories initialization."""

from chunk_retrieval.repositories.content_store import ContentStore, InMemoryContentStore

__all__ = ["ContentStore", "InMemoryContentStore"]
