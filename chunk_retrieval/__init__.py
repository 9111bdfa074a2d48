"""Vector-similarity content retrieval with quality filtering and caching."""

__version__ = "0.1.0"
