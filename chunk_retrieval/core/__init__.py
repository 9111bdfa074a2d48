"""Core module initialization.

Dependency providers live in ``chunk_retrieval.core.dependencies`` and are not
re-exported here, since the services themselves import from this package.
"""

from chunk_retrieval.core.config import Settings, get_settings
from chunk_retrieval.core.logging import setup_logging

__all__ = [
    "Settings",
    "get_settings",
    "setup_logging",
]
