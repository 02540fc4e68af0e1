"""
Grant store implementations.
"""

from .asyncpg_grant_store import AsyncpgGrantStore
from .memory_grant_store import InMemoryGrantStore

__all__ = [
    "AsyncpgGrantStore",
    "InMemoryGrantStore",
]
