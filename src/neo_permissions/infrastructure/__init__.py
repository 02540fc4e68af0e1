"""
Permission engine infrastructure: grant stores and audit sinks.
"""

from .repositories import AsyncpgGrantStore, InMemoryGrantStore
from .audit import LoggingAuditSink

__all__ = [
    "AsyncpgGrantStore",
    "InMemoryGrantStore",
    "LoggingAuditSink",
]
