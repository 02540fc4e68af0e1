"""
Protocols the engine depends on.
"""

from .grant_store import GrantStoreProtocol
from .audit import AuditSinkProtocol

__all__ = [
    "GrantStoreProtocol",
    "AuditSinkProtocol",
]
