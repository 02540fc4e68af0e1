"""
Permission engine value objects.
"""

from .trail import TrailEntry, TrailReason
from .permission_request import PermissionRequest
from .audit_record import DecisionAuditRecord

__all__ = [
    "TrailEntry",
    "TrailReason",
    "PermissionRequest",
    "DecisionAuditRecord",
]
