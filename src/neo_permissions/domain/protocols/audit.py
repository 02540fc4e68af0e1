"""
Audit sink protocol.

The engine emits one audit record per decision; sinks decide where it goes.
"""
from typing import Protocol, runtime_checkable

from ..value_objects.audit_record import DecisionAuditRecord


@runtime_checkable
class AuditSinkProtocol(Protocol):
    """Receiver of decision audit facts."""
    
    async def record(self, record: DecisionAuditRecord) -> None:
        """Accept one audit record. Must not alter the decision."""
        ...
