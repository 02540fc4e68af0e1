"""
Audit fact emitted for every decision.

The engine hands these to an audit sink; persisting them is the sink's job.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from ..entities.verdict import Verdict


@dataclass(frozen=True)
class DecisionAuditRecord:
    """Flat, serializable summary of one verdict."""
    user_id: str
    permission_code: str
    allowed: bool
    evaluated_at: datetime
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    matched_grant_id: Optional[str] = None
    matched_source: Optional[str] = None
    error_code: Optional[str] = None
    duration_ms: float = 0.0
    trail_length: int = 0
    explained: bool = False
    
    @classmethod
    def from_verdict(cls, verdict: "Verdict", explained: bool = False) -> "DecisionAuditRecord":
        """Summarize a verdict."""
        grant = verdict.matched_grant
        return cls(
            user_id=verdict.user_id,
            permission_code=verdict.permission_code,
            allowed=verdict.allowed,
            evaluated_at=verdict.evaluated_at,
            resource_type=verdict.resource_type,
            resource_id=verdict.resource_id,
            matched_grant_id=grant.id if grant else None,
            matched_source=grant.source.value if grant else None,
            error_code=verdict.error_code,
            duration_ms=verdict.duration_ms,
            trail_length=len(verdict.explanation_trail),
            explained=explained
        )
    
    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe representation."""
        return {
            "user_id": self.user_id,
            "permission_code": self.permission_code,
            "allowed": self.allowed,
            "evaluated_at": self.evaluated_at.isoformat(),
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "matched_grant_id": self.matched_grant_id,
            "matched_source": self.matched_source,
            "error_code": self.error_code,
            "duration_ms": self.duration_ms,
            "trail_length": self.trail_length,
            "explained": self.explained,
        }
