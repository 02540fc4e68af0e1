"""
Verdict entity - the outcome of one permission decision.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from .grant import GrantSource, PermissionGrant
from ..value_objects.trail import TrailEntry


@dataclass(frozen=True)
class Verdict:
    """
    Allow/deny answer with the grant that decided it.
    
    ``error_code`` is set only when a failure forced the deny, so callers can
    tell an outage apart from a legitimate refusal.
    """
    allowed: bool
    user_id: str
    permission_code: str
    evaluated_at: datetime
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    matched_grant: Optional[PermissionGrant] = None
    explanation_trail: Tuple[TrailEntry, ...] = field(default_factory=tuple)
    error_code: Optional[str] = None
    duration_ms: float = field(default=0.0, compare=False)
    
    @property
    def denied(self) -> bool:
        """Check if the request was denied."""
        return not self.allowed
    
    @property
    def source(self) -> Optional[GrantSource]:
        """Source of the deciding grant, None for default denies."""
        return self.matched_grant.source if self.matched_grant else None
    
    @property
    def is_default_deny(self) -> bool:
        """Check if the deny came from the absence of any applicable grant."""
        return not self.allowed and self.matched_grant is None and self.error_code is None
    
    @property
    def decision_reason(self) -> str:
        """One-line reason suitable for logs and API responses."""
        if self.error_code:
            return f"Denied: {self.error_code}"
        if self.matched_grant is None:
            return "Denied: no applicable grant"
        effect = "Allowed" if self.allowed else "Denied"
        return f"{effect} by {self.matched_grant}"
    
    def with_timing(self, duration_ms: float) -> "Verdict":
        """Return a copy carrying the decision duration."""
        return replace(self, duration_ms=duration_ms)
    
    @classmethod
    def deny(
        cls,
        user_id: str,
        permission_code: str,
        evaluated_at: datetime,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        error_code: Optional[str] = None,
        explanation_trail: Tuple[TrailEntry, ...] = ()
    ) -> "Verdict":
        """Create a deny verdict with no deciding grant."""
        return cls(
            allowed=False,
            user_id=user_id,
            permission_code=permission_code,
            evaluated_at=evaluated_at,
            resource_type=resource_type,
            resource_id=resource_id,
            error_code=error_code,
            explanation_trail=tuple(explanation_trail)
        )
    
    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe representation for the HTTP layer."""
        return {
            "allowed": self.allowed,
            "user_id": self.user_id,
            "permission_code": self.permission_code,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "matched_grant": self.matched_grant.to_dict() if self.matched_grant else None,
            "explanation_trail": [entry.to_dict() for entry in self.explanation_trail],
            "evaluated_at": self.evaluated_at.isoformat(),
            "error_code": self.error_code,
            "reason": self.decision_reason,
            "duration_ms": self.duration_ms,
        }
    
    def __bool__(self) -> bool:
        return self.allowed
    
    def __str__(self) -> str:
        status = "ALLOWED" if self.allowed else "DENIED"
        return f"{status}: {self.permission_code} for user {self.user_id}"
    
    def __repr__(self) -> str:
        return f"Verdict(allowed={self.allowed}, user='{self.user_id}', code='{self.permission_code}')"
