"""
Explanation trail value objects.

Every grant the engine looks at ends up in the trail with the reason it was
kept or dropped.
"""
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from ..entities.grant import PermissionGrant


class TrailReason(str, Enum):
    """Why a grant was included in or excluded from a decision."""
    CONSIDERED = "considered"
    EXCLUDED_LOWER_SPECIFICITY = "excluded-lower-specificity"
    EXCLUDED_LOWER_PRIORITY = "excluded-lower-priority"
    SELECTED = "selected"
    
    # Dropped before conflict resolution
    EXCLUDED_EXPIRED = "excluded-expired"
    EXCLUDED_INVALID_SHAPE = "excluded-invalid-shape"
    EXCLUDED_OUT_OF_SCOPE = "excluded-out-of-scope"
    EXCLUDED_ROLE_NOT_HELD = "excluded-role-not-held"
    
    # Delegation walk
    EXCLUDED_CYCLIC_DELEGATION = "excluded-cyclic-delegation"
    EXCLUDED_DELEGATION_DEPTH = "excluded-delegation-depth"
    EXCLUDED_SUPERSEDED_WILDCARD = "excluded-superseded-wildcard"
    EXCLUDED_DELEGATOR_LACKS_PERMISSION = "excluded-delegator-lacks-permission"
    
    @property
    def is_exclusion(self) -> bool:
        """Check if the reason removes the grant from the decision."""
        return self.value.startswith("excluded-")


@dataclass(frozen=True)
class TrailEntry:
    """
    One line of the explanation trail.
    
    Delegation links that never produced a grant are recorded with
    ``grant=None`` and the link described in ``detail``.
    """
    grant: Optional["PermissionGrant"]
    reason: TrailReason
    detail: str = ""
    
    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe representation."""
        return {
            "grant": self.grant.to_dict() if self.grant else None,
            "reason": self.reason.value,
            "detail": self.detail,
        }
    
    def __str__(self) -> str:
        subject = str(self.grant) if self.grant else "-"
        suffix = f" ({self.detail})" if self.detail else ""
        return f"{self.reason.value}: {subject}{suffix}"
