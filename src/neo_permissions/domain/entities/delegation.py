"""
Delegation entity - temporary transfer of one user's authority to another.

Delegations are immutable records: a scope change revokes the old record and
creates a new one, so the audit history never changes under a reader.
"""
from dataclasses import dataclass, replace
from datetime import datetime
from typing import FrozenSet, Iterable, Optional, Tuple

from ...core.exceptions import InvalidDelegationError
from ...utils.datetime import to_utc, utc_now


WILDCARD_CODE = "*"


@dataclass(frozen=True)
class Delegation:
    """
    Delegation from ``delegator_id`` to ``delegatee_id``.
    
    ``max_chain_depth`` bounds re-delegation: with the default of 1 the
    delegatee may use the authority but not pass it on.
    """
    id: str
    delegator_id: str
    delegatee_id: str
    permission_codes: FrozenSet[str] = frozenset({WILDCARD_CODE})
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    revoked: bool = False
    max_chain_depth: int = 1
    created_by: Optional[str] = None
    revoked_at: Optional[datetime] = None
    reason: Optional[str] = None
    
    def __post_init__(self):
        """Normalize codes and enforce construction rules."""
        if not isinstance(self.permission_codes, frozenset):
            object.__setattr__(self, 'permission_codes', frozenset(self.permission_codes or ()))
        
        if self.delegator_id == self.delegatee_id:
            raise InvalidDelegationError("Cannot delegate permissions to yourself", delegation_id=self.id)
        if not self.permission_codes:
            raise InvalidDelegationError("Delegation must name at least one permission", delegation_id=self.id)
        if self.max_chain_depth < 1:
            raise InvalidDelegationError("max_chain_depth must be at least 1", delegation_id=self.id)
        if (
            self.valid_from is not None
            and self.valid_until is not None
            and to_utc(self.valid_until) <= to_utc(self.valid_from)
        ):
            raise InvalidDelegationError("valid_until must be after valid_from", delegation_id=self.id)
    
    @property
    def is_wildcard(self) -> bool:
        """Check if the delegation covers every permission code."""
        return WILDCARD_CODE in self.permission_codes
    
    def covers(self, permission_code: str) -> bool:
        """Check if the delegation includes the code (exactly or via ``*``)."""
        return permission_code in self.permission_codes or self.is_wildcard
    
    def covers_exactly(self, permission_code: str) -> bool:
        """Check if the code is named explicitly, not only through ``*``."""
        return permission_code in self.permission_codes
    
    def is_active_at(self, as_of: datetime) -> bool:
        """Check revocation and the validity window (inclusive start, exclusive end)."""
        if self.revoked:
            return False
        as_of = to_utc(as_of)
        if self.valid_from is not None and to_utc(self.valid_from) > as_of:
            return False
        if self.valid_until is not None and to_utc(self.valid_until) <= as_of:
            return False
        return True
    
    def allows_hop(self, hop: int) -> bool:
        """
        Check if this delegation may be used ``hop`` links away from the
        requesting user (1 = delegated to the requester directly).
        """
        return self.max_chain_depth >= hop
    
    def revoke(self, at: Optional[datetime] = None) -> "Delegation":
        """Return a revoked copy."""
        if self.revoked:
            raise InvalidDelegationError("Delegation is already revoked", delegation_id=self.id)
        return replace(self, revoked=True, revoked_at=at or utc_now())
    
    def supersede(
        self,
        new_id: str,
        permission_codes: Iterable[str],
        valid_until: Optional[datetime] = None,
        at: Optional[datetime] = None
    ) -> Tuple["Delegation", "Delegation"]:
        """
        Change scope the only allowed way: revoke this record and issue a new one.
        
        Returns:
            (revoked old delegation, new delegation)
        """
        at = at or utc_now()
        revoked = self.revoke(at)
        successor = Delegation(
            id=new_id,
            delegator_id=self.delegator_id,
            delegatee_id=self.delegatee_id,
            permission_codes=frozenset(permission_codes),
            valid_from=at,
            valid_until=valid_until if valid_until is not None else self.valid_until,
            max_chain_depth=self.max_chain_depth,
            created_by=self.created_by,
            reason=f"supersedes {self.id}"
        )
        return revoked, successor
    
    def __str__(self) -> str:
        codes = ",".join(sorted(self.permission_codes))
        return f"{self.delegator_id}->{self.delegatee_id}[{codes}]"
