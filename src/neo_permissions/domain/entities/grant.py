"""
Permission grant entity - the single shape every grant source is mapped to.

Role grants, direct user grants, resource-scoped grants and synthetic
delegated grants all become a ``PermissionGrant`` after fetch.
"""
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum, IntEnum
from typing import Optional, Tuple

from ...core.exceptions import InvalidGrantShapeError
from ...utils.datetime import to_utc


class GrantSource(str, Enum):
    """Where a grant came from."""
    ROLE = "ROLE"            # Attached to a role the user holds (or inherits)
    DIRECT = "DIRECT"        # Attached to the user
    DELEGATED = "DELEGATED"  # Synthesized from another user's delegation


class SubjectType(str, Enum):
    """Kind of subject a grant is attached to."""
    ROLE = "ROLE"
    USER = "USER"


class Specificity(IntEnum):
    """How narrowly a grant's resource scope is defined."""
    GLOBAL = 0    # No resource type: every resource
    TYPE = 1      # Every instance of one resource type
    INSTANCE = 2  # One resource instance


@dataclass(frozen=True)
class PermissionGrant:
    """
    Allow or deny statement for one permission code.
    
    ``resource_type=None`` applies to every resource of any type,
    ``resource_id=None`` to every instance of ``resource_type``.
    A grant with ``resource_id`` must also carry ``resource_type``.
    """
    id: str
    subject_type: SubjectType
    subject_id: str
    permission_code: str
    is_granted: bool = True
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    priority: int = 0
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    source: GrantSource = GrantSource.DIRECT
    granted_by: Optional[str] = None
    is_temporary: bool = False
    
    # Only set on synthetic DELEGATED grants
    delegation_id: Optional[str] = None
    delegation_path: Tuple[str, ...] = ()
    
    @property
    def specificity(self) -> Specificity:
        """Resource scope tier of this grant."""
        if self.resource_id is not None:
            return Specificity.INSTANCE
        if self.resource_type is not None:
            return Specificity.TYPE
        return Specificity.GLOBAL
    
    @property
    def is_deny(self) -> bool:
        """Check if this is an explicit deny."""
        return not self.is_granted
    
    @property
    def has_valid_shape(self) -> bool:
        """Check the resource_id-implies-resource_type invariant."""
        return self.resource_id is None or self.resource_type is not None
    
    def validate_shape(self) -> "PermissionGrant":
        """
        Raise InvalidGrantShapeError if the grant is scoped to an instance
        without a type, otherwise return the grant unchanged.
        """
        if not self.has_valid_shape:
            raise InvalidGrantShapeError(
                f"Grant {self.id} has resource_id={self.resource_id!r} without resource_type",
                grant_id=self.id
            )
        return self
    
    def applies_to(self, resource_type: Optional[str] = None, resource_id: Optional[str] = None) -> bool:
        """
        Check if the grant's scope covers the requested resource.
        
        Unscoped grants cover everything; type grants cover every instance of
        their type; instance grants cover exactly one instance.
        """
        if self.resource_type is None:
            return True
        if self.resource_type != resource_type:
            return False
        if self.resource_id is None:
            return True
        return self.resource_id == resource_id
    
    def is_active_at(self, as_of: datetime) -> bool:
        """Check if the validity window covers ``as_of`` (inclusive start, exclusive end)."""
        as_of = to_utc(as_of)
        if self.valid_from is not None and to_utc(self.valid_from) > as_of:
            return False
        if self.valid_until is not None and to_utc(self.valid_until) <= as_of:
            return False
        return True
    
    def delegated_to(
        self,
        user_id: str,
        delegation_id: str,
        path: Tuple[str, ...],
        valid_until: Optional[datetime]
    ) -> "PermissionGrant":
        """Copy this grant as a DELEGATED grant held by ``user_id``."""
        return replace(
            self,
            id=f"{self.id}~{delegation_id}",
            subject_type=SubjectType.USER,
            subject_id=user_id,
            source=GrantSource.DELEGATED,
            granted_by=path[0] if path else self.granted_by,
            valid_until=valid_until,
            is_temporary=True,
            delegation_id=delegation_id,
            delegation_path=path
        )
    
    def scope_label(self) -> str:
        """Human readable scope, e.g. ``workflow/W-42`` or ``*``."""
        if self.resource_type is None:
            return "*"
        if self.resource_id is None:
            return f"{self.resource_type}/*"
        return f"{self.resource_type}/{self.resource_id}"
    
    def to_dict(self) -> dict:
        """JSON-safe representation for trails and audit records."""
        return {
            "id": self.id,
            "subject_type": self.subject_type.value,
            "subject_id": self.subject_id,
            "permission_code": self.permission_code,
            "is_granted": self.is_granted,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "priority": self.priority,
            "valid_from": self.valid_from.isoformat() if self.valid_from else None,
            "valid_until": self.valid_until.isoformat() if self.valid_until else None,
            "source": self.source.value,
            "granted_by": self.granted_by,
            "is_temporary": self.is_temporary,
            "delegation_id": self.delegation_id,
            "delegation_path": list(self.delegation_path),
        }
    
    def __str__(self) -> str:
        effect = "allow" if self.is_granted else "deny"
        return f"{effect} {self.permission_code}@{self.scope_label()} ({self.source.value})"
    
    def __repr__(self) -> str:
        return (
            f"PermissionGrant(id='{self.id}', code='{self.permission_code}', "
            f"granted={self.is_granted}, scope='{self.scope_label()}', source={self.source.value})"
        )


def role_grant(
    grant_id: str,
    role_id: str,
    permission_code: str,
    is_granted: bool = True,
    **kwargs
) -> PermissionGrant:
    """Shortcut for a grant attached to a role."""
    return PermissionGrant(
        id=grant_id,
        subject_type=SubjectType.ROLE,
        subject_id=role_id,
        permission_code=permission_code,
        is_granted=is_granted,
        source=GrantSource.ROLE,
        **kwargs
    )


def user_grant(
    grant_id: str,
    user_id: str,
    permission_code: str,
    is_granted: bool = True,
    **kwargs
) -> PermissionGrant:
    """Shortcut for a grant attached directly to a user."""
    return PermissionGrant(
        id=grant_id,
        subject_type=SubjectType.USER,
        subject_id=user_id,
        permission_code=permission_code,
        is_granted=is_granted,
        source=GrantSource.DIRECT,
        **kwargs
    )
