"""
Permission engine domain entities.
"""

from .role import Role, RoleAssignment
from .grant import (
    PermissionGrant,
    GrantSource,
    SubjectType,
    Specificity,
    role_grant,
    user_grant,
)
from .delegation import Delegation, WILDCARD_CODE
from .verdict import Verdict

__all__ = [
    "Role",
    "RoleAssignment",
    "PermissionGrant",
    "GrantSource",
    "SubjectType",
    "Specificity",
    "role_grant",
    "user_grant",
    "Delegation",
    "WILDCARD_CODE",
    "Verdict",
]
