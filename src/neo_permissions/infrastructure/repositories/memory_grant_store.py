"""
In-memory grant store.

Dict-backed GrantStoreProtocol implementation for tests, local development
and services that load their permission model from static configuration.
"""
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from ...domain.entities.delegation import Delegation
from ...domain.entities.grant import PermissionGrant, SubjectType
from ...domain.entities.role import Role, RoleAssignment


class InMemoryGrantStore:
    """
    Mutable store holding roles, assignments, grants and delegations.

    Every protocol call is appended to ``calls`` as ``(operation, args)`` so
    callers can check round-trip counts.
    """

    def __init__(
        self,
        roles: Iterable[Role] = (),
        grants: Iterable[PermissionGrant] = (),
        delegations: Iterable[Delegation] = (),
        user_roles: Optional[Dict[str, Iterable[str]]] = None
    ):
        self.roles: Dict[str, Role] = {role.id: role for role in roles}
        self.grants: List[PermissionGrant] = list(grants)
        self.delegations: Dict[str, Delegation] = {d.id: d for d in delegations}
        self.user_roles: Dict[str, Dict[str, RoleAssignment]] = {
            user_id: {role_id: RoleAssignment(role_id) for role_id in role_ids}
            for user_id, role_ids in (user_roles or {}).items()
        }
        self.calls: List[Tuple[str, tuple]] = []

    # Mutation helpers (persistence-layer side)

    def add_role(self, role: Role) -> None:
        """Add or replace a role."""
        self.roles[role.id] = role

    def assign_role(
        self,
        user_id: str,
        role_id: str,
        valid_from: Optional[datetime] = None,
        valid_until: Optional[datetime] = None
    ) -> None:
        """Assign a role to a user, replacing any earlier assignment of it."""
        self.user_roles.setdefault(user_id, {})[role_id] = RoleAssignment(role_id, valid_from, valid_until)

    def unassign_role(self, user_id: str, role_id: str) -> None:
        """Remove a role assignment if present."""
        self.user_roles.get(user_id, {}).pop(role_id, None)

    def add_grant(self, grant: PermissionGrant) -> None:
        """Add a grant."""
        self.grants.append(grant)

    def add_delegation(self, delegation: Delegation) -> None:
        """Add or replace a delegation (revocations replace the record)."""
        self.delegations[delegation.id] = delegation

    def count_calls(self, operation: str) -> int:
        """Number of protocol calls made for ``operation``."""
        return sum(1 for name, _ in self.calls if name == operation)

    # GrantStoreProtocol

    async def fetch_roles(self) -> List[Role]:
        self.calls.append(("fetch_roles", ()))
        return list(self.roles.values())

    async def fetch_user_roles(self, user_id: str) -> List[RoleAssignment]:
        self.calls.append(("fetch_user_roles", (user_id,)))
        assignments = []
        for role_id, assignment in sorted(self.user_roles.get(user_id, {}).items()):
            role = self.roles.get(role_id)
            if role is not None and not role.is_active:
                continue
            assignments.append(assignment)
        return assignments

    async def fetch_candidate_grants(
        self,
        user_id: str,
        permission_code: str,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None
    ) -> List[PermissionGrant]:
        self.calls.append(("fetch_candidate_grants", (user_id, permission_code, resource_type, resource_id)))
        matches = []
        for grant in self.grants:
            if grant.permission_code != permission_code:
                continue
            if grant.subject_type is SubjectType.USER and grant.subject_id != user_id:
                continue
            if resource_type is not None and grant.resource_type not in (None, resource_type):
                continue
            matches.append(grant)
        return matches

    async def fetch_delegations(self, delegatee_id: str, permission_code: str) -> List[Delegation]:
        self.calls.append(("fetch_delegations", (delegatee_id, permission_code)))
        return [
            delegation for delegation in self.delegations.values()
            if delegation.delegatee_id == delegatee_id and delegation.covers(permission_code)
        ]
