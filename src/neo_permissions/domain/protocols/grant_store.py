"""
Grant store protocol - the engine's only window onto persisted data.

Implemented by the persistence layer. The engine never writes through it.
"""
from typing import List, Optional, Protocol, runtime_checkable

from ..entities.delegation import Delegation
from ..entities.grant import PermissionGrant
from ..entities.role import Role, RoleAssignment


@runtime_checkable
class GrantStoreProtocol(Protocol):
    """Read-only access to roles, assignments, grants and delegations."""
    
    async def fetch_roles(self) -> List[Role]:
        """Get every role with its parent links (for the hierarchy index)."""
        ...
    
    async def fetch_user_roles(self, user_id: str) -> List[RoleAssignment]:
        """
        Get the user's role assignments with their validity windows.
        
        Assignments of inactive or deleted roles are left out; windows are
        checked by the engine against the evaluation instant.
        """
        ...
    
    async def fetch_candidate_grants(
        self,
        user_id: str,
        permission_code: str,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None
    ) -> List[PermissionGrant]:
        """
        Get role-subject and user-subject grants for an exact permission code.
        
        Role grants are returned raw, tagged with their role id; hierarchy
        expansion happens in the engine. Resource arguments may narrow the
        query; ``None`` means grants of every scope.
        """
        ...
    
    async def fetch_delegations(self, delegatee_id: str, permission_code: str) -> List[Delegation]:
        """Get delegations to the user covering the code exactly or through ``*``."""
        ...
