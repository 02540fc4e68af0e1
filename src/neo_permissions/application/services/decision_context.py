"""
Per-call decision context.

Memoizes grant store reads for the lifetime of one ``check_permission`` /
``check_bulk`` / ``explain`` call and is discarded afterwards, so concurrent
calls never share mutable state.
"""
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from loguru import logger

from ...core.exceptions import AdapterUnavailableError
from ...domain.entities.delegation import Delegation
from ...domain.entities.grant import PermissionGrant
from ...domain.entities.role import RoleAssignment
from ...domain.protocols.grant_store import GrantStoreProtocol
from ...utils.datetime import to_utc
from .hierarchy_index import RoleHierarchyIndex


GrantKey = Tuple[str, str, Optional[str], Optional[str]]


class DecisionContext:
    """
    Snapshot reader for one engine call.

    Every store failure surfaces as AdapterUnavailableError naming the failed
    operation; the engine never retries.
    """

    def __init__(
        self,
        grant_store: GrantStoreProtocol,
        hierarchy: RoleHierarchyIndex,
        as_of: datetime,
        record_trail: bool = False
    ):
        self.grant_store = grant_store
        self.hierarchy = hierarchy
        self.as_of = to_utc(as_of)
        self.record_trail = record_trail
        self._user_roles: Dict[str, List[RoleAssignment]] = {}
        self._grants: Dict[GrantKey, List[PermissionGrant]] = {}
        self._delegations: Dict[Tuple[str, str], List[Delegation]] = {}
        self.store_calls = 0

    async def user_roles(self, user_id: str) -> List[RoleAssignment]:
        """Role assignments of the user, active or not."""
        if user_id not in self._user_roles:
            self._user_roles[user_id] = list(
                await self._call("fetch_user_roles", self.grant_store.fetch_user_roles, user_id)
            )
        return self._user_roles[user_id]

    async def candidate_grants(
        self,
        user_id: str,
        permission_code: str,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None
    ) -> List[PermissionGrant]:
        """
        Candidate grants for the user and code.

        A previously fetched unscoped result (every scope) is reused for any
        narrower request.
        """
        broad_key: GrantKey = (user_id, permission_code, None, None)
        if broad_key in self._grants:
            return self._grants[broad_key]

        key: GrantKey = (user_id, permission_code, resource_type, resource_id)
        if key not in self._grants:
            self._grants[key] = list(await self._call(
                "fetch_candidate_grants",
                self.grant_store.fetch_candidate_grants,
                user_id,
                permission_code,
                resource_type,
                resource_id
            ))
        return self._grants[key]

    async def delegations(self, delegatee_id: str, permission_code: str) -> List[Delegation]:
        """Delegations to the user for the code (exact or wildcard)."""
        key = (delegatee_id, permission_code)
        if key not in self._delegations:
            self._delegations[key] = list(await self._call(
                "fetch_delegations",
                self.grant_store.fetch_delegations,
                delegatee_id,
                permission_code
            ))
        return self._delegations[key]

    async def _call(self, operation: str, method, *args):
        self.store_calls += 1
        try:
            return await method(*args)
        except AdapterUnavailableError:
            raise
        except Exception as e:
            logger.error(f"Grant store call {operation}{args} failed: {e}")
            raise AdapterUnavailableError(
                f"Grant store call {operation} failed",
                operation=operation,
                cause=e
            ) from e
