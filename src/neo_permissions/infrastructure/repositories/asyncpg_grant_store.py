"""
Grant store implementation using AsyncPG.

Reads roles, role assignments, grants and delegations from the admin schema.
Any driver failure is raised as AdapterUnavailableError so the engine can
fail closed.
"""
from typing import Any, List, Mapping, Optional

from loguru import logger

from ...core.exceptions import AdapterUnavailableError, InvalidDelegationError
from ...domain.entities.delegation import Delegation, WILDCARD_CODE
from ...domain.entities.grant import GrantSource, PermissionGrant, SubjectType
from ...domain.entities.role import Role, RoleAssignment


class AsyncpgGrantStore:
    """
    AsyncPG implementation of GrantStoreProtocol.

    ``database`` is anything exposing asyncpg's ``fetch(query, *args)``:
    an ``asyncpg.Pool``, a connection, or the service's connection manager.
    """

    def __init__(self, database, schema: str = "admin"):
        """
        Initialize with a database handle and schema name.

        Args:
            database: asyncpg pool/connection or compatible manager
            schema: schema holding the permission tables (default: admin)
        """
        if not schema.replace("_", "").isalnum():
            raise ValueError(f"Invalid schema name: {schema}")
        self.db = database
        self.schema = schema

    async def fetch_roles(self) -> List[Role]:
        """Get every non-deleted role with its parent links."""
        query = f"""
            SELECT
                r.id, r.code, r.name, r.hierarchy_level, r.is_active,
                COALESCE(
                    array_agg(h.parent_role_id) FILTER (WHERE h.parent_role_id IS NOT NULL),
                    '{{}}'
                ) AS parent_ids,
                COALESCE(
                    array_agg(h.parent_role_id) FILTER (
                        WHERE h.parent_role_id IS NOT NULL AND NOT h.inherit_permissions
                    ),
                    '{{}}'
                ) AS non_inheriting_parent_ids
            FROM {self.schema}.roles r
            LEFT JOIN {self.schema}.role_hierarchy h ON h.role_id = r.id
            WHERE r.deleted_at IS NULL
            GROUP BY r.id, r.code, r.name, r.hierarchy_level, r.is_active
            ORDER BY r.hierarchy_level, r.code
        """
        records = await self._fetch("fetch_roles", query)
        return [self._record_to_role(record) for record in records]

    async def fetch_user_roles(self, user_id: str) -> List[RoleAssignment]:
        """
        Get the user's role assignments on active, non-deleted roles.

        Validity windows are returned as stored; the engine checks them
        against the evaluation instant.
        """
        query = f"""
            SELECT ur.role_id, ur.valid_from, ur.valid_until
            FROM {self.schema}.user_roles ur
            JOIN {self.schema}.roles r ON r.id = ur.role_id
            WHERE ur.user_id = $1
              AND ur.is_active = true
              AND r.is_active = true
              AND r.deleted_at IS NULL
        """
        records = await self._fetch("fetch_user_roles", query, user_id)
        return [
            RoleAssignment(
                role_id=str(record["role_id"]),
                valid_from=record["valid_from"],
                valid_until=record["valid_until"]
            )
            for record in records
        ]

    async def fetch_candidate_grants(
        self,
        user_id: str,
        permission_code: str,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None
    ) -> List[PermissionGrant]:
        """
        Get role, direct and resource-scoped grants for an exact permission code.

        Role grants of every role are returned; the engine decides which roles
        reach the user. Resource arguments narrow resource-scoped rows only.
        """
        query = f"""
            SELECT
                rp.id::text AS id, 'ROLE' AS subject_type, rp.role_id::text AS subject_id,
                p.code AS permission_code, NULL::text AS resource_type, NULL::text AS resource_id,
                rp.is_granted, rp.priority, rp.valid_from, rp.valid_until,
                rp.granted_by::text AS granted_by, rp.is_temporary
            FROM {self.schema}.role_permissions rp
            JOIN {self.schema}.permissions p ON p.id = rp.permission_id
            WHERE p.code = $2

            UNION ALL

            SELECT
                up.id::text, 'USER', up.user_id::text,
                p.code, NULL::text, NULL::text,
                up.is_granted, up.priority, up.valid_from, up.valid_until,
                up.granted_by::text, up.is_temporary
            FROM {self.schema}.user_permissions up
            JOIN {self.schema}.permissions p ON p.id = up.permission_id
            WHERE up.user_id = $1 AND p.code = $2

            UNION ALL

            SELECT
                rsp.id::text, 'USER', rsp.user_id::text,
                p.code, rsp.resource_type, rsp.resource_id,
                rsp.is_granted, rsp.priority, rsp.valid_from, rsp.valid_until,
                rsp.granted_by::text, (rsp.valid_until IS NOT NULL)
            FROM {self.schema}.resource_permissions rsp
            JOIN {self.schema}.permissions p ON p.id = rsp.permission_id
            WHERE rsp.user_id = $1 AND p.code = $2
              AND ($3::text IS NULL OR rsp.resource_type = $3)
              AND ($4::text IS NULL OR rsp.resource_id IS NULL OR rsp.resource_id = $4)
        """
        records = await self._fetch(
            "fetch_candidate_grants", query, user_id, permission_code, resource_type, resource_id
        )
        return [self._record_to_grant(record) for record in records]

    async def fetch_delegations(self, delegatee_id: str, permission_code: str) -> List[Delegation]:
        """Get delegations to the user naming the code or the wildcard."""
        query = f"""
            SELECT
                d.id::text AS id, d.delegator_id::text AS delegator_id,
                d.delegate_id::text AS delegatee_id, d.permissions,
                d.valid_from, d.valid_until, d.is_revoked, d.revoked_at,
                d.max_chain_depth, d.reason, d.created_by::text AS created_by
            FROM {self.schema}.permission_delegations d
            WHERE d.delegate_id = $1
              AND ($2 = ANY(d.permissions) OR $3 = ANY(d.permissions))
            ORDER BY d.created_at
        """
        records = await self._fetch(
            "fetch_delegations", query, delegatee_id, permission_code, WILDCARD_CODE
        )
        delegations = []
        for record in records:
            delegation = self._record_to_delegation(record)
            if delegation is not None:
                delegations.append(delegation)
        return delegations

    async def _fetch(self, operation: str, query: str, *args) -> List[Mapping[str, Any]]:
        try:
            return await self.db.fetch(query, *args)
        except Exception as e:
            logger.error(f"Grant store query {operation} failed: {e}")
            raise AdapterUnavailableError(
                f"Grant store query {operation} failed",
                operation=operation,
                cause=e
            ) from e

    def _record_to_role(self, record: Mapping[str, Any]) -> Role:
        """Convert database record to Role entity."""
        return Role(
            id=str(record["id"]),
            code=record["code"],
            name=record["name"],
            hierarchy_level=record["hierarchy_level"] or 0,
            parent_ids=frozenset(str(pid) for pid in (record["parent_ids"] or [])),
            non_inheriting_parent_ids=frozenset(
                str(pid) for pid in (record.get("non_inheriting_parent_ids") or [])
            ),
            is_active=record["is_active"]
        )

    def _record_to_grant(self, record: Mapping[str, Any]) -> PermissionGrant:
        """Convert database record to PermissionGrant entity."""
        subject_type = SubjectType(record["subject_type"])
        return PermissionGrant(
            id=record["id"],
            subject_type=subject_type,
            subject_id=record["subject_id"],
            permission_code=record["permission_code"],
            is_granted=record["is_granted"],
            resource_type=record["resource_type"],
            resource_id=record["resource_id"],
            priority=record["priority"] or 0,
            valid_from=record["valid_from"],
            valid_until=record["valid_until"],
            source=GrantSource.ROLE if subject_type is SubjectType.ROLE else GrantSource.DIRECT,
            granted_by=record["granted_by"],
            is_temporary=bool(record["is_temporary"])
        )

    def _record_to_delegation(self, record: Mapping[str, Any]) -> Optional[Delegation]:
        """Convert database record to Delegation entity; malformed rows are skipped."""
        try:
            return Delegation(
                id=record["id"],
                delegator_id=record["delegator_id"],
                delegatee_id=record["delegatee_id"],
                permission_codes=frozenset(record["permissions"] or ()),
                valid_from=record["valid_from"],
                valid_until=record["valid_until"],
                revoked=bool(record["is_revoked"]),
                revoked_at=record["revoked_at"],
                max_chain_depth=record["max_chain_depth"] or 1,
                reason=record["reason"],
                created_by=record["created_by"]
            )
        except InvalidDelegationError as e:
            logger.warning(f"Skipping malformed delegation {record['id']}: {e.message}")
            return None
