"""
Grant collector - turns raw store grants into the applicable set for one user.

Applies, in order: role assignment windows, code and subject checks, the
grant shape invariant, role hierarchy expansion and the temporal filter.
Delegated authority is added separately by the delegation walker.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from loguru import logger

from ...core.exceptions import InvalidGrantShapeError
from ...domain.entities.grant import PermissionGrant, SubjectType
from ...domain.entities.role import RoleAssignment
from ...domain.value_objects.trail import TrailEntry, TrailReason
from ...utils.datetime import to_utc
from .decision_context import DecisionContext
from .hierarchy_index import RoleHierarchyIndex
from .temporal_filter import partition_active


@dataclass(frozen=True)
class CollectedGrants:
    """Grants kept for resolution plus trail entries for the ones dropped."""
    grants: Tuple[PermissionGrant, ...] = field(default_factory=tuple)
    trail: Tuple[TrailEntry, ...] = field(default_factory=tuple)


class GrantCollector:
    """Builds a user's own (role and direct) grant set."""

    async def collect(
        self,
        context: DecisionContext,
        user_id: str,
        permission_code: str,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None
    ) -> CollectedGrants:
        """
        Fetch and filter the user's own grants for one permission code.

        Malformed grants are dropped with a warning and never widen access.
        """
        raw = await context.candidate_grants(user_id, permission_code, resource_type, resource_id)
        assignments = await context.user_roles(user_id)
        held = [a for a in assignments if a.is_active_at(context.as_of)]
        if len(held) < len(assignments):
            logger.debug(
                f"Ignoring {len(assignments) - len(held)} role assignment(s) of user {user_id} "
                f"outside their window at {context.as_of.isoformat()}"
            )
        granting_roles = context.hierarchy.roles_granting(a.role_id for a in held)
        expiry_cache: Dict[str, Optional[datetime]] = {}

        trail: List[TrailEntry] = []
        shaped: List[PermissionGrant] = []
        for grant in raw:
            try:
                grant.validate_shape()
            except InvalidGrantShapeError as e:
                logger.warning(f"Dropping malformed grant for user {user_id}: {e.message}")
                trail.append(TrailEntry(grant, TrailReason.EXCLUDED_INVALID_SHAPE, e.message))
                continue

            if grant.permission_code != permission_code:
                trail.append(TrailEntry(
                    grant,
                    TrailReason.EXCLUDED_OUT_OF_SCOPE,
                    f"grant is for {grant.permission_code}"
                ))
                continue

            if grant.subject_type is SubjectType.ROLE:
                if grant.subject_id not in granting_roles:
                    trail.append(TrailEntry(
                        grant,
                        TrailReason.EXCLUDED_ROLE_NOT_HELD,
                        f"role {grant.subject_id} is neither held nor below a held role"
                    ))
                    continue
                if grant.subject_id not in expiry_cache:
                    expiry_cache[grant.subject_id] = _assignment_expiry(
                        context.hierarchy, held, grant.subject_id
                    )
                grant = _cap_expiry(grant, expiry_cache[grant.subject_id])
            elif grant.subject_type is SubjectType.USER:
                if grant.subject_id != user_id:
                    trail.append(TrailEntry(
                        grant,
                        TrailReason.EXCLUDED_OUT_OF_SCOPE,
                        f"granted to user {grant.subject_id}"
                    ))
                    continue
            else:
                raise ValueError(f"Unhandled subject type: {grant.subject_type!r}")

            shaped.append(grant)

        active, inactive = partition_active(shaped, context.as_of)
        for grant in inactive:
            trail.append(TrailEntry(grant, TrailReason.EXCLUDED_EXPIRED, _window_detail(grant)))

        return CollectedGrants(grants=tuple(active), trail=tuple(trail))


def _window_detail(grant: PermissionGrant) -> str:
    start = grant.valid_from.isoformat() if grant.valid_from else "-inf"
    end = grant.valid_until.isoformat() if grant.valid_until else "+inf"
    return f"valid [{start}, {end})"


def _assignment_expiry(
    hierarchy: RoleHierarchyIndex,
    held: Sequence[RoleAssignment],
    role_id: str
) -> Optional[datetime]:
    """
    Latest end among the held assignments through which ``role_id``'s grants
    reach the user. None when one of them is open-ended.
    """
    ends = []
    for assignment in held:
        if role_id not in hierarchy.roles_granting([assignment.role_id]):
            continue
        if assignment.valid_until is None:
            return None
        ends.append(to_utc(assignment.valid_until))
    return max(ends) if ends else None


def _cap_expiry(grant: PermissionGrant, assignment_end: Optional[datetime]) -> PermissionGrant:
    """A role grant lasts no longer than the assignment that delivers it."""
    if assignment_end is None:
        return grant
    if grant.valid_until is not None and to_utc(grant.valid_until) <= assignment_end:
        return grant
    return replace(grant, valid_until=assignment_end, is_temporary=True)
