"""
Conflict resolver - merges applicable grants into a single allow/deny verdict.

Grants are ranked by a total order; the first grant in that order decides:

1. higher specificity (instance > type > unscoped)
2. deny before allow at equal specificity
3. higher priority
4. source: DIRECT, then DELEGATED, then ROLE
5. for role grants, the more privileged effective hierarchy level, then input order

No applicable grant means deny.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from ...domain.entities.grant import GrantSource, PermissionGrant
from ...domain.value_objects.trail import TrailEntry, TrailReason
from .hierarchy_index import RoleHierarchyIndex


SOURCE_RANK = {
    GrantSource.DIRECT: 0,
    GrantSource.DELEGATED: 1,
    GrantSource.ROLE: 2,
}

# Roles missing from the index sort after every known level
_UNKNOWN_LEVEL = 1 << 30


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving one grant set."""
    allowed: bool
    matched_grant: Optional[PermissionGrant] = None
    trail: Tuple[TrailEntry, ...] = field(default_factory=tuple)


class ConflictResolver:
    """
    Stateless resolver; one instance can serve every concurrent decision.
    """

    def rank_key(
        self,
        grant: PermissionGrant,
        position: int,
        hierarchy: Optional[RoleHierarchyIndex] = None
    ) -> Tuple[int, int, int, int, int, int]:
        """Sort key implementing the resolution order (smaller sorts first)."""
        if grant.source not in SOURCE_RANK:
            raise ValueError(f"Unhandled grant source: {grant.source!r}")

        level = 0
        if grant.source is GrantSource.ROLE:
            level = _UNKNOWN_LEVEL
            if hierarchy is not None:
                effective = hierarchy.effective_level(grant.subject_id)
                if effective is not None:
                    level = effective

        return (
            -int(grant.specificity),
            0 if grant.is_deny else 1,
            -grant.priority,
            SOURCE_RANK[grant.source],
            level,
            position,
        )

    def resolve(
        self,
        grants: Sequence[PermissionGrant],
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        record_trail: bool = True,
        hierarchy: Optional[RoleHierarchyIndex] = None
    ) -> Resolution:
        """
        Decide between grants for one resource.

        Args:
            grants: candidate grants, already temporally filtered and
                expanded through the role hierarchy
            resource_type: requested resource type, None for unscoped checks
            resource_id: requested resource instance
            record_trail: build the full explanation trail; otherwise only the
                selected grant is recorded
            hierarchy: index used for the role-level tie-break

        Returns:
            Resolution with the deciding grant (None for the default deny)
        """
        trail: List[TrailEntry] = []
        applicable: List[Tuple[int, PermissionGrant]] = []

        for position, grant in enumerate(grants):
            if grant.applies_to(resource_type, resource_id):
                applicable.append((position, grant))
                if record_trail:
                    trail.append(TrailEntry(grant, TrailReason.CONSIDERED))
            elif record_trail:
                trail.append(TrailEntry(
                    grant,
                    TrailReason.EXCLUDED_OUT_OF_SCOPE,
                    f"scope {grant.scope_label()} does not cover the request"
                ))

        if not applicable:
            return Resolution(allowed=False, matched_grant=None, trail=tuple(trail))

        ranked = sorted(applicable, key=lambda item: self.rank_key(item[1], item[0], hierarchy))
        winner_position, winner = ranked[0]

        trail.append(TrailEntry(winner, TrailReason.SELECTED, self._selection_detail(winner)))
        if record_trail:
            for position, grant in ranked[1:]:
                trail.append(self._loss_entry(grant, position, winner, winner_position, hierarchy))

        return Resolution(allowed=winner.is_granted, matched_grant=winner, trail=tuple(trail))

    def _selection_detail(self, winner: PermissionGrant) -> str:
        effect = "allow" if winner.is_granted else "deny"
        return (
            f"{effect} at {winner.specificity.name.lower()} specificity, "
            f"priority {winner.priority}, source {winner.source.value}"
        )

    def _loss_entry(
        self,
        grant: PermissionGrant,
        position: int,
        winner: PermissionGrant,
        winner_position: int,
        hierarchy: Optional[RoleHierarchyIndex]
    ) -> TrailEntry:
        """Explain why ``grant`` lost to ``winner``."""
        if grant.specificity < winner.specificity:
            return TrailEntry(
                grant,
                TrailReason.EXCLUDED_LOWER_SPECIFICITY,
                f"{grant.specificity.name.lower()} scope below {winner.specificity.name.lower()}"
            )

        if grant.is_deny != winner.is_deny:
            detail = "deny overrides allow at equal specificity"
        elif grant.priority != winner.priority:
            detail = f"priority {grant.priority} below {winner.priority}"
        elif grant.source is not winner.source:
            detail = f"source {grant.source.value} below {winner.source.value}"
        else:
            loser_key = self.rank_key(grant, position, hierarchy)
            winner_key = self.rank_key(winner, winner_position, hierarchy)
            if loser_key[4] != winner_key[4]:
                detail = "role hierarchy level less privileged"
            else:
                detail = "equal rank, earlier grant kept"
        return TrailEntry(grant, TrailReason.EXCLUDED_LOWER_PRIORITY, detail)


def resolve(
    grants: Sequence[PermissionGrant],
    resource_type: Optional[str] = None,
    resource_id: Optional[str] = None
) -> Resolution:
    """Resolve with a default resolver and full trail."""
    return ConflictResolver().resolve(grants, resource_type, resource_id)
