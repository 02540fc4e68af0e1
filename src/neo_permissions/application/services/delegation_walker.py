"""
Delegation chain walker - adds authority delegated to a user by other users.

Delegation transfers authority, it never creates it: a delegatee receives a
synthetic DELEGATED grant only when the delegator is currently allowed, and
that grant carries the delegator's deciding scope and priority.

Chains are walked breadth-first from the requesting user. A delegation met
``h`` links away from the user is usable only when its ``max_chain_depth``
is at least ``h``.
"""
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from loguru import logger

from ...core.exceptions import CyclicDelegationError
from ...domain.entities.delegation import Delegation
from ...domain.entities.grant import PermissionGrant
from ...domain.value_objects.trail import TrailEntry, TrailReason
from ...utils.datetime import earliest
from .conflict_resolver import ConflictResolver
from .decision_context import DecisionContext
from .grant_collector import GrantCollector


@dataclass(frozen=True)
class DelegationExpansion:
    """Synthetic delegated grants and trail entries for links that were skipped."""
    grants: Tuple[PermissionGrant, ...] = field(default_factory=tuple)
    trail: Tuple[TrailEntry, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class _Hop:
    delegatee_id: str
    hop: int
    chain: Tuple[str, ...]  # requesting user first, current delegatee last
    window_end: Optional[datetime]


class DelegationChainWalker:
    """
    Expands a user's grant set with delegated authority.
    """

    def __init__(
        self,
        resolver: Optional[ConflictResolver] = None,
        collector: Optional[GrantCollector] = None,
        max_hops: int = 5
    ):
        self.resolver = resolver or ConflictResolver()
        self.collector = collector or GrantCollector()
        self.max_hops = max_hops

    async def expand(
        self,
        user_id: str,
        permission_code: str,
        resource_type: Optional[str],
        resource_id: Optional[str],
        context: DecisionContext
    ) -> DelegationExpansion:
        """
        Walk delegation chains ending at ``user_id`` for one permission.

        A cyclic link is logged and excluded; the rest of the walk continues.
        """
        grants: List[PermissionGrant] = []
        trail: List[TrailEntry] = []
        visited = {user_id}
        queue = deque([_Hop(user_id, 1, (user_id,), None)])

        while queue:
            current = queue.popleft()
            if current.hop > self.max_hops:
                logger.debug(f"Delegation walk for {user_id} stopped at hop limit {self.max_hops}")
                continue

            delegations = await context.delegations(current.delegatee_id, permission_code)
            usable = self._usable_delegations(
                delegations, current.delegatee_id, permission_code, context, trail
            )

            for delegation in usable:
                if not delegation.allows_hop(current.hop):
                    trail.append(TrailEntry(
                        None,
                        TrailReason.EXCLUDED_DELEGATION_DEPTH,
                        f"delegation {delegation.id} ({delegation}) allows depth "
                        f"{delegation.max_chain_depth}, needed {current.hop}"
                    ))
                    continue

                try:
                    self._check_cycle(delegation, current.chain)
                except CyclicDelegationError as e:
                    logger.warning(f"{e.message}; excluding delegation {delegation.id}")
                    trail.append(TrailEntry(None, TrailReason.EXCLUDED_CYCLIC_DELEGATION, e.message))
                    continue

                delegator_id = delegation.delegator_id
                if delegator_id in visited:
                    # Reached through a shorter path already
                    continue
                visited.add(delegator_id)

                chain = current.chain + (delegator_id,)
                window_end = earliest(current.window_end, delegation.valid_until)

                granted = await self._delegator_grant(
                    user_id, delegation, chain, window_end,
                    permission_code, resource_type, resource_id, context
                )
                if granted is None:
                    trail.append(TrailEntry(
                        None,
                        TrailReason.EXCLUDED_DELEGATOR_LACKS_PERMISSION,
                        f"delegator {delegator_id} of delegation {delegation.id} is not allowed {permission_code}"
                    ))
                else:
                    grants.append(granted)

                queue.append(_Hop(delegator_id, current.hop + 1, chain, window_end))

        return DelegationExpansion(grants=tuple(grants), trail=tuple(trail))

    def _usable_delegations(
        self,
        delegations: Sequence[Delegation],
        delegatee_id: str,
        permission_code: str,
        context: DecisionContext,
        trail: List[TrailEntry]
    ) -> List[Delegation]:
        """
        Active delegations to ``delegatee_id`` covering the code. For each
        delegator an exact-code delegation supersedes wildcard ones.
        """
        by_delegator: Dict[str, List[Delegation]] = {}
        for delegation in delegations:
            if delegation.delegatee_id != delegatee_id or not delegation.covers(permission_code):
                continue
            if not delegation.is_active_at(context.as_of):
                state = "revoked" if delegation.revoked else "outside its validity window"
                trail.append(TrailEntry(
                    None,
                    TrailReason.EXCLUDED_EXPIRED,
                    f"delegation {delegation.id} ({delegation}) is {state}"
                ))
                continue
            by_delegator.setdefault(delegation.delegator_id, []).append(delegation)

        usable: List[Delegation] = []
        for delegator_id in sorted(by_delegator):
            candidates = by_delegator[delegator_id]
            exact = [d for d in candidates if d.covers_exactly(permission_code)]
            if exact:
                for superseded in candidates:
                    if not superseded.covers_exactly(permission_code):
                        trail.append(TrailEntry(
                            None,
                            TrailReason.EXCLUDED_SUPERSEDED_WILDCARD,
                            f"wildcard delegation {superseded.id} superseded by exact delegation from {delegator_id}"
                        ))
                candidates = exact
            # Deepest re-delegation allowance first, then id for a stable order
            candidates.sort(key=lambda d: (-d.max_chain_depth, d.id))
            usable.append(candidates[0])
        return usable

    def _check_cycle(self, delegation: Delegation, chain: Tuple[str, ...]) -> None:
        """Raise CyclicDelegationError if the delegator is already on the chain."""
        if delegation.delegator_id in chain:
            loop = list(chain[chain.index(delegation.delegator_id):]) + [delegation.delegator_id]
            raise CyclicDelegationError(
                f"Delegation cycle detected: {' <- '.join(loop)}",
                chain=loop,
                delegation_id=delegation.id
            )

    async def _delegator_grant(
        self,
        user_id: str,
        delegation: Delegation,
        chain: Tuple[str, ...],
        window_end: Optional[datetime],
        permission_code: str,
        resource_type: Optional[str],
        resource_id: Optional[str],
        context: DecisionContext
    ) -> Optional[PermissionGrant]:
        """Resolve the delegator's own authority and copy it to the user when allowed."""
        delegator_id = delegation.delegator_id
        # Every scope at once: one fetch per delegator and code, reused across resources
        collected = await self.collector.collect(context, delegator_id, permission_code)
        resolution = self.resolver.resolve(
            collected.grants,
            resource_type,
            resource_id,
            record_trail=False,
            hierarchy=context.hierarchy
        )
        if not resolution.allowed:
            return None

        source = resolution.matched_grant
        path = tuple(reversed(chain))  # original delegator first, requesting user last
        return source.delegated_to(
            user_id,
            delegation.id,
            path,
            earliest(window_end, source.valid_until)
        )
