"""
Role hierarchy index - immutable snapshot of the parent->child role DAG.

Answers ancestry questions for the decision path. Built once per hierarchy
change and then only read; a hierarchy change produces a new index.
"""
from collections import deque
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from loguru import logger

from ...core.exceptions import CyclicHierarchyError
from ...domain.entities.role import Role


class RoleHierarchyIndex:
    """
    Adjacency index over role ids.

    Parents are more privileged than their children. Transitive closures are
    computed lazily per role and memoized; the memo only ever grows with
    values derived from the immutable adjacency, so concurrent readers see
    consistent answers.
    """

    def __init__(self, roles: Dict[str, Role], parents: Dict[str, FrozenSet[str]]):
        """Use ``RoleHierarchyIndex.build``; this constructor trusts its input."""
        self._roles = roles
        self._parents = parents
        children: Dict[str, set] = {role_id: set() for role_id in roles}
        for child_id, parent_ids in parents.items():
            for parent_id in parent_ids:
                children[parent_id].add(child_id)
        self._children = {role_id: frozenset(ids) for role_id, ids in children.items()}

        # Child links that carry grants upward
        granting: Dict[str, set] = {role_id: set() for role_id in roles}
        for child_id, parent_ids in parents.items():
            for parent_id in parent_ids & roles[child_id].inheriting_parent_ids:
                granting[parent_id].add(child_id)
        self._granting_children = {role_id: frozenset(ids) for role_id, ids in granting.items()}

        self._ancestor_memo: Dict[str, FrozenSet[str]] = {}
        self._descendant_memo: Dict[str, FrozenSet[str]] = {}
        self._granting_memo: Dict[str, FrozenSet[str]] = {}

    @classmethod
    def build(cls, roles: Iterable[Role]) -> "RoleHierarchyIndex":
        """
        Build an index from role snapshots.

        Inactive roles are left out. Parent links pointing at roles that are
        missing or inactive are dropped with a warning.

        Raises:
            CyclicHierarchyError: if the parent links form a cycle
        """
        by_id: Dict[str, Role] = {}
        for role in roles:
            if role.is_active:
                by_id[role.id] = role

        parents: Dict[str, FrozenSet[str]] = {}
        for role_id, role in by_id.items():
            known = frozenset(pid for pid in role.parent_ids if pid in by_id)
            unknown = role.parent_ids - known
            if unknown:
                logger.warning(
                    f"Ignoring unknown or inactive parent roles {sorted(unknown)} of role {role.code}"
                )
            parents[role_id] = known

        cycle = _find_cycle(parents)
        if cycle:
            codes = [by_id[role_id].code for role_id in cycle]
            raise CyclicHierarchyError(
                f"Role hierarchy contains a cycle: {' -> '.join(codes)}",
                cycle=cycle
            )

        logger.debug(f"Built role hierarchy index with {len(by_id)} roles")
        return cls(by_id, parents)

    @property
    def role_ids(self) -> FrozenSet[str]:
        """Ids of every role in the index."""
        return frozenset(self._roles)

    def __len__(self) -> int:
        return len(self._roles)

    def __contains__(self, role_id: object) -> bool:
        return role_id in self._roles

    def get_role(self, role_id: str) -> Optional[Role]:
        """Get the role snapshot by id."""
        return self._roles.get(role_id)

    def parents_of(self, role_id: str) -> FrozenSet[str]:
        """Direct parents of a role."""
        return self._parents.get(role_id, frozenset())

    def children_of(self, role_id: str) -> FrozenSet[str]:
        """Direct children of a role."""
        return self._children.get(role_id, frozenset())

    def ancestors_of(self, role_id: str) -> FrozenSet[str]:
        """Every role reachable through parent links (excluding the role itself)."""
        cached = self._ancestor_memo.get(role_id)
        if cached is None:
            cached = _closure(role_id, self._parents)
            self._ancestor_memo[role_id] = cached
        return cached

    def descendants_of(self, role_id: str) -> FrozenSet[str]:
        """Every role reachable through child links (excluding the role itself)."""
        cached = self._descendant_memo.get(role_id)
        if cached is None:
            cached = _closure(role_id, self._children)
            self._descendant_memo[role_id] = cached
        return cached

    def granting_descendants_of(self, role_id: str) -> FrozenSet[str]:
        """Descendants whose grants reach the role through inheriting links only."""
        cached = self._granting_memo.get(role_id)
        if cached is None:
            cached = _closure(role_id, self._granting_children)
            self._granting_memo[role_id] = cached
        return cached

    def is_ancestor(self, role_id: str, candidate_ancestor_id: str) -> bool:
        """Check if ``candidate_ancestor_id`` is a direct or transitive parent of ``role_id``."""
        return candidate_ancestor_id in self.ancestors_of(role_id)

    def depth_of(self, role_id: str) -> int:
        """Length of the longest parent path above the role (roots are 0)."""
        depth = 0
        frontier = set(self.parents_of(role_id))
        while frontier:
            depth += 1
            frontier = {pid for rid in frontier for pid in self.parents_of(rid)}
        return depth

    def effective_level(self, role_id: str) -> Optional[int]:
        """
        Most privileged hierarchy level reachable from the role:
        ``min(own level, min(ancestor levels))``. None for unknown roles.
        """
        role = self._roles.get(role_id)
        if role is None:
            return None
        levels = [role.hierarchy_level]
        levels.extend(self._roles[aid].hierarchy_level for aid in self.ancestors_of(role_id))
        return min(levels)

    def roles_granting(self, held_role_ids: Iterable[str]) -> FrozenSet[str]:
        """
        Roles whose grants reach a user holding ``held_role_ids``.

        A held role collects the grants of every role below it reached through
        inheriting links. Grants never flow down from a parent to a child.
        Held roles missing from the index (inactive or deleted) grant nothing.
        """
        granting = set()
        for role_id in held_role_ids:
            if role_id not in self._roles:
                logger.debug(f"Ignoring held role {role_id}: not an active role")
                continue
            granting.add(role_id)
            granting.update(self.granting_descendants_of(role_id))
        return frozenset(granting)

    def would_create_cycle(self, child_id: str, parent_id: str) -> bool:
        """Check if adding ``parent_id`` as a parent of ``child_id`` closes a loop."""
        return child_id == parent_id or parent_id in self.descendants_of(child_id)

    def with_edge(self, child_id: str, parent_id: str, inherit: bool = True) -> "RoleHierarchyIndex":
        """
        Return a new index with an extra parent link. The receiver is unchanged.

        With ``inherit=False`` the link shapes the hierarchy but the parent
        does not collect the child's grants through it.

        Raises:
            KeyError: if either role is unknown
            CyclicHierarchyError: if the edge would create a cycle
        """
        for role_id in (child_id, parent_id):
            if role_id not in self._roles:
                raise KeyError(f"Role {role_id} not found in hierarchy")

        if self.would_create_cycle(child_id, parent_id):
            child = self._roles[child_id]
            parent = self._roles[parent_id]
            raise CyclicHierarchyError(
                f"Making {parent.code} a parent of {child.code} would create a circular dependency",
                cycle=[child_id, parent_id, child_id] if child_id != parent_id else [child_id, child_id]
            )

        parents = dict(self._parents)
        parents[child_id] = parents[child_id] | {parent_id}
        roles = dict(self._roles)
        child = roles[child_id]
        non_inheriting = child.non_inheriting_parent_ids - {parent_id}
        if not inherit:
            non_inheriting = non_inheriting | {parent_id}
        roles[child_id] = child.with_parents(parents[child_id], non_inheriting)
        return RoleHierarchyIndex(roles, parents)

    def without_edge(self, child_id: str, parent_id: str) -> "RoleHierarchyIndex":
        """Return a new index without the given parent link."""
        if parent_id not in self.parents_of(child_id):
            return self
        parents = dict(self._parents)
        parents[child_id] = parents[child_id] - {parent_id}
        roles = dict(self._roles)
        child = roles[child_id]
        roles[child_id] = child.with_parents(parents[child_id], child.non_inheriting_parent_ids - {parent_id})
        return RoleHierarchyIndex(roles, parents)

    def tree(self, role_id: str) -> Dict[str, Any]:
        """Nested view of a role and everything below it."""
        role = self._roles[role_id]
        return {
            "id": role.id,
            "code": role.code,
            "hierarchy_level": role.hierarchy_level,
            "children": [
                self.tree(child_id)
                for child_id in sorted(self.children_of(role_id), key=lambda rid: self._roles[rid].code)
            ],
        }

    def __repr__(self) -> str:
        edges = sum(len(p) for p in self._parents.values())
        return f"RoleHierarchyIndex(roles={len(self._roles)}, edges={edges})"


def _closure(start: str, adjacency: Dict[str, FrozenSet[str]]) -> FrozenSet[str]:
    """Breadth-first transitive closure, excluding the start node."""
    seen = set()
    queue = deque(adjacency.get(start, ()))
    while queue:
        node = queue.popleft()
        if node in seen:
            continue
        seen.add(node)
        queue.extend(adjacency.get(node, ()))
    seen.discard(start)
    return frozenset(seen)


def _find_cycle(parents: Dict[str, FrozenSet[str]]) -> Optional[List[str]]:
    """
    Depth-first search with a visiting set over parent links.

    Returns the cycle as a list of role ids (first id repeated at the end),
    or None if the graph is acyclic.
    """
    done = set()
    for root in sorted(parents):
        if root in done:
            continue
        visiting = {root}
        path = [root]
        stack = [iter(sorted(parents[root]))]
        while stack:
            node = next(stack[-1], None)
            if node is None:
                stack.pop()
                finished = path.pop()
                visiting.discard(finished)
                done.add(finished)
                continue
            if node in visiting:
                return path[path.index(node):] + [node]
            if node in done:
                continue
            visiting.add(node)
            path.append(node)
            stack.append(iter(sorted(parents.get(node, ()))))
    return None


def build_index(roles: Iterable[Role]) -> RoleHierarchyIndex:
    """Build a hierarchy index (raises CyclicHierarchyError on cycles)."""
    return RoleHierarchyIndex.build(roles)


def is_ancestor(index: RoleHierarchyIndex, role_id: str, candidate_ancestor_id: str) -> bool:
    """Check if ``candidate_ancestor_id`` is an ancestor of ``role_id`` in ``index``."""
    return index.is_ancestor(role_id, candidate_ancestor_id)


def ancestors_of(index: RoleHierarchyIndex, role_id: str) -> FrozenSet[str]:
    """Transitive set of ancestors of ``role_id`` in ``index``."""
    return index.ancestors_of(role_id)
