"""
Role entity - node of the role hierarchy.

Roles form a shared DAG through parent links. A lower hierarchy level means
more authority (0 is the top).
"""
from dataclasses import dataclass, replace
from datetime import datetime
from typing import FrozenSet, Iterable, Optional

from ...utils.datetime import to_utc


@dataclass(frozen=True)
class Role:
    """
    Role snapshot as read from the grant store.
    
    Parent links point at more privileged roles. The hierarchy index is
    built from these links; the entity itself never references other
    Role objects.
    
    ``non_inheriting_parent_ids`` names the parent links that keep the
    hierarchy shape but do not pass this role's grants up to the parent.
    """
    id: str
    code: str
    hierarchy_level: int = 0
    parent_ids: FrozenSet[str] = frozenset()
    name: Optional[str] = None
    is_active: bool = True
    non_inheriting_parent_ids: FrozenSet[str] = frozenset()
    
    def __post_init__(self):
        """Normalize parent ids into frozensets."""
        if not isinstance(self.parent_ids, frozenset):
            object.__setattr__(self, 'parent_ids', frozenset(self.parent_ids or ()))
        non_inheriting = frozenset(self.non_inheriting_parent_ids or ()) & self.parent_ids
        object.__setattr__(self, 'non_inheriting_parent_ids', non_inheriting)
        if self.name is None:
            object.__setattr__(self, 'name', self.code)
    
    @property
    def is_root(self) -> bool:
        """Check if the role has no parents."""
        return not self.parent_ids
    
    @property
    def inheriting_parent_ids(self) -> FrozenSet[str]:
        """Parent links that pass this role's grants up."""
        return self.parent_ids - self.non_inheriting_parent_ids
    
    def with_parents(
        self,
        parent_ids: Iterable[str],
        non_inheriting_parent_ids: Optional[Iterable[str]] = None
    ) -> "Role":
        """Return a copy with a new parent set."""
        if non_inheriting_parent_ids is None:
            non_inheriting_parent_ids = self.non_inheriting_parent_ids
        return replace(
            self,
            parent_ids=frozenset(parent_ids),
            non_inheriting_parent_ids=frozenset(non_inheriting_parent_ids)
        )
    
    def __str__(self) -> str:
        return self.code
    
    def __repr__(self) -> str:
        return f"Role(code='{self.code}', level={self.hierarchy_level}, parents={len(self.parent_ids)})"


@dataclass(frozen=True)
class RoleAssignment:
    """
    A role held by a user, optionally for a limited window.
    
    The window is inclusive at ``valid_from`` and exclusive at ``valid_until``.
    """
    role_id: str
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    
    def is_active_at(self, as_of: datetime) -> bool:
        """Check if the assignment's window covers ``as_of``."""
        as_of = to_utc(as_of)
        if self.valid_from is not None and to_utc(self.valid_from) > as_of:
            return False
        if self.valid_until is not None and to_utc(self.valid_until) <= as_of:
            return False
        return True
    
    def __str__(self) -> str:
        return self.role_id
