"""
Permission engine application services.
"""

from .hierarchy_index import RoleHierarchyIndex, build_index, is_ancestor, ancestors_of
from .hierarchy_cache import RoleHierarchyCache
from .temporal_filter import filter_active, partition_active, delegation_active
from .conflict_resolver import ConflictResolver, Resolution, resolve
from .decision_context import DecisionContext
from .grant_collector import GrantCollector, CollectedGrants
from .delegation_walker import DelegationChainWalker, DelegationExpansion
from .decision_service import PermissionDecisionService

__all__ = [
    "RoleHierarchyIndex",
    "build_index",
    "is_ancestor",
    "ancestors_of",
    "RoleHierarchyCache",
    "filter_active",
    "partition_active",
    "delegation_active",
    "ConflictResolver",
    "Resolution",
    "resolve",
    "DecisionContext",
    "GrantCollector",
    "CollectedGrants",
    "DelegationChainWalker",
    "DelegationExpansion",
    "PermissionDecisionService",
]
