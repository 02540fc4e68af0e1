"""Neo-Permissions - permission resolution engine for the NeoMultiTenant platform.

Decides whether a user may perform an action on a resource by combining role
hierarchy inheritance, direct and resource-scoped grants, temporal grants and
delegated authority.

Usage:
    store = AsyncpgGrantStore(pool)
    engine = PermissionDecisionService(store, audit_sink=LoggingAuditSink())
    await engine.invalidate_hierarchy_cache()

    verdict = await engine.check_permission(user_id, "workflow.approve", "workflow", "W-42")
    if not verdict.allowed:
        ...
"""

from .__version__ import __version__

from .config import PermissionEngineSettings, get_settings, setup_logging

from .core.exceptions import (
    PermissionEngineError,
    CyclicHierarchyError,
    CyclicDelegationError,
    AdapterUnavailableError,
    InvalidGrantShapeError,
    InvalidDelegationError,
    ADAPTER_UNAVAILABLE,
    INTERNAL_ERROR,
)

from .domain import (
    Role,
    RoleAssignment,
    PermissionGrant,
    GrantSource,
    SubjectType,
    Specificity,
    role_grant,
    user_grant,
    Delegation,
    WILDCARD_CODE,
    Verdict,
    TrailEntry,
    TrailReason,
    PermissionRequest,
    DecisionAuditRecord,
    GrantStoreProtocol,
    AuditSinkProtocol,
)

from .application import (
    RoleHierarchyIndex,
    RoleHierarchyCache,
    ConflictResolver,
    DelegationChainWalker,
    PermissionDecisionService,
    build_index,
    is_ancestor,
    ancestors_of,
    filter_active,
)

from .infrastructure import AsyncpgGrantStore, InMemoryGrantStore, LoggingAuditSink

__all__ = [
    "__version__",
    # Configuration
    "PermissionEngineSettings",
    "get_settings",
    "setup_logging",
    # Exceptions
    "PermissionEngineError",
    "CyclicHierarchyError",
    "CyclicDelegationError",
    "AdapterUnavailableError",
    "InvalidGrantShapeError",
    "InvalidDelegationError",
    "ADAPTER_UNAVAILABLE",
    "INTERNAL_ERROR",
    # Domain
    "Role",
    "RoleAssignment",
    "PermissionGrant",
    "GrantSource",
    "SubjectType",
    "Specificity",
    "role_grant",
    "user_grant",
    "Delegation",
    "WILDCARD_CODE",
    "Verdict",
    "TrailEntry",
    "TrailReason",
    "PermissionRequest",
    "DecisionAuditRecord",
    "GrantStoreProtocol",
    "AuditSinkProtocol",
    # Engine
    "RoleHierarchyIndex",
    "RoleHierarchyCache",
    "ConflictResolver",
    "DelegationChainWalker",
    "PermissionDecisionService",
    "build_index",
    "is_ancestor",
    "ancestors_of",
    "filter_active",
    # Infrastructure
    "AsyncpgGrantStore",
    "InMemoryGrantStore",
    "LoggingAuditSink",
]
