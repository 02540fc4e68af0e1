"""
Temporal filter - drops grants whose validity window does not cover ``as_of``.

A window is inclusive at ``valid_from`` and exclusive at ``valid_until``.
Expiry is normal steady-state behaviour, so dropped grants are never errors.
"""
from datetime import datetime
from typing import Iterable, List, Tuple

from loguru import logger

from ...domain.entities.delegation import Delegation
from ...domain.entities.grant import PermissionGrant
from ...utils.datetime import to_utc


def partition_active(
    grants: Iterable[PermissionGrant],
    as_of: datetime
) -> Tuple[List[PermissionGrant], List[PermissionGrant]]:
    """
    Split grants into those active at ``as_of`` and those outside their window.

    Returns:
        (active grants, inactive grants), each in input order
    """
    as_of = to_utc(as_of)
    active: List[PermissionGrant] = []
    inactive: List[PermissionGrant] = []
    for grant in grants:
        if grant.is_active_at(as_of):
            active.append(grant)
        else:
            inactive.append(grant)

    if inactive:
        logger.debug(f"Temporal filter dropped {len(inactive)} grant(s) at {as_of.isoformat()}")
    return active, inactive


def filter_active(grants: Iterable[PermissionGrant], as_of: datetime) -> List[PermissionGrant]:
    """Keep grants whose window covers ``as_of``."""
    active, _ = partition_active(grants, as_of)
    return active


def delegation_active(delegation: Delegation, as_of: datetime) -> bool:
    """Check that a delegation is neither revoked nor outside its window."""
    return delegation.is_active_at(as_of)
