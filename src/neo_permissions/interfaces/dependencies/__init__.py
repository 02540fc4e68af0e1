"""
FastAPI dependencies for permission checks.
"""

from .permission_dependencies import (
    PermissionChecker,
    require_permission,
    get_decision_service,
    get_current_user_id,
)

__all__ = [
    "PermissionChecker",
    "require_permission",
    "get_decision_service",
    "get_current_user_id",
]
