"""Core module for neo-permissions: exception hierarchy and error codes."""

from .exceptions import (
    PermissionEngineError,
    CyclicHierarchyError,
    CyclicDelegationError,
    AdapterUnavailableError,
    InvalidGrantShapeError,
    InvalidDelegationError,
    ADAPTER_UNAVAILABLE,
    INTERNAL_ERROR,
    get_http_status_code,
    create_error_response,
)

__all__ = [
    "PermissionEngineError",
    "CyclicHierarchyError",
    "CyclicDelegationError",
    "AdapterUnavailableError",
    "InvalidGrantShapeError",
    "InvalidDelegationError",
    "ADAPTER_UNAVAILABLE",
    "INTERNAL_ERROR",
    "get_http_status_code",
    "create_error_response",
]
