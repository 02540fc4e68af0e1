"""
Permission Engine Exceptions

Exception hierarchy for the permission resolution engine with:
- Fatal hierarchy construction errors
- Recoverable delegation chain errors
- Grant store (adapter) failures
- Malformed grant and delegation records
"""

from typing import Any, Dict, List, Optional


class PermissionEngineError(Exception):
    """Base exception for all permission engine errors.
    
    Carries a stable error code and structured details so the HTTP layer
    can render the failure without inspecting the exception type.
    """
    
    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}


class CyclicHierarchyError(PermissionEngineError):
    """Role hierarchy contains a cycle.
    
    Fatal: raised while building or rebuilding the hierarchy index and when
    inserting an edge. The engine refuses to decide until the hierarchy is fixed.
    """
    
    def __init__(self, message: str = "Role hierarchy contains a cycle", cycle: Optional[List[str]] = None):
        super().__init__(message, "CYCLIC_HIERARCHY")
        self.cycle = list(cycle or [])
        self.details["cycle"] = self.cycle


class CyclicDelegationError(PermissionEngineError):
    """Delegation chain loops back to a user already on the chain.
    
    Recoverable: the offending link is excluded and resolution continues.
    """
    
    def __init__(
        self,
        message: str = "Delegation chain contains a cycle",
        chain: Optional[List[str]] = None,
        delegation_id: Optional[str] = None
    ):
        super().__init__(message, "CYCLIC_DELEGATION")
        self.chain = list(chain or [])
        self.delegation_id = delegation_id
        self.details.update({
            "chain": self.chain,
            "delegation_id": delegation_id
        })


class AdapterUnavailableError(PermissionEngineError):
    """Grant store call failed; the decision fails closed."""
    
    def __init__(
        self,
        message: str = "Grant store unavailable",
        operation: Optional[str] = None,
        cause: Optional[BaseException] = None
    ):
        super().__init__(message, "ADAPTER_UNAVAILABLE")
        self.operation = operation
        self.cause = cause
        self.details.update({
            "operation": operation,
            "cause": repr(cause) if cause is not None else None
        })


class InvalidGrantShapeError(PermissionEngineError):
    """Grant scoped to a resource id without a resource type."""
    
    def __init__(self, message: str = "Grant has resource_id without resource_type", grant_id: Optional[str] = None):
        super().__init__(message, "INVALID_GRANT_SHAPE")
        self.grant_id = grant_id
        self.details["grant_id"] = grant_id


class InvalidDelegationError(PermissionEngineError):
    """Delegation record violates its construction rules."""
    
    def __init__(self, message: str = "Invalid delegation", delegation_id: Optional[str] = None):
        super().__init__(message, "INVALID_DELEGATION")
        self.delegation_id = delegation_id
        self.details["delegation_id"] = delegation_id


# Error codes attached to deny verdicts produced by a failure
ADAPTER_UNAVAILABLE = "ADAPTER_UNAVAILABLE"
INTERNAL_ERROR = "INTERNAL_ERROR"

_HTTP_STATUS_CODES = {
    "CYCLIC_HIERARCHY": 500,
    "CYCLIC_DELEGATION": 500,
    ADAPTER_UNAVAILABLE: 503,
    "INVALID_GRANT_SHAPE": 422,
    "INVALID_DELEGATION": 422,
    INTERNAL_ERROR: 500,
}


def get_http_status_code(error_code: Optional[str], default: int = 403) -> int:
    """Map an engine error code to the HTTP status the API layer should return.
    
    A verdict without an error code is a legitimate deny, hence the 403 default.
    """
    if error_code is None:
        return default
    return _HTTP_STATUS_CODES.get(error_code, 500)


def create_error_response(exception: PermissionEngineError) -> Dict[str, Any]:
    """Create standardized error response from exception."""
    return {
        "error": {
            "code": exception.error_code,
            "message": exception.message,
            "details": exception.details,
            "type": exception.__class__.__name__,
        }
    }
