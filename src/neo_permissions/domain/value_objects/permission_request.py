"""
Permission request value object.

Immutable description of one question asked of the engine.
"""
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union


@dataclass(frozen=True)
class PermissionRequest:
    """
    A permission code, optionally narrowed to a resource type or instance.
    """
    permission_code: str
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    
    def __post_init__(self):
        """Validate the request shape."""
        if not self.permission_code:
            raise ValueError("permission_code must be a non-empty string")
        if self.resource_id is not None and self.resource_type is None:
            raise ValueError("resource_id requires resource_type")
    
    @classmethod
    def coerce(
        cls,
        value: Union["PermissionRequest", str, Sequence[Optional[str]]]
    ) -> "PermissionRequest":
        """
        Build a request from a code string, a ``(code, type, id)`` tuple, or
        pass an existing request through.
        """
        if isinstance(value, PermissionRequest):
            return value
        if isinstance(value, str):
            return cls(permission_code=value)
        parts: Tuple[Optional[str], ...] = tuple(value)
        if not 1 <= len(parts) <= 3:
            raise ValueError(f"Expected (code[, resource_type[, resource_id]]), got {value!r}")
        return cls(*parts)
    
    def __str__(self) -> str:
        if self.resource_type is None:
            return self.permission_code
        if self.resource_id is None:
            return f"{self.permission_code}@{self.resource_type}"
        return f"{self.permission_code}@{self.resource_type}/{self.resource_id}"
