"""
FastAPI dependencies mapping engine verdicts onto HTTP responses.

Applications provide the current user id and the decision service through
``app.dependency_overrides``:

    app.dependency_overrides[get_current_user_id] = current_user_id_from_token
    app.dependency_overrides[get_decision_service] = lambda: decision_service

    @app.get("/workflows/{workflow_id}", dependencies=[Depends(
        require_permission("workflow.read", "workflow", resource_id_param="workflow_id")
    )])
"""
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from loguru import logger

from ...application.services.decision_service import PermissionDecisionService
from ...core.exceptions import PermissionEngineError, create_error_response, get_http_status_code
from ...domain.entities.verdict import Verdict


def get_decision_service() -> PermissionDecisionService:
    """Get the decision service instance."""
    raise NotImplementedError("Configure the decision service via app.dependency_overrides")


def get_current_user_id() -> str:
    """Get the authenticated user's id."""
    raise NotImplementedError("Configure current user resolution via app.dependency_overrides")


class PermissionChecker:
    """
    Callable dependency requiring one permission.

    Returns the verdict on allow. On deny raises 403, or 503 when the deny
    was forced by an unavailable grant store, so clients can tell an outage
    from a refusal.
    """

    def __init__(
        self,
        permission_code: str,
        resource_type: Optional[str] = None,
        resource_id_param: Optional[str] = None,
        explain: bool = False
    ):
        """
        Args:
            permission_code: code to check, e.g. ``workflow.approve``
            resource_type: resource type the endpoint operates on
            resource_id_param: path or query parameter holding the resource id
            explain: include the full explanation trail in deny responses
        """
        if resource_id_param is not None and resource_type is None:
            raise ValueError("resource_id_param requires resource_type")
        self.permission_code = permission_code
        self.resource_type = resource_type
        self.resource_id_param = resource_id_param
        self.explain = explain

    def _resource_id(self, request: Request) -> Optional[str]:
        if self.resource_id_param is None:
            return None
        value = request.path_params.get(self.resource_id_param)
        if value is None:
            value = request.query_params.get(self.resource_id_param)
        return str(value) if value is not None else None

    async def __call__(
        self,
        request: Request,
        user_id: str = Depends(get_current_user_id),
        service: PermissionDecisionService = Depends(get_decision_service)
    ) -> Verdict:
        resource_id = self._resource_id(request)
        try:
            verdict = await service.check_permission(
                user_id,
                self.permission_code,
                self.resource_type,
                resource_id,
                debug=self.explain
            )
        except PermissionEngineError as e:
            logger.error(f"Permission engine refused to decide {self.permission_code}: {e.message}")
            raise HTTPException(
                status_code=get_http_status_code(e.error_code),
                detail=create_error_response(e)
            )

        if verdict.allowed:
            return verdict

        status_code = get_http_status_code(verdict.error_code, default=status.HTTP_403_FORBIDDEN)
        raise HTTPException(status_code=status_code, detail=verdict.to_dict())


def require_permission(
    permission_code: str,
    resource_type: Optional[str] = None,
    resource_id_param: Optional[str] = None,
    explain: bool = False
) -> PermissionChecker:
    """
    Dependency factory for requiring a specific permission.

    Usage:
        @app.get("/users", dependencies=[Depends(require_permission("user.read"))])
    """
    return PermissionChecker(permission_code, resource_type, resource_id_param, explain)
