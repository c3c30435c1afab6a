from fastapi import Depends, HTTPException, status

from approvals_api.middleware.auth import get_current_principal
from approvals_api.services.role_service import Principal


def require_roles(*allowed_roles: str):
    """
    FastAPI dependency factory for role-based access control.

    Usage:
        @router.post("/levels")
        async def create_level(
            principal: Principal = Depends(get_current_principal),
            _auth: None = Depends(require_roles("admin", "procurement_officer")),
        ):
    """
    async def check_role(principal: Principal = Depends(get_current_principal)):
        if not principal.has_role(*allowed_roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error": {
                        "code": "INSUFFICIENT_PERMISSIONS",
                        "message": (
                            f"Roles {sorted(principal.roles)} cannot perform this action. "
                            f"Required one of: {list(allowed_roles)}"
                        ),
                    }
                },
            )
        return None

    return check_role
