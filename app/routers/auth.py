"""Admin authentication endpoints backed by the auth service."""
import logging
from typing import Any

from fastapi import APIRouter, Depends

from app.schemas.auth import AdminPrincipal, LoginRequest
from app.security import get_auth_client, require_admin
from app.services.auth_client import AuthServiceClient
from app.utils.responses import success_response

router = APIRouter(prefix="/admin/auth", tags=["auth"])
logger = logging.getLogger(__name__)


@router.post("/login")
def login(payload: LoginRequest, auth_client: AuthServiceClient = Depends(get_auth_client)) -> dict[str, Any]:
    """Log in through the auth service; only admin roles are accepted."""

    result = auth_client.login(payload.email, payload.password)
    return success_response(result, "Login successful")


@router.post("/logout")
def logout(admin: AdminPrincipal = Depends(require_admin)) -> dict[str, Any]:
    # Tokens are stateless; the client discards its copy.
    logger.info("Admin logout", extra={"admin_id": admin.id})
    return success_response(None, "Logout successful")


@router.get("/verify")
def verify(admin: AdminPrincipal = Depends(require_admin)) -> dict[str, Any]:
    return success_response({"admin": admin}, "Token is valid")
