# app/security.py
"""Security dependencies delegating admin authentication to the auth service."""
from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import Depends, Header

from app.config import get_settings
from app.schemas.auth import AdminPrincipal
from app.services.auth_client import AuthServiceClient
from app.utils.errors import UnauthorizedError

logger = logging.getLogger(__name__)


def _extract_token(authorization: str | None = Header(default=None)) -> str | None:
    """Read the token from ``Authorization: Bearer ...``."""
    if authorization and authorization.startswith("Bearer "):
        token = authorization.split(" ", 1)[1].strip()
        return token or None
    return None


@lru_cache
def get_auth_client() -> AuthServiceClient:
    settings = get_settings()
    return AuthServiceClient(
        settings.AUTH_SERVICE_URL,
        service_key=settings.INTERNAL_SERVICE_KEY,
        timeout=settings.AUTH_TIMEOUT_SECONDS,
        login_timeout=settings.AUTH_LOGIN_TIMEOUT_SECONDS,
    )


def require_admin(
    token: str | None = Depends(_extract_token),
    auth_client: AuthServiceClient = Depends(get_auth_client),
) -> AdminPrincipal:
    """Validate the bearer token with the auth service and return the admin."""
    if not token:
        logger.warning("Admin authentication failed: no token provided")
        raise UnauthorizedError("Access token is required")
    principal = auth_client.verify_token(token)
    logger.debug("Admin authenticated", extra={"admin_id": principal.id, "user_type": principal.user_type})
    return principal


__all__ = ["get_auth_client", "require_admin"]
