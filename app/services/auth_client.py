"""Client for the external authentication service."""
from __future__ import annotations

import logging
from typing import Any

import httpx

from app.config import ADMIN_ROLES
from app.schemas.auth import AdminPrincipal
from app.utils.errors import ForbiddenError, ServiceUnavailableError, UnauthorizedError

logger = logging.getLogger(__name__)

VERIFY_PATH = "/auth/verify-token"
LOGIN_PATH = "/auth/login"


def _error_message(response: httpx.Response, fallback: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return fallback
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return fallback


def _require_admin_role(user: dict[str, Any]) -> None:
    if user.get("user_type") not in ADMIN_ROLES:
        logger.warning(
            "Non-admin principal rejected",
            extra={"user_id": user.get("id"), "user_type": user.get("user_type")},
        )
        raise ForbiddenError("Admin access required")


class AuthServiceClient:
    """Verifies bearer tokens and performs admin login against the auth service.

    Timeouts and refused connections fail closed with
    :class:`ServiceUnavailableError`; every other transport problem is
    reported as :class:`UnauthorizedError`.
    """

    def __init__(
        self,
        base_url: str,
        *,
        service_key: str | None = None,
        timeout: float = 5.0,
        login_timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.service_key = service_key
        self.timeout = timeout
        self.login_timeout = login_timeout
        self._transport = transport

    def _client(self, timeout: float, headers: dict[str, str] | None = None) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            headers={"Content-Type": "application/json", **(headers or {})},
            timeout=timeout,
            transport=self._transport,
        )

    def _post(self, path: str, payload: dict[str, Any], *, timeout: float, headers: dict[str, str] | None = None) -> httpx.Response:
        try:
            with self._client(timeout, headers) as client:
                return client.post(path, json=payload)
        except (httpx.TimeoutException, httpx.ConnectError) as exc:
            logger.error("Auth service unreachable", extra={"path": path, "error": str(exc)})
            raise ServiceUnavailableError("Authentication service is temporarily unavailable") from exc
        except httpx.HTTPError as exc:
            logger.error("Auth service communication error", extra={"path": path, "error": str(exc)})
            raise UnauthorizedError("Token verification failed") from exc

    def verify_token(self, token: str) -> AdminPrincipal:
        """Return the admin principal behind ``token`` or raise."""

        headers = {"X-Internal-Service": "true"}
        if self.service_key:
            headers["X-Service-Key"] = self.service_key
        response = self._post(VERIFY_PATH, {"token": token}, timeout=self.timeout, headers=headers)

        body: dict[str, Any] = {}
        if response.is_success:
            try:
                body = response.json()
            except ValueError:
                body = {}
        data = body.get("data") or {}
        if not body.get("success") or not data.get("valid"):
            logger.warning("Invalid or expired admin token", extra={"status_code": response.status_code})
            raise UnauthorizedError("Invalid or expired token")

        user = data.get("user") or {}
        _require_admin_role(user)
        return AdminPrincipal(
            id=str(user.get("id")),
            email=user.get("email"),
            username=user.get("username"),
            user_type=user["user_type"],
        )

    def login(self, email: str, password: str) -> dict[str, Any]:
        """Log an admin in and return ``{"user": ..., "token": ...}``."""

        logger.info("Attempting admin login", extra={"email": email})
        response = self._post(LOGIN_PATH, {"email": email, "password": password}, timeout=self.login_timeout)
        if not response.is_success:
            raise UnauthorizedError(_error_message(response, "Login failed"))

        try:
            body = response.json()
        except ValueError as exc:
            raise UnauthorizedError("Login failed") from exc
        if not body.get("success"):
            raise UnauthorizedError(_error_message(response, "Login failed"))

        data = body.get("data") or {}
        user = data.get("user") or {}
        _require_admin_role(user)
        logger.info("Admin login successful", extra={"user_id": user.get("id"), "user_type": user.get("user_type")})
        return {
            "user": {
                "id": user.get("id"),
                "email": user.get("email"),
                "username": user.get("username"),
                "user_type": user.get("user_type"),
                "is_active": user.get("is_active"),
            },
            "token": data.get("token"),
        }


__all__ = ["AuthServiceClient", "LOGIN_PATH", "VERIFY_PATH"]
