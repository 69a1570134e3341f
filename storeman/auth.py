"""
Bearer-token checks for admin routes.

API Gateway's Cognito authorizer has already verified the token signature
before a request reaches Storeman, so the payload is decoded without
verification and only the claims are inspected.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass

import jwt

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthResult:
    """Result of an authentication check.

    status_code is 200 on success, 401 otherwise.
    """

    status_code: int
    user_id: str | None = None
    is_admin: bool = False
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.status_code == 200


def _authorization_header(headers: Mapping[str, str]) -> str | None:
    for name, value in headers.items():
        if name.lower() == "authorization":
            return value
    return None


def check_authentication(headers: Mapping[str, str] | None, admin_group: str | None = None) -> AuthResult:
    """
    Identify the caller from the Authorization header.

    Args:
        headers: Request headers (case-insensitive lookup)
        admin_group: Cognito group granting admin rights; defaults to
            STOREMAN["ADMIN_GROUP"]

    Returns:
        AuthResult
    """
    if admin_group is None:
        from storeman.conf import storeman_settings

        admin_group = storeman_settings.ADMIN_GROUP

    header = _authorization_header(headers or {})
    if not header:
        return AuthResult(401, message="Unauthorized - no authorization header")

    token = header[len("Bearer "):] if header.startswith("Bearer ") else header
    try:
        payload = jwt.decode(token.strip(), options={"verify_signature": False})
    except jwt.PyJWTError as exc:
        logger.warning("Authentication error: %s", exc)
        return AuthResult(401, message="Unauthorized - invalid token")

    user_id = payload.get("sub")
    if not user_id:
        return AuthResult(401, message="Unauthorized - no user context")

    groups = payload.get("cognito:groups") or []
    if isinstance(groups, str):
        groups = [groups]
    return AuthResult(200, user_id=user_id, is_admin=admin_group in groups)
