"""Authentication dependencies for FastAPI."""

from __future__ import annotations

from collections.abc import Callable, Coroutine
from typing import Annotated, Any

import structlog
from fastapi import (
    Depends,
    HTTPException,
    Security,
    status,
)
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from provisioning.config import get_settings
from provisioning.domain.models.user import Permission, Role, User
from provisioning.infrastructure.auth.jwt_handler import InvalidTokenError, JWTHandler


logger = structlog.get_logger(__name__)

security = HTTPBearer()


def get_jwt_handler() -> JWTHandler:
    return JWTHandler(get_settings().auth)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Security(security)],
    jwt_handler: Annotated[JWTHandler, Depends(get_jwt_handler)],
) -> User:
    """Rebuild the calling operator from the claims of a valid access token."""
    try:
        payload = jwt_handler.decode_token(credentials.credentials, expected_type="access")
    except InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    try:
        role = Role(payload.get("role", Role.AUDITOR.value))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown role") from e

    user = User(
        id=payload["sub"],
        username=payload.get("username", payload["sub"]),
        email=payload.get("email", ""),
        role=role,
        tenant_id=payload.get("tenant_id", "default"),
    )
    # Saga and audit log lines emitted for this request name the operator.
    structlog.contextvars.bind_contextvars(actor=user.username)
    return user


def require_permission(*permissions: Permission) -> Callable[..., Coroutine[Any, Any, User]]:
    """Dependency factory that requires any one of ``permissions``."""

    async def check_permissions(
        user: Annotated[User, Depends(get_current_user)],
    ) -> User:
        if not user.has_any_permission(*permissions):
            logger.warning(
                "permission_denied",
                username=user.username,
                role=user.role.value,
                required=[p.value for p in permissions],
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required: {[p.value for p in permissions]}",
            )
        return user

    return check_permissions
