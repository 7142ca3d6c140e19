"""Authentication API routes."""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    status,
)

from provisioning.api.dependencies.auth import get_current_user, get_jwt_handler, require_permission
from provisioning.api.dependencies.services import get_service_container, ServiceContainer
from provisioning.api.schemas.auth_schemas import (
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from provisioning.domain.models.user import Permission, User
from provisioning.infrastructure.auth.jwt_handler import InvalidTokenError, JWTHandler


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _issue_tokens(user: User, jwt_handler: JWTHandler) -> TokenResponse:
    return TokenResponse(
        access_token=jwt_handler.create_access_token(user),
        refresh_token=jwt_handler.create_refresh_token(user),
        expires_in=jwt_handler.access_token_ttl_seconds,
    )


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    _admin: Annotated[User, Depends(require_permission(Permission.USER_MANAGE))],
    container: Annotated[ServiceContainer, Depends(get_service_container)],
) -> UserResponse:
    """Create an operator account. Only user managers may do this."""
    if await container.user_repo.get_by_username(request.username):
        raise HTTPException(status_code=409, detail="Username already exists")

    user = User(
        username=request.username,
        email=request.email,
        hashed_password=JWTHandler.hash_password(request.password),
        role=request.role,
        tenant_id=request.tenant_id,
    )
    await container.user_repo.save(user)
    return UserResponse.model_validate(user)


@router.post("/login", response_model=TokenResponse)
async def login(
    request: LoginRequest,
    container: Annotated[ServiceContainer, Depends(get_service_container)],
    jwt_handler: Annotated[JWTHandler, Depends(get_jwt_handler)],
) -> TokenResponse:
    """Authenticate and return JWT tokens."""
    user = await container.user_repo.get_by_username(request.username)
    if (
        user is None
        or not user.is_active
        or not JWTHandler.verify_password(request.password, user.hashed_password)
    ):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return _issue_tokens(user, jwt_handler)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    request: RefreshRequest,
    container: Annotated[ServiceContainer, Depends(get_service_container)],
    jwt_handler: Annotated[JWTHandler, Depends(get_jwt_handler)],
) -> TokenResponse:
    """Exchange a refresh token for a new token pair."""
    try:
        payload = jwt_handler.decode_token(request.refresh_token, expected_type="refresh")
    except InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e

    user = await container.user_repo.get_by_id(payload["sub"])
    if user is None or not user.is_active:
        raise HTTPException(status_code=401, detail="Unknown or disabled user")
    return _issue_tokens(user, jwt_handler)


@router.get("/me", response_model=UserResponse)
async def get_me(
    user: Annotated[User, Depends(get_current_user)],
) -> UserResponse:
    """Get current user info."""
    return UserResponse.model_validate(user)


@router.get("/users", response_model=list[UserResponse])
async def list_users(
    admin: Annotated[User, Depends(require_permission(Permission.USER_MANAGE))],
    container: Annotated[ServiceContainer, Depends(get_service_container)],
) -> list[UserResponse]:
    """Operator accounts in the caller's tenant."""
    users = await container.user_repo.list_by_tenant(admin.tenant_id)
    return [UserResponse.model_validate(u) for u in users]


@router.post("/users/{username}/deactivate", response_model=UserResponse)
async def deactivate_user(
    username: str,
    admin: Annotated[User, Depends(require_permission(Permission.USER_MANAGE))],
    container: Annotated[ServiceContainer, Depends(get_service_container)],
) -> UserResponse:
    """Disable an operator account. Outstanding refresh tokens stop working."""
    if username == admin.username:
        raise HTTPException(status_code=409, detail="Cannot deactivate your own account")
    user = await container.user_repo.get_by_username(username)
    if user is None:
        raise HTTPException(status_code=404, detail=f"User {username} not found")

    user.is_active = False
    user.touch()
    await container.user_repo.update(user)
    logger.info("operator_deactivated", username=username, by=admin.username)
    return UserResponse.model_validate(user)
