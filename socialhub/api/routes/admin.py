from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, status

from socialhub.core.auth import verify_admin_api_key
from socialhub.core.dependencies import get_identity_service
from socialhub.core.rate_limit import enforce_sensitive_rate_limit
from socialhub.schemas.admin import (
    AdminStatsResponse,
    AdminUsersData,
    AdminUsersResponse,
    ClearedCounts,
    ClearUsersResponse,
    CreateUserRequest,
    CreateUserResponse,
    DatabaseStats,
    UserOut,
    UserStats,
)
from socialhub.services.identity_service import IdentityAdminService

router = APIRouter(
    prefix="/api/admin",
    tags=["Admin"],
    dependencies=[Depends(verify_admin_api_key)],
)


@router.get("/users", response_model=AdminUsersResponse)
async def list_users(
    service: Annotated[IdentityAdminService, Depends(get_identity_service)],
) -> AdminUsersResponse:
    """List users, newest first, with token and registration stats."""
    result = await service.list_users()
    users = [
        UserOut(
            id=u["_id"],
            username=u["username"],
            email=u["email"],
            created_at=u["created_at"],
            updated_at=u.get("updated_at"),
        )
        for u in result["users"]
    ]
    return AdminUsersResponse(data=AdminUsersData(users=users, stats=UserStats(**result["stats"])))


@router.post(
    "/users",
    response_model=CreateUserResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(enforce_sensitive_rate_limit)],
)
async def create_user(
    body: CreateUserRequest,
    service: Annotated[IdentityAdminService, Depends(get_identity_service)],
) -> CreateUserResponse:
    """Provision a user record."""
    user = await service.add_user(body.username, body.email)
    return CreateUserResponse(
        data=UserOut(
            id=user["_id"],
            username=user["username"],
            email=user["email"],
            created_at=user["created_at"],
            updated_at=user.get("updated_at"),
        )
    )


@router.get("/stats", response_model=AdminStatsResponse)
async def database_stats(
    service: Annotated[IdentityAdminService, Depends(get_identity_service)],
) -> AdminStatsResponse:
    return AdminStatsResponse(data=DatabaseStats(**await service.stats()))


@router.delete(
    "/users/clear",
    response_model=ClearUsersResponse,
    dependencies=[Depends(enforce_sensitive_rate_limit)],
)
async def clear_users(
    service: Annotated[IdentityAdminService, Depends(get_identity_service)],
) -> ClearUsersResponse:
    """Delete every user and refresh token (refused in production)."""
    counts = await service.clear_all()
    return ClearUsersResponse(
        message="All users and tokens cleared",
        data=ClearedCounts(**counts),
    )
