"""Pydantic schemas for identity admin endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import Field

from socialhub.schemas.common import ApiModel


class UserOut(ApiModel):
    id: str
    username: str
    email: str
    created_at: datetime
    updated_at: datetime | None = None


class UserStats(ApiModel):
    total_users: int
    total_active_tokens: int
    latest_registration: datetime | None = None


class AdminUsersData(ApiModel):
    users: List[UserOut] = Field(default_factory=list)
    stats: UserStats


class AdminUsersResponse(ApiModel):
    success: bool = True
    data: AdminUsersData


class DatabaseStats(ApiModel):
    total_users: int
    total_active_tokens: int
    new_users_today: int = Field(..., description="Users created in the last 24 hours.")
    database_name: str
    timestamp: datetime


class AdminStatsResponse(ApiModel):
    success: bool = True
    data: DatabaseStats


class ClearedCounts(ApiModel):
    deleted_users: int
    deleted_tokens: int


class ClearUsersResponse(ApiModel):
    success: bool = True
    message: str
    data: ClearedCounts


class CreateUserRequest(ApiModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: str = Field(..., min_length=3, max_length=254, pattern=r"^[^@\s]+@[^@\s]+$")


class CreateUserResponse(ApiModel):
    success: bool = True
    data: UserOut
