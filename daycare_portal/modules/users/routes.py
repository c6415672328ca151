from fastapi import APIRouter, Depends, Query, Response, status
from daycare_portal.core.dependencies import get_current_user, get_user_service, require_admin
from daycare_portal.modules.users.schemas import (
    AdminUserUpdate, ProfileUpdate, UserEnvelope, UserSearchResponse
)
from daycare_portal.modules.users.service import UserService
from typing import Dict

router = APIRouter(tags=["users"])
admin_router = APIRouter(prefix="/admin/users", tags=["admin"])


@router.post("/bootstrap", response_model=UserEnvelope)
async def bootstrap(
    response: Response,
    current_user: Dict = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    """Create the caller's profile on first login, or return the existing one unchanged"""
    profile, created = service.bootstrap(current_user["uid"], current_user["email"])
    if created:
        response.status_code = status.HTTP_201_CREATED
        return UserEnvelope(message="User created successfully", user=profile)
    return UserEnvelope(message="User already exists", user=profile)


@router.get("/profile", response_model=UserEnvelope, response_model_exclude_none=True)
async def get_profile(
    current_user: Dict = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    """Get current user's profile"""
    return UserEnvelope(user=service.get_profile(current_user["uid"]))


@router.put("/profile", response_model=UserEnvelope)
async def update_profile(
    profile_data: ProfileUpdate,
    current_user: Dict = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    """Update own display name and phone. Role cannot be changed here."""
    profile = service.update_own_profile(current_user["uid"], profile_data)
    return UserEnvelope(message="Profile updated successfully", user=profile)


@admin_router.get("/search", response_model=UserSearchResponse)
async def search_users(
    q: str = Query(..., min_length=1, max_length=100),
    admin: Dict = Depends(require_admin),
    service: UserService = Depends(get_user_service)
):
    """Search users by email or display name (admin only)"""
    users = service.search_users(q)
    return UserSearchResponse(users=users, count=len(users))


@admin_router.put("/{uid}", response_model=UserEnvelope)
async def update_user(
    uid: str,
    user_data: AdminUserUpdate,
    admin: Dict = Depends(require_admin),
    service: UserService = Depends(get_user_service)
):
    """Update another user's profile and role (admin only, never the caller's own record)"""
    profile = service.admin_update_user(admin["uid"], uid, user_data)
    return UserEnvelope(message="User updated successfully", user=profile)
