from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.auth.models.user import Account
from app.features.auth.routes.auth import get_current_user
from app.features.auth.schemas.auth import AccountResponse, ChangePasswordRequest
from app.features.notifications.schemas.notifications import (
    NotificationPreferenceResponse,
    NotificationPreferenceUpdate,
)
from app.features.notifications.services.preferences import NotificationPreferenceService
from app.features.profile.schemas.profile import (
    ProfileUpdate,
    SecuritySettingsResponse,
    SecuritySettingsUpdate,
    SubUserCreate,
    SubUserResponse,
    SubUserUpdate,
)
from app.features.profile.services.profile_service import ProfileService
from app.features.profile.services.sub_user_service import SubUserService
from app.platform.db.session import get_db
from app.platform.response import api_response

router = APIRouter(prefix="/profile", tags=["Profile"])


@router.get("", response_model=dict)
async def get_profile(current_user: Account = Depends(get_current_user)):
    return api_response(data=AccountResponse.model_validate(current_user), message="Profile retrieved")


@router.patch("", response_model=dict)
async def update_profile(
    request: ProfileUpdate,
    current_user: Account = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    account = await ProfileService(db).update_profile(current_user, request)
    return api_response(data=AccountResponse.model_validate(account), message="Profile updated successfully")


@router.post("/change-password", response_model=dict)
async def change_password(
    request: ChangePasswordRequest,
    current_user: Account = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await ProfileService(db).change_password(current_user, request)
    return api_response(data=None, message="Password changed successfully")


@router.get("/notification-preferences", response_model=dict)
async def get_notification_preferences(
    current_user: Account = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    preference = await NotificationPreferenceService(db).get_preferences(current_user.id)
    return api_response(
        data=NotificationPreferenceResponse.model_validate(preference),
        message="Notification preferences retrieved",
    )


@router.patch("/notification-preferences", response_model=dict)
async def update_notification_preferences(
    request: NotificationPreferenceUpdate,
    current_user: Account = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    preference = await NotificationPreferenceService(db).update_preferences(
        current_user.id, request.model_dump(exclude_none=True)
    )
    return api_response(
        data=NotificationPreferenceResponse.model_validate(preference),
        message="Notification preferences updated",
    )


@router.get("/security", response_model=dict)
async def get_security_settings(
    current_user: Account = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    security = await ProfileService(db).get_security_settings(current_user)
    return api_response(data=SecuritySettingsResponse.model_validate(security), message="Security settings retrieved")


@router.patch("/security", response_model=dict)
async def update_security_settings(
    request: SecuritySettingsUpdate,
    current_user: Account = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    security = await ProfileService(db).update_security_settings(current_user, request)
    return api_response(data=SecuritySettingsResponse.model_validate(security), message="Security settings updated")


@router.get("/sub-users", response_model=dict)
async def list_sub_users(
    current_user: Account = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    sub_users = await SubUserService(db).list_sub_users(current_user)
    return api_response(
        data=[SubUserResponse(**sub_user) for sub_user in sub_users],
        message="Sub-users retrieved",
    )


@router.post("/sub-users", response_model=dict, status_code=status.HTTP_201_CREATED)
async def create_sub_user(
    request: SubUserCreate,
    current_user: Account = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    sub_user = await SubUserService(db).create_sub_user(current_user, request)
    return api_response(
        data=SubUserResponse(**sub_user),
        message="Sub-user created successfully",
        status_code=status.HTTP_201_CREATED,
    )


@router.patch("/sub-users/{sub_user_id}", response_model=dict)
async def update_sub_user(
    sub_user_id: int,
    request: SubUserUpdate,
    current_user: Account = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    sub_user = await SubUserService(db).update_sub_user(current_user, sub_user_id, request)
    return api_response(data=SubUserResponse(**sub_user), message="Sub-user updated successfully")


@router.delete("/sub-users/{sub_user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_sub_user(
    sub_user_id: int,
    current_user: Account = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await SubUserService(db).delete_sub_user(current_user, sub_user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
