"""
User Routes

Endpoints for user profile management.
"""

from typing import Annotated, List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_active_user
from app.core.database import get_db
from app.models.user import User
from app.schemas.auth import MessageResponse
from app.schemas.user import PasswordUpdate, UserResponse, UserUpdate
from app.services import account_service


router = APIRouter(prefix="/users", tags=["Users"])


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get current user profile",
)
async def get_me(
    current_user: Annotated[User, Depends(get_current_active_user)],
) -> User:
    """
    Get the currently logged-in user's profile.

    This endpoint requires authentication via Bearer token.
    """
    return current_user


@router.patch(
    "/me",
    response_model=UserResponse,
    summary="Update current user profile",
)
async def update_me(
    user_update: UserUpdate,
    current_user: Annotated[User, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Update the currently logged-in user's profile.

    Only provided fields are updated.

    Raises:
        409 if the new email already exists.
    """
    return await account_service.update_profile(db, current_user, user_update)


@router.put(
    "/me/password",
    response_model=MessageResponse,
    summary="Change password",
)
async def update_password(
    data: PasswordUpdate,
    current_user: Annotated[User, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> MessageResponse:
    """
    Change the password after checking the current one.

    Raises:
        401 if the current password is wrong.
    """
    await account_service.update_password(
        db, current_user, data.current_password, data.new_password
    )
    return MessageResponse(message="Password changed successfully.")


@router.delete(
    "/me",
    response_model=MessageResponse,
    summary="Delete current account",
)
async def delete_me(
    current_user: Annotated[User, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> MessageResponse:
    await account_service.delete_account(db, current_user)
    return MessageResponse(message="Profile deleted.")


@router.get(
    "",
    response_model=List[UserResponse],
    summary="List all profiles (admin)",
)
async def list_profiles(
    current_user: Annotated[User, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> List[User]:
    """
    List every account.

    Raises:
        403 if the caller is not an admin.
    """
    return await account_service.list_profiles(db, current_user)
