from fastapi import APIRouter, Depends
from typing import List

from invgen.core.storage import ObjectStorage, get_storage
from invgen.models.user import User
from invgen.repositories import DataStore
from invgen.schemas.user import (
    SignedUploadRequest,
    SignedUploadResponse,
    ThemeResponse,
    UserResponse,
    UserUpdate,
    UserUpdatePassword,
)
from invgen.services.branding import THEMES
from invgen.services.user_service import UserService
from invgen.utils.dependencies import get_current_user, get_store

router = APIRouter(prefix="/profile", tags=["profile"])

@router.get("", response_model=UserResponse)
async def get_profile(
    current_user: User = Depends(get_current_user)
):
    """Get current user information."""
    return current_user


@router.put("", response_model=UserResponse)
async def update_profile(
    user_update: UserUpdate,
    current_user: User = Depends(get_current_user),
    store: DataStore = Depends(get_store),
):
    """Update profile and branding."""
    return await UserService(store).update_profile(current_user, user_update)

@router.put("/password")
async def update_password(
    password_update: UserUpdatePassword,
    current_user: User = Depends(get_current_user),
    store: DataStore = Depends(get_store),
):
    """Update user password."""
    await UserService(store).change_password(current_user, password_update)
    return {"message": "Password updated successfully"}

@router.get("/themes", response_model=List[ThemeResponse])
async def list_themes():
    """Brand themes a profile can pick from."""
    return [ThemeResponse(id=t.id, name=t.name, primary=t.primary, secondary=t.secondary) for t in THEMES]

@router.post("/signed-upload-url", response_model=SignedUploadResponse)
async def create_signed_upload_url(
    upload: SignedUploadRequest,
    current_user: User = Depends(get_current_user),
    store: DataStore = Depends(get_store),
    storage: ObjectStorage = Depends(get_storage),
):
    """Signed URL for uploading an avatar or company logo straight to storage."""
    return await UserService(store).create_signed_upload(current_user, upload.filename, upload.folder, storage)
