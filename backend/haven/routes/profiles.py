"""
Handcrafted Haven Backend — Profile Route Handlers
==================================================

What:  The signed-in user's own profile (/api/profiles/me/*), public
       profile pages and artisan verification.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from haven.database import get_db_session
from haven.deps import current_user, is_admin, require_admin
from haven.models.user_profile import UserProfile
from haven.schemas.common import ErrorResponse, MessageResponse
from haven.schemas.profile import (
    BecomeArtisanRequest,
    DeleteAccountRequest,
    ImageUploadResponse,
    ProfileMutationResponse,
    ProfileUpdateRequest,
    PublicProfileWithStats,
    ShopUpdateRequest,
)
from haven.services.profile_service import profile_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/profiles", tags=["Profiles"])


@router.patch(
    "/me",
    response_model=ProfileMutationResponse,
    responses={
        400: {"description": "Nothing to update", "model": ErrorResponse},
        403: {"description": "Verification flag set by a non-admin", "model": ErrorResponse},
    },
    summary="Update your profile",
    description="Accepts canonical and legacy field names (first_name, avatar_url, is_artisan...).",
)
async def update_my_profile(
    body: ProfileUpdateRequest,
    user: UserProfile = Depends(current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ProfileMutationResponse:
    return await profile_service.update_profile(
        db, user.id, body, allow_verification=is_admin(user)
    )


@router.post(
    "/me/artisan",
    response_model=ProfileMutationResponse,
    responses={400: {"description": "Shop name missing", "model": ErrorResponse}},
    summary="Become an artisan",
)
async def become_artisan(
    body: BecomeArtisanRequest,
    user: UserProfile = Depends(current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ProfileMutationResponse:
    return await profile_service.become_artisan(db, user.id, body)


@router.patch(
    "/me/shop",
    response_model=ProfileMutationResponse,
    responses={403: {"description": "Caller is not an artisan", "model": ErrorResponse}},
    summary="Update shop information",
)
async def update_shop(
    body: ShopUpdateRequest,
    user: UserProfile = Depends(current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ProfileMutationResponse:
    return await profile_service.update_shop_info(db, user.id, body)


@router.post(
    "/me/avatar",
    status_code=201,
    response_model=ImageUploadResponse,
    responses={400: {"description": "Invalid file type or size", "model": ErrorResponse}},
    summary="Upload a profile image",
    description="JPEG, PNG or WebP up to 2MB. Replaces (and deletes) the previous image.",
)
async def upload_avatar(
    file: UploadFile = File(..., description="Profile image (JPEG, PNG or WebP, max 2MB)"),
    user: UserProfile = Depends(current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ImageUploadResponse:
    content = await file.read()
    logger.info("Avatar upload from %s: %s (%d bytes)", user.id, file.filename, len(content))
    try:
        return await profile_service.upload_profile_image(
            db, user.id, file.filename, content, file.content_type
        )
    finally:
        await file.close()


@router.delete(
    "/me/avatar",
    response_model=ProfileMutationResponse,
    summary="Remove your profile image",
)
async def delete_avatar(
    user: UserProfile = Depends(current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ProfileMutationResponse:
    return await profile_service.delete_profile_image(db, user.id)


@router.delete(
    "/me",
    response_model=MessageResponse,
    responses={400: {"description": "Confirmation text mismatch", "model": ErrorResponse}},
    summary="Permanently delete your account",
    description='The body must contain {"confirmation_text": "DELETE MY ACCOUNT"}.',
)
async def delete_my_account(
    body: DeleteAccountRequest,
    user: UserProfile = Depends(current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    return await profile_service.delete_account(db, user.id, body.confirmation_text)


@router.get(
    "/{user_id}",
    response_model=PublicProfileWithStats,
    responses={404: {"description": "Profile not found", "model": ErrorResponse}},
    summary="Public profile",
)
async def get_public_profile(
    user_id: UUID,
    db: AsyncSession = Depends(get_db_session),
) -> PublicProfileWithStats:
    return await profile_service.get_public_profile(db, user_id)


@router.post(
    "/{user_id}/verify",
    response_model=ProfileMutationResponse,
    responses={403: {"description": "Administrator access required", "model": ErrorResponse}},
    summary="Verify an artisan (admin)",
)
async def verify_artisan(
    user_id: UUID,
    admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> ProfileMutationResponse:
    logger.info("Admin %s verifying artisan %s", admin.id, user_id)
    return await profile_service.verify_artisan(db, user_id)
