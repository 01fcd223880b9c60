"""
Handcrafted Haven Backend — Profile Schemas
===========================================

What:  Request and response models for user profiles, artisan shops and
       the seller directory.

Legacy field mapping:
    Older storefront pages read `first_name`, `last_name`, `is_artisan`,
    `artisan_verified` and `avatar_url`. Every profile response carries
    those alongside the canonical columns:

        first_name       = first word of full_name
        last_name        = remaining words of full_name
        is_artisan       = role in {seller, artisan}
        artisan_verified = is_verified
        avatar_url       = profile_image_url
"""

import uuid
from datetime import datetime
from typing import List, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from haven.models.user_profile import ARTISAN_ROLES, UserProfile


def split_full_name(full_name: Optional[str]) -> Tuple[str, str]:
    """Split "Ana Maria Lopez" into ("Ana", "Maria Lopez")."""
    parts = (full_name or "").split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


def _legacy_fields(profile: UserProfile) -> dict:
    first_name, last_name = split_full_name(profile.full_name)
    return {
        "first_name": first_name,
        "last_name": last_name,
        "is_artisan": profile.role in ARTISAN_ROLES,
        "artisan_verified": profile.is_verified,
        "avatar_url": profile.profile_image_url,
    }


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class PublicProfileResponse(BaseModel):
    """
    What:  Fields anyone may see on a seller or member page.
    Who:   GET /api/profiles/{id}, GET /api/sellers.
    Why:   Email, phone and account flags stay private.
    """
    id: uuid.UUID
    full_name: str
    username: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    profile_image_url: Optional[str] = None
    role: str
    shop_name: Optional[str] = None
    shop_description: Optional[str] = None
    website_url: Optional[str] = None
    instagram_handle: Optional[str] = None
    facebook_url: Optional[str] = None
    is_verified: bool
    created_at: datetime

    # Legacy names
    first_name: str = ""
    last_name: str = ""
    is_artisan: bool = False
    artisan_verified: bool = False
    avatar_url: Optional[str] = None

    @classmethod
    def from_model(cls, profile: UserProfile, **extra) -> "PublicProfileResponse":
        data = {
            "id": profile.id,
            "full_name": profile.full_name,
            "username": profile.username,
            "bio": profile.bio,
            "location": profile.location,
            "profile_image_url": profile.profile_image_url,
            "role": profile.role,
            "shop_name": profile.shop_name,
            "shop_description": profile.shop_description,
            "website_url": profile.website_url,
            "instagram_handle": profile.instagram_handle,
            "facebook_url": profile.facebook_url,
            "is_verified": profile.is_verified,
            "created_at": profile.created_at,
        }
        data.update(_legacy_fields(profile))
        data.update(extra)
        return cls(**data)


class ProfileResponse(PublicProfileResponse):
    """
    What:  The signed-in user's own profile, including private fields.
    Who:   Auth responses and every /api/profiles/me mutation.
    """
    email: str
    phone: Optional[str] = None
    is_active: bool
    updated_at: datetime

    @classmethod
    def from_model(cls, profile: UserProfile, **extra) -> "ProfileResponse":
        return super().from_model(
            profile,
            email=profile.email,
            phone=profile.phone,
            is_active=profile.is_active,
            updated_at=profile.updated_at,
            **extra,
        )


class ProfileStats(BaseModel):
    total_products: int = 0


class PublicProfileWithStats(PublicProfileResponse):
    """Public profile; artisans additionally get catalogue stats."""
    stats: Optional[ProfileStats] = None


class SellerSummary(PublicProfileResponse):
    """One card in the seller directory."""
    product_count: int = 0


class SellerListResponse(BaseModel):
    sellers: List[SellerSummary]
    total_count: int


class ProfileMutationResponse(BaseModel):
    message: str
    profile: ProfileResponse


class ImageUploadResponse(BaseModel):
    """Returned by both product-photo and avatar uploads."""
    message: str = "Image uploaded successfully!"
    image_url: str
    profile: Optional[ProfileResponse] = None


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════
# Fields are optional and unconstrained on purpose: the service layer
# decides what counts as "provided" (exclude_unset) and returns the
# storefront's own error wording rather than a generic 422.


class ProfileUpdateRequest(BaseModel):
    """
    Partial profile update.

    Accepts canonical names and the legacy ones; camelCase `firstName` /
    `lastName` are accepted as well.
    """
    model_config = ConfigDict(populate_by_name=True)

    first_name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("first_name", "firstName")
    )
    last_name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("last_name", "lastName")
    )
    username: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    phone: Optional[str] = None
    website_url: Optional[str] = None
    avatar_url: Optional[str] = None
    profile_image_url: Optional[str] = None
    is_artisan: Optional[bool] = None
    artisan_verified: Optional[bool] = None


class BecomeArtisanRequest(BaseModel):
    shop_name: Optional[str] = None
    shop_description: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None


class ShopUpdateRequest(BaseModel):
    shop_name: Optional[str] = None
    shop_description: Optional[str] = None
    instagram_handle: Optional[str] = None
    facebook_url: Optional[str] = None


class DeleteAccountRequest(BaseModel):
    confirmation_text: str = ""
