"""
Handcrafted Haven Backend — Profile Service
===========================================

What:  Profile edits, the artisan upgrade, shop info, avatars, the public
       seller directory, admin verification and account deletion.
Who:   Called by the profile and seller routes.

Field mapping on update:
    first_name / last_name  → merged into full_name; a missing half keeps
                              the current value
    avatar_url              → profile_image_url
    is_artisan              → role "seller" (true) or "buyer" (false)
    artisan_verified        → is_verified (administrators only)
    bio, location, phone, website_url, username, profile_image_url → as-is

Account deletion:
    Image files are removed first (best effort), then the profile row.
    Products, received messages, sessions and reset tokens go with it via
    ON DELETE CASCADE; reviews stay with user_id set to NULL.
"""

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from haven.exceptions import (
    ConflictError,
    DatabaseError,
    HavenError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from haven.models.product import Product
from haven.models.user_profile import ARTISAN_ROLES, UserProfile
from haven.schemas.common import MessageResponse
from haven.schemas.profile import (
    BecomeArtisanRequest,
    ImageUploadResponse,
    ProfileMutationResponse,
    ProfileResponse,
    ProfileStats,
    ProfileUpdateRequest,
    PublicProfileWithStats,
    SellerListResponse,
    SellerSummary,
    ShopUpdateRequest,
    split_full_name,
)
from haven.services import error_messages
from haven.services.file_service import AVATARS_BUCKET, PRODUCTS_BUCKET, file_service
from haven.utils.limits import check_length

logger = logging.getLogger(__name__)

DELETE_CONFIRMATION_TEXT = "DELETE MY ACCOUNT"

# Profile columns written straight from the request body
DIRECT_FIELDS = ("bio", "location", "phone", "website_url", "username", "profile_image_url")
SHOP_FIELDS = ("shop_name", "shop_description", "instagram_handle", "facebook_url")

# Labels for the length check on VARCHAR profile columns
FIELD_LABELS = {
    "full_name": "Name",
    "username": "Username",
    "location": "Location",
    "phone": "Phone number",
    "website_url": "Website URL",
    "profile_image_url": "Profile image URL",
    "shop_name": "Shop name",
    "instagram_handle": "Instagram handle",
    "facebook_url": "Facebook URL",
}


def _check_lengths(changes: Dict[str, Any]) -> None:
    for column, value in changes.items():
        if column in FIELD_LABELS and isinstance(value, str):
            check_length(getattr(UserProfile, column), value, FIELD_LABELS[column])


class ProfileService:
    """Stateless; every method receives the session it should use."""

    async def _get_profile(self, db: AsyncSession, user_id: UUID) -> UserProfile:
        profile = await db.get(UserProfile, user_id)
        if profile is None:
            raise NotFoundError(resource="profile", resource_id=str(user_id), message="Profile not found")
        return profile

    async def _flush(self, db: AsyncSession, action: str, user_id: UUID) -> None:
        """Flush pending changes, translating database failures."""
        try:
            await db.flush()
        except IntegrityError as e:
            logger.warning("Integrity error while %s for %s: %s", action, user_id, e.orig)
            raise ConflictError(message=error_messages.profile_error_message(str(e.orig)))
        except SQLAlchemyError as e:
            logger.error("Database error while %s for %s: %s", action, user_id, e, exc_info=True)
            raise DatabaseError(
                message="Failed to update profile. Please try again.",
                context={"error_type": type(e).__name__},
            )

    # ── Own profile ───────────────────────────────────────────────────────

    async def update_profile(
        self,
        db: AsyncSession,
        user_id: UUID,
        data: ProfileUpdateRequest,
        allow_verification: bool = False,
    ) -> ProfileMutationResponse:
        """
        Apply a partial update using canonical or legacy field names.

        Args:
            allow_verification: whether `artisan_verified` may be written;
                                only administrators get True

        Raises:
            ValidationError: nothing to update, or an avatar URL stored for
                             another account
            PermissionDeniedError: non-admin tried to set artisan_verified
        """
        provided: Dict[str, Any] = data.model_dump(exclude_unset=True)
        profile = await self._get_profile(db, user_id)
        changes: Dict[str, Any] = {}

        if "first_name" in provided or "last_name" in provided:
            current_first, current_last = split_full_name(profile.full_name)
            first = provided.get("first_name")
            last = provided.get("last_name")
            first = current_first if first is None else first.strip()
            last = current_last if last is None else last.strip()
            changes["full_name"] = f"{first} {last}".strip()

        for field in DIRECT_FIELDS:
            if field in provided:
                changes[field] = provided[field]

        if "avatar_url" in provided:
            changes["profile_image_url"] = provided["avatar_url"]

        if "profile_image_url" in changes:
            file_service.check_url_owner(
                changes["profile_image_url"], AVATARS_BUCKET, user_id, "profile_image_url"
            )

        if provided.get("is_artisan") is not None:
            changes["role"] = "seller" if provided["is_artisan"] else "buyer"

        if provided.get("artisan_verified") is not None:
            if not allow_verification:
                raise PermissionDeniedError(
                    message="Only administrators can change artisan verification"
                )
            changes["is_verified"] = provided["artisan_verified"]

        if not changes:
            raise ValidationError(message="No data provided to update")
        _check_lengths(changes)

        for column, value in changes.items():
            setattr(profile, column, value)
        await self._flush(db, "updating profile", user_id)

        logger.info("Profile %s updated: %s", user_id, sorted(changes))
        return ProfileMutationResponse(
            message="Profile updated successfully!",
            profile=ProfileResponse.from_model(profile),
        )

    async def become_artisan(
        self, db: AsyncSession, user_id: UUID, data: BecomeArtisanRequest
    ) -> ProfileMutationResponse:
        """Upgrade a buyer to an (unverified) seller with a shop name."""
        shop_name = (data.shop_name or "").strip()
        if not shop_name:
            raise ValidationError(
                message="Shop name is required to become an artisan", field="shop_name"
            )
        _check_lengths({"shop_name": shop_name, "location": data.location})

        profile = await self._get_profile(db, user_id)
        profile.role = "seller"
        profile.is_verified = False
        profile.shop_name = shop_name
        if data.shop_description is not None:
            profile.shop_description = data.shop_description.strip()
        if data.bio is not None:
            profile.bio = data.bio
        if data.location is not None:
            profile.location = data.location
        await self._flush(db, "becoming an artisan", user_id)

        logger.info("Profile %s is now an artisan (shop=%r)", user_id, shop_name)
        return ProfileMutationResponse(
            message=(
                "Congratulations! You are now an artisan. "
                "Your profile is pending verification."
            ),
            profile=ProfileResponse.from_model(profile),
        )

    async def update_shop_info(
        self, db: AsyncSession, user_id: UUID, data: ShopUpdateRequest
    ) -> ProfileMutationResponse:
        profile = await self._get_profile(db, user_id)
        if not profile.is_artisan:
            raise PermissionDeniedError(message="Only artisans can update shop information")

        provided = data.model_dump(exclude_unset=True)
        changes = {field: provided[field] for field in SHOP_FIELDS if field in provided}
        if not changes:
            raise ValidationError(message="No shop data provided to update")
        if "shop_name" in changes and not (changes["shop_name"] or "").strip():
            raise ValidationError(message="Shop name is required", field="shop_name")
        _check_lengths(changes)

        for column, value in changes.items():
            setattr(profile, column, value)
        await self._flush(db, "updating shop info", user_id)

        return ProfileMutationResponse(
            message="Shop information updated successfully!",
            profile=ProfileResponse.from_model(profile),
        )

    # ── Avatar ────────────────────────────────────────────────────────────

    async def upload_profile_image(
        self,
        db: AsyncSession,
        user_id: UUID,
        filename: Optional[str],
        content: bytes,
        content_type: Optional[str] = None,
    ) -> ImageUploadResponse:
        """
        Store a new avatar and point the profile at it.

        The previous avatar file is removed only after the new URL is saved,
        so a failed update never leaves the profile without an image.
        """
        profile = await self._get_profile(db, user_id)
        stored = await file_service.validate_and_store(
            AVATARS_BUCKET, str(user_id), filename, content, content_type
        )

        previous_url = profile.profile_image_url
        profile.profile_image_url = stored.url
        try:
            await self._flush(db, "saving avatar", user_id)
        except HavenError:
            await file_service.cleanup_file(stored.relative_path)
            raise

        if previous_url and previous_url != stored.url:
            await file_service.cleanup_url(previous_url, AVATARS_BUCKET, user_id)

        return ImageUploadResponse(
            message="Profile image uploaded successfully!",
            image_url=stored.url,
            profile=ProfileResponse.from_model(profile),
        )

    async def delete_profile_image(self, db: AsyncSession, user_id: UUID) -> ProfileMutationResponse:
        profile = await self._get_profile(db, user_id)
        if profile.profile_image_url:
            await file_service.cleanup_url(profile.profile_image_url, AVATARS_BUCKET, user_id)
            profile.profile_image_url = None
            await self._flush(db, "removing avatar", user_id)

        return ProfileMutationResponse(
            message="Profile image deleted successfully",
            profile=ProfileResponse.from_model(profile),
        )

    # ── Public views ──────────────────────────────────────────────────────

    async def _product_count(self, db: AsyncSession, artisan_id: UUID) -> int:
        result = await db.execute(
            select(func.count()).select_from(Product).where(Product.artisan_id == artisan_id)
        )
        return result.scalar_one()

    async def get_public_profile(self, db: AsyncSession, user_id: UUID) -> PublicProfileWithStats:
        """Public fields of an active profile; artisans also get product stats."""
        profile = await db.get(UserProfile, user_id)
        if profile is None or not profile.is_active:
            raise NotFoundError(resource="profile", resource_id=str(user_id), message="Profile not found")

        stats = None
        if profile.is_artisan:
            stats = ProfileStats(total_products=await self._product_count(db, profile.id))
        return PublicProfileWithStats.from_model(profile, stats=stats)

    async def list_sellers(self, db: AsyncSession, search: Optional[str] = None) -> SellerListResponse:
        """
        Active artisans, verified first then alphabetical, with product counts.

        Query plan:
            One query; product counts come from a grouped subquery joined on
            artisan_id, so the directory never issues a query per seller.
        """
        counts = (
            select(Product.artisan_id, func.count(Product.id).label("product_count"))
            .group_by(Product.artisan_id)
            .subquery()
        )
        query = (
            select(UserProfile, func.coalesce(counts.c.product_count, 0))
            .outerjoin(counts, counts.c.artisan_id == UserProfile.id)
            .where(UserProfile.role.in_(sorted(ARTISAN_ROLES)), UserProfile.is_active.is_(True))
            .order_by(UserProfile.is_verified.desc(), UserProfile.full_name.asc())
        )

        term = (search or "").strip().lower()
        if term:
            pattern = f"%{term}%"
            query = query.where(
                or_(
                    func.lower(UserProfile.full_name).like(pattern),
                    func.lower(func.coalesce(UserProfile.shop_name, "")).like(pattern),
                    func.lower(func.coalesce(UserProfile.location, "")).like(pattern),
                )
            )

        try:
            rows = (await db.execute(query)).all()
        except SQLAlchemyError as e:
            logger.error("Database error listing sellers: %s", e, exc_info=True)
            raise DatabaseError(message="Failed to load artisans. Please try again.")

        sellers: List[SellerSummary] = [
            SellerSummary.from_model(profile, product_count=count) for profile, count in rows
        ]
        return SellerListResponse(sellers=sellers, total_count=len(sellers))

    # ── Administration ────────────────────────────────────────────────────

    async def verify_artisan(self, db: AsyncSession, user_id: UUID) -> ProfileMutationResponse:
        """Mark a seller as vetted. Only role "seller" profiles qualify."""
        profile = await self._get_profile(db, user_id)
        if profile.role != "seller":
            raise ValidationError(message="Only sellers can be verified", field="role")

        profile.is_verified = True
        await self._flush(db, "verifying artisan", user_id)
        logger.info("Artisan %s verified", user_id)
        return ProfileMutationResponse(
            message="Artisan verified successfully!",
            profile=ProfileResponse.from_model(profile),
        )

    async def delete_account(
        self, db: AsyncSession, user_id: UUID, confirmation_text: str
    ) -> MessageResponse:
        """
        Permanently delete an account.

        Raises:
            ValidationError: confirmation text is not exactly "DELETE MY ACCOUNT"
        """
        if confirmation_text != DELETE_CONFIRMATION_TEXT:
            raise ValidationError(
                message="Confirmation text does not match. Account deletion cancelled.",
                field="confirmation_text",
            )

        profile = await self._get_profile(db, user_id)
        image_urls = (
            await db.execute(
                select(Product.image_url).where(
                    Product.artisan_id == user_id, Product.image_url.is_not(None)
                )
            )
        ).scalars().all()

        await file_service.cleanup_url(profile.profile_image_url, AVATARS_BUCKET, user_id)
        for url in image_urls:
            await file_service.cleanup_url(url, PRODUCTS_BUCKET, user_id)

        try:
            await db.delete(profile)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Failed to delete account %s: %s", user_id, e, exc_info=True)
            raise DatabaseError(
                message=error_messages.account_deletion_error_message(
                    str(getattr(e, "orig", e))
                ),
                context={"error_type": type(e).__name__},
            )

        logger.info("Account %s deleted (%d product images removed)", user_id, len(image_urls))
        return MessageResponse(
            message="Your account has been permanently deleted. We're sorry to see you go."
        )


# ── Singleton Instance ────────────────────────────────────────────────────
profile_service = ProfileService()
