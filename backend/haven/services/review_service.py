"""
Handcrafted Haven Backend — Review Service
==========================================

What:  Product reviews and the rating aggregate stored on each product.
How:   Every insert or delete is followed by update_product_average_rating(),
       which rewrites products.rating from the remaining reviews.

Rating rules:
    - A review's rating is an integer 1–5; "4" from a form field is accepted
    - Product rating = mean of its reviews rounded half-up to one decimal,
      0 when it has none
    - One review per signed-in user per product; guest reviews are unlimited
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import asc, desc, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from haven.exceptions import (
    ConflictError,
    DatabaseError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from haven.models.product import Product
from haven.models.review import Review
from haven.schemas.common import MessageResponse
from haven.schemas.review import (
    RatingUpdate,
    ReviewCreateRequest,
    ReviewCreateResponse,
    ReviewListResponse,
    ReviewResponse,
    ReviewStats,
    UserReviewStatus,
)
from haven.services.error_messages import review_error_message
from haven.utils.limits import check_length

logger = logging.getLogger(__name__)

REVIEW_ORDER_COLUMNS = {"created_at": Review.created_at, "rating": Review.rating}


def parse_rating(value: Any) -> int:
    """
    Turn a submitted rating into an int 1–5.

    Fractions are truncated ("4.7" → 4) the way a form's integer parse would.
    """
    if isinstance(value, bool):
        raise ValidationError(message="Rating must be between 1 and 5", field="rating")
    try:
        rating = int(float(str(value).strip()))
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(message="Rating must be between 1 and 5", field="rating")
    if not 1 <= rating <= 5:
        raise ValidationError(message="Rating must be between 1 and 5", field="rating")
    return rating


def round_rating(value: Optional[float]) -> float:
    """Mean rating rounded half-up to one decimal place."""
    if value is None:
        return 0.0
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


class ReviewService:

    async def _get_product(self, db: AsyncSession, product_id: UUID) -> Product:
        product = await db.get(Product, product_id)
        if product is None:
            raise NotFoundError(
                resource="product",
                resource_id=str(product_id),
                message=review_error_message("foreign key"),
            )
        return product

    async def create_review(
        self,
        db: AsyncSession,
        product_id: UUID,
        data: ReviewCreateRequest,
        user_id: Optional[UUID] = None,
    ) -> ReviewCreateResponse:
        """
        Add a review and refresh the product rating.

        Args:
            user_id: the signed-in reviewer, or None for a guest review

        Raises:
            ValidationError: missing name or comment, rating outside 1–5
            NotFoundError: product does not exist
            ConflictError: this user already reviewed this product
        """
        reviewer_name = (data.reviewer_name or "").strip()
        if not reviewer_name:
            raise ValidationError(message="Reviewer name is required", field="reviewer_name")
        check_length(Review.reviewer_name, reviewer_name, "Reviewer name")
        comment = (data.comment or "").strip()
        if not comment:
            raise ValidationError(message="Comment is required", field="comment")
        rating = parse_rating(data.rating)

        await self._get_product(db, product_id)

        if user_id is not None:
            existing = await db.execute(
                select(Review.id).where(Review.product_id == product_id, Review.user_id == user_id)
            )
            if existing.first() is not None:
                raise ConflictError(message=review_error_message("duplicate"))

        review = Review(
            product_id=product_id,
            user_id=user_id,
            reviewer_name=reviewer_name,
            rating=rating,
            comment=comment,
        )
        db.add(review)
        try:
            await db.flush()
        except IntegrityError as e:
            logger.warning("Review insert rejected for product %s: %s", product_id, e.orig)
            raise ConflictError(message=review_error_message(str(e.orig)))
        except SQLAlchemyError as e:
            logger.error("Database error creating review: %s", e, exc_info=True)
            raise DatabaseError(message=review_error_message(str(e)))

        update = await self.update_product_average_rating(db, product_id)
        logger.info(
            "Review %s added to product %s (rating now %.1f from %d reviews)",
            review.id,
            product_id,
            update.new_rating,
            update.review_count,
        )
        return ReviewCreateResponse(
            message="Review submitted successfully!",
            review=ReviewResponse.model_validate(review),
            product_rating=update.new_rating,
        )

    async def get_product_reviews(
        self,
        db: AsyncSession,
        product_id: UUID,
        limit: int = 50,
        offset: int = 0,
        order_by: str = "created_at",
        ascending: bool = False,
    ) -> ReviewListResponse:
        column = REVIEW_ORDER_COLUMNS.get(order_by)
        if column is None:
            raise ValidationError(
                message=f"Invalid order_by '{order_by}'. Must be one of: {sorted(REVIEW_ORDER_COLUMNS)}",
                field="order_by",
            )
        direction = asc if ascending else desc

        result = await db.execute(
            select(Review)
            .where(Review.product_id == product_id)
            .order_by(direction(column), direction(Review.id))
            .limit(limit)
            .offset(offset)
        )
        reviews = result.scalars().all()
        total = (
            await db.execute(
                select(func.count()).select_from(Review).where(Review.product_id == product_id)
            )
        ).scalar_one()

        return ReviewListResponse(
            reviews=[ReviewResponse.model_validate(r) for r in reviews],
            total_count=total,
            has_more=total > offset + len(reviews),
        )

    async def update_product_average_rating(
        self, db: AsyncSession, product_id: UUID
    ) -> RatingUpdate:
        """Recompute products.rating from its reviews."""
        average, count = (
            await db.execute(
                select(func.avg(Review.rating), func.count(Review.id)).where(
                    Review.product_id == product_id
                )
            )
        ).one()
        new_rating = round_rating(average) if count else 0.0

        product = await self._get_product(db, product_id)
        product.rating = new_rating
        await db.flush()
        return RatingUpdate(new_rating=new_rating, review_count=count)

    async def delete_review(
        self, db: AsyncSession, review_id: UUID, user_id: UUID
    ) -> MessageResponse:
        """
        Delete a review and refresh the product rating.

        A signed-in author may delete their own review. Guest reviews have no
        author, so the artisan who owns the product moderates them.
        """
        review = await db.get(Review, review_id)
        if review is None:
            raise NotFoundError(resource="review", resource_id=str(review_id), message="Review not found")

        if review.user_id is not None:
            allowed = review.user_id == user_id
        else:
            product = await self._get_product(db, review.product_id)
            allowed = product.artisan_id == user_id
        if not allowed:
            raise PermissionDeniedError(message="You do not have permission to delete this review")

        product_id = review.product_id
        await db.delete(review)
        await db.flush()
        await self.update_product_average_rating(db, product_id)

        logger.info("Review %s deleted by %s", review_id, user_id)
        return MessageResponse(message="Review deleted successfully")

    async def get_user_review_for_product(
        self, db: AsyncSession, user_id: UUID, product_id: UUID
    ) -> UserReviewStatus:
        result = await db.execute(
            select(Review).where(Review.product_id == product_id, Review.user_id == user_id)
        )
        review = result.scalar_one_or_none()
        return UserReviewStatus(
            has_reviewed=review is not None,
            review=ReviewResponse.model_validate(review) if review is not None else None,
        )

    async def get_review_stats(self, db: AsyncSession, product_id: UUID) -> ReviewStats:
        """
        Star distribution for the product page.

        Percentages are rounded half-up individually, so they can sum to 99 or 101.
        """
        rows = (
            await db.execute(
                select(Review.rating, func.count(Review.id))
                .where(Review.product_id == product_id)
                .group_by(Review.rating)
            )
        ).all()

        distribution = {str(star): 0 for star in range(1, 6)}
        for rating, count in rows:
            distribution[str(rating)] = count
        total = sum(distribution.values())

        if total:
            weighted = sum(int(star) * count for star, count in distribution.items())
            average = round_rating(weighted / total)
            percentages = {
                star: int(Decimal(count * 100) / Decimal(total) + Decimal("0.5"))
                for star, count in distribution.items()
            }
        else:
            average = 0.0
            percentages = {star: 0 for star in distribution}

        return ReviewStats(
            total_reviews=total,
            average_rating=average,
            rating_distribution=distribution,
            rating_percentages=percentages,
        )


# ── Singleton Instance ────────────────────────────────────────────────────
review_service = ReviewService()
