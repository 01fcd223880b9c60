"""
Handcrafted Haven Backend — Review Route Handlers
=================================================

What:  Product reviews, the rating summary and review deletion.
Who:   The reviews section of the product detail page.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from haven.database import get_db_session
from haven.deps import current_user, optional_user
from haven.models.user_profile import UserProfile
from haven.schemas.common import ErrorResponse, MessageResponse
from haven.schemas.review import (
    ReviewCreateRequest,
    ReviewCreateResponse,
    ReviewListResponse,
    ReviewStats,
    UserReviewStatus,
)
from haven.services.review_service import review_service

router = APIRouter(prefix="/api", tags=["Reviews"])


@router.get(
    "/products/{product_id}/reviews",
    response_model=ReviewListResponse,
    summary="Reviews of a product",
)
async def list_reviews(
    product_id: UUID,
    response: Response,
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    order_by: str = Query(default="created_at", description="created_at or rating"),
    ascending: bool = Query(default=False),
    db: AsyncSession = Depends(get_db_session),
) -> ReviewListResponse:
    result = await review_service.get_product_reviews(
        db, product_id, limit=limit, offset=offset, order_by=order_by, ascending=ascending
    )
    response.headers["X-Total-Count"] = str(result.total_count)
    return result


@router.post(
    "/products/{product_id}/reviews",
    status_code=201,
    response_model=ReviewCreateResponse,
    responses={
        400: {"description": "Missing field or rating out of range", "model": ErrorResponse},
        404: {"description": "Product not found", "model": ErrorResponse},
        409: {"description": "Already reviewed", "model": ErrorResponse},
    },
    summary="Review a product",
    description="Guests may review; signed-in users get one review per product.",
)
async def create_review(
    product_id: UUID,
    body: ReviewCreateRequest,
    user: Optional[UserProfile] = Depends(optional_user),
    db: AsyncSession = Depends(get_db_session),
) -> ReviewCreateResponse:
    return await review_service.create_review(
        db, product_id, body, user_id=user.id if user else None
    )


@router.get(
    "/products/{product_id}/reviews/stats",
    response_model=ReviewStats,
    summary="Rating distribution of a product",
)
async def review_stats(
    product_id: UUID,
    db: AsyncSession = Depends(get_db_session),
) -> ReviewStats:
    return await review_service.get_review_stats(db, product_id)


@router.get(
    "/products/{product_id}/reviews/mine",
    response_model=UserReviewStatus,
    summary="Whether you have reviewed this product",
)
async def my_review(
    product_id: UUID,
    user: UserProfile = Depends(current_user),
    db: AsyncSession = Depends(get_db_session),
) -> UserReviewStatus:
    return await review_service.get_user_review_for_product(db, user.id, product_id)


@router.delete(
    "/reviews/{review_id}",
    response_model=MessageResponse,
    responses={
        403: {"description": "Not the author", "model": ErrorResponse},
        404: {"description": "Review not found", "model": ErrorResponse},
    },
    summary="Delete a review",
)
async def delete_review(
    review_id: UUID,
    user: UserProfile = Depends(current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    return await review_service.delete_review(db, review_id, user.id)
