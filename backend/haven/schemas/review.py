"""
Handcrafted Haven Backend — Review Schemas
==========================================
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ReviewResponse(BaseModel):
    id: uuid.UUID
    product_id: uuid.UUID
    user_id: Optional[uuid.UUID] = None
    reviewer_name: str
    rating: int
    comment: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ReviewListResponse(BaseModel):
    reviews: List[ReviewResponse]
    total_count: int
    has_more: bool


class ReviewCreateRequest(BaseModel):
    """
    Review form. `rating` is left loosely typed so "4" from a form field
    and 4 from JSON both work; ReviewService turns it into an int 1–5.
    """
    reviewer_name: Optional[str] = None
    rating: Any = None
    comment: Optional[str] = None


class ReviewCreateResponse(BaseModel):
    message: str
    review: ReviewResponse
    product_rating: float = Field(description="Product rating after this review")


class RatingUpdate(BaseModel):
    new_rating: float
    review_count: int


class UserReviewStatus(BaseModel):
    has_reviewed: bool
    review: Optional[ReviewResponse] = None


class ReviewStats(BaseModel):
    """
    Rating summary for the product page.

    rating_distribution and rating_percentages are keyed "1".."5";
    percentages are whole numbers and may not add up to exactly 100.
    """
    total_reviews: int
    average_rating: float
    rating_distribution: Dict[str, int]
    rating_percentages: Dict[str, int]
