"""
Handcrafted Haven Backend — Product Schemas
===========================================

What:  Catalogue listing, product detail and create/update bodies.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, computed_field, field_validator

from haven.utils.pricing import format_price


class ProductResponse(BaseModel):
    """
    What:  A product as shown on cards and the detail page.
    Who:   Every product endpoint.
    """
    id: uuid.UUID
    artisan_id: uuid.UUID
    title: str
    description: str
    price: float
    image_url: Optional[str] = None
    category: str
    rating: float = 0
    stock: int = 0
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def formatted_price(self) -> str:
        """Display price, e.g. "$1,250.00"."""
        return format_price(self.price)


class CatalogStats(BaseModel):
    """Numbers shown above the product grid."""
    total_products: int = Field(description="Products in the whole catalogue")
    filtered_count: int = Field(description="Products matching the active filters")
    categories_count: int = Field(description="Distinct categories in the catalogue")
    average_price: int = Field(description="Mean price over the whole catalogue, rounded to whole units")


class ProductListResponse(BaseModel):
    """
    Offset-paginated catalogue page.

    Offset (not cursor) pagination because the storefront sorts by price,
    rating and title as well as by date.
    """
    products: List[ProductResponse]
    total_count: int
    has_more: bool
    stats: CatalogStats


class ProductMutationResponse(BaseModel):
    message: str
    product: ProductResponse


class ArtisanProductsResponse(BaseModel):
    message: str
    products: List[ProductResponse]


class CategoriesResponse(BaseModel):
    categories: List[str]


class ProductCreateRequest(BaseModel):
    """
    New listing. Required-ness is checked in ProductService so the
    artisan dashboard gets "Product title is required" and friends.
    """
    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    category: Optional[str] = None
    stock: Optional[int] = None
    image_url: Optional[str] = None


class ProductUpdateRequest(BaseModel):
    """Partial update; only fields present in the body are written."""
    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    category: Optional[str] = None
    stock: Optional[int] = None
    image_url: Optional[str] = None


# Query parameter values accepted by GET /api/products
PRICE_RANGES = {"all", "under-25", "25-50", "50-100", "over-100"}
SORT_OPTIONS = {"newest", "oldest", "price-low", "price-high", "rating", "title"}


class ProductQueryParams(BaseModel):
    """
    Validated catalogue filters.

    category: exact category name; "All Categories" (or empty) means no filter
    price_range: one of PRICE_RANGES
    search: case-insensitive match on title, description and category
    sort: one of SORT_OPTIONS, newest first by default
    """
    category: Optional[str] = None
    price_range: str = "all"
    search: Optional[str] = None
    sort: str = "newest"
    limit: int = Field(default=24, ge=1, le=100)
    offset: int = Field(default=0, ge=0)

    @field_validator("price_range")
    @classmethod
    def validate_price_range(cls, v: str) -> str:
        if v not in PRICE_RANGES:
            raise ValueError(f"Invalid price_range '{v}'. Must be one of: {sorted(PRICE_RANGES)}")
        return v

    @field_validator("sort")
    @classmethod
    def validate_sort(cls, v: str) -> str:
        if v not in SORT_OPTIONS:
            raise ValueError(f"Invalid sort '{v}'. Must be one of: {sorted(SORT_OPTIONS)}")
        return v
