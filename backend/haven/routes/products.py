"""
Handcrafted Haven Backend — Product Route Handlers
==================================================

What:  Catalogue browsing, artisan listings and product photo uploads.
Who:   The shop grid, product detail page and artisan dashboard.

Caching:
    GET /api/products/categories changes rarely → short public cache.
    Everything else is uncached; stock and ratings move with every sale/review.
"""

import logging
from typing import Optional
from uuid import UUID

import pydantic
from fastapi import APIRouter, Depends, File, Query, Response, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from haven.database import get_db_session
from haven.deps import current_user
from haven.exceptions import ValidationError
from haven.models.user_profile import UserProfile
from haven.schemas.common import ErrorResponse, MessageResponse
from haven.schemas.product import (
    ArtisanProductsResponse,
    CategoriesResponse,
    ProductCreateRequest,
    ProductListResponse,
    ProductMutationResponse,
    ProductQueryParams,
    ProductResponse,
    ProductUpdateRequest,
)
from haven.schemas.profile import ImageUploadResponse
from haven.services.product_service import product_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Products"])


@router.get(
    "/products",
    response_model=ProductListResponse,
    responses={400: {"description": "Invalid filter value", "model": ErrorResponse}},
    summary="Browse the catalogue",
    description=(
        "Filter by category, price range and free-text search; sort by newest, "
        "oldest, price-low, price-high, rating or title. Stats describe the whole catalogue."
    ),
)
async def list_products(
    response: Response,
    category: Optional[str] = Query(default=None, description='Exact category, or "All Categories"'),
    price_range: str = Query(default="all", description="all, under-25, 25-50, 50-100, over-100"),
    search: Optional[str] = Query(default=None, description="Matches title, description and category"),
    sort: str = Query(default="newest"),
    limit: int = Query(default=24, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db_session),
) -> ProductListResponse:
    try:
        params = ProductQueryParams(
            category=category,
            price_range=price_range,
            search=search,
            sort=sort,
            limit=limit,
            offset=offset,
        )
    except pydantic.ValidationError as e:
        first = e.errors()[0]
        raise ValidationError(
            message=str(first.get("ctx", {}).get("error") or first["msg"]),
            field=str(first["loc"][0]) if first.get("loc") else None,
        )

    result = await product_service.list_products(db, params)
    response.headers["X-Total-Count"] = str(result.total_count)
    return result


@router.get(
    "/products/categories",
    response_model=CategoriesResponse,
    summary="Product categories in use",
)
async def list_categories(
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> CategoriesResponse:
    response.headers["Cache-Control"] = "public, max-age=300"
    return await product_service.get_product_categories(db)


@router.post(
    "/products/images",
    status_code=201,
    response_model=ImageUploadResponse,
    responses={
        400: {"description": "Invalid file type or size", "model": ErrorResponse},
        403: {"description": "Caller is not an artisan", "model": ErrorResponse},
    },
    summary="Upload a product photo",
    description="JPEG, PNG or WebP up to 5MB. Use the returned image_url when creating or updating a product.",
)
async def upload_product_image(
    file: UploadFile = File(..., description="Product photo (JPEG, PNG or WebP, max 5MB)"),
    user: UserProfile = Depends(current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ImageUploadResponse:
    content = await file.read()
    logger.info("Product image upload from %s: %s (%d bytes)", user.id, file.filename, len(content))
    try:
        return await product_service.upload_product_image(
            db, user.id, file.filename, content, file.content_type
        )
    finally:
        await file.close()


@router.post(
    "/products",
    status_code=201,
    response_model=ProductMutationResponse,
    responses={
        400: {"description": "Missing or invalid field", "model": ErrorResponse},
        403: {"description": "Caller is not an artisan", "model": ErrorResponse},
    },
    summary="List a new product",
)
async def create_product(
    body: ProductCreateRequest,
    user: UserProfile = Depends(current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ProductMutationResponse:
    return await product_service.create_product(db, user.id, body)


@router.get(
    "/products/{product_id}",
    response_model=ProductResponse,
    responses={404: {"description": "Product not found", "model": ErrorResponse}},
    summary="Product detail",
)
async def get_product(
    product_id: UUID,
    db: AsyncSession = Depends(get_db_session),
) -> ProductResponse:
    return await product_service.get_product(db, product_id)


@router.patch(
    "/products/{product_id}",
    response_model=ProductMutationResponse,
    responses={
        403: {"description": "Not the product owner", "model": ErrorResponse},
        404: {"description": "Product not found", "model": ErrorResponse},
    },
    summary="Update your product",
)
async def update_product(
    product_id: UUID,
    body: ProductUpdateRequest,
    user: UserProfile = Depends(current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ProductMutationResponse:
    return await product_service.update_product(db, product_id, user.id, body)


@router.delete(
    "/products/{product_id}",
    response_model=MessageResponse,
    responses={
        403: {"description": "Not the product owner", "model": ErrorResponse},
        404: {"description": "Product not found", "model": ErrorResponse},
    },
    summary="Delete your product",
)
async def delete_product(
    product_id: UUID,
    user: UserProfile = Depends(current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    return await product_service.delete_product(db, product_id, user.id)


@router.get(
    "/artisans/{artisan_id}/products",
    response_model=ArtisanProductsResponse,
    summary="All products of one artisan",
)
async def get_artisan_products(
    artisan_id: UUID,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> ArtisanProductsResponse:
    result = await product_service.get_artisan_products(db, artisan_id)
    response.headers["X-Total-Count"] = str(len(result.products))
    return result
