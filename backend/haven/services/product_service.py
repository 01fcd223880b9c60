"""
Handcrafted Haven Backend — Product Service
===========================================

What:  Catalogue browsing and artisan listing management.
Why:   Keeps filtering, ownership checks and image handling out of the routes.
How:   Builds one filtered SELECT per listing request, plus a single
       aggregate query for the catalogue stats shown above the grid.
Who:   Called by the product routes; ProfileService reads product images
       when an account is deleted.

Catalogue filters (GET /api/products):
    category      exact match; "All Categories" or empty → no filter
    price_range   under-25:  price < 25
                  25-50:     25 ≤ price ≤ 50
                  50-100:    50 < price ≤ 100
                  over-100:  price > 100
    search        case-insensitive substring of title, description or category
    sort          newest (default), oldest, price-low, price-high, rating, title

Ownership:
    Only artisans (role seller/artisan) may list products, and only the
    artisan who listed a product may change or remove it.
"""

import logging
import math
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import Select, asc, desc, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from haven.exceptions import (
    DatabaseError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from haven.models.product import Product
from haven.models.user_profile import UserProfile
from haven.schemas.common import MessageResponse
from haven.schemas.product import (
    ArtisanProductsResponse,
    CatalogStats,
    CategoriesResponse,
    ProductCreateRequest,
    ProductListResponse,
    ProductMutationResponse,
    ProductQueryParams,
    ProductResponse,
    ProductUpdateRequest,
)
from haven.schemas.profile import ImageUploadResponse
from haven.services.file_service import PRODUCTS_BUCKET, file_service
from haven.utils.limits import check_length

logger = logging.getLogger(__name__)

ALL_CATEGORIES = "All Categories"

# Shown when the catalogue is empty or categories cannot be loaded
DEFAULT_CATEGORIES = [
    "Pottery & Ceramics",
    "Jewelry & Accessories",
    "Textiles & Clothing",
    "Woodwork",
    "Glass",
    "Metalwork",
    "Art & Paintings",
    "Leather Goods",
]

SORT_COLUMNS = {
    "newest": (Product.created_at, desc),
    "oldest": (Product.created_at, asc),
    "price-low": (Product.price, asc),
    "price-high": (Product.price, desc),
    "rating": (Product.rating, desc),
    "title": (Product.title, asc),
}

PRODUCT_NOT_FOUND = "Product not found"


def _apply_filters(query: Select, params: ProductQueryParams) -> Select:
    category = (params.category or "").strip()
    if category and category != ALL_CATEGORIES:
        query = query.where(Product.category == category)

    if params.price_range == "under-25":
        query = query.where(Product.price < 25)
    elif params.price_range == "25-50":
        query = query.where(Product.price >= 25, Product.price <= 50)
    elif params.price_range == "50-100":
        query = query.where(Product.price > 50, Product.price <= 100)
    elif params.price_range == "over-100":
        query = query.where(Product.price > 100)

    term = (params.search or "").strip().lower()
    if term:
        pattern = f"%{term}%"
        query = query.where(
            or_(
                func.lower(Product.title).like(pattern),
                func.lower(Product.description).like(pattern),
                func.lower(Product.category).like(pattern),
            )
        )
    return query


def _clean_text(value: Optional[str]) -> str:
    return (value or "").strip()


class ProductService:
    """Catalogue queries and artisan-owned mutations."""

    # ── Browsing ──────────────────────────────────────────────────────────

    async def list_products(
        self, db: AsyncSession, params: ProductQueryParams
    ) -> ProductListResponse:
        """
        One catalogue page plus stats.

        Query plan:
            1. SELECT ... WHERE <filters> ORDER BY <sort>, id LIMIT/OFFSET
            2. SELECT count(*) WHERE <filters>
            3. SELECT count(*), count(DISTINCT category), avg(price)  (no filters)
        """
        column, direction = SORT_COLUMNS[params.sort]
        try:
            page_query = (
                _apply_filters(select(Product), params)
                .order_by(direction(column), Product.id)
                .limit(params.limit)
                .offset(params.offset)
            )
            products = (await db.execute(page_query)).scalars().all()

            count_query = _apply_filters(select(func.count()).select_from(Product), params)
            filtered_count = (await db.execute(count_query)).scalar_one()

            total, categories, average = (
                await db.execute(
                    select(
                        func.count(Product.id),
                        func.count(func.distinct(Product.category)),
                        func.avg(Product.price),
                    )
                )
            ).one()
        except SQLAlchemyError as e:
            logger.error("Database error listing products: %s", e, exc_info=True)
            raise DatabaseError(message="Failed to load products. Please try again.")

        return ProductListResponse(
            products=[ProductResponse.model_validate(p) for p in products],
            total_count=filtered_count,
            has_more=params.offset + len(products) < filtered_count,
            stats=CatalogStats(
                total_products=total,
                filtered_count=filtered_count,
                categories_count=categories,
                average_price=math.floor(float(average) + 0.5) if average is not None else 0,
            ),
        )

    async def _get_product_row(self, db: AsyncSession, product_id: UUID) -> Product:
        product = await db.get(Product, product_id)
        if product is None:
            raise NotFoundError(resource="product", resource_id=str(product_id), message=PRODUCT_NOT_FOUND)
        return product

    async def get_product(self, db: AsyncSession, product_id: UUID) -> ProductResponse:
        return ProductResponse.model_validate(await self._get_product_row(db, product_id))

    async def get_artisan_products(
        self, db: AsyncSession, artisan_id: UUID
    ) -> ArtisanProductsResponse:
        """All products of one artisan, newest first."""
        result = await db.execute(
            select(Product)
            .where(Product.artisan_id == artisan_id)
            .order_by(desc(Product.created_at), Product.id)
        )
        products = result.scalars().all()
        return ArtisanProductsResponse(
            message=f"Found {len(products)} products",
            products=[ProductResponse.model_validate(p) for p in products],
        )

    async def get_product_categories(self, db: AsyncSession) -> CategoriesResponse:
        """Distinct categories in use, or the default list when there are none."""
        try:
            result = await db.execute(
                select(Product.category).distinct().order_by(Product.category)
            )
            categories = [c for c in result.scalars().all() if c]
        except SQLAlchemyError as e:
            logger.warning("Falling back to default categories: %s", e)
            categories = []

        return CategoriesResponse(categories=categories or list(DEFAULT_CATEGORIES))

    # ── Artisan mutations ─────────────────────────────────────────────────

    async def _require_artisan(self, db: AsyncSession, artisan_id: UUID) -> UserProfile:
        profile = await db.get(UserProfile, artisan_id)
        if profile is None or not profile.is_artisan:
            raise PermissionDeniedError(message="Only artisans can create products")
        return profile

    async def _require_owner(
        self, db: AsyncSession, product_id: UUID, artisan_id: UUID, action: str
    ) -> Product:
        product = await self._get_product_row(db, product_id)
        if product.artisan_id != artisan_id:
            raise PermissionDeniedError(
                message=f"You do not have permission to {action} this product"
            )
        return product

    def _validated_fields(
        self, provided: Dict[str, Any], partial: bool, artisan_id: UUID
    ) -> Dict[str, Any]:
        """
        Check and normalize product fields.

        On create every field is required; on update only the fields that
        were sent are checked. A stored-image URL must be one of the
        artisan's own uploads.
        """
        fields: Dict[str, Any] = {}
        required: List[Tuple[str, str]] = [
            ("title", "Product title is required"),
            ("description", "Product description is required"),
        ]
        for name, message in required:
            if partial and name not in provided:
                continue
            value = _clean_text(provided.get(name))
            if not value:
                raise ValidationError(message=message, field=name)
            if name == "title":
                check_length(Product.title, value, "Product title")
            fields[name] = value

        if not partial or "price" in provided:
            price = provided.get("price")
            if price is None or price <= 0:
                raise ValidationError(message="Valid product price is required", field="price")
            fields["price"] = round(float(price), 2)

        if not partial or "category" in provided:
            category = _clean_text(provided.get("category"))
            if not category:
                raise ValidationError(message="Product category is required", field="category")
            check_length(Product.category, category, "Product category")
            fields["category"] = category

        if not partial or "stock" in provided:
            stock = provided.get("stock")
            if stock is None and not partial:
                stock = 0
            if stock is None or stock < 0:
                raise ValidationError(message="Valid stock quantity is required", field="stock")
            fields["stock"] = stock

        if "image_url" in provided:
            image_url = _clean_text(provided["image_url"]) or None
            check_length(Product.image_url, image_url, "Image URL")
            file_service.check_url_owner(image_url, PRODUCTS_BUCKET, artisan_id, "image_url")
            fields["image_url"] = image_url
        return fields

    async def _flush(self, db: AsyncSession, action: str) -> None:
        try:
            await db.flush()
        except IntegrityError as e:
            logger.warning("Integrity error while %s product: %s", action, e.orig)
            raise ValidationError(message="Invalid product data. Please check the form and try again.")
        except SQLAlchemyError as e:
            logger.error("Database error while %s product: %s", action, e, exc_info=True)
            raise DatabaseError(
                message=f"Failed to {action} product. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def create_product(
        self, db: AsyncSession, artisan_id: UUID, data: ProductCreateRequest
    ) -> ProductMutationResponse:
        """
        List a new product. Strings are trimmed; rating starts at 0.

        Raises:
            PermissionDeniedError: caller is not an artisan
            ValidationError: missing title/description/category, price ≤ 0, stock < 0
                             or an image URL from another account
        """
        await self._require_artisan(db, artisan_id)
        fields = self._validated_fields(
            data.model_dump(exclude_unset=True), partial=False, artisan_id=artisan_id
        )

        product = Product(artisan_id=artisan_id, rating=0, **fields)
        db.add(product)
        await self._flush(db, "create")

        logger.info("Product %s created by %s", product.id, artisan_id)
        return ProductMutationResponse(
            message="Product created successfully!",
            product=ProductResponse.model_validate(product),
        )

    async def update_product(
        self,
        db: AsyncSession,
        product_id: UUID,
        artisan_id: UUID,
        data: ProductUpdateRequest,
    ) -> ProductMutationResponse:
        product = await self._require_owner(db, product_id, artisan_id, "update")
        fields = self._validated_fields(
            data.model_dump(exclude_unset=True), partial=True, artisan_id=artisan_id
        )
        if not fields:
            raise ValidationError(message="No data provided to update")

        previous_image = product.image_url
        for column, value in fields.items():
            setattr(product, column, value)
        await self._flush(db, "update")

        if "image_url" in fields and previous_image and previous_image != product.image_url:
            await file_service.cleanup_url(previous_image, PRODUCTS_BUCKET, artisan_id)

        logger.info("Product %s updated: %s", product_id, sorted(fields))
        return ProductMutationResponse(
            message="Product updated successfully!",
            product=ProductResponse.model_validate(product),
        )

    async def delete_product(
        self, db: AsyncSession, product_id: UUID, artisan_id: UUID
    ) -> MessageResponse:
        """Remove the product image (best effort), then the product and its reviews."""
        product = await self._require_owner(db, product_id, artisan_id, "delete")
        await file_service.cleanup_url(product.image_url, PRODUCTS_BUCKET, artisan_id)

        await db.delete(product)
        await self._flush(db, "delete")

        logger.info("Product %s deleted by %s", product_id, artisan_id)
        return MessageResponse(message="Product deleted successfully")

    async def upload_product_image(
        self,
        db: AsyncSession,
        artisan_id: UUID,
        filename: Optional[str],
        content: bytes,
        content_type: Optional[str] = None,
    ) -> ImageUploadResponse:
        """Store a product photo; the returned URL goes into create/update."""
        try:
            await self._require_artisan(db, artisan_id)
        except PermissionDeniedError:
            raise PermissionDeniedError(message="Only artisans can upload product images")

        stored = await file_service.validate_and_store(
            PRODUCTS_BUCKET, str(artisan_id), filename, content, content_type
        )
        return ImageUploadResponse(message="Image uploaded successfully!", image_url=stored.url)


# ── Singleton Instance ────────────────────────────────────────────────────
product_service = ProductService()
