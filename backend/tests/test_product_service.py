"""
Handcrafted Haven Backend — Product Service Unit Tests
======================================================

Test Strategy:
    ✅ Catalogue filters: category, price ranges (boundaries), search, sorting
    ✅ Pagination: total_count is the filtered count, has_more
    ✅ Catalogue stats are computed over the whole catalogue
    ✅ Create/update validation messages, in order
    ✅ Ownership: only the listing artisan may change or remove a product
    ✅ Categories fall back to the default list
"""

import uuid

import pytest
from pydantic import ValidationError as SchemaValidationError

from haven.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from haven.models import Product
from haven.schemas.product import ProductCreateRequest, ProductQueryParams, ProductUpdateRequest
from haven.services.file_service import file_service
from haven.services.product_service import DEFAULT_CATEGORIES, ProductService


@pytest.fixture
def catalogue(make_profile, make_product):
    """Five products across three categories, two artisans."""

    async def _build():
        potter = await make_profile(email="potter@haven.test", full_name="Pia Potter", role="seller")
        weaver = await make_profile(email="weaver@haven.test", full_name="Wes Weaver", role="seller")
        products = {
            "cup": await make_product(potter, title="Espresso Cup", price=12.0),
            "bowl": await make_product(potter, title="Serving Bowl", price=25.0),
            "vase": await make_product(potter, title="Tall Vase", price=50.0, description="Ash glaze"),
            "scarf": await make_product(
                weaver, title="Wool Scarf", price=100.0, category="Textiles & Clothing",
                description="Hand-loomed merino",
            ),
            "rug": await make_product(
                weaver, title="Kilim Rug", price=240.0, category="Textiles & Clothing",
                description="Flat-woven wool",
            ),
        }
        return potter, weaver, products

    return _build


def titles(result):
    return sorted(p.title for p in result.products)


class TestListProducts:

    def setup_method(self):
        self.service = ProductService()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "price_range, expected",
        [
            ("under-25", ["Espresso Cup"]),
            ("25-50", ["Serving Bowl", "Tall Vase"]),
            ("50-100", ["Wool Scarf"]),
            ("over-100", ["Kilim Rug"]),
        ],
    )
    async def test_price_range_boundaries(self, db_session, catalogue, price_range, expected):
        await catalogue()
        result = await self.service.list_products(
            db_session, ProductQueryParams(price_range=price_range)
        )
        assert titles(result) == expected

    @pytest.mark.asyncio
    async def test_category_filter_and_all_categories(self, db_session, catalogue):
        await catalogue()
        textiles = await self.service.list_products(
            db_session, ProductQueryParams(category="Textiles & Clothing")
        )
        everything = await self.service.list_products(
            db_session, ProductQueryParams(category="All Categories")
        )
        assert titles(textiles) == ["Kilim Rug", "Wool Scarf"]
        assert everything.total_count == 5

    @pytest.mark.asyncio
    async def test_search_matches_title_description_and_category(self, db_session, catalogue):
        await catalogue()
        by_description = await self.service.list_products(db_session, ProductQueryParams(search="WOOL"))
        by_category = await self.service.list_products(db_session, ProductQueryParams(search="ceramics"))
        assert titles(by_description) == ["Kilim Rug", "Wool Scarf"]
        assert titles(by_category) == ["Espresso Cup", "Serving Bowl", "Tall Vase"]

    @pytest.mark.asyncio
    async def test_sorting(self, db_session, catalogue):
        await catalogue()
        low = await self.service.list_products(db_session, ProductQueryParams(sort="price-low"))
        high = await self.service.list_products(db_session, ProductQueryParams(sort="price-high"))
        by_title = await self.service.list_products(db_session, ProductQueryParams(sort="title"))

        assert [p.price for p in low.products] == [12.0, 25.0, 50.0, 100.0, 240.0]
        assert [p.price for p in high.products] == [240.0, 100.0, 50.0, 25.0, 12.0]
        assert by_title.products[0].title == "Espresso Cup"

    @pytest.mark.asyncio
    async def test_pagination_and_stats(self, db_session, catalogue):
        await catalogue()
        page = await self.service.list_products(
            db_session,
            ProductQueryParams(category="Pottery & Ceramics", sort="price-low", limit=2, offset=0),
        )

        assert [p.title for p in page.products] == ["Espresso Cup", "Serving Bowl"]
        assert page.total_count == 3
        assert page.has_more is True
        # Stats describe the whole catalogue, not the filtered page
        assert page.stats.total_products == 5
        assert page.stats.filtered_count == 3
        assert page.stats.categories_count == 2
        assert page.stats.average_price == 85  # 427 / 5 = 85.4

        last = await self.service.list_products(
            db_session,
            ProductQueryParams(category="Pottery & Ceramics", sort="price-low", limit=2, offset=2),
        )
        assert [p.title for p in last.products] == ["Tall Vase"]
        assert last.has_more is False

    @pytest.mark.asyncio
    async def test_empty_catalogue(self, db_session):
        result = await self.service.list_products(db_session, ProductQueryParams())
        assert result.products == []
        assert result.total_count == 0
        assert result.has_more is False
        assert result.stats.average_price == 0

    def test_invalid_query_values_rejected(self):
        with pytest.raises(SchemaValidationError):
            ProductQueryParams(price_range="cheap")
        with pytest.raises(SchemaValidationError):
            ProductQueryParams(sort="popular")
        with pytest.raises(SchemaValidationError):
            ProductQueryParams(limit=0)


class TestLookups:

    def setup_method(self):
        self.service = ProductService()

    @pytest.mark.asyncio
    async def test_get_product(self, db_session, make_profile, make_product):
        artisan = await make_profile(role="seller")
        product = await make_product(artisan)
        result = await self.service.get_product(db_session, product.id)
        assert result.id == product.id
        assert result.artisan_id == artisan.id

    @pytest.mark.asyncio
    async def test_missing_product(self, db_session):
        with pytest.raises(NotFoundError, match="Product not found"):
            await self.service.get_product(db_session, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_artisan_products(self, db_session, catalogue):
        potter, _, _ = await catalogue()
        result = await self.service.get_artisan_products(db_session, potter.id)
        assert result.message == "Found 3 products"
        assert {p.artisan_id for p in result.products} == {potter.id}

    @pytest.mark.asyncio
    async def test_categories_in_use(self, db_session, catalogue):
        await catalogue()
        result = await self.service.get_product_categories(db_session)
        assert result.categories == ["Pottery & Ceramics", "Textiles & Clothing"]

    @pytest.mark.asyncio
    async def test_categories_default_when_empty(self, db_session):
        result = await self.service.get_product_categories(db_session)
        assert result.categories == DEFAULT_CATEGORIES


class TestCreateProduct:

    def setup_method(self):
        self.service = ProductService()

    @pytest.mark.asyncio
    async def test_create_trims_and_defaults(self, db_session, make_profile):
        artisan = await make_profile(role="seller")
        result = await self.service.create_product(
            db_session,
            artisan.id,
            ProductCreateRequest(
                title="  Walnut Spoon ", description=" Carved by hand ", price=18.5,
                category="Woodwork",
            ),
        )
        assert result.message == "Product created successfully!"
        assert result.product.title == "Walnut Spoon"
        assert result.product.description == "Carved by hand"
        assert result.product.stock == 0
        assert result.product.rating == 0
        assert result.product.image_url is None
        assert result.product.formatted_price == "$18.50"

    @pytest.mark.asyncio
    async def test_buyers_cannot_create(self, db_session, make_profile):
        buyer = await make_profile()
        with pytest.raises(PermissionDeniedError, match="Only artisans can create products"):
            await self.service.create_product(
                db_session,
                buyer.id,
                ProductCreateRequest(title="x", description="y", price=1, category="Glass"),
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "fields, message",
        [
            ({}, "Product title is required"),
            ({"title": "Mug"}, "Product description is required"),
            ({"title": "Mug", "description": "d"}, "Valid product price is required"),
            ({"title": "Mug", "description": "d", "price": 0}, "Valid product price is required"),
            ({"title": "Mug", "description": "d", "price": 5}, "Product category is required"),
            (
                {"title": "Mug", "description": "d", "price": 5, "category": "Glass", "stock": -1},
                "Valid stock quantity is required",
            ),
        ],
    )
    async def test_validation_messages(self, db_session, make_profile, fields, message):
        artisan = await make_profile(role="seller")
        with pytest.raises(ValidationError, match=message):
            await self.service.create_product(db_session, artisan.id, ProductCreateRequest(**fields))

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"title": "T" * 201}, r"Product title is too long \(maximum 200 characters\)"),
            ({"category": "C" * 101}, "Product category is too long"),
            ({"image_url": "https://cdn.example.com/" + "i" * 480}, "Image URL is too long"),
        ],
    )
    async def test_overlong_fields_rejected(self, db_session, make_profile, overrides, message):
        artisan = await make_profile(role="seller")
        fields = {"title": "Mug", "description": "d", "price": 5, "category": "Glass"}
        fields.update(overrides)
        with pytest.raises(ValidationError, match=message):
            await self.service.create_product(db_session, artisan.id, ProductCreateRequest(**fields))

    @pytest.mark.asyncio
    async def test_external_image_url_accepted(self, db_session, make_profile):
        artisan = await make_profile(role="seller")
        result = await self.service.create_product(
            db_session,
            artisan.id,
            ProductCreateRequest(
                title="Mug", description="d", price=5, category="Glass",
                image_url="https://cdn.example.com/mug.jpg",
            ),
        )
        assert result.product.image_url == "https://cdn.example.com/mug.jpg"


class TestUpdateAndDelete:

    def setup_method(self):
        self.service = ProductService()

    @pytest.mark.asyncio
    async def test_owner_updates_only_sent_fields(self, db_session, make_profile, make_product):
        artisan = await make_profile(role="seller")
        product = await make_product(artisan, title="Mug", price=30)

        result = await self.service.update_product(
            db_session, product.id, artisan.id, ProductUpdateRequest(price=35)
        )

        assert result.message == "Product updated successfully!"
        assert result.product.price == 35
        assert result.product.title == "Mug"

    @pytest.mark.asyncio
    async def test_other_artisan_cannot_update_or_delete(self, db_session, make_profile, make_product):
        owner = await make_profile(email="owner@haven.test", role="seller")
        other = await make_profile(email="other@haven.test", role="seller")
        product = await make_product(owner)

        with pytest.raises(PermissionDeniedError, match="permission to update"):
            await self.service.update_product(
                db_session, product.id, other.id, ProductUpdateRequest(price=1)
            )
        with pytest.raises(PermissionDeniedError, match="permission to delete"):
            await self.service.delete_product(db_session, product.id, other.id)

    @pytest.mark.asyncio
    async def test_empty_update_rejected(self, db_session, make_profile, make_product):
        artisan = await make_profile(role="seller")
        product = await make_product(artisan)
        with pytest.raises(ValidationError, match="No data provided to update"):
            await self.service.update_product(
                db_session, product.id, artisan.id, ProductUpdateRequest()
            )

    @pytest.mark.asyncio
    async def test_update_with_blank_title_rejected(self, db_session, make_profile, make_product):
        artisan = await make_profile(role="seller")
        product = await make_product(artisan)
        with pytest.raises(ValidationError, match="Product title is required"):
            await self.service.update_product(
                db_session, product.id, artisan.id, ProductUpdateRequest(title="  ")
            )

    @pytest.mark.asyncio
    async def test_replacing_image_removes_old_file(self, db_session, make_profile, make_product, image_bytes):
        artisan = await make_profile(role="seller")
        old = await self.service.upload_product_image(db_session, artisan.id, "a.png", image_bytes())
        product = await make_product(artisan, image_url=old.image_url)
        new = await self.service.upload_product_image(db_session, artisan.id, "b.png", image_bytes())
        old_path = file_service.storage_root / file_service.relative_path_from_url(old.image_url)
        assert old_path.exists()

        await self.service.update_product(
            db_session, product.id, artisan.id, ProductUpdateRequest(image_url=new.image_url)
        )

        assert not old_path.exists()

    @pytest.mark.asyncio
    async def test_delete_removes_product_and_image(self, db_session, make_profile, make_product, image_bytes):
        artisan = await make_profile(role="seller")
        upload = await self.service.upload_product_image(db_session, artisan.id, "a.png", image_bytes())
        product = await make_product(artisan, image_url=upload.image_url)
        product_id = product.id
        image_path = file_service.storage_root / file_service.relative_path_from_url(upload.image_url)

        result = await self.service.delete_product(db_session, product_id, artisan.id)

        assert result.message == "Product deleted successfully"
        assert await db_session.get(Product, product_id) is None
        assert not image_path.exists()

    @pytest.mark.asyncio
    async def test_image_url_of_another_artisan_rejected(self, db_session, make_profile, make_product, image_bytes):
        owner = await make_profile(email="owner@haven.test", role="seller")
        other = await make_profile(email="other@haven.test", role="seller")
        upload = await self.service.upload_product_image(db_session, owner.id, "a.png", image_bytes())
        product = await make_product(other)

        with pytest.raises(ValidationError, match="your own account"):
            await self.service.create_product(
                db_session,
                other.id,
                ProductCreateRequest(
                    title="Mug", description="d", price=5, category="Glass", image_url=upload.image_url
                ),
            )
        with pytest.raises(ValidationError, match="your own account"):
            await self.service.update_product(
                db_session, product.id, other.id, ProductUpdateRequest(image_url=upload.image_url)
            )

    @pytest.mark.asyncio
    async def test_delete_leaves_other_artisans_file(self, db_session, make_profile, make_product, image_bytes):
        owner = await make_profile(email="owner@haven.test", role="seller")
        other = await make_profile(email="other@haven.test", role="seller")
        upload = await self.service.upload_product_image(db_session, owner.id, "a.png", image_bytes())
        image_path = file_service.storage_root / file_service.relative_path_from_url(upload.image_url)
        # A listing that already points at someone else's upload
        product = await make_product(other, image_url=upload.image_url)

        await self.service.delete_product(db_session, product.id, other.id)

        assert image_path.exists()


class TestProductImages:

    def setup_method(self):
        self.service = ProductService()

    @pytest.mark.asyncio
    async def test_artisan_upload(self, db_session, make_profile, image_bytes):
        artisan = await make_profile(role="seller")
        result = await self.service.upload_product_image(
            db_session, artisan.id, "photo.webp", image_bytes("WEBP"), "image/webp"
        )
        assert result.message == "Image uploaded successfully!"
        assert result.image_url.startswith(f"/api/files/products/{artisan.id}-")
        assert result.image_url.endswith(".webp")

    @pytest.mark.asyncio
    async def test_buyer_upload_rejected(self, db_session, make_profile, image_bytes):
        buyer = await make_profile()
        with pytest.raises(PermissionDeniedError, match="Only artisans can upload product images"):
            await self.service.upload_product_image(db_session, buyer.id, "a.png", image_bytes())
