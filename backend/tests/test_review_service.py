"""
Handcrafted Haven Backend — Review Service Unit Tests
=====================================================

Test Strategy:
    ✅ Rating parsing: ints, numeric strings, truncation, range, bools
    ✅ Product rating is the half-up mean, refreshed on insert and delete
    ✅ One review per signed-in user per product; guests unlimited
    ✅ Delete permissions: author, or product artisan for guest reviews
    ✅ Star distribution and percentages
"""

import uuid

import pytest

from haven.exceptions import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from haven.models import Product
from haven.schemas.review import ReviewCreateRequest
from haven.services.review_service import ReviewService, parse_rating, round_rating


def review(rating=5, name="Mia", comment="Beautiful work"):
    return ReviewCreateRequest(reviewer_name=name, rating=rating, comment=comment)


class TestRatingHelpers:

    @pytest.mark.parametrize("value, expected", [(1, 1), (5, 5), ("4", 4), ("4.7", 4), (3.2, 3)])
    def test_parse_rating(self, value, expected):
        assert parse_rating(value) == expected

    @pytest.mark.parametrize("value", [0, 6, "0.5", "five", None, True, ""])
    def test_parse_rating_rejects(self, value):
        with pytest.raises(ValidationError, match="Rating must be between 1 and 5"):
            parse_rating(value)

    def test_round_rating_half_up(self):
        assert round_rating(4.25) == 4.3
        assert round_rating(4.24) == 4.2
        assert round_rating(None) == 0.0


class TestCreateReview:

    def setup_method(self):
        self.service = ReviewService()

    @pytest.mark.asyncio
    async def test_create_updates_product_rating(self, db_session, make_profile, make_product):
        artisan = await make_profile(role="seller")
        product = await make_product(artisan)

        await self.service.create_review(db_session, product.id, review(5))
        await self.service.create_review(db_session, product.id, review(4))
        result = await self.service.create_review(db_session, product.id, review(4))

        assert result.message == "Review submitted successfully!"
        assert result.product_rating == 4.3  # 13 / 3 = 4.33
        refreshed = await db_session.get(Product, product.id)
        assert refreshed.rating == pytest.approx(4.3)

    @pytest.mark.asyncio
    async def test_trims_and_parses_form_values(self, db_session, make_profile, make_product):
        artisan = await make_profile(role="seller")
        product = await make_product(artisan)
        result = await self.service.create_review(
            db_session, product.id, review(rating="3", name="  Leo ", comment=" Solid ")
        )
        assert result.review.rating == 3
        assert result.review.reviewer_name == "Leo"
        assert result.review.comment == "Solid"
        assert result.review.user_id is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "data, message",
        [
            (review(name="  "), "Reviewer name is required"),
            (review(comment=""), "Comment is required"),
            (review(rating=9), "Rating must be between 1 and 5"),
            (review(name="N" * 201), "Reviewer name is too long"),
        ],
    )
    async def test_validation(self, db_session, make_profile, make_product, data, message):
        artisan = await make_profile(role="seller")
        product = await make_product(artisan)
        with pytest.raises(ValidationError, match=message):
            await self.service.create_review(db_session, product.id, data)

    @pytest.mark.asyncio
    async def test_unknown_product(self, db_session):
        with pytest.raises(NotFoundError, match="Product not found"):
            await self.service.create_review(db_session, uuid.uuid4(), review())

    @pytest.mark.asyncio
    async def test_one_review_per_user(self, db_session, make_profile, make_product):
        artisan = await make_profile(email="maker@haven.test", role="seller")
        buyer = await make_profile(email="fan@haven.test")
        product = await make_product(artisan)
        await self.service.create_review(db_session, product.id, review(), user_id=buyer.id)

        with pytest.raises(ConflictError, match="already reviewed this product"):
            await self.service.create_review(db_session, product.id, review(1), user_id=buyer.id)

    @pytest.mark.asyncio
    async def test_guests_may_review_repeatedly(self, db_session, make_profile, make_product):
        artisan = await make_profile(role="seller")
        product = await make_product(artisan)
        await self.service.create_review(db_session, product.id, review())
        await self.service.create_review(db_session, product.id, review())

        listing = await self.service.get_product_reviews(db_session, product.id)
        assert listing.total_count == 2


class TestListing:

    def setup_method(self):
        self.service = ReviewService()

    @pytest.mark.asyncio
    async def test_order_and_pagination(self, db_session, make_profile, make_product):
        artisan = await make_profile(role="seller")
        product = await make_product(artisan)
        for rating in (2, 5, 3):
            await self.service.create_review(db_session, product.id, review(rating))

        by_rating = await self.service.get_product_reviews(
            db_session, product.id, order_by="rating", limit=2
        )

        assert [r.rating for r in by_rating.reviews] == [5, 3]
        assert by_rating.total_count == 3
        assert by_rating.has_more is True

    @pytest.mark.asyncio
    async def test_invalid_order_by(self, db_session):
        with pytest.raises(ValidationError, match="Invalid order_by"):
            await self.service.get_product_reviews(db_session, uuid.uuid4(), order_by="comment")

    @pytest.mark.asyncio
    async def test_user_review_status(self, db_session, make_profile, make_product):
        artisan = await make_profile(email="maker@haven.test", role="seller")
        buyer = await make_profile(email="fan@haven.test")
        product = await make_product(artisan)

        before = await self.service.get_user_review_for_product(db_session, buyer.id, product.id)
        await self.service.create_review(db_session, product.id, review(), user_id=buyer.id)
        after = await self.service.get_user_review_for_product(db_session, buyer.id, product.id)

        assert before.has_reviewed is False
        assert before.review is None
        assert after.has_reviewed is True
        assert after.review.user_id == buyer.id


class TestDeleteReview:

    def setup_method(self):
        self.service = ReviewService()

    @pytest.mark.asyncio
    async def test_author_deletes_and_rating_recomputed(self, db_session, make_profile, make_product):
        artisan = await make_profile(email="maker@haven.test", role="seller")
        buyer = await make_profile(email="fan@haven.test")
        product = await make_product(artisan)
        await self.service.create_review(db_session, product.id, review(5))
        own = await self.service.create_review(db_session, product.id, review(1), user_id=buyer.id)

        result = await self.service.delete_review(db_session, own.review.id, buyer.id)

        assert result.message == "Review deleted successfully"
        refreshed = await db_session.get(Product, product.id)
        assert refreshed.rating == pytest.approx(5.0)

    @pytest.mark.asyncio
    async def test_rating_resets_to_zero_when_last_review_goes(self, db_session, make_profile, make_product):
        artisan = await make_profile(email="maker@haven.test", role="seller")
        buyer = await make_profile(email="fan@haven.test")
        product = await make_product(artisan)
        own = await self.service.create_review(db_session, product.id, review(4), user_id=buyer.id)

        await self.service.delete_review(db_session, own.review.id, buyer.id)

        refreshed = await db_session.get(Product, product.id)
        assert refreshed.rating == 0

    @pytest.mark.asyncio
    async def test_others_cannot_delete(self, db_session, make_profile, make_product):
        artisan = await make_profile(email="maker@haven.test", role="seller")
        author = await make_profile(email="fan@haven.test")
        stranger = await make_profile(email="stranger@haven.test")
        product = await make_product(artisan)
        authored = await self.service.create_review(db_session, product.id, review(), user_id=author.id)

        with pytest.raises(PermissionDeniedError):
            await self.service.delete_review(db_session, authored.review.id, stranger.id)
        # The artisan moderates guest reviews only
        with pytest.raises(PermissionDeniedError):
            await self.service.delete_review(db_session, authored.review.id, artisan.id)

    @pytest.mark.asyncio
    async def test_artisan_moderates_guest_reviews(self, db_session, make_profile, make_product):
        artisan = await make_profile(email="maker@haven.test", role="seller")
        stranger = await make_profile(email="stranger@haven.test")
        product = await make_product(artisan)
        guest = await self.service.create_review(db_session, product.id, review())

        with pytest.raises(PermissionDeniedError):
            await self.service.delete_review(db_session, guest.review.id, stranger.id)
        result = await self.service.delete_review(db_session, guest.review.id, artisan.id)
        assert result.message == "Review deleted successfully"

    @pytest.mark.asyncio
    async def test_missing_review(self, db_session, make_profile):
        user = await make_profile()
        with pytest.raises(NotFoundError, match="Review not found"):
            await self.service.delete_review(db_session, uuid.uuid4(), user.id)


class TestStats:

    def setup_method(self):
        self.service = ReviewService()

    @pytest.mark.asyncio
    async def test_distribution(self, db_session, make_profile, make_product):
        artisan = await make_profile(role="seller")
        product = await make_product(artisan)
        for rating in (5, 5, 4):
            await self.service.create_review(db_session, product.id, review(rating))

        stats = await self.service.get_review_stats(db_session, product.id)

        assert stats.total_reviews == 3
        assert stats.average_rating == 4.7
        assert stats.rating_distribution == {"1": 0, "2": 0, "3": 0, "4": 1, "5": 2}
        assert stats.rating_percentages == {"1": 0, "2": 0, "3": 0, "4": 33, "5": 67}

    @pytest.mark.asyncio
    async def test_no_reviews(self, db_session, make_profile, make_product):
        artisan = await make_profile(role="seller")
        product = await make_product(artisan)
        stats = await self.service.get_review_stats(db_session, product.id)
        assert stats.total_reviews == 0
        assert stats.average_rating == 0.0
        assert set(stats.rating_percentages.values()) == {0}
