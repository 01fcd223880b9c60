"""
Handcrafted Haven Backend — API Tests
=====================================

What:  End-to-end requests through the FastAPI app (middleware, dependencies,
       exception handlers and routers together).
How:   httpx AsyncClient over ASGITransport; accounts are created through
       the signup endpoint so every request carries a real session token.

Test Strategy:
    ✅ Error body shape, status codes and X-Request-ID on every response
    ✅ Auth: signup/signin/me/signout, password reset, Bearer parsing
    ✅ Artisan flow: upgrade, upload image, list product, serve image
    ✅ Catalogue: filters, X-Total-Count, 400 for invalid filter values
    ✅ Reviews, seller directory, contact form and inbox
    ✅ Admin-only verification, account deletion
"""

import logging

import pytest

from conftest import TEST_PASSWORD


async def create_product(client, headers, **overrides):
    body = {
        "title": "Stoneware Mug",
        "description": "Wheel-thrown, speckled glaze",
        "price": 32,
        "category": "Pottery & Ceramics",
        "stock": 4,
    }
    body.update(overrides)
    response = await client.post("/api/products", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["product"]


async def me(client, headers):
    response = await client.get("/api/auth/me", headers=headers)
    assert response.status_code == 200, response.text
    return response.json()["user"]


class TestPlumbing:

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"
        assert data["storage"] == "writable"

    @pytest.mark.asyncio
    async def test_request_id_generated_and_echoed(self, client):
        generated = await client.get("/api/products")
        echoed = await client.get("/api/products", headers={"X-Request-ID": "trace-123"})
        assert len(generated.headers["X-Request-ID"]) == 8
        assert echoed.headers["X-Request-ID"] == "trace-123"

    @pytest.mark.asyncio
    async def test_error_body_shape(self, client):
        response = await client.get(
            "/api/products/00000000-0000-0000-0000-000000000000",
            headers={"X-Request-ID": "err-1"},
        )
        assert response.status_code == 404
        assert response.json() == {
            "error": "not_found",
            "message": "Product not found",
            "request_id": "err-1",
        }


class TestAuthApi:

    @pytest.mark.asyncio
    async def test_signup_me_signout(self, client, auth_headers):
        headers = await auth_headers(email="sam@haven.test", first_name="Sam", last_name="Lee")

        user = await me(client, headers)
        assert user["email"] == "sam@haven.test"
        assert user["full_name"] == "Sam Lee"
        assert user["is_artisan"] is False

        signout = await client.post("/api/auth/signout", headers=headers)
        assert signout.json()["message"] == "Logout successful!"
        after = await client.get("/api/auth/me", headers=headers)
        assert after.status_code == 401
        assert after.headers["WWW-Authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_signup_accepts_camel_case(self, client):
        response = await client.post(
            "/api/auth/signup",
            json={"firstName": "Ana", "lastName": "Ruiz", "email": "ana@haven.test", "password": TEST_PASSWORD},
        )
        assert response.status_code == 201
        assert response.json()["user"]["full_name"] == "Ana Ruiz"

    @pytest.mark.asyncio
    async def test_signup_errors(self, client, auth_headers):
        await auth_headers(email="taken@haven.test")
        duplicate = await client.post(
            "/api/auth/signup", json={"email": "taken@haven.test", "password": TEST_PASSWORD}
        )
        weak = await client.post(
            "/api/auth/signup", json={"email": "new@haven.test", "password": "123"}
        )

        assert duplicate.status_code == 409
        assert duplicate.json()["error"] == "conflict"
        assert weak.status_code == 400
        assert weak.json()["details"] == {"field": "password"}

    @pytest.mark.asyncio
    async def test_signin_and_throttle(self, client, auth_headers):
        await auth_headers(email="sam@haven.test")

        ok = await client.post(
            "/api/auth/signin", json={"email": "SAM@haven.test", "password": TEST_PASSWORD}
        )
        assert ok.status_code == 200
        assert ok.json()["message"] == "Login successful!"

        for _ in range(5):
            bad = await client.post(
                "/api/auth/signin", json={"email": "sam@haven.test", "password": "wrong-one"}
            )
            assert bad.status_code == 401
        throttled = await client.post(
            "/api/auth/signin", json={"email": "sam@haven.test", "password": TEST_PASSWORD}
        )
        assert throttled.status_code == 429
        assert int(throttled.headers["Retry-After"]) >= 1
        assert throttled.json()["error"] == "rate_limit_exceeded"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("authorization", ["Basic abc", "Bearer ", "Bearer hh_sess_nope_nope"])
    async def test_bad_authorization_headers(self, client, authorization):
        response = await client.get("/api/auth/me", headers={"Authorization": authorization})
        assert response.status_code == 401
        assert response.json()["error"] == "authentication_required"

    @pytest.mark.asyncio
    async def test_password_reset_via_logged_token(self, client, auth_headers, caplog):
        await auth_headers(email="sam@haven.test")
        with caplog.at_level(logging.INFO, logger="haven.services.auth_service"):
            response = await client.post("/api/auth/password-reset", json={"email": "sam@haven.test"})
        assert response.status_code == 200
        token = next(
            word
            for record in caplog.records
            for word in record.getMessage().split()
            if word.startswith("hh_reset_")
        )

        confirm = await client.post(
            "/api/auth/password-reset/confirm",
            json={"token": token, "new_password": "fresh-pass-1"},
        )
        assert confirm.status_code == 200
        signin = await client.post(
            "/api/auth/signin", json={"email": "sam@haven.test", "password": "fresh-pass-1"}
        )
        assert signin.status_code == 200


class TestArtisanFlow:

    @pytest.mark.asyncio
    async def test_buyer_cannot_list_products(self, client, auth_headers):
        headers = await auth_headers()
        response = await client.post(
            "/api/products",
            json={"title": "Mug", "description": "d", "price": 5, "category": "Glass"},
            headers=headers,
        )
        assert response.status_code == 403
        assert response.json()["message"] == "Only artisans can create products"

    @pytest.mark.asyncio
    async def test_listing_with_uploaded_image(self, client, auth_headers, image_bytes):
        headers = await auth_headers(email="maker@haven.test", artisan_shop="Kiln & Co")
        content = image_bytes("PNG")

        upload = await client.post(
            "/api/products/images",
            files={"file": ("mug.png", content, "image/png")},
            headers=headers,
        )
        assert upload.status_code == 201, upload.text
        image_url = upload.json()["image_url"]

        product = await create_product(client, headers, image_url=image_url)
        assert product["image_url"] == image_url

        served = await client.get(image_url)
        assert served.status_code == 200
        assert served.headers["content-type"] == "image/png"
        assert served.content == content

    @pytest.mark.asyncio
    async def test_upload_rejects_non_images(self, client, auth_headers):
        headers = await auth_headers(email="maker@haven.test", artisan_shop="Kiln & Co")
        response = await client.post(
            "/api/products/images",
            files={"file": ("notes.png", b"plain text pretending", "image/png")},
            headers=headers,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_foreign_image_and_long_title_are_400(self, client, auth_headers, image_bytes):
        owner = await auth_headers(email="owner@haven.test", artisan_shop="Owner Shop")
        other = await auth_headers(email="other@haven.test", artisan_shop="Other Shop")
        upload = await client.post(
            "/api/products/images",
            files={"file": ("mug.png", image_bytes("PNG"), "image/png")},
            headers=owner,
        )
        body = {"title": "Mug", "description": "d", "price": 5, "category": "Glass"}

        foreign = await client.post(
            "/api/products", json={**body, "image_url": upload.json()["image_url"]}, headers=other
        )
        too_long = await client.post(
            "/api/products", json={**body, "title": "T" * 201}, headers=owner
        )

        assert foreign.status_code == 400
        assert foreign.json()["details"]["field"] == "image_url"
        assert too_long.status_code == 400
        assert too_long.json()["message"].startswith("Product title is too long")

    @pytest.mark.asyncio
    async def test_update_and_delete_ownership(self, client, auth_headers):
        owner = await auth_headers(email="owner@haven.test", artisan_shop="Owner Shop")
        other = await auth_headers(email="other@haven.test", artisan_shop="Other Shop")
        product = await create_product(client, owner)
        url = f"/api/products/{product['id']}"

        forbidden = await client.patch(url, json={"price": 1}, headers=other)
        updated = await client.patch(url, json={"price": 40}, headers=owner)
        deleted = await client.delete(url, headers=owner)
        gone = await client.get(url)

        assert forbidden.status_code == 403
        assert updated.json()["product"]["price"] == 40
        assert deleted.json()["message"] == "Product deleted successfully"
        assert gone.status_code == 404

    @pytest.mark.asyncio
    async def test_avatar_upload_and_delete(self, client, auth_headers, image_bytes):
        headers = await auth_headers()
        upload = await client.post(
            "/api/profiles/me/avatar",
            files={"file": ("me.jpg", image_bytes("JPEG"), "image/jpeg")},
            headers=headers,
        )
        assert upload.status_code == 201
        assert upload.json()["profile"]["avatar_url"] == upload.json()["image_url"]

        removed = await client.delete("/api/profiles/me/avatar", headers=headers)
        assert removed.json()["profile"]["profile_image_url"] is None


class TestCatalogueApi:

    @pytest.mark.asyncio
    async def test_filters_and_total_count(self, client, auth_headers):
        headers = await auth_headers(email="maker@haven.test", artisan_shop="Kiln & Co")
        await create_product(client, headers, title="Cup", price=10)
        await create_product(client, headers, title="Bowl", price=30)
        await create_product(client, headers, title="Rug", price=150, category="Textiles & Clothing")

        response = await client.get(
            "/api/products", params={"price_range": "25-50", "sort": "price-low"}
        )

        assert response.status_code == 200
        assert response.headers["X-Total-Count"] == "1"
        data = response.json()
        assert [p["title"] for p in data["products"]] == ["Bowl"]
        assert data["stats"]["total_products"] == 3
        assert data["stats"]["average_price"] == 63  # 190 / 3

    @pytest.mark.asyncio
    async def test_invalid_filter_is_400(self, client):
        response = await client.get("/api/products", params={"sort": "popular"})
        assert response.status_code == 400
        assert response.json()["details"] == {"field": "sort"}

    @pytest.mark.asyncio
    async def test_categories(self, client):
        response = await client.get("/api/products/categories")
        assert response.status_code == 200
        assert "Pottery & Ceramics" in response.json()["categories"]
        assert response.headers["Cache-Control"] == "public, max-age=300"

    @pytest.mark.asyncio
    async def test_artisan_products(self, client, auth_headers):
        headers = await auth_headers(email="maker@haven.test", artisan_shop="Kiln & Co")
        await create_product(client, headers)
        artisan_id = (await me(client, headers))["id"]

        response = await client.get(f"/api/artisans/{artisan_id}/products")

        assert response.headers["X-Total-Count"] == "1"
        assert response.json()["message"] == "Found 1 products"


class TestReviewsApi:

    @pytest.mark.asyncio
    async def test_guest_and_member_reviews(self, client, auth_headers):
        artisan = await auth_headers(email="maker@haven.test", artisan_shop="Kiln & Co")
        buyer = await auth_headers(email="fan@haven.test")
        product = await create_product(client, artisan)
        url = f"/api/products/{product['id']}/reviews"

        guest = await client.post(url, json={"reviewer_name": "Guest", "rating": "5", "comment": "Great"})
        member = await client.post(
            url, json={"reviewer_name": "Fan", "rating": 4, "comment": "Nice"}, headers=buyer
        )
        again = await client.post(
            url, json={"reviewer_name": "Fan", "rating": 1, "comment": "Meh"}, headers=buyer
        )

        assert guest.status_code == 201
        assert member.json()["product_rating"] == 4.5
        assert again.status_code == 409
        assert again.json()["message"] == "You have already reviewed this product."

        listing = await client.get(url)
        assert listing.headers["X-Total-Count"] == "2"
        mine = await client.get(f"{url}/mine", headers=buyer)
        assert mine.json()["has_reviewed"] is True
        stats = await client.get(f"{url}/stats")
        assert stats.json()["rating_distribution"]["5"] == 1

        # Guest review moderated by the artisan
        removed = await client.delete(f"/api/reviews/{guest.json()['review']['id']}", headers=artisan)
        assert removed.status_code == 200
        assert (await client.get(f"/api/products/{product['id']}")).json()["rating"] == 4

    @pytest.mark.asyncio
    async def test_rating_out_of_range(self, client, auth_headers):
        artisan = await auth_headers(email="maker@haven.test", artisan_shop="Kiln & Co")
        product = await create_product(client, artisan)
        response = await client.post(
            f"/api/products/{product['id']}/reviews",
            json={"reviewer_name": "Guest", "rating": 7, "comment": "!"},
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Rating must be between 1 and 5"


class TestSellersAndMessagesApi:

    @pytest.mark.asyncio
    async def test_directory_contact_and_inbox(self, client, auth_headers):
        artisan = await auth_headers(email="maker@haven.test", first_name="Pia", artisan_shop="Kiln & Co")
        await auth_headers(email="buyer@haven.test")

        directory = await client.get("/api/sellers")
        assert directory.headers["X-Total-Count"] == "1"
        seller = directory.json()["sellers"][0]
        assert seller["shop_name"] == "Kiln & Co"
        assert "email" not in seller

        sent = await client.post(
            f"/api/sellers/{seller['id']}/messages",
            json={
                "sender_name": "Mia",
                "sender_email": "mia@example.com",
                "subject": "Custom order",
                "message": "Six mugs please",
            },
        )
        assert sent.status_code == 201

        unread = await client.get("/api/messages/unread-count", headers=artisan)
        assert unread.json()["count"] == 1
        inbox = await client.get("/api/messages", headers=artisan)
        message_id = inbox.json()["messages"][0]["id"]
        await client.post(f"/api/messages/{message_id}/read", headers=artisan)
        assert (await client.get("/api/messages/unread-count", headers=artisan)).json()["count"] == 0
        deleted = await client.delete(f"/api/messages/{message_id}", headers=artisan)
        assert deleted.json()["message"] == "Message deleted successfully"

    @pytest.mark.asyncio
    async def test_contact_form_validation(self, client, auth_headers):
        await auth_headers(email="maker@haven.test", artisan_shop="Kiln & Co")
        seller = (await client.get("/api/sellers")).json()["sellers"][0]
        response = await client.post(
            f"/api/sellers/{seller['id']}/messages",
            json={"sender_name": "Mia", "sender_email": "bad", "subject": "s", "message": "m"},
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Please enter a valid email address"

    @pytest.mark.asyncio
    async def test_inbox_requires_sign_in(self, client):
        response = await client.get("/api/messages")
        assert response.status_code == 401


class TestAdminAndAccount:

    @pytest.mark.asyncio
    async def test_only_admin_verifies(self, client, auth_headers):
        artisan = await auth_headers(email="maker@haven.test", artisan_shop="Kiln & Co")
        admin = await auth_headers(email="admin@haven.test")
        artisan_id = (await me(client, artisan))["id"]

        denied = await client.post(f"/api/profiles/{artisan_id}/verify", headers=artisan)
        allowed = await client.post(f"/api/profiles/{artisan_id}/verify", headers=admin)

        assert denied.status_code == 403
        assert denied.json()["message"] == "Administrator access required"
        assert allowed.json()["profile"]["artisan_verified"] is True

    @pytest.mark.asyncio
    async def test_self_verification_rejected(self, client, auth_headers):
        artisan = await auth_headers(email="maker@haven.test", artisan_shop="Kiln & Co")
        response = await client.patch(
            "/api/profiles/me", json={"artisan_verified": True}, headers=artisan
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_public_profile(self, client, auth_headers):
        artisan = await auth_headers(email="maker@haven.test", artisan_shop="Kiln & Co")
        await create_product(client, artisan)
        artisan_id = (await me(client, artisan))["id"]

        response = await client.get(f"/api/profiles/{artisan_id}")

        assert response.status_code == 200
        assert response.json()["stats"] == {"total_products": 1}
        assert "email" not in response.json()

    @pytest.mark.asyncio
    async def test_delete_account(self, client, auth_headers):
        artisan = await auth_headers(email="maker@haven.test", artisan_shop="Kiln & Co")
        product = await create_product(client, artisan)

        wrong = await client.request(
            "DELETE", "/api/profiles/me", json={"confirmation_text": "yes"}, headers=artisan
        )
        assert wrong.status_code == 400

        deleted = await client.request(
            "DELETE",
            "/api/profiles/me",
            json={"confirmation_text": "DELETE MY ACCOUNT"},
            headers=artisan,
        )
        assert deleted.status_code == 200
        assert (await client.get(f"/api/products/{product['id']}")).status_code == 404
        assert (await client.get("/api/auth/me", headers=artisan)).status_code == 401
