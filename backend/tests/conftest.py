"""
Handcrafted Haven Backend — Test Configuration (conftest.py)
============================================================

What:  Shared pytest fixtures for the whole suite.
How:   Each test gets a fresh SQLite database (aiosqlite) with every table
       created, and a temporary image storage root.

Fixture Hierarchy:
    db_session     AsyncSession on a freshly created schema
    client         httpx AsyncClient talking to the app over ASGITransport
    image_bytes    factory for real JPEG/PNG/WebP/GIF bytes made with Pillow
    make_profile   factory inserting a UserProfile (buyer or artisan)
    make_product   factory inserting a Product
    auth_headers   factory: sign up through the API, return Bearer headers
"""

import io
import os
import tempfile
from typing import Optional

# Settings are read at import time: point them at throwaway resources first
_TEST_DIR = tempfile.mkdtemp(prefix="haven_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/test.db"
os.environ["STORAGE_ROOT"] = os.path.join(_TEST_DIR, "storage")
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["RATE_LIMIT_REQUESTS"] = "100000"
os.environ["ADMIN_EMAILS"] = "admin@haven.test"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from PIL import Image  # noqa: E402

from haven.database import (  # noqa: E402
    async_session_factory,
    create_all_tables,
    drop_all_tables,
    engine,
)
from haven.models import Product, UserProfile  # noqa: E402
from haven.services.auth_service import auth_service  # noqa: E402
from haven.services.security import hash_secret  # noqa: E402

TEST_PASSWORD = "handmade123"

# Hashing is deliberately slow; one hash serves every fixture-made profile
_TEST_PASSWORD_HASH = hash_secret(TEST_PASSWORD)


@pytest.fixture(autouse=True)
def reset_login_throttle():
    auth_service.reset_login_attempts()
    yield
    auth_service.reset_login_attempts()


@pytest_asyncio.fixture
async def database():
    """
    Fresh schema per test.

    The engine is disposed afterwards because pooled aiosqlite connections
    are bound to the event loop of the test that opened them.
    """
    await create_all_tables()
    yield
    await drop_all_tables()
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(database):
    async with async_session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client(database):
    from haven.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http:
        yield http


@pytest.fixture
def image_bytes():
    """
    Build real image bytes with Pillow.

    Usage:
        png = image_bytes("PNG")
        big = image_bytes("JPEG", size=(2000, 2000))
    """

    def _make(fmt: str = "PNG", size=(8, 8), color=(180, 120, 60)) -> bytes:
        buffer = io.BytesIO()
        Image.new("RGB", size, color).save(buffer, format=fmt)
        return buffer.getvalue()

    return _make


@pytest.fixture
def make_profile(db_session):
    async def _make(
        email: str = "buyer@haven.test",
        full_name: str = "Ada Buyer",
        role: str = "buyer",
        is_verified: bool = False,
        is_active: bool = True,
        **fields,
    ) -> UserProfile:
        profile = UserProfile(
            email=email,
            password_hash=_TEST_PASSWORD_HASH,
            full_name=full_name,
            role=role,
            is_verified=is_verified,
            is_active=is_active,
            **fields,
        )
        db_session.add(profile)
        await db_session.flush()
        return profile

    return _make


@pytest.fixture
def make_product(db_session):
    async def _make(
        artisan: UserProfile,
        title: str = "Stoneware Mug",
        price: float = 30.0,
        category: str = "Pottery & Ceramics",
        description: str = "Wheel-thrown mug with a speckled glaze",
        stock: int = 5,
        image_url: Optional[str] = None,
    ) -> Product:
        product = Product(
            artisan_id=artisan.id,
            title=title,
            description=description,
            price=price,
            category=category,
            stock=stock,
            rating=0,
            image_url=image_url,
        )
        db_session.add(product)
        await db_session.flush()
        return product

    return _make


@pytest.fixture
def auth_headers(client):
    """Sign up through the API and return headers carrying the new session."""

    async def _signup(
        email: str = "shopper@haven.test",
        first_name: str = "Sam",
        last_name: str = "Shopper",
        artisan_shop: Optional[str] = None,
    ) -> dict:
        response = await client.post(
            "/api/auth/signup",
            json={
                "first_name": first_name,
                "last_name": last_name,
                "email": email,
                "password": TEST_PASSWORD,
            },
        )
        assert response.status_code == 201, response.text
        headers = {"Authorization": f"Bearer {response.json()['session']['access_token']}"}
        if artisan_shop:
            upgrade = await client.post(
                "/api/profiles/me/artisan", json={"shop_name": artisan_shop}, headers=headers
            )
            assert upgrade.status_code == 200, upgrade.text
        return headers

    return _signup
