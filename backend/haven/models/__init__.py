"""
Handcrafted Haven Backend — ORM Models
======================================

Importing this package registers every table on `Base.metadata`, which is
what Alembic autogenerate and the test suite's create_all rely on.
"""

from haven.models.auth_session import AuthSession, PasswordResetToken
from haven.models.contact_message import ContactMessage
from haven.models.product import Product
from haven.models.review import Review
from haven.models.user_profile import ARTISAN_ROLES, UserProfile

__all__ = [
    "ARTISAN_ROLES",
    "AuthSession",
    "ContactMessage",
    "PasswordResetToken",
    "Product",
    "Review",
    "UserProfile",
]
