"""
Handcrafted Haven Backend — UserProfile SQLAlchemy Model
========================================================

What:  ORM model for the `user_profiles` table: one row per account.
Why:   Buyers and artisans share a single table; the `role` column decides
       which storefront features an account may use.
Who:   Used by the auth, profile, product and contact services.

Table Design Rationale:
    - email is stored lowercased and unique; sign-in lookups lowercase input
    - password_hash holds an argon2id hash, never the password
    - role: 'buyer' (default), 'seller' or 'artisan'; both of the latter count
      as artisans throughout the application
    - is_verified: set by an administrator once an artisan is vetted
    - Deleting a profile cascades (database side) to products, received
      messages, sessions and reset tokens; reviews keep their row with
      user_id set to NULL
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, String, Text, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column

from haven.database import Base

# Roles that may list products and receive contact messages
ARTISAN_ROLES = frozenset({"seller", "artisan"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserProfile(Base):
    """
    A marketplace account and its public profile.

    Query Patterns:
        - Sign in: WHERE email = :email → unique index
        - Seller directory: WHERE role IN (...) AND is_active
          ORDER BY is_verified DESC, full_name → idx_user_profiles_role
    """

    __tablename__ = "user_profiles"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    # ── Credentials ───────────────────────────────────────────────────────
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # ── Public profile ────────────────────────────────────────────────────
    full_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    username: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    website_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    profile_image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # ── Role & shop ───────────────────────────────────────────────────────
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="buyer",
        server_default=text("'buyer'"),
    )
    shop_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    shop_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    instagram_handle: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    facebook_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # ── Account state ─────────────────────────────────────────────────────
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )
    is_verified: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )

    # ── Timestamps ────────────────────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("idx_user_profiles_role", "role"),
    )

    @property
    def is_artisan(self) -> bool:
        return self.role in ARTISAN_ROLES

    def __repr__(self) -> str:
        return f"<UserProfile(id={self.id}, email='{self.email}', role='{self.role}')>"
