"""
Handcrafted Haven Backend — Product SQLAlchemy Model
====================================================

What:  ORM model representing the `products` table.
Who:   Used by ProductService for catalogue CRUD and by ReviewService to
       store the aggregated rating.

Table Design Rationale:
    - artisan_id → user_profiles.id ON DELETE CASCADE: a closed shop takes
      its listings with it
    - price NUMERIC(10,2): exact cents in the database; exposed to Python as
      float (asdecimal=False) because the API speaks JSON numbers
    - rating NUMERIC(3,2): denormalized mean of product_reviews, rewritten
      after every review insert/delete
    - image_url: public URL of the uploaded photo (or any external URL)

    Index on created_at DESC:
        The storefront lists newest products first by default.
    Index on category:
        Category filter chips are the most used browse filter.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from haven.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Product(Base):
    """An item an artisan has listed for sale."""

    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    artisan_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("user_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    price: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    category: Mapped[str] = mapped_column(String(100), nullable=False)

    rating: Mapped[float] = mapped_column(
        Numeric(3, 2, asdecimal=False),
        nullable=False,
        default=0,
        server_default=text("0"),
    )
    stock: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )

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
        Index("idx_products_created_at", created_at.desc()),
        Index("idx_products_category", "category"),
        Index("idx_products_artisan_id", "artisan_id"),
    )

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, title='{self.title}', price={self.price})>"
