"""Create marketplace schema

Revision ID: 001
Revises: None
Create Date: 2025-03-01 00:00:00.000000+00:00

What:  Creates accounts, sessions, products, reviews and contact messages.
How:   Portable column types (sa.Uuid, TIMESTAMP WITH TIME ZONE); ids are
       generated by the application, so no database extension is needed.

Foreign keys:
    products.artisan_id            → user_profiles  ON DELETE CASCADE
    product_reviews.product_id     → products       ON DELETE CASCADE
    product_reviews.user_id        → user_profiles  ON DELETE SET NULL
    contact_messages.seller_id     → user_profiles  ON DELETE CASCADE
    contact_messages.sender_id     → user_profiles  ON DELETE SET NULL
    auth_sessions / password_reset_tokens.user_id → user_profiles ON DELETE CASCADE

Rollback: downgrade() drops every table (destructive).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(*names: str) -> list:
    return [
        sa.Column(
            name,
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        )
        for name in names
    ]


def upgrade() -> None:
    op.create_table(
        "user_profiles",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(200), nullable=False, server_default=sa.text("''")),
        sa.Column("username", sa.String(100), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("location", sa.String(200), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("website_url", sa.String(500), nullable=True),
        sa.Column("profile_image_url", sa.String(500), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'buyer'")),
        sa.Column("shop_name", sa.String(200), nullable=True),
        sa.Column("shop_description", sa.Text(), nullable=True),
        sa.Column("instagram_handle", sa.String(100), nullable=True),
        sa.Column("facebook_url", sa.String(500), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps("created_at", "updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email", name="uq_user_profiles_email"),
    )
    op.create_index("idx_user_profiles_role", "user_profiles", ["role"])

    for table in ("auth_sessions", "password_reset_tokens"):
        final_column = "revoked_at" if table == "auth_sessions" else "used_at"
        op.create_table(
            table,
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("token_id", sa.String(64), nullable=False),
            sa.Column("secret_hash", sa.String(255), nullable=False),
            sa.Column("user_id", sa.Uuid(), nullable=False),
            *_timestamps("created_at"),
            sa.Column("expires_at", sa.TIMESTAMP(timezone=True), nullable=False),
            sa.Column(final_column, sa.TIMESTAMP(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("token_id", name=f"uq_{table}_token_id"),
            sa.ForeignKeyConstraint(["user_id"], ["user_profiles.id"], ondelete="CASCADE"),
        )
    op.create_index("idx_auth_sessions_user_id", "auth_sessions", ["user_id"])

    op.create_table(
        "products",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("artisan_id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("image_url", sa.String(500), nullable=True),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("rating", sa.Numeric(3, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("stock", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_timestamps("created_at", "updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["artisan_id"], ["user_profiles.id"], ondelete="CASCADE"),
    )
    # Newest-first is the default catalogue order
    op.create_index("idx_products_created_at", "products", [sa.text("created_at DESC")])
    op.create_index("idx_products_category", "products", ["category"])
    op.create_index("idx_products_artisan_id", "products", ["artisan_id"])

    op.create_table(
        "product_reviews",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("product_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=True),
        sa.Column("reviewer_name", sa.String(200), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=False),
        *_timestamps("created_at", "updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["user_profiles.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("product_id", "user_id", name="uq_product_reviews_product_user"),
        sa.CheckConstraint("rating >= 1 AND rating <= 5", name="ck_product_reviews_rating"),
    )
    op.create_index("idx_product_reviews_product_id", "product_reviews", ["product_id"])

    op.create_table(
        "contact_messages",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("seller_id", sa.Uuid(), nullable=False),
        sa.Column("sender_id", sa.Uuid(), nullable=True),
        sa.Column("sender_name", sa.String(200), nullable=False),
        sa.Column("sender_email", sa.String(320), nullable=False),
        sa.Column("subject", sa.String(300), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("read_at", sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["seller_id"], ["user_profiles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["sender_id"], ["user_profiles.id"], ondelete="SET NULL"),
    )
    # Seller inbox: WHERE seller_id = :id ORDER BY created_at DESC
    op.create_index(
        "idx_contact_messages_seller_created",
        "contact_messages",
        ["seller_id", sa.text("created_at DESC")],
    )


def downgrade() -> None:
    op.drop_index("idx_contact_messages_seller_created", table_name="contact_messages")
    op.drop_table("contact_messages")
    op.drop_index("idx_product_reviews_product_id", table_name="product_reviews")
    op.drop_table("product_reviews")
    op.drop_index("idx_products_artisan_id", table_name="products")
    op.drop_index("idx_products_category", table_name="products")
    op.drop_index("idx_products_created_at", table_name="products")
    op.drop_table("products")
    op.drop_index("idx_auth_sessions_user_id", table_name="auth_sessions")
    op.drop_table("password_reset_tokens")
    op.drop_table("auth_sessions")
    op.drop_index("idx_user_profiles_role", table_name="user_profiles")
    op.drop_table("user_profiles")
