"""
Base mixins for database models.

Provides common functionality:
- TimestampMixin: created_at, updated_at timestamps
- ShopScopedMixin: shop_id for per-shop isolation
- generate_uuid: UUID generation for primary keys
"""

import uuid

from sqlalchemy import JSON, Column, String, DateTime, ForeignKey, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declared_attr

# Use JSON with PostgreSQL variant for JSONB - allows SQLite in tests
JSONType = JSON().with_variant(JSONB(), "postgresql")


def generate_uuid() -> str:
    """Generate a UUID4 string for use as a primary key default."""
    return str(uuid.uuid4())


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamp columns."""

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        comment="Timestamp when record was created"
    )

    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
        comment="Timestamp when record was last updated"
    )


class ShopScopedMixin:
    """
    Mixin that adds shop_id column for per-shop isolation.

    SECURITY: shop_id comes from the verified webhook or Flow request
    context. A record is only ever read through a repository scoped to
    the same shop.
    """

    @declared_attr
    def shop_id(cls):
        return Column(
            String(64),
            ForeignKey("shopify_shops.id"),
            nullable=False,
            index=True,
            comment="Owning Shopify shop (numeric shop id)"
        )
