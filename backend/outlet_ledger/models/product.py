"""Product and unit conversion models."""

from __future__ import annotations

from enum import Enum

from sqlalchemy import (
    Boolean, CheckConstraint, Enum as SQLEnum, ForeignKey, Integer, String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from outlet_ledger.db.base import Base, SoftDeleteMixin, TimestampMixin


class ProductCategory(str, Enum):
    """Product category."""

    MENU = "menu"  # sold to customers as-is
    KITCHEN = "kitchen"  # produced in the kitchen
    RAW = "raw"  # raw material consumed by recipes


class Product(Base, TimestampMixin, SoftDeleteMixin):
    """Product in the catalog."""

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    unit: Mapped[str] = mapped_column(String(20), default="pcs", nullable=False)
    category: Mapped[ProductCategory] = mapped_column(
        SQLEnum(ProductCategory), default=ProductCategory.MENU, nullable=False
    )
    show_in_stock: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    # Raw material whose consumption is derived from menu sales via recipes
    sales_based_raw_calc: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class ProductConversion(Base, TimestampMixin, SoftDeleteMixin):
    """Pairs a whole-unit product with its sub-unit product.

    1 whole unit == ``factor`` sub-units (e.g. one cake == 10 slices).
    """

    __tablename__ = "product_conversions"
    # No unique constraints: tombstoned rows stay behind, so duplicate pairings
    # are resolved (first live row wins) when the conversion index is built.
    __table_args__ = (
        CheckConstraint("factor > 0", name="ck_conversion_factor_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    whole_product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sub_unit_product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    factor: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relationships
    whole_product: Mapped["Product"] = relationship("Product", foreign_keys=[whole_product_id])
    sub_unit_product: Mapped["Product"] = relationship("Product", foreign_keys=[sub_unit_product_id])
