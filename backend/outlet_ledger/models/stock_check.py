"""Stock check and stock count models."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Optional

from sqlalchemy import BigInteger, Boolean, Date, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from outlet_ledger.db.base import Base, SoftDeleteMixin, TimestampMixin


class StockCheck(Base, TimestampMixin, SoftDeleteMixin):
    """A stock check taken at one outlet on one calendar date.

    Several checks may exist for the same outlet/date; the latest by
    ``timestamp`` is the one the ledger reads. Checks whose ``completed_by``
    is the automatic marker are written by transfer postings and are ignored
    by the ledger.
    """

    __tablename__ = "stock_checks"

    id: Mapped[int] = mapped_column(primary_key=True)
    client_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, unique=True)
    outlet: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)  # epoch ms
    completed_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    replace_all_inventory: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    # Relationships
    counts: Mapped[list["StockCount"]] = relationship(
        "StockCount", back_populates="stock_check", cascade="all, delete-orphan",
        order_by="StockCount.id",
    )


class StockCount(Base):
    """A single product count inside a stock check."""

    __tablename__ = "stock_counts"

    id: Mapped[int] = mapped_column(primary_key=True)
    stock_check_id: Mapped[int] = mapped_column(
        ForeignKey("stock_checks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Plain column: synced counts may reference products this device has not seen yet
    product_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=0, nullable=False)
    opening_stock: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 3), nullable=True)
    received_stock: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 3), nullable=True)
    wastage: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 3), nullable=True)
    manually_edited_date: Mapped[Optional[dt.date]] = mapped_column(Date, nullable=True)
    auto_filled_received_from_prod_req: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 3), nullable=True
    )
    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Relationships
    stock_check: Mapped["StockCheck"] = relationship("StockCheck", back_populates="counts")
