"""Production and sales report models.

Both report kinds are produced by the spreadsheet ingestion layer from
uploaded kitchen and point-of-sale exports. One report exists per
outlet/date; re-uploads replace it and leave the old one as a tombstone.
"""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import BigInteger, Date, Enum as SQLEnum, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from outlet_ledger.db.base import Base, SoftDeleteMixin, TimestampMixin


class SourceUnit(str, Enum):
    """Which unit column a sales line was read from."""

    WHOLE = "whole"
    SLICES = "slices"
    AGGREGATE = "aggregate"  # one combined figure for the whole pair
    LEGACY = "legacy"  # re-imported from the old reconciliation format


class ProductionReport(Base, TimestampMixin, SoftDeleteMixin):
    """Kitchen production for one production outlet and date."""

    __tablename__ = "production_reports"

    id: Mapped[int] = mapped_column(primary_key=True)
    outlet: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)  # epoch ms

    lines: Mapped[list["ProductionReportLine"]] = relationship(
        "ProductionReportLine", back_populates="report", cascade="all, delete-orphan",
        order_by="ProductionReportLine.id",
    )
    prods_req: Mapped[list["ProductionRequestDelta"]] = relationship(
        "ProductionRequestDelta", back_populates="report", cascade="all, delete-orphan",
        order_by="ProductionRequestDelta.id",
    )


class ProductionReportLine(Base):
    """Produced quantity of one product; paired products use the whole-side id."""

    __tablename__ = "production_report_lines"

    id: Mapped[int] = mapped_column(primary_key=True)
    report_id: Mapped[int] = mapped_column(
        ForeignKey("production_reports.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    quantity_whole: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=0, nullable=False)
    quantity_slices: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=0, nullable=False)

    report: Mapped["ProductionReport"] = relationship("ProductionReport", back_populates="lines")


class ProductionRequestDelta(Base):
    """Prods.Req quantity booked against a product alongside a production report."""

    __tablename__ = "production_request_deltas"

    id: Mapped[int] = mapped_column(primary_key=True)
    report_id: Mapped[int] = mapped_column(
        ForeignKey("production_reports.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    prods_req_whole: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=0, nullable=False)
    prods_req_slices: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=0, nullable=False)

    report: Mapped["ProductionReport"] = relationship("ProductionReport", back_populates="prods_req")


class SalesReport(Base, TimestampMixin, SoftDeleteMixin):
    """Point-of-sale reconciliation for one sales outlet and date."""

    __tablename__ = "sales_reports"

    id: Mapped[int] = mapped_column(primary_key=True)
    outlet: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)  # epoch ms

    lines: Mapped[list["SalesReportLine"]] = relationship(
        "SalesReportLine", back_populates="report", cascade="all, delete-orphan",
        order_by="SalesReportLine.id",
    )
    raw_consumption: Mapped[list["RawConsumptionLine"]] = relationship(
        "RawConsumptionLine", back_populates="report", cascade="all, delete-orphan",
        order_by="RawConsumptionLine.id",
    )


class SalesReportLine(Base):
    """Sold quantity of one product."""

    __tablename__ = "sales_report_lines"

    id: Mapped[int] = mapped_column(primary_key=True)
    report_id: Mapped[int] = mapped_column(
        ForeignKey("sales_reports.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    sold_whole: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=0, nullable=False)
    sold_slices: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=0, nullable=False)
    # NULL for reports uploaded before unit tagging existed
    source_unit: Mapped[Optional[SourceUnit]] = mapped_column(SQLEnum(SourceUnit), nullable=True)

    report: Mapped["SalesReport"] = relationship("SalesReport", back_populates="lines")


class RawConsumptionLine(Base):
    """Raw material consumed by the day's sales, already split into whole/sub-units."""

    __tablename__ = "raw_consumption_lines"

    id: Mapped[int] = mapped_column(primary_key=True)
    report_id: Mapped[int] = mapped_column(
        ForeignKey("sales_reports.id", ondelete="CASCADE"), nullable=False, index=True
    )
    raw_product_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    consumed_whole: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=0, nullable=False)
    consumed_slices: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=0, nullable=False)

    report: Mapped["SalesReport"] = relationship("SalesReport", back_populates="raw_consumption")
