"""Outlet model."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from sqlalchemy import Enum as SQLEnum, String
from sqlalchemy.orm import Mapped, mapped_column

from outlet_ledger.db.base import Base, SoftDeleteMixin, TimestampMixin


class OutletType(str, Enum):
    """How an outlet moves stock."""

    PRODUCTION = "production"  # kitchen/warehouse, supplies other outlets
    SALES = "sales"  # sells to end customers


class Outlet(Base, TimestampMixin, SoftDeleteMixin):
    """A place that holds stock (production kitchen or sales outlet).

    Synchronized documents reference outlets by ``name``, so the name is the
    natural key used throughout the ledger.
    """

    __tablename__ = "outlets"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    outlet_type: Mapped[OutletType] = mapped_column(
        SQLEnum(OutletType), default=OutletType.SALES, nullable=False
    )
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    @property
    def is_production(self) -> bool:
        return self.outlet_type == OutletType.PRODUCTION
