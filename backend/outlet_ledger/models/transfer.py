"""Inter-outlet transfer request model."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Date, Enum as SQLEnum, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from outlet_ledger.db.base import Base, SoftDeleteMixin, TimestampMixin


class TransferStatus(str, Enum):
    """Lifecycle of a transfer request."""

    PENDING = "pending"
    APPROVED = "approved"
    FULFILLED = "fulfilled"
    REJECTED = "rejected"


class TransferRequest(Base, TimestampMixin, SoftDeleteMixin):
    """A request to move stock from one outlet to another.

    ``quantity`` is expressed in whole units of ``product_id``; for a sub-unit
    product that means a count of sub-units.
    """

    __tablename__ = "transfer_requests"

    id: Mapped[int] = mapped_column(primary_key=True)
    client_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, unique=True)
    product_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    from_outlet: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    to_outlet: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    request_date: Mapped[Optional[dt.date]] = mapped_column(Date, nullable=True, index=True)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    status: Mapped[TransferStatus] = mapped_column(
        SQLEnum(TransferStatus), default=TransferStatus.PENDING, nullable=False
    )
    requested_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
