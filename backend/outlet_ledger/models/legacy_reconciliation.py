"""Legacy reconciliation history.

Kept read-only for backward compatibility. The payload columns hold the
documents exactly as older app versions synced them (camelCase keys), which
is why they are JSON rather than normalized tables.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Optional

from sqlalchemy import JSON, BigInteger, Date, String
from sqlalchemy.orm import Mapped, mapped_column

from outlet_ledger.db.base import Base, SoftDeleteMixin, TimestampMixin


class LegacyReconciliationEntry(Base, TimestampMixin, SoftDeleteMixin):
    """One uploaded sales reconciliation in the old format.

    Payload shapes:
        sales_data: [{"productId", "sold", "opening"?, "received"?, "closing"?}]
        raw_consumption: [{"rawProductId", "consumed"}] or
                         [{"rawProductId", "consumedWhole", "consumedSlices"}]
        prods_req_updates: [{"productId", "prodsReqWhole", "prodsReqSlices"}]
    """

    __tablename__ = "legacy_reconciliation_entries"

    id: Mapped[int] = mapped_column(primary_key=True)
    client_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, unique=True)
    outlet: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)  # epoch ms
    sync_updated_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)  # epoch ms

    sales_data: Mapped[Optional[list[dict[str, Any]]]] = mapped_column(JSON, nullable=True)
    raw_consumption: Mapped[Optional[list[dict[str, Any]]]] = mapped_column(JSON, nullable=True)
    prods_req_updates: Mapped[Optional[list[dict[str, Any]]]] = mapped_column(JSON, nullable=True)
